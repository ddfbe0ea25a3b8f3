#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# SeekTar - Seekable, lazily generated tar archives
# Copyright (C) 2026 SeekTar contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
USTAR header encoding.

Layout of the 512-byte header block (offset: field, width):
    0: name (suffix)   100      257: magic+version    8
  100: mode              8      265: uname           32
  108: uid               8      297: gname           32
  116: gid               8      329: devmajor         8
  124: size             12      337: devminor         8
  136: mtime            12      345: prefix         155
  148: checksum          8      500: padding         12
  156: typeflag          1
  157: linkname        100
"""

import functools

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple

try:
    import grp
    import pwd
except ImportError: # Windows has no identity databases
    grp = pwd = None

from seektar.Kernel import getLogger

logger = getLogger(__name__)

BLOCK_SIZE = 512
NAME_SIZE = 100
PREFIX_SIZE = 155
OWNER_NAME_SIZE = 32
CHECKSUM_OFFSET = 148
CHECKSUM_SIZE = 8
USTAR_MAGIC = b"ustar\x0000"
SEPARATOR = b"/"


class TarTypeFlag(Enum):
    NORMAL_FILE = b"0"
    DIRECTORY = b"5"


class OwnerLookup(Protocol):
    """Resolves numeric owner/group ids to names; None when unknown"""

    def userName(self, uid: int) -> Optional[str]:
        ...

    def groupName(self, gid: int) -> Optional[str]:
        ...


class NullOwnerLookup:
    """OwnerLookup that never resolves anything (owner fields stay blank)"""

    def userName(self, uid: int) -> Optional[str]:
        return None

    def groupName(self, gid: int) -> Optional[str]:
        return None


@functools.lru_cache(maxsize=None)
def _lookupUserName(uid: int) -> Optional[str]:
    if pwd is None:
        return None
    try:
        return pwd.getpwuid(uid).pw_name
    except (KeyError, OverflowError) as e:
        logger.debug(f"Unable to resolve user name for uid {uid}: {e}")
        return None


@functools.lru_cache(maxsize=None)
def _lookupGroupName(gid: int) -> Optional[str]:
    if grp is None:
        return None
    try:
        return grp.getgrgid(gid).gr_name
    except (KeyError, OverflowError) as e:
        logger.debug(f"Unable to resolve group name for gid {gid}: {e}")
        return None


class SystemOwnerLookup:
    """OwnerLookup backed by the platform user/group databases (cached per id)"""

    def userName(self, uid: int) -> Optional[str]:
        return _lookupUserName(int(uid))

    def groupName(self, gid: int) -> Optional[str]:
        return _lookupGroupName(int(gid))


@dataclass
class HeaderRecord:
    """Metadata of one archive entry"""
    name: str
    mode: int = 0
    uid: int = 0
    gid: int = 0
    size: int = 0
    mtime: int = 0
    typeFlag: TarTypeFlag = TarTypeFlag.NORMAL_FILE
    linkName: str = ""
    ownerName: str = ""
    groupName: str = ""
    deviceMajor: int = 0
    deviceMinor: int = 0

    def fillOwnerInfo(self, ownerLookup: OwnerLookup):
        """Fill owner/group names from the ids; unresolved names stay blank"""
        self.ownerName = ownerLookup.userName(self.uid) or ""
        self.groupName = ownerLookup.groupName(self.gid) or ""

    def encode(self) -> bytes:
        return encodeHeader(self)


def padNull(data: bytes, length: int) -> bytes:
    """Truncate or null-pad data to exactly length bytes"""
    return data[:length].ljust(length, b"\x00")


def formatNumber(value: int, width: int, terminator: bytes = b"\x00", zeroPad: bool = True) -> bytes:
    """
    Encode a numeric header field of exactly width bytes.

    Values that fit are written as octal text followed by terminator. Larger values use the
    GNU base-256 form: a 0x80 marker byte followed by the big-endian value.

    Raises:
        ValueError: If value does not fit even in base-256 form
    """
    value = max(0, int(value))
    digits = width - len(terminator)
    text = ("%0*o" if zeroPad else "%*o") % (digits, value)
    if len(text) <= digits:
        return text.encode("ascii") + terminator

    if value >= 256 ** (width - 1):
        raise ValueError(f"Value {value} does not fit in a {width} byte header field")
    return b"\x80" + value.to_bytes(width - 1, "big")


def splitFilename(name: bytes) -> Tuple[bytes, bytes]:
    """
    Split an encoded entry name into (prefix, suffix).

    Names up to NAME_SIZE bytes are not split. Longer names are split at the last '/' whose
    index is at most PREFIX_SIZE; the separator itself is dropped. Names without such a
    separator are left whole (and truncated by the name field).
    """
    prefix = b""
    suffix = name
    if len(name) > NAME_SIZE:
        index = name.rfind(SEPARATOR, 0, PREFIX_SIZE + 1)
        if index >= 0:
            prefix = name[:index]
            suffix = name[index + 1:]
    return prefix, suffix


def computeChecksum(block: bytes) -> int:
    """Sum of all bytes of a header block, with the checksum field counted as spaces"""
    return (
        sum(block[:CHECKSUM_OFFSET]) + ord(" ") * CHECKSUM_SIZE + sum(block[CHECKSUM_OFFSET + CHECKSUM_SIZE:])
    )


def encodeHeader(record: HeaderRecord) -> bytes:
    """Encode a HeaderRecord into one 512-byte USTAR header block"""
    prefix, suffix = splitFilename(record.name.encode("utf-8"))

    block = bytearray()
    block += padNull(suffix, NAME_SIZE)
    block += formatNumber(record.mode & 0o7777, 8, b" \x00")
    block += formatNumber(record.uid, 8, b" \x00")
    block += formatNumber(record.gid, 8, b" \x00")
    block += formatNumber(record.size, 12, b"\x00", zeroPad=False)
    block += formatNumber(record.mtime, 12, b"\x00", zeroPad=False)
    block += b" " * CHECKSUM_SIZE
    block += record.typeFlag.value
    block += padNull(record.linkName.encode("utf-8"), NAME_SIZE)
    block += USTAR_MAGIC
    block += padNull(record.ownerName.encode("utf-8"), OWNER_NAME_SIZE)
    block += padNull(record.groupName.encode("utf-8"), OWNER_NAME_SIZE)
    block += formatNumber(record.deviceMajor, 8, b" \x00")
    block += formatNumber(record.deviceMinor, 8, b" \x00")
    block += padNull(prefix, PREFIX_SIZE)
    block += bytes(BLOCK_SIZE - len(block))

    # Only valid once every other field is in place.
    checksum = computeChecksum(block)
    block[CHECKSUM_OFFSET:CHECKSUM_OFFSET + CHECKSUM_SIZE] = b"%06o\x00 " % checksum
    return bytes(block)


def paddingSize(contentSize: int) -> int:
    """Number of zero bytes needed to align content to the next block boundary"""
    return (BLOCK_SIZE - contentSize % BLOCK_SIZE) % BLOCK_SIZE
