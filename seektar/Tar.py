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
Tarball generation as an Aggregate.

Each entry becomes the fragment [header][content][padding]; the archive is the
concatenation of all fragments in archive-name order, followed by the end-of-archive
marker. The result is deterministic provided the tree does not change.

Example:
    archive = tar("/path/to/directory", "directory")
    with archive.open() as tarFile:
        tarFile.seek(start)
        data = tarFile.read(length)
"""

import dataclasses
import posixpath

from typing import List, Optional, Tuple

from seektar.Aggregate import Aggregate
from seektar.FileSystems import FileSystem, LocalFileSystem, Stat
from seektar.Header import BLOCK_SIZE, HeaderRecord, OwnerLookup, TarTypeFlag, paddingSize
from seektar.Kernel import getLogger
from seektar.Piece import ArchiveIOError, ByteSegment, FileSegment, Piece, VirtualFileSegment
from seektar.Settings import SettingsGetter

logger = getLogger(__name__)

END_OF_ARCHIVE_SIZE = 2 * BLOCK_SIZE

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755


def tarEntry(record: HeaderRecord, content: Optional[Piece] = None) -> Aggregate:
    """
    Assemble one entry fragment: [header][content][padding].

    When content is given, the header size is taken from it so the two always match.
    The caller's record is left unchanged.
    """
    if content is not None:
        record = dataclasses.replace(record, size=content.size())

    pieces = [ByteSegment(record.encode())]
    if content is not None:
        pieces.append(content)
        padding = paddingSize(record.size)
        if padding:
            pieces.append(ByteSegment(bytes(padding)))
    return Aggregate(pieces)


def endOfArchive() -> ByteSegment:
    """Two zero-filled blocks terminating a tar archive"""
    return ByteSegment(bytes(END_OF_ARCHIVE_SIZE))


def _headerFromStat(stat: Stat, name: str, ownerLookup: Optional[OwnerLookup]) -> HeaderRecord:
    if stat.mode is not None:
        mode = stat.mode
    else:
        mode = DEFAULT_DIR_MODE if stat.isDir else DEFAULT_FILE_MODE

    record = HeaderRecord(
        name=name,
        mode=mode,
        uid=stat.uid,
        gid=stat.gid,
        mtime=int(stat.mtime or 0),
        typeFlag=TarTypeFlag.DIRECTORY if stat.isDir else TarTypeFlag.NORMAL_FILE,
    )
    record.fillOwnerInfo(ownerLookup or SettingsGetter.getInstance().getOwnerLookup())
    return record


def tarFile(stat: Stat, path: str, name: str, ownerLookup: Optional[OwnerLookup] = None) -> Aggregate:
    """
    Generate the fragment of a single local file or directory.

    Args:
        stat: Metadata of path (see LocalFileSystem.stat)
        path: Local path of the entry
        name: Name inside the archive, '/' separated
        ownerLookup: Owner/group name resolver (SettingsGetter default if None)
    """
    record = _headerFromStat(stat, name, ownerLookup)
    if stat.isDir:
        return tarEntry(record)
    return tarEntry(record, FileSegment(path))


def tarVirtualFile(
    fileSystem: FileSystem, stat: Stat, path: str, name: str, ownerLookup: Optional[OwnerLookup] = None
) -> Aggregate:
    """Like tarFile, but for a file or directory of a FileSystem implementation"""
    record = _headerFromStat(stat, name, ownerLookup)
    if stat.isDir:
        return tarEntry(record)
    return tarEntry(record, VirtualFileSegment(fileSystem, path))


def _archiveName(rel: str, prefix: str) -> str:
    if prefix:
        return posixpath.join(prefix, rel) if rel else prefix
    return rel


def listEntries(fileSystem: FileSystem, top: str, prefix: str = "") -> List[Tuple[str, str, Stat]]:
    """
    Enumerate a tree as (archiveName, path, stat) tuples sorted by archive name.

    The root directory is only listed when prefix is set (it is then named prefix). A root
    that is a single file is named prefix, or its base name.
    Special files (fifos, sockets, devices) are skipped.

    Raises:
        ArchiveIOError: If the tree cannot be listed or an entry cannot be stat()ed
    """
    try:
        rootStat = fileSystem.stat(top)
    except OSError as e:
        raise ArchiveIOError(f"tar {top}: {e}", operation="tar", path=top) from e

    if not rootStat.isDir:
        return [(prefix or fileSystem.baseName(top), top, rootStat)]

    entries = []
    if prefix:
        entries.append((prefix, top, rootStat))

    try:
        for dirPath, dirNames, fileNames in fileSystem.walk(top):
            for childName in dirNames + fileNames:
                path = fileSystem.joinPath(dirPath, childName)
                stat = fileSystem.stat(path)
                if not stat.isRegular:
                    logger.warning(f"Skipping special file {path}")
                    continue

                entries.append((_archiveName(fileSystem.relPath(path, top), prefix), path, stat))
    except OSError as e:
        raise ArchiveIOError(f"tar {top}: {e}", operation="tar", path=getattr(e, "filename", None) or top) from e

    entries.sort(key=lambda entry: entry[0])
    return entries


def tar(
    dirPath: str, prefix: str = "", ownerLookup: Optional[OwnerLookup] = None, endOfArchive: bool = True
) -> Aggregate:
    """
    Generate a tarball of a local directory (or single file) as an Aggregate.

    If prefix is specified, it is used as the directory name for the tarred content.
    Otherwise the content is stored relative to the root of the archive.
    """
    fileSystem = LocalFileSystem(dirPath)
    fragments = [
        tarFile(stat, path, name, ownerLookup) for name, path, stat in listEntries(fileSystem, fileSystem.rootPath, prefix)
    ]
    return _finishArchive(fragments, dirPath, endOfArchive)


def tarFileSystem(
    fileSystem: FileSystem,
    dirPath: Optional[str] = None,
    prefix: str = "",
    ownerLookup: Optional[OwnerLookup] = None,
    endOfArchive: bool = True
) -> Aggregate:
    """Like tar, but for a directory of a FileSystem implementation (its root by default)"""
    if dirPath is None:
        dirPath = fileSystem.rootPath

    fragments = [
        tarVirtualFile(fileSystem, stat, path, name, ownerLookup)
        for name, path, stat in listEntries(fileSystem, dirPath, prefix)
    ]
    return _finishArchive(fragments, dirPath, endOfArchive)


def _finishArchive(fragments: List[Aggregate], dirPath: str, withEndOfArchive: bool) -> Aggregate:
    entryCount = len(fragments)
    if withEndOfArchive:
        fragments.append(Aggregate([endOfArchive()]))

    archive = Aggregate.concat(fragments)
    logger.debug(f"Tar built for {dirPath}: entries={entryCount}, pieces={len(archive)}, size={archive.size()}")
    return archive
