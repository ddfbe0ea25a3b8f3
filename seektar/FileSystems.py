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
Sources of archive entries.

Tar.py walks a FileSystem to enumerate entries and stats each one; file contents are
read lazily through FileSegment (local files) or VirtualFileSegment (any other
FileSystem implementation, e.g. in-memory or remote trees).
"""

import os
import stat as _stat

from dataclasses import dataclass
from typing import BinaryIO, Iterable, List, Optional, Protocol, Tuple

from seektar.Kernel import getLogger

logger = getLogger(__name__)


@dataclass
class Stat:
    """Entry metadata needed for a tar header"""
    size: int
    mtime: Optional[float]
    isDir: bool
    mode: Optional[int] = None # Permission bits; None uses the archive defaults
    uid: int = 0
    gid: int = 0
    isRegular: bool = True # False for fifos, sockets and devices


class FileSystem(Protocol):
    """Tree of directories and files that can be archived"""

    def rootName(self) -> str:
        ... # Display name of the tree, used when a path has no base name

    @property
    def rootPath(self) -> str:
        ...

    def walk(self, top: str) -> Iterable[Tuple[str, List[str], List[str]]]:
        ... # Same contract as os.walk (top-down); errors are raised, not ignored

    def stat(self, path: str) -> Stat:
        ...

    def open(self, path: str) -> BinaryIO:
        ... # New seekable binary stream at offset 0

    def joinPath(self, parent: str, name: str) -> str:
        ...

    def relPath(self, path: str, base: str) -> str:
        ... # '/' separated; "" when path is base

    def baseName(self, path: str) -> str:
        ...


class LocalFileSystem:
    """FileSystem over a local directory (or a single local file)"""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        logger.debug(f"LocalFileSystem at {self.root}")

    def rootName(self) -> str:
        return os.path.basename(self.root) or "archive"

    @property
    def rootPath(self) -> str:
        return self.root

    def walk(self, top: str) -> Iterable[Tuple[str, List[str], List[str]]]:
        """
        Raises:
            OSError: If a directory cannot be listed
        """
        def raiseError(error):
            raise error

        return os.walk(top, onerror=raiseError)

    def stat(self, path: str) -> Stat:
        st = os.stat(path)
        isDir = _stat.S_ISDIR(st.st_mode)
        return Stat(
            size=0 if isDir else st.st_size,
            mtime=st.st_mtime,
            isDir=isDir,
            mode=_stat.S_IMODE(st.st_mode),
            uid=getattr(st, 'st_uid', 0),
            gid=getattr(st, 'st_gid', 0),
            isRegular=isDir or _stat.S_ISREG(st.st_mode),
        )

    def open(self, path: str) -> BinaryIO:
        return open(path, "rb")

    def joinPath(self, parent: str, name: str) -> str:
        return os.path.join(parent, name)

    def relPath(self, path: str, base: str) -> str:
        rel = os.path.relpath(path, base)
        return "" if rel == os.curdir else rel.replace(os.sep, "/")

    def baseName(self, path: str) -> str:
        return os.path.basename(path.rstrip(os.sep))
