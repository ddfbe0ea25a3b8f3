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
Pieces of a virtual archive.

A Piece is an independently openable, fixed size source of bytes that contributes one
contiguous range to a virtual stream:
- ByteSegment: in-memory bytes (headers, padding)
- FileSegment: a file on the local filesystem
- VirtualFileSegment: a file inside a FileSystem implementation

Every open() returns a new stream positioned at offset 0, so pieces can be shared by any
number of concurrent readers.
"""

import io
import os
import stat as _stat

from typing import BinaryIO, Protocol, runtime_checkable

from seektar.Kernel import getLogger

logger = getLogger(__name__)


class ArchiveIOError(OSError):
    """I/O failure while building or reading a virtual archive"""

    def __init__(self, message: str, operation: str = None, path: str = None):
        super().__init__(message)
        self.operation = operation
        self.path = path


class ContentChangedError(ArchiveIOError):
    """Raised when the underlying content no longer matches what the archive was built from"""


@runtime_checkable
class Piece(Protocol):
    """Capability set shared by all segments (and by Aggregate)"""

    def size(self) -> int:
        ...

    def fingerprint(self) -> bytes:
        ...

    def open(self) -> BinaryIO:
        ...


class ByteSegment:
    """A Piece of pre-defined data"""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def __repr__(self):
        return f"ByteSegment(size={len(self._data)})"

    def size(self) -> int:
        return len(self._data)

    def fingerprint(self) -> bytes:
        return self._data

    def open(self) -> BinaryIO:
        return io.BytesIO(self._data)


class FileSegment:
    """A Piece that is stored in a file on disk"""

    def __init__(self, path: str):
        """
        Args:
            path: Path of a regular file. It is stat()ed immediately.

        Raises:
            ArchiveIOError: If the path does not exist, is not accessible or is a directory
        """
        try:
            st = os.stat(path)
        except OSError as e:
            raise ArchiveIOError(f"create file segment {path}: {e}", operation="create file segment", path=path) from e

        if _stat.S_ISDIR(st.st_mode):
            raise ArchiveIOError(
                f"create file segment {path}: is a directory", operation="create file segment", path=path
            )

        self._path = path
        self._size = int(st.st_size)

    def __repr__(self):
        return f"FileSegment({self._path!r}, size={self._size})"

    @property
    def path(self) -> str:
        return self._path

    def size(self) -> int:
        return self._size

    def fingerprint(self) -> bytes:
        return os.fsencode(self._path)

    def open(self) -> BinaryIO:
        return open(self._path, "rb")


class VirtualFileSegment:
    """A Piece that is stored in a file of a FileSystem implementation"""

    def __init__(self, fileSystem, path: str):
        """
        Args:
            fileSystem: Object following the FileSystem protocol (see FileSystems.py)
            path: Path of the file inside fileSystem

        Raises:
            ArchiveIOError: If the path cannot be stat()ed or is a directory
        """
        try:
            stat = fileSystem.stat(path)
        except OSError as e:
            raise ArchiveIOError(
                f"create virtual file segment {path}: {e}", operation="create virtual file segment", path=path
            ) from e

        if stat.isDir:
            raise ArchiveIOError(
                f"create virtual file segment {path}: is a directory",
                operation="create virtual file segment",
                path=path
            )

        self._fileSystem = fileSystem
        self._path = path
        self._size = int(stat.size)

    def __repr__(self):
        return f"VirtualFileSegment({self._path!r}, size={self._size})"

    @property
    def path(self) -> str:
        return self._path

    def size(self) -> int:
        return self._size

    def fingerprint(self) -> bytes:
        return self._path.encode("utf-8")

    def open(self) -> BinaryIO:
        return self._fileSystem.open(self._path)
