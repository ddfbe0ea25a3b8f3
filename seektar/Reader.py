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

import os
import hashlib

from typing import Iterator, Optional

from seektar.Aggregate import Aggregate
from seektar.FileSystems import FileSystem
from seektar.Header import OwnerLookup
from seektar.Kernel import getLogger
from seektar.Piece import ContentChangedError
from seektar.Settings import READ_CHUNK_SIZE
from seektar.Tar import tar, tarFileSystem

logger = getLogger(__name__)


class SourceReader:
    """Unified reading interface for content served as a byte stream"""
    contentName: str # Display/download filename (e.g., folder.tar)
    contentType: str # MIME type
    size: Optional[int] # Total content length (None if unknown)
    supportsRange: bool # Whether offset/Range reads are supported

    @classmethod
    def build(
        cls,
        path: str,
        prefix: Optional[str] = None,
        fileSystem: Optional[FileSystem] = None,
        ownerLookup: Optional[OwnerLookup] = None
    ) -> 'SourceReader':
        """
        Factory method to create the appropriate SourceReader

        Args:
            path: Local directory or file, or a path inside fileSystem
            prefix: Directory name for the archived content (root name by default, "" for none)
            fileSystem: Optional FileSystem implementation path belongs to
            ownerLookup: Optional owner/group name resolver

        Returns:
            SourceReader: Reader streaming path as a tar archive
        """
        return TarSourceReader(path, prefix=prefix, fileSystem=fileSystem, ownerLookup=ownerLookup)

    def iterChunks(self, chunkSize: int, start: int = 0, length: Optional[int] = None) -> Iterator[bytes]:
        """
        Iterate over content in chunks

        Args:
            chunkSize: Size of each chunk in bytes
            start: Starting byte offset (0 for the whole content)
            length: Number of bytes to produce (None for everything after start)

        Yields:
            bytes: Content chunks
        """
        raise NotImplementedError

    def validateIntegrity(self, storedSize: int, storedHash: str = None, raiseOnError: bool = False) -> bool:
        """
        Validate that content hasn't changed since the stored metadata was captured

        Raises:
            ContentChangedError: If raiseOnError=True and validation fails
        """
        raise NotImplementedError

    def getMetadataHash(self) -> Optional[str]:
        raise NotImplementedError


class TarSourceReader(SourceReader):
    """
    SourceReader streaming a directory (or file) as an uncompressed tar archive.

    The archive is an Aggregate, so any byte range can be produced without generating the
    preceding bytes. Each iterChunks() call opens its own Cursor, so concurrent iterations
    (e.g. parallel Range requests) do not share state.
    """

    def __init__(
        self,
        path: str,
        prefix: Optional[str] = None,
        fileSystem: Optional[FileSystem] = None,
        ownerLookup: Optional[OwnerLookup] = None
    ):
        self.path = path
        self.fileSystem = fileSystem
        self.ownerLookup = ownerLookup

        if fileSystem is not None:
            rootName = fileSystem.baseName(path) or fileSystem.rootName()
        else:
            rootName = os.path.basename(os.path.abspath(path))

        # Fallback to 'archive' if the name is empty or invalid
        if not rootName or rootName in ('.', '..', '/'):
            rootName = 'archive'

        self.prefix = rootName if prefix is None else prefix
        self.contentName = f"{rootName}.tar"
        self.contentType = "application/x-tar"
        self.supportsRange = True

        self.archive = self._buildArchive()
        self.size = self.archive.size()

        logger.debug(f"TarSourceReader ready: {self.contentName}, size={self.size}")

    def _buildArchive(self) -> Aggregate:
        if self.fileSystem is not None:
            return tarFileSystem(self.fileSystem, self.path, self.prefix, ownerLookup=self.ownerLookup)
        return tar(self.path, self.prefix, ownerLookup=self.ownerLookup)

    def iterChunks(self, chunkSize: int = READ_CHUNK_SIZE, start: int = 0, length: Optional[int] = None) -> Iterator[bytes]:
        if chunkSize <= 0:
            raise ValueError(f"Invalid chunk size: {chunkSize}")
        if start < 0:
            raise ValueError(f"Invalid start offset: {start}")
        if length is not None and length < 0:
            raise ValueError(f"Invalid length: {length}")

        end = self.size if length is None else min(self.size, start + length)
        if start >= end:
            return

        with self.archive.open() as cursor:
            cursor.seek(start)
            remaining = end - start
            buffer = bytearray(chunkSize)
            chunk = bytearray()

            while remaining > 0:
                amount = cursor.readinto(memoryview(buffer)[:min(chunkSize - len(chunk), remaining)])
                if amount == 0:
                    raise ContentChangedError(
                        f"Archive ended at offset {end - remaining}, expected {end}", operation="read", path=self.path
                    )

                chunk += buffer[:amount]
                remaining -= amount

                if len(chunk) == chunkSize:
                    yield bytes(chunk)
                    chunk.clear()

            if chunk:
                yield bytes(chunk)

    def getMetadataHash(self) -> Optional[str]:
        """SHA-256 of the archive fingerprint (names, sizes and layout of every piece)"""
        return hashlib.sha256(self.archive.fingerprint()).hexdigest()

    def validateIntegrity(self, storedSize: int, storedHash: str = None, raiseOnError: bool = False) -> bool:
        """
        Rebuild the archive and compare it with previously stored size/hash
        """
        try:
            current = self._buildArchive()
        except OSError as e:
            if raiseOnError:
                raise ContentChangedError(f"Content is no longer readable: {e}", operation="validate", path=self.path) from e
            logger.warning(f"Integrity check failed for {self.path}: {e}")
            return False

        currentSize = current.size()
        currentHash = hashlib.sha256(current.fingerprint()).hexdigest()

        if currentSize != storedSize:
            message = f"Archive size changed: {storedSize} -> {currentSize}"
        elif storedHash is not None and currentHash != storedHash:
            message = "Archive content changed"
        else:
            return True

        if raiseOnError:
            raise ContentChangedError(message, operation="validate", path=self.path)

        logger.warning(f"Integrity check failed for {self.path}: {message}")
        return False
