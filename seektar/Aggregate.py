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
Aggregate: an ordered concatenation of Pieces treated as one logical byte stream.

Piece i occupies the half-open range [sum(size(0..i)), sum(size(0..i)) + size(i)). The
layout is computed once and never changes, so the content behind the pieces must not change
while a Cursor is reading it.

Cursor is the seekable stream over an Aggregate. It keeps at most one underlying piece open:
- read() lazily locates and opens the piece covering the current offset, and closes it as
  soon as the offset leaves the piece's range
- seek() inside the open piece seeks the piece's stream in place; any other seek only
  closes it, the next read() locates again
"""

import io
import bisect

from enum import Enum, auto
from typing import Iterable, List, NamedTuple, Optional, Tuple

from seektar.Kernel import getLogger
from seektar.Piece import ArchiveIOError, ContentChangedError, Piece
from seektar.Settings import READ_CHUNK_SIZE

logger = getLogger(__name__)


class PieceLocation(NamedTuple):
    """Where a piece sits inside an Aggregate"""
    index: int
    start: int
    size: int
    piece: Piece


class Aggregate:
    """An immutable, ordered sequence of Pieces. An Aggregate is itself a Piece."""

    def __init__(self, pieces: Iterable[Piece] = ()):
        self._pieces = tuple(pieces)
        self._layout = None

    def __repr__(self):
        return f"Aggregate(pieces={len(self._pieces)})"

    def __len__(self):
        return len(self._pieces)

    def __iter__(self):
        return iter(self._pieces)

    def __getitem__(self, index):
        return self._pieces[index]

    def __add__(self, other):
        """Append another Aggregate, a sequence of pieces or a single Piece"""
        if not isinstance(other, Aggregate) and isinstance(other, Piece):
            return Aggregate(self._pieces + (other,))
        return Aggregate(self._pieces + tuple(other))

    @classmethod
    def concat(cls, aggregates: Iterable[Iterable[Piece]]) -> "Aggregate":
        """Concatenate aggregates (or piece sequences) into one flat Aggregate"""
        pieces = []
        for aggregate in aggregates:
            for piece in aggregate:
                pieces.extend(_leafPieces(piece))
        return cls(pieces)

    def flatten(self) -> "Aggregate":
        """Return an equivalent Aggregate with nested Aggregates expanded into their pieces"""
        return Aggregate.concat([self._pieces])

    def _getLayout(self) -> Tuple[List[int], List[PieceLocation], int]:
        # Published as one tuple; concurrent cursors may build it twice but never see it half done.
        layout = self._layout
        if layout is None:
            starts = []
            locations = []
            offset = 0
            for index, piece in enumerate(self._pieces):
                size = piece.size()
                # Zero-size pieces never contain an offset.
                if size > 0:
                    starts.append(offset)
                    locations.append(PieceLocation(index, offset, size, piece))
                offset += size

            layout = (starts, locations, offset)
            self._layout = layout
        return layout

    def size(self) -> int:
        return self._getLayout()[2]

    def fingerprint(self) -> bytes:
        """Ordered concatenation of every piece's decimal size and fingerprint"""
        parts = []
        for piece in self._pieces:
            parts.append(str(piece.size()).encode("ascii"))
            parts.append(piece.fingerprint())
        return b"".join(parts)

    def locate(self, offset: int) -> Optional[PieceLocation]:
        """
        Find the piece whose range contains offset.

        Returns:
            PieceLocation, or None if offset is negative or at/after the end of the aggregate
        """
        starts, locations, _ = self._getLayout()

        position = bisect.bisect_right(starts, offset) - 1
        if position < 0:
            return None

        location = locations[position]
        if offset < location.start + location.size:
            return location
        return None

    def open(self) -> "Cursor":
        """Open a new Cursor at offset 0. Nothing is opened until the first read."""
        return Cursor(self)

    def openBuffered(self, bufferSize: int = READ_CHUNK_SIZE) -> io.BufferedReader:
        """Open a buffered Cursor, for consumers that expect read(n) to return n bytes"""
        return io.BufferedReader(self.open(), buffer_size=bufferSize)


def _leafPieces(piece: Piece) -> List[Piece]:
    if isinstance(piece, Aggregate):
        leaves = []
        for child in piece:
            leaves.extend(_leafPieces(child))
        return leaves
    return [piece]


class CursorState(Enum):
    NO_UNDERLYING_OPEN = auto()
    UNDERLYING_OPEN = auto()


class Cursor(io.RawIOBase):
    """
    Seekable virtual stream over an Aggregate.

    A Cursor is not thread-safe; open one Cursor per concurrent reader.
    """

    def __init__(self, aggregate: Aggregate):
        super().__init__()
        self._state = CursorState.NO_UNDERLYING_OPEN
        self._stream = None
        self._pieceIndex = None
        self._pieceStart = 0
        self._pieceSize = 0

        self._aggregate = aggregate
        self._size = aggregate.size()
        self._offset = 0

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def size(self) -> int:
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._ensureOpen()
        return self._offset

    def _ensureOpen(self):
        if self.closed:
            raise ValueError("I/O operation on closed cursor")

    def _openUnderlying(self) -> bool:
        """
        Open the piece covering the current offset.

        Returns:
            bool: False if the offset is at the end of the aggregate
        """
        location = self._aggregate.locate(self._offset)
        if location is None:
            return False

        stream = None
        try:
            stream = location.piece.open()
            if self._offset > location.start:
                stream.seek(self._offset - location.start)
        except OSError as e:
            if stream is not None:
                stream.close()
            raise ArchiveIOError(
                f"open piece {location.index} of aggregate at offset {self._offset}: {e}",
                operation="open",
                path=getattr(location.piece, "path", None)
            ) from e

        self._stream = stream
        self._pieceIndex = location.index
        self._pieceStart = location.start
        self._pieceSize = location.size
        self._state = CursorState.UNDERLYING_OPEN

        logger.debug(f"Cursor opened piece {location.index} [{location.start}, {location.start + location.size})")
        return True

    def _closeUnderlying(self):
        if self._state is CursorState.NO_UNDERLYING_OPEN:
            return

        stream = self._stream
        self._stream = None
        self._pieceIndex = None
        self._state = CursorState.NO_UNDERLYING_OPEN
        stream.close()

        logger.debug(f"Cursor closed piece at offset {self._offset}")

    def readinto(self, buffer) -> int:
        """
        Read from the piece covering the current offset. Never reads across a piece boundary,
        so the result may be shorter than the buffer; 0 means end of the whole aggregate.
        """
        self._ensureOpen()

        if len(buffer) == 0:
            return 0

        if self._state is CursorState.NO_UNDERLYING_OPEN:
            if not self._openUnderlying():
                return 0

        pieceEnd = self._pieceStart + self._pieceSize
        want = min(len(buffer), pieceEnd - self._offset)

        try:
            data = self._stream.read(want)
        except OSError as e:
            pieceIndex = self._pieceIndex
            self._closeUnderlying()
            raise ArchiveIOError(
                f"read piece {pieceIndex} of aggregate at offset {self._offset}: {e}", operation="read"
            ) from e

        amount = len(data)
        if amount == 0:
            pieceIndex = self._pieceIndex
            self._closeUnderlying()
            raise ContentChangedError(
                f"piece {pieceIndex} ended at offset {self._offset}, expected {pieceEnd - self._offset} more bytes",
                operation="read"
            )

        buffer[:amount] = data
        self._offset += amount

        if self._offset >= pieceEnd:
            self._closeUnderlying()

        return amount

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """
        Move the cursor. Positions past the end are clamped to the aggregate size.

        Returns:
            int: New absolute offset
        """
        self._ensureOpen()

        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._offset + offset
        elif whence == io.SEEK_END:
            target = self._size + offset
        else:
            raise ValueError(f"Invalid whence ({whence})")

        if target < 0:
            raise ValueError(f"Negative seek position {target}")
        target = min(int(target), self._size)

        if target != self._offset:
            self._offset = target

            if self._state is CursorState.UNDERLYING_OPEN:
                if self._pieceStart <= target < self._pieceStart + self._pieceSize:
                    logger.debug(f"Cursor seeking piece {self._pieceIndex} in place to {target - self._pieceStart}")
                    try:
                        self._stream.seek(target - self._pieceStart)
                    except OSError as e:
                        pieceIndex = self._pieceIndex
                        self._closeUnderlying()
                        raise ArchiveIOError(
                            f"seek piece {pieceIndex} of aggregate to offset {target}: {e}", operation="seek"
                        ) from e
                else:
                    self._closeUnderlying()

        return self._offset

    def close(self):
        if not self.closed:
            try:
                self._closeUnderlying()
            finally:
                super().close()
