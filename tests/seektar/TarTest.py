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

import io
import os
import random
import shutil
import tarfile
import tempfile
import unittest

from seektar.Aggregate import Aggregate
from seektar.FileSystems import LocalFileSystem
from seektar.Header import BLOCK_SIZE, HeaderRecord, NullOwnerLookup
from seektar.Piece import ArchiveIOError, ByteSegment
from seektar.Tar import END_OF_ARCHIVE_SIZE, listEntries, tar, tarEntry, tarFileSystem

from tests.seektar.Stubs import FIXED_MTIME, MemoryFileSystem, readFully

LONG_NAME = "a" * 50

EXPECTED_ENTRIES = [
    ("", None),
    (LONG_NAME, None),
    (LONG_NAME + "/" + LONG_NAME, b"this is a test"),
    (LONG_NAME + "/" + LONG_NAME + LONG_NAME, (LONG_NAME * 4).encode("ascii")),
    ("file1", b"testing"),
    ("file2", b"toasting123"),
]


def expectedEntries(prefix):
    entries = EXPECTED_ENTRIES if prefix else EXPECTED_ENTRIES[1:]
    return [("/".join(part for part in (prefix, name) if part), data) for name, data in entries]


def readMembers(archive):
    """Parse an archive with the standard library reader into [(name, contents or None)]"""
    members = []
    with archive.openBuffered() as stream:
        with tarfile.open(fileobj=stream, mode="r:") as tarReader:
            for info in tarReader:
                if info.isdir():
                    members.append((info.name, None))
                else:
                    with tarReader.extractfile(info) as member:
                        members.append((info.name, member.read()))
    return members


def assertRandomSeekConsistency(testCase, archive, iterations=1000, seed=0):
    rng = random.Random(seed)
    with archive.open() as cursor:
        size = cursor.seek(0, io.SEEK_END)
        testCase.assertEqual(size, archive.size())
        cursor.seek(0)
        data = readFully(cursor, size)
        testCase.assertEqual(len(data), size)

        for _ in range(iterations):
            start = rng.randrange(size)
            length = rng.randrange(1 + size - start)
            cursor.seek(start)
            testCase.assertEqual(readFully(cursor, length), data[start:start + length])


class TwoFileArchiveTest(unittest.TestCase):

    def setUp(self):
        self.tempDir = tempfile.mkdtemp()
        for name, data in [("file1", b"testing"), ("file2", b"toasting123")]:
            with open(os.path.join(self.tempDir, name), "wb") as f:
                f.write(data)

    def tearDown(self):
        shutil.rmtree(self.tempDir, ignore_errors=True)

    def testStandardReader(self):
        archive = tar(self.tempDir, ownerLookup=NullOwnerLookup())
        self.assertEqual(archive.size(), 4 * BLOCK_SIZE + END_OF_ARCHIVE_SIZE)
        self.assertEqual(readMembers(archive), [("file1", b"testing"), ("file2", b"toasting123")])

        with archive.open() as cursor:
            cursor.seek(BLOCK_SIZE)
            self.assertEqual(cursor.read(7), b"testing")
            cursor.seek(3 * BLOCK_SIZE)
            self.assertEqual(cursor.read(), b"toasting123" + bytes(BLOCK_SIZE - 11 + END_OF_ARCHIVE_SIZE))


class TarTest(unittest.TestCase):

    def setUp(self):
        self.tempDir = tempfile.mkdtemp()
        self.root = os.path.join(self.tempDir, "root")
        os.makedirs(os.path.join(self.root, LONG_NAME))

        self._write("file1", b"testing")
        self._write("file2", b"toasting123")
        self._write(os.path.join(LONG_NAME, LONG_NAME), b"this is a test")
        self._write(os.path.join(LONG_NAME, LONG_NAME + LONG_NAME), (LONG_NAME * 4).encode("ascii"))
        os.chmod(os.path.join(self.root, "file1"), 0o654)

    def tearDown(self):
        shutil.rmtree(self.tempDir, ignore_errors=True)

    def _write(self, name, data):
        with open(os.path.join(self.root, name), "wb") as f:
            f.write(data)

    def testTarWithoutPrefix(self):
        archive = tar(self.root, "", ownerLookup=NullOwnerLookup())
        assertRandomSeekConsistency(self, archive)
        self.assertEqual(readMembers(archive), expectedEntries(""))

    def testTarWithPrefix(self):
        archive = tar(self.root, "Dir", ownerLookup=NullOwnerLookup())
        assertRandomSeekConsistency(self, archive)
        self.assertEqual(readMembers(archive), expectedEntries("Dir"))

    def testArchiveLayout(self):
        archive = tar(self.root, "Dir", ownerLookup=NullOwnerLookup())
        self.assertEqual(archive.size() % BLOCK_SIZE, 0)

        with archive.open() as cursor:
            cursor.seek(-END_OF_ARCHIVE_SIZE, io.SEEK_END)
            self.assertEqual(readFully(cursor, END_OF_ARCHIVE_SIZE), bytes(END_OF_ARCHIVE_SIZE))

        withoutMarker = tar(self.root, "Dir", ownerLookup=NullOwnerLookup(), endOfArchive=False)
        self.assertEqual(withoutMarker.size(), archive.size() - END_OF_ARCHIVE_SIZE)

    def testMetadata(self):
        archive = tar(self.root, "", ownerLookup=NullOwnerLookup())
        with archive.openBuffered() as stream:
            with tarfile.open(fileobj=stream, mode="r:") as tarReader:
                info = tarReader.getmember("file1")

        st = os.stat(os.path.join(self.root, "file1"))
        self.assertEqual(info.mode, 0o654)
        self.assertEqual(info.mtime, int(st.st_mtime))
        self.assertEqual(info.size, 7)
        self.assertEqual(info.uid, st.st_uid)

    def testDeterministic(self):
        first = tar(self.root, "Dir", ownerLookup=NullOwnerLookup())
        second = tar(self.root, "Dir", ownerLookup=NullOwnerLookup())
        self.assertEqual(first.size(), second.size())
        self.assertEqual(first.fingerprint(), second.fingerprint())

        with first.open() as a, second.open() as b:
            self.assertEqual(a.read(), b.read())

    def testSingleFileRoot(self):
        path = os.path.join(self.root, "file2")

        archive = tar(path, "", ownerLookup=NullOwnerLookup())
        self.assertEqual(readMembers(archive), [("file2", b"toasting123")])

        archive = tar(path, "renamed.txt", ownerLookup=NullOwnerLookup())
        self.assertEqual(readMembers(archive), [("renamed.txt", b"toasting123")])

    def testEmptyDirectory(self):
        emptyDir = os.path.join(self.tempDir, "empty")
        os.makedirs(emptyDir)

        self.assertEqual(tar(emptyDir, "").size(), END_OF_ARCHIVE_SIZE)
        self.assertEqual(readMembers(tar(emptyDir, "empty", ownerLookup=NullOwnerLookup())), [("empty", None)])

    def testMissingDirectory(self):
        with self.assertRaises(ArchiveIOError) as context:
            tar(os.path.join(self.tempDir, "missing"))
        self.assertIsInstance(context.exception.__cause__, FileNotFoundError)

    @unittest.skipUnless(hasattr(os, "mkfifo"), "requires os.mkfifo")
    def testSpecialFilesAreSkipped(self):
        os.mkfifo(os.path.join(self.root, "pipe"))

        with self.assertLogs("seektar.Tar", level="WARNING"):
            archive = tar(self.root, "", ownerLookup=NullOwnerLookup())
        self.assertEqual(readMembers(archive), expectedEntries(""))

    def testContentChangeAfterBuild(self):
        archive = tar(self.root, "", ownerLookup=NullOwnerLookup())
        self._write("file2", b"toast")

        with self.assertRaises(ArchiveIOError):
            with archive.open() as cursor:
                cursor.read()


class TarFileSystemTest(unittest.TestCase):

    def setUp(self):
        self.fileSystem = MemoryFileSystem({
            "/data/file1": b"testing",
            "/data/file2": b"toasting123",
            f"/data/{LONG_NAME}/{LONG_NAME}": b"this is a test",
            f"/data/{LONG_NAME}/{LONG_NAME}{LONG_NAME}": (LONG_NAME * 4).encode("ascii"),
        })

    def testTarFileSystem(self):
        for prefix in ["", "Dir"]:
            with self.subTest(prefix=prefix):
                archive = tarFileSystem(self.fileSystem, "/data", prefix, ownerLookup=NullOwnerLookup())
                assertRandomSeekConsistency(self, archive, iterations=300)
                self.assertEqual(readMembers(archive), expectedEntries(prefix))

    def testRootOfFileSystem(self):
        fileSystem = MemoryFileSystem({"/file1": b"testing", "/file2": b"toasting123"})
        archive = tarFileSystem(fileSystem, ownerLookup=NullOwnerLookup())
        self.assertEqual(readMembers(archive), [("file1", b"testing"), ("file2", b"toasting123")])

    def testDefaultModesAndMtime(self):
        archive = tarFileSystem(self.fileSystem, "/data", "Dir", ownerLookup=NullOwnerLookup())
        with archive.openBuffered() as stream:
            with tarfile.open(fileobj=stream, mode="r:") as tarReader:
                directory = tarReader.getmember("Dir")
                file1 = tarReader.getmember("Dir/file1")

        self.assertEqual(directory.mode, 0o755)
        self.assertEqual(file1.mode, 0o644)
        self.assertEqual(file1.mtime, int(FIXED_MTIME))

    def testFilesAreOpenedLazily(self):
        archive = tarFileSystem(self.fileSystem, "/data", "", ownerLookup=NullOwnerLookup())
        self.assertEqual(self.fileSystem.openCount, 0)

        with archive.open() as cursor:
            cursor.seek(archive.size() - END_OF_ARCHIVE_SIZE - BLOCK_SIZE)
            self.assertEqual(cursor.read(BLOCK_SIZE)[:11], b"toasting123")
        self.assertEqual(self.fileSystem.openCount, 1)

    def testListEntries(self):
        entries = listEntries(self.fileSystem, "/data", "Dir")
        self.assertEqual([name for name, _, _ in entries], [name for name, _ in expectedEntries("Dir")])
        self.assertEqual(entries[0][1], "/data")
        self.assertTrue(entries[0][2].isDir)


class TarEntryTest(unittest.TestCase):

    def testSizeTakenFromContent(self):
        record = HeaderRecord(name="file", mode=0o644, size=999)
        fragment = tarEntry(record, ByteSegment(b"abc"))

        self.assertEqual(record.size, 999)
        self.assertEqual(fragment.size(), BLOCK_SIZE * 2)
        self.assertEqual(len(fragment), 3)

        with fragment.open() as reader:
            header = tarfile.TarInfo.frombuf(readFully(reader, BLOCK_SIZE), "utf-8", "surrogateescape")
        self.assertEqual(header.size, 3)

    def testAlignedContentHasNoPadding(self):
        fragment = tarEntry(HeaderRecord(name="file"), ByteSegment(bytes(BLOCK_SIZE)))
        self.assertEqual(len(fragment), 2)
        self.assertEqual(fragment.size(), BLOCK_SIZE * 2)

    def testHeaderOnlyEntry(self):
        fragment = tarEntry(HeaderRecord(name="dir"))
        self.assertEqual(fragment.size(), BLOCK_SIZE)

    def testHandBuiltArchive(self):
        archive = Aggregate.concat([
            tarEntry(HeaderRecord(name="hello.txt", mode=0o644), ByteSegment(b"hello world")),
            [ByteSegment(bytes(END_OF_ARCHIVE_SIZE))],
        ])
        self.assertEqual(readMembers(archive), [("hello.txt", b"hello world")])


class LocalFileSystemTest(unittest.TestCase):

    def setUp(self):
        self.tempDir = tempfile.mkdtemp()
        os.makedirs(os.path.join(self.tempDir, "sub"))
        with open(os.path.join(self.tempDir, "sub", "file"), "wb") as f:
            f.write(b"12345")

    def tearDown(self):
        shutil.rmtree(self.tempDir, ignore_errors=True)

    def testStat(self):
        fileSystem = LocalFileSystem(self.tempDir)

        stat = fileSystem.stat(os.path.join(self.tempDir, "sub", "file"))
        self.assertEqual(stat.size, 5)
        self.assertFalse(stat.isDir)
        self.assertTrue(stat.isRegular)
        self.assertIsNotNone(stat.mode)

        self.assertTrue(fileSystem.stat(os.path.join(self.tempDir, "sub")).isDir)

    def testPathHelpers(self):
        fileSystem = LocalFileSystem(self.tempDir)
        path = fileSystem.joinPath(fileSystem.joinPath(self.tempDir, "sub"), "file")

        self.assertEqual(fileSystem.relPath(path, self.tempDir), "sub/file")
        self.assertEqual(fileSystem.relPath(self.tempDir, self.tempDir), "")
        self.assertEqual(fileSystem.baseName(path), "file")
        self.assertEqual(fileSystem.rootName(), os.path.basename(self.tempDir))


if __name__ == '__main__':
    unittest.main()
