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

import sys

from seektar.CLI import configureCLIParser, configureLogging, loadEnvFile, showVersion
from seektar.Kernel import getLogger
from seektar.Progress import Progress
from seektar.Reader import SourceReader
from seektar.Settings import READ_CHUNK_SIZE, SettingsGetter
from seektar.Utils import flushPrint, formatSize

logger = getLogger(__name__)


def writeArchive(reader, output, start=0, length=None, progress=None):
    """
    Write the archive (or the [start, start + length) range of it) to a binary stream

    Returns:
        int: Number of bytes written
    """
    written = 0
    for chunk in reader.iterChunks(READ_CHUNK_SIZE, start=start, length=length):
        output.write(chunk)
        written += len(chunk)
        if progress:
            progress.update(written)
    output.flush()
    return written


def showInfo(reader, stream=None):
    flushPrint(f"Name: {reader.contentName}", stream)
    flushPrint(f"Size: {reader.size} ({formatSize(reader.size)})", stream)
    flushPrint(f"Metadata hash: {reader.getMetadataHash()}", stream)


def main(argv=None):
    """
    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    loadEnvFile()

    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.log_level)
    SettingsGetter.getInstance()

    if args.version:
        showVersion()
        return 0

    if not args.path:
        parser.print_usage(sys.stderr)
        return 1

    try:
        reader = SourceReader.build(args.path, prefix=args.prefix)

        if args.info:
            showInfo(reader)
            return 0

        if args.start > reader.size:
            flushPrint(f'Start offset {args.start} is beyond the archive size {reader.size}', sys.stderr)
            return 1

        end = reader.size if args.length is None else min(reader.size, args.start + args.length)
        progress = Progress(end - args.start, useBar=True) if args.progress else None

        try:
            if args.output:
                with open(args.output, "wb") as output:
                    written = writeArchive(reader, output, args.start, args.length, progress)
            else:
                written = writeArchive(reader, sys.stdout.buffer, args.start, args.length, progress)
        finally:
            if progress:
                progress.close()

        logger.info(f"Wrote {written} bytes of {reader.contentName}")
        return 0

    except OSError as e:
        flushPrint(f'Error: {e}', sys.stderr)
        logger.debug(f"Archive generation failed for {args.path}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
