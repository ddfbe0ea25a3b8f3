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
import sys

import bitmath

from seektar.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


def flushPrint(text, stream=None):
    """print() that flushes immediately and survives streams that cannot encode text"""
    stream = stream or sys.stdout
    try:
        print(text, file=stream, flush=True)
    except UnicodeEncodeError as e:
        logger.debug(f"Cannot encode output for {stream}: {e}")

        buffer = getattr(stream, "buffer", None)
        if buffer is None:
            print(text.encode("ascii", errors="replace").decode("ascii"), file=stream, flush=True)
        else:
            buffer.write(text.encode("utf-8", errors="replace") + b"\n")
            buffer.flush()


def formatSize(size, decimal=None, plural=None):
    """
    Human readable size with SI prefixes, e.g. "512 Bytes", "3M", "1.2G".

    Args:
        decimal: Digits after the point (default: 0 below 1 GiB, 1 below 1 TiB, 2 above)
        plural: "Bytes" instead of "Byte" for sizes below 1 kB (default: any count but 1)
    """
    if decimal is None:
        decimal = 0 if size < ONE_GB else 1 if size < ONE_TB else 2

    best = bitmath.Byte(size).best_prefix(system=bitmath.SI)

    # The byte unit is "Byte" in bitmath 1.x and "B" from 2.0 on
    if type(best) is bitmath.Byte or best.unit in ("Byte", "B"):
        if plural is None:
            plural = best.value != 1
        return "%.*f %s" % (decimal, best.value, "Bytes" if plural else "Byte")

    return best.format("{value:.%df}{unit}" % decimal).replace("B", "").upper()


def getEnv(envVar, default):
    """
    Read an environment variable converted to the type of default.

    Booleans are true only for "True". Returns default when the variable is unset or
    cannot be converted; with a None default the raw string is returned.
    """
    value = os.getenv(envVar)
    if value is None:
        return default
    if default is None:
        return value
    if isinstance(default, bool):
        return value == "True"

    try:
        return type(default)(value)
    except (ValueError, TypeError):
        logger.warning(f"Ignoring invalid {envVar}={value!r}, using {default!r}")
        return default
