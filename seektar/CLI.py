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

import argparse
import json
import os
import logging
import logging.config
import platform

from seektar.Kernel import LOG_LEVEL_MAPPING, PUBLIC_VERSION, getLogger, configureGlobalLogLevel, StorageLocator
from seektar.Settings import SettingsGetter
from seektar.Utils import flushPrint, getEnv

logger = getLogger(__name__)


def _parseEnvLine(line):
    """Returns (key, value), or None for blank and comment lines. Raises ValueError if malformed."""
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    key, separator, value = line.partition('=')
    key, value = key.strip(), value.strip()
    if not separator:
        raise ValueError('missing =')
    if not key:
        raise ValueError('empty key')

    if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        value = value[1:-1]
    return key, value


def loadEnvFile():
    """
    Load KEY=VALUE lines of the .env file found by StorageLocator into os.environ.
    Variables already present in the environment are left untouched.

    Returns:
        int: Number of variables set
    """
    envFilePath = StorageLocator.getInstance().findConfig('.env')
    if not os.path.exists(envFilePath):
        return 0

    loadedCount = 0
    with open(envFilePath, 'r', encoding='utf-8') as f:
        for lineNum, line in enumerate(f, 1):
            try:
                entry = _parseEnvLine(line)
            except ValueError as e:
                logger.warning(f'{envFilePath}:{lineNum}: ignored ({e}): {line.strip()}')
                continue

            if entry is None:
                continue

            key, value = entry
            if key in os.environ:
                logger.debug(f'.env: {key} already set in the environment')
                continue

            os.environ[key] = value
            loadedCount += 1

    logger.debug(f'Loaded {loadedCount} variables from {envFilePath}')
    return loadedCount


def configureLogging(logLevel):
    """
    Apply --log-level, or SEEKTAR_LOGGING_LEVEL when it is not given.

    The value is either a level name (DEBUG, INFO, WARNING, ERROR) or the path of a JSON
    file for logging.config.dictConfig. Unknown names fall back to WARNING.

    Returns:
        The value applied, None if neither is set
    """
    if logLevel is None:
        logLevel = getEnv('SEEKTAR_LOGGING_LEVEL', None)

    if logLevel is not None:
        if os.path.isfile(logLevel):
            try:
                with open(logLevel, 'r') as configFile:
                    logging.config.dictConfig(json.load(configFile))
                logger.info(f"Logging configured from {logLevel}")
            except (json.JSONDecodeError, ValueError, TypeError, KeyError) as e:
                logger.warning(f"Invalid logging config {logLevel}: {e}, using WARNING")
                configureGlobalLogLevel(logging.WARNING)
        elif logLevel.upper() in LOG_LEVEL_MAPPING:
            configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
            logger.info(f"Logging level set to {logLevel}")
        else:
            logger.warning(f"Unknown logging level '{logLevel}', using WARNING")
            configureGlobalLogLevel(logging.WARNING)

    # sentry_sdk debug output is never wanted on the console
    logging.getLogger('sentry_sdk').setLevel(logging.INFO)
    return logLevel


def showVersion(stream=None):
    uname = platform.uname()
    flushPrint(f"SeekTar v{PUBLIC_VERSION}", stream)
    flushPrint(f"Platform: {uname.system} {uname.release} {uname.machine}", stream)
    flushPrint(f"Owner lookup: {type(SettingsGetter.getInstance().getOwnerLookup()).__name__}", stream)


def _nonNegativeInt(valueStr):
    try:
        value = int(valueStr)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {valueStr}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"{value} cannot be negative")
    return value


def configureCLIParser():
    parser = argparse.ArgumentParser(
        prog='seektar',
        description='Write a tar archive of a directory, or any byte range of it, without building the whole archive.'
    )
    parser.add_argument("path", metavar="PATH", nargs="?", help="Directory (or file) to archive")
    parser.add_argument("--version", action="store_true", help="Show version information")
    parser.add_argument(
        "--prefix",
        default=None,
        help="Directory name for the archived content (default: name of PATH, use '' for none)"
    )
    parser.add_argument("-o", "--output", metavar="FILE", help="Write to FILE instead of standard output")
    parser.add_argument("--start", type=_nonNegativeInt, default=0, help="First archive byte to write (default: 0)")
    parser.add_argument(
        "--length", type=_nonNegativeInt, default=None, help="Number of bytes to write (default: until the end)"
    )
    parser.add_argument("--progress", action="store_true", help="Show a progress bar on standard error while writing")
    parser.add_argument("--info", action="store_true", help="Print archive name, size and metadata hash, then exit")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR) or path to a logging config JSON file"
    )
    return parser
