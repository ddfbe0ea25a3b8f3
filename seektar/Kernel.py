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
import json
import logging
import platform
import threading

import sentry_sdk

from pathlib import Path

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.2.0'

LOG_LEVEL_MAPPING = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configureGlobalLogLevel(logLevel):
    """
    Set the level of the root logger, which every seektar logger propagates to.

    A console handler on stderr is installed the first time; later calls only adjust
    the level of the console handlers already present.
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    consoleHandlers = [
        handler for handler in rootLogger.handlers
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler)
    ]
    if not rootLogger.handlers:
        consoleHandlers = [logging.StreamHandler()]
        rootLogger.addHandler(consoleHandlers[0])

    for handler in consoleHandlers:
        handler.setLevel(logLevel)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))


envLogLevel = LOG_LEVEL_MAPPING.get(os.getenv('SEEKTAR_LOGGING_LEVEL', '').upper())
if envLogLevel is not None:
    configureGlobalLogLevel(envLogLevel)


def _initSentry(version):
    """Start the Sentry client when a SENTRY_DSN secret exists. Returns True if it was started."""
    if sentry_sdk.get_client().is_active():
        return False

    sentryDsn = SecretGetter.getInstance().get('SENTRY_DSN')
    if not sentryDsn:
        return False

    # Pending events are flushed silently at exit
    sentryAtexit.default_callback = lambda pending, timeout: None

    sentry_sdk.init(
        dsn=sentryDsn,
        release=f"seektar@{version}",
        default_integrations=False,
        integrations=[LoggingIntegration(), sentryAtexit.AtexitIntegration()],
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Module logger that also reports errors to Sentry (when configured).

    The first call for a name attaches a SentryHandler and returns a LoggerAdapter carrying
    the version in its extra fields; later calls return the plain logger.
    """
    try:
        sentryStarted = _initSentry(version)

        logger = logging.getLogger(name)
        if not any(isinstance(h, SentryHandler) for h in logger.handlers):
            sentryHandler = SentryHandler()
            sentryHandler.setFormatter(logging.Formatter('%(asctime)s version[%(version)s] : %(message)s'))
            logger.addHandler(sentryHandler)
            logger = logging.LoggerAdapter(logger, {'version': version or 'unknown'})

        if sentryStarted:
            logger.debug('Sentry initialized')
        return logger

    except Exception as e:
        fallbackLogger = logging.getLogger(name)
        fallbackLogger.warning(f"Sentry logging unavailable for {name}: {e}")
        return fallbackLogger


class Singleton:
    """
    Thread-safe singleton base class.

    Constructor arguments are only used by the first instantiation, which calls
    initialize(); getInstance() creates the instance with no arguments if needed.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            if cls not in cls._instances:
                cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not getattr(self, '_initialized', False):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        return cls._instances.get(cls) or cls()


class StorageLocator(Singleton):
    """
    Locates the .env and .secret files.

    Search order: $SEEKTAR_STORAGE_LOCATION (if it is a directory), the working directory,
    ~/.seektar, then the platform configuration directory.
    """

    def initialize(self, appName='seektar'):
        self.appName = appName
        self._homeDir = os.path.join(os.path.expanduser('~'), f'.{appName}')

        system = platform.system()
        if system == 'Windows':
            self._platformDir = os.path.join(os.getenv('APPDATA', os.path.expanduser('~')), appName)
        elif system == 'Darwin':
            self._platformDir = os.path.expanduser(f'~/Library/Application Support/{appName}')
        else:
            self._platformDir = os.path.join(os.getenv('XDG_CONFIG_HOME', os.path.expanduser('~/.config')), appName)

    def _overrideDir(self):
        location = os.getenv('SEEKTAR_STORAGE_LOCATION')
        return location if location and os.path.isdir(location) else None

    def findStorage(self, filename):
        """
        Returns:
            str: Path of the first existing candidate, or where the file should be created
        """
        overrideDir = self._overrideDir()
        candidates = [os.path.join(overrideDir, filename)] if overrideDir else []
        candidates += [
            os.path.abspath(filename),
            os.path.join(self._homeDir, filename),
            os.path.join(self._platformDir, filename),
        ]

        for path in candidates:
            if os.path.exists(path):
                return path

        return os.path.join(overrideDir or self._homeDir, filename)

    def findConfig(self, filename):
        return self.findStorage(filename)


class SecretGetter(Singleton):
    """Secrets from environment variables, falling back to the JSON .secret file"""

    DEFAULT_SECRET_FILE = '.secret'

    def initialize(self, secretFileName=DEFAULT_SECRET_FILE):
        self.secretFileName = secretFileName
        self._cache = {}
        self._secretData = None

    def getPath(self):
        return StorageLocator.getInstance().findStorage(self.secretFileName)

    def _loadSecretFile(self):
        if self._secretData is not None:
            return self._secretData

        secretPath = self.getPath()
        self._secretData = {}
        if os.path.exists(secretPath):
            try:
                self._secretData = json.loads(Path(secretPath).read_text())
            except (json.JSONDecodeError, OSError) as e:
                logging.getLogger(__name__).warning(f"Ignoring unreadable secret file {secretPath}: {e}")

        return self._secretData

    def get(self, key: str):
        """
        Returns:
            str or None: Secret value, None if it is not configured
        """
        if key in self._cache:
            return self._cache[key]

        value = os.getenv(key) or self._loadSecretFile().get(key)
        if value:
            self._cache[key] = value
        return value
