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


import platform as _platform

from seektar.Kernel import Singleton, getLogger
from seektar.Utils import ONE_KB, getEnv

# Chunk size used by readers, buffered cursors and the CLI (256 KiB)
READ_CHUNK_SIZE = getEnv('SEEKTAR_READ_CHUNK_SIZE', int(256 * ONE_KB))

# Resolve owner/group names from the platform identity databases
RESOLVE_OWNER_NAMES = getEnv('SEEKTAR_RESOLVE_OWNER_NAMES', True)

logger = getLogger(__name__)


# Singleton
class SettingsGetter(Singleton):

    def initialize(self, platform=None, resolveOwnerNames=None):
        """Initialize the SettingsGetter with platform name and owner lookup preference."""
        self._platform = platform or _platform.system()
        self._resolveOwnerNames = RESOLVE_OWNER_NAMES if resolveOwnerNames is None else resolveOwnerNames
        self._ownerLookup = None

    def isWindows(self):
        return self._platform == "Windows"

    def getOwnerLookup(self):
        """Default OwnerLookup used when archive builders are not given one."""
        if self._ownerLookup is None:
            from seektar.Header import NullOwnerLookup, SystemOwnerLookup

            if self._resolveOwnerNames and not self.isWindows():
                self._ownerLookup = SystemOwnerLookup()
            else:
                self._ownerLookup = NullOwnerLookup()

            logger.debug(f"Default owner lookup: {type(self._ownerLookup).__name__}")

        return self._ownerLookup
