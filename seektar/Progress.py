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

import time

from tqdm import tqdm

from seektar.Utils import ONE_MB, formatSize


class BitmathTqdm(tqdm):
    """tqdm bar showing sizes and rates with formatSize."""

    def __init__(self, *args, sizeFormatter=None, **kwargs):
        self.sizeFormatter = sizeFormatter or formatSize

        if 'bar_format' not in kwargs:
            kwargs['bar_format'] = (
                '{desc}: {percentage:3.0f}%|{bar}| '
                '{n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]'
            )

        super().__init__(*args, unit='B', unit_scale=False, **kwargs)

    @property
    def format_dict(self):
        d = super().format_dict

        rate = d.get('rate', 0) or 0
        d['rate_fmt'] = f"{self.sizeFormatter(int(rate))}/sec" if rate > 0 else "0/sec"
        d['n_fmt'] = self.sizeFormatter(d.get('n', 0))

        total = d.get('total')
        d['total_fmt'] = self.sizeFormatter(total) if total is not None else '?'
        return d


class Progress:
    """
    Progress of writing totalSize bytes, shown as a bar or as periodic log lines.

    Args:
        totalSize: Number of bytes expected (0 if unknown)
        loggerCallback: Called with a message when not using a bar
        logInterval: Minimum seconds between log lines
        useBar: Draw a tqdm bar on stream (stderr by default)
    """

    def __init__(self, totalSize, sizeFormatter=None, loggerCallback=print, logInterval=2.0, useBar=False, stream=None):
        self.totalSize = totalSize
        self.sizeFormatter = sizeFormatter or formatSize
        self.loggerCallback = loggerCallback
        self.logInterval = logInterval
        self.useBar = useBar

        self.transferred = 0
        self.lastProgressTime = time.monotonic()
        self.lastProgressBytes = 0

        self.pbar = None
        if self.useBar:
            self.pbar = BitmathTqdm(
                total=totalSize or None,
                desc='Progress',
                sizeFormatter=self.sizeFormatter,
                leave=True,
                ncols=100,
                file=stream,
            )

    def update(self, bytesTransferred, forceLog=False):
        """Update with the total number of bytes transferred so far."""
        previousTransferred = self.transferred
        self.transferred = bytesTransferred

        if self.pbar is not None:
            increment = self.transferred - previousTransferred
            if increment > 0:
                self.pbar.update(increment)
            return

        currentTime = time.monotonic()
        if forceLog or (currentTime - self.lastProgressTime) >= self.logInterval or self.transferred % (5 * ONE_MB) == 0:
            self._logProgress(currentTime)

    def _logProgress(self, currentTime):
        timeDelta = currentTime - self.lastProgressTime
        bytesDelta = self.transferred - self.lastProgressBytes
        speedBytesPerSec = bytesDelta / timeDelta if timeDelta > 0 else 0

        self.loggerCallback(
            f'Progress: {self.sizeFormatter(self.transferred)}/{self.sizeFormatter(self.totalSize)} '
            f'({self.getPercentage():.2f}%), {self.sizeFormatter(int(speedBytesPerSec))}/sec'
        )

        self.lastProgressTime = currentTime
        self.lastProgressBytes = self.transferred

    def getPercentage(self):
        return (self.transferred * 100.0 / self.totalSize) if self.totalSize > 0 else 0

    def close(self):
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None
