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
import unittest

from seektar.Progress import BitmathTqdm, Progress
from seektar.Utils import ONE_MB, formatSize


class ProgressTest(unittest.TestCase):

    def testLogLines(self):
        messages = []
        progress = Progress(1000, loggerCallback=messages.append, logInterval=3600)

        progress.update(100)
        self.assertEqual(messages, [])

        progress.update(1000, forceLog=True)
        self.assertEqual(len(messages), 1)
        self.assertIn("100.00%", messages[0])
        self.assertEqual(progress.getPercentage(), 100)

    def testUnknownTotal(self):
        progress = Progress(0, loggerCallback=lambda message: None)
        progress.update(10)
        self.assertEqual(progress.getPercentage(), 0)

    def testBar(self):
        stream = io.StringIO()
        progress = Progress(2048, useBar=True, stream=stream)

        progress.update(1024)
        progress.update(2048)
        self.assertEqual(progress.pbar.n, 2048)

        progress.close()
        progress.close()
        self.assertIsNone(progress.pbar)
        self.assertIn("Progress", stream.getvalue())

    def testBarFormatsSizes(self):
        total = int(3 * ONE_MB)
        bar = BitmathTqdm(total=total, file=io.StringIO())
        try:
            bar.update(int(ONE_MB))
            formatDict = bar.format_dict
            self.assertEqual(formatDict["n_fmt"], formatSize(int(ONE_MB)))
            self.assertEqual(formatDict["total_fmt"], formatSize(total))
            self.assertTrue(formatDict["rate_fmt"].endswith("/sec"))
        finally:
            bar.close()


if __name__ == '__main__':
    unittest.main()
