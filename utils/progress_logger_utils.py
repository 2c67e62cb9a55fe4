# MIT License
#
# Copyright (c) 2018 Evgeny Medvedev, evge.medvedev@gmail.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

from datetime import datetime
from typing import Optional

from utils.logger_utils import get_logger


class ProgressLogger:
    """
    Logs progress of a contract scan every `log_item_step` contracts, or every
    `log_percentage_step` percent when the number of contracts is known up front.
    Skipped contracts count towards progress but are reported separately.
    """

    def __init__(
        self,
        name: str = "work",
        logger=None,
        log_percentage_step: int = 10,
        log_item_step: int = 5000,
    ):
        self.name = name
        self.total_items: Optional[int] = None

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.processed = 0
        self.skipped = 0
        self.log_percentage_step = log_percentage_step
        self.log_items_step = log_item_step
        self.logger = logger if logger is not None else get_logger("Progress Logger")

    def start(self, total_items: Optional[int] = None):
        self.total_items = total_items
        self.start_time = datetime.now()
        start_message = f"Started {self.name}."
        if self.total_items is not None:
            start_message += f" Contracts to process: {self.total_items}."
        self.logger.info(start_message)

    def track(self, item_count: int = 1, skipped: bool = False):
        if skipped:
            self.skipped += item_count

        before = self.processed
        self.processed += item_count

        track_message = None
        if self.total_items is None:
            if (before // self.log_items_step) != (self.processed // self.log_items_step):
                track_message = f"{self.processed} contracts processed ({self.skipped} skipped)."
        elif self.total_items > 0:
            percentage = self.processed * 100 / self.total_items
            percentage_before = before * 100 / self.total_items
            if int(percentage_before / self.log_percentage_step) != int(percentage / self.log_percentage_step):
                track_message = (
                    f"{self.processed} contracts processed ({self.skipped} skipped). Progress is {int(percentage)}%."
                )

        if track_message is not None:
            self.logger.info(track_message)

    def finish(self):
        if self.start_time is None:
            return

        self.end_time = datetime.now()
        duration = self.end_time - self.start_time
        seconds = duration.total_seconds()
        rate = self.processed / seconds if seconds > 0 else 0.0

        self.logger.info(
            f"Finished {self.name}. Contracts processed: {self.processed}, skipped: {self.skipped}. "
            f"Took {duration} ({rate:.1f} contracts/s)."
        )
        self.start_time = None
