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

import os
from typing import Any, Dict

import orjson

from utils.file_utils import atomic_write_bytes, write_temp_bytes
from utils.logger_utils import get_logger

logger = get_logger("Checkpoint Writer")

ORJSON_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS | orjson.OPT_SORT_KEYS


class CheckpointWriter(object):
    """
    Writes aggregate snapshots as JSON files into a result folder.
    Every write replaces the whole file atomically; snapshots are never appended.

    A flush serializes and stages every artifact before replacing any of them,
    so a serialization or disk error leaves the previous snapshot untouched.
    The final renames are atomic per file only.
    """

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.flush_count = 0

    def write(self, name: str, data: Any) -> str:
        path = os.path.join(self.output_dir, name)
        atomic_write_bytes(path, orjson.dumps(data, option=ORJSON_OPTIONS))
        return path

    def flush(self, artifacts: Dict[str, Any]) -> None:
        contents = {
            os.path.join(self.output_dir, name): orjson.dumps(data, option=ORJSON_OPTIONS)
            for name, data in artifacts.items()
        }

        staged = []
        try:
            for path, content in contents.items():
                staged.append((write_temp_bytes(path, content), path))
        except OSError:
            for temp_path, _ in staged:
                temp_path.unlink(missing_ok=True)
            raise

        for temp_path, path in staged:
            os.replace(temp_path, path)
        self.flush_count += 1
        logger.debug(f"Flushed {len(artifacts)} artifacts to {self.output_dir}")
