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

import contextlib
import os
import pathlib
from typing import IO, Any, Generator, Union

import orjson


@contextlib.contextmanager
def smart_open(
    filename: Union[str, pathlib.Path],
    mode: str = "w",
    binary: bool = False,
    create_parent_dirs: bool = True,
) -> Generator[IO[Any], None, None]:
    path = pathlib.Path(filename)
    if create_parent_dirs and "w" in mode:
        path.parent.mkdir(parents=True, exist_ok=True)

    full_mode = mode + ("b" if binary else "")
    fh = open(path, full_mode)
    try:
        yield fh
    finally:
        fh.close()


def write_temp_bytes(filename: Union[str, pathlib.Path], content: bytes) -> pathlib.Path:
    """Writes and fsyncs content to a `.tmp` sibling of filename, returns the temp path."""
    path = pathlib.Path(filename)
    temp_path = path.with_name(path.name + ".tmp")

    with smart_open(temp_path, "w", binary=True) as file_handle:
        file_handle.write(content)
        file_handle.flush()
        os.fsync(file_handle.fileno())

    return temp_path


def atomic_write_bytes(filename: Union[str, pathlib.Path], content: bytes) -> None:
    """
    Writes content to a temporary file next to the target, fsyncs it and
    atomically replaces the target. Readers see either the previous or the new
    file, never a partial one.
    """
    os.replace(write_temp_bytes(filename, content), filename)


def read_json_file(filename: Union[str, pathlib.Path]) -> Any:
    with smart_open(filename, "r", binary=True) as file_handle:
        return orjson.loads(file_handle.read())
