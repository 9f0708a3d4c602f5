# Copyright 2024, Stockpile
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path

from humanfriendly import format_size


@dataclass
class Removal:
    """
    Summary of a deletion. Summaries compose additively so that nested or
    repeated deletions can be accumulated with ``+=``.
    """

    num_files: int = 0
    num_dirs: int = 0
    total_bytes: int = 0

    def __iadd__(self, other: "Removal") -> "Removal":
        self.num_files += other.num_files
        self.num_dirs += other.num_dirs
        self.total_bytes += other.total_bytes
        return self

    def __add__(self, other: "Removal") -> "Removal":
        return Removal(
            num_files=self.num_files + other.num_files,
            num_dirs=self.num_dirs + other.num_dirs,
            total_bytes=self.total_bytes + other.total_bytes,
        )

    def __bool__(self) -> bool:
        return bool(self.num_files or self.num_dirs)

    def __str__(self) -> str:
        if not self:
            return "No cache entries found"
        parts = []
        if self.num_files:
            parts.append(f"{self.num_files} file{'' if self.num_files == 1 else 's'}")
        if self.num_dirs:
            parts.append(f"{self.num_dirs} director{'y' if self.num_dirs == 1 else 'ies'}")
        return f"Removed {' and '.join(parts)} ({format_size(self.total_bytes, binary=True)})"


def _raise(error: OSError) -> None:
    raise error


def rm_rf(path: Path | str) -> Removal:
    """
    Recursively delete a file, symlink or directory and summarise what was
    removed. Symlinks are never followed. A path that does not exist produces
    an empty summary rather than an error.

    :param path: Path to delete
    :returns:    Summary of the deletion
    """
    removal = Removal()
    path = Path(path)
    try:
        metadata = path.lstat()
    except FileNotFoundError:
        return removal

    if not stat.S_ISDIR(metadata.st_mode):
        removal.num_files += 1
        removal.total_bytes += metadata.st_size
        path.unlink()
        return removal

    # Walk bottom-up so that every directory is empty by the time it is visited
    for dirpath, dirnames, filenames in os.walk(path, topdown=False, onerror=_raise):
        current = Path(dirpath)
        # Symlinks to directories are listed as directories but never descended
        links = [name for name in dirnames if (current / name).is_symlink()]
        for name in filenames + links:
            child = current / name
            removal.num_files += 1
            removal.total_bytes += child.lstat().st_size
            child.unlink()
        removal.num_dirs += 1
        # Anything that appeared since the walk started goes with the directory
        shutil.rmtree(current)
    return removal
