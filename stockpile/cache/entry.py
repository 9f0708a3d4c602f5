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
from dataclasses import dataclass
from pathlib import Path

from .errors import CacheError


@dataclass(frozen=True)
class CacheEntry:
    "A file location within the cache, which may or may not exist yet"

    path: Path

    def __post_init__(self) -> None:
        if self.path.parent == self.path:
            raise CacheError(f"Cache entry {self.path} has no parent directory")

    @classmethod
    def new(cls, dirx: Path | str, file: Path | str) -> "CacheEntry":
        return cls(Path(dirx) / file)

    @classmethod
    def from_path(cls, path: Path | str) -> "CacheEntry":
        return cls(Path(path))

    @property
    def dir(self) -> Path:
        return self.path.parent

    def with_file(self, file: Path | str) -> "CacheEntry":
        "Return a sibling entry in the same directory"
        return CacheEntry.new(self.dir, file)

    def __fspath__(self) -> str:
        return os.fspath(self.path)


@dataclass(frozen=True)
class CacheShard:
    "A sub-directory namespace within a cache bucket"

    path: Path

    def entry(self, file: Path | str) -> CacheEntry:
        return CacheEntry.new(self.path, file)

    def shard(self, dirx: Path | str) -> "CacheShard":
        return CacheShard(self.path / dirx)

    def __fspath__(self) -> str:
        return os.fspath(self.path)
