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

import json
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, TypeVar


@dataclass(frozen=True, order=True)
class Timestamp:
    """
    A point in time used to measure changes to a file, held as integer
    nanoseconds since the Unix epoch. Timestamps are taken either from the
    modification time reported by the filesystem or from the wall clock.
    """

    nanos: int

    @classmethod
    def now(cls) -> "Timestamp":
        return cls(time.time_ns())

    @classmethod
    def from_stat(cls, stat: os.stat_result) -> "Timestamp":
        return cls(stat.st_mtime_ns)

    @classmethod
    def from_path(cls, path: Path | str) -> "Timestamp":
        """
        Read the modification time of a path, following symlinks.

        :param path: Path to stat
        :returns:    Timestamp of the last modification
        """
        return cls.from_stat(os.stat(path))

    def __str__(self) -> str:
        return datetime.fromtimestamp(self.nanos / 1e9, tz=timezone.utc).isoformat()


_Data = TypeVar("_Data")


@dataclass(frozen=True)
class CachedByTimestamp(Generic[_Data]):
    """
    A cache record which carries the timestamp it was computed against, used by
    entries that must be invalidated when their source changes (for example
    interpreter information keyed by the interpreter's modification time).
    """

    timestamp: Timestamp
    data: _Data

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump({"timestamp": self.timestamp.nanos, "data": self.data}, fh)

    @classmethod
    def read(cls, path: Path) -> "CachedByTimestamp[Any]":
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        return cls(timestamp=Timestamp(int(raw["timestamp"])), data=raw["data"])

    def is_valid_for(self, timestamp: Timestamp) -> bool:
        "True if this record was computed against exactly the given timestamp"
        return self.timestamp == timestamp
