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

import functools
import os
import stat
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from .timestamp import Timestamp

ENTRYPOINTS = ("pyproject.toml", "setup.py", "setup.cfg")
"Files whose modification marks a change to a source tree"


class InstalledDist(Protocol):
    "An installed distribution, as exposed by an environment reader"

    @property
    def path(self) -> Path: ...


class TimestampKind(StrEnum):
    EXACT = "exact"
    APPROXIMATE = "approximate"


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class ArchiveTimestamp:
    """
    Modification time of a build source. A single file (such as a wheel or a
    source archive) has an exact timestamp, while a source tree is approximated
    by the newest of its entrypoint files. Comparisons only consider the
    timestamp itself.
    """

    kind: TimestampKind
    timestamp: Timestamp

    @classmethod
    def exact(cls, timestamp: Timestamp) -> "ArchiveTimestamp":
        return cls(TimestampKind.EXACT, timestamp)

    @classmethod
    def approximate(cls, timestamp: Timestamp) -> "ArchiveTimestamp":
        return cls(TimestampKind.APPROXIMATE, timestamp)

    @classmethod
    def from_path(cls, path: Path | str) -> "ArchiveTimestamp | None":
        """
        Determine the modification time of a file or a source tree.

        :param path: File or directory to inspect
        :returns:    The timestamp, or None for a directory without any
                     entrypoint file
        """
        path = Path(path)
        metadata = os.stat(path)
        if stat.S_ISREG(metadata.st_mode):
            return cls.exact(Timestamp.from_stat(metadata))
        found = []
        for name in ENTRYPOINTS:
            try:
                candidate = os.stat(path / name)
            except OSError:
                continue
            if stat.S_ISREG(candidate.st_mode):
                found.append(Timestamp.from_stat(candidate))
        if not found:
            return None
        return cls.approximate(max(found))

    @classmethod
    def from_file(cls, path: Path | str) -> "ArchiveTimestamp":
        return cls.exact(Timestamp.from_path(path))

    @staticmethod
    def up_to_date_with(source: Path | str, target: "ArchiveTarget") -> bool:
        """
        Check whether a target built from a source is at least as new as the
        source. A source tree whose age cannot be determined is never considered
        up to date.

        :param source: Built wheel, source archive or source tree
        :param target: Installed distribution or unpacked cache entry
        """
        modified = ArchiveTimestamp.from_path(source)
        if modified is None:
            return False
        return modified.timestamp <= target.timestamp()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArchiveTimestamp):
            return NotImplemented
        return self.timestamp == other.timestamp

    def __lt__(self, other: "ArchiveTimestamp") -> bool:
        if not isinstance(other, ArchiveTimestamp):
            return NotImplemented
        return self.timestamp < other.timestamp

    def __hash__(self) -> int:
        return hash(self.timestamp)


@dataclass(frozen=True)
class ArchiveTarget:
    "Something built from a source archive whose age can be compared against it"

    path: Path

    @classmethod
    def install(cls, dist: InstalledDist) -> "ArchiveTarget":
        # Installation time is taken from the distribution's metadata file
        return cls(Path(dist.path) / "METADATA")

    @classmethod
    def cache(cls, path: Path | str) -> "ArchiveTarget":
        return cls(Path(path))

    def timestamp(self) -> Timestamp:
        return Timestamp.from_path(self.path)
