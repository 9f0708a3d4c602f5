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

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from packaging.utils import NormalizedName, canonicalize_name
from packaging.version import Version

from .ranges import Range

# ==============================================================================
# Identities
# ==============================================================================


class PackageKind(StrEnum):
    ROOT = "root"
    PYTHON = "python"
    PACKAGE = "package"


@dataclass(frozen=True)
class PubGrubPackage:
    "A node in the solver's dependency graph"

    kind: PackageKind
    name: NormalizedName | None = None
    extra: str | None = None

    @classmethod
    def root(cls) -> "PubGrubPackage":
        return cls(PackageKind.ROOT)

    @classmethod
    def python(cls) -> "PubGrubPackage":
        return cls(PackageKind.PYTHON)

    @classmethod
    def package(cls, name: str, extra: str | None = None) -> "PubGrubPackage":
        return cls(PackageKind.PACKAGE, canonicalize_name(name), extra)

    def __str__(self) -> str:
        match self.kind:
            case PackageKind.PACKAGE:
                return f"{self.name}[{self.extra}]" if self.extra else str(self.name)
            case _:
                return str(self.kind)


@dataclass(frozen=True)
class PackageId:
    "Identity of one version of one package, used to deduplicate fetches"

    name: NormalizedName
    version: Version

    def __str__(self) -> str:
        return f"{self.name}=={self.version}"


# ==============================================================================
# Distributions
# ==============================================================================


class DistKind(StrEnum):
    WHEEL = "wheel"
    SOURCE = "source"


@dataclass(frozen=True)
class Dist:
    "A distribution which can be downloaded (and possibly built) from an index"

    name: NormalizedName
    version: Version
    kind: DistKind = DistKind.WHEEL
    url: str | None = None

    def package_id(self) -> PackageId:
        return PackageId(self.name, self.version)

    def __str__(self) -> str:
        return f"{self.name}=={self.version}"


@dataclass(frozen=True)
class InstalledDist:
    "A distribution already present in the target environment"

    name: NormalizedName
    version: Version
    path: Path

    def package_id(self) -> PackageId:
        return PackageId(self.name, self.version)

    def __str__(self) -> str:
        return f"{self.name}=={self.version} (installed)"


class CompatibleKind(StrEnum):
    INSTALLED = "installed"
    SOURCE_DIST = "source dist"
    COMPATIBLE_WHEEL = "compatible wheel"
    INCOMPATIBLE_WHEEL = "incompatible wheel"


@dataclass(frozen=True)
class CompatibleDist:
    """
    A distribution usable for a candidate version. An incompatible wheel cannot
    be installed on the target, but its metadata is still valid for resolution
    and the fallback source distribution is what would be installed.
    """

    kind: CompatibleKind
    dist: Dist | InstalledDist
    sdist: Dist | None = None

    @classmethod
    def installed(cls, dist: InstalledDist) -> "CompatibleDist":
        return cls(CompatibleKind.INSTALLED, dist)

    @classmethod
    def source_dist(cls, sdist: Dist) -> "CompatibleDist":
        return cls(CompatibleKind.SOURCE_DIST, sdist, sdist)

    @classmethod
    def compatible_wheel(cls, wheel: Dist, sdist: Dist | None = None) -> "CompatibleDist":
        return cls(CompatibleKind.COMPATIBLE_WHEEL, wheel, sdist)

    @classmethod
    def incompatible_wheel(cls, sdist: Dist, wheel: Dist) -> "CompatibleDist":
        return cls(CompatibleKind.INCOMPATIBLE_WHEEL, wheel, sdist)

    def prefetchable(self) -> bool:
        "Fetching ahead of need is only worthwhile where no build is required"
        return self.kind is not CompatibleKind.SOURCE_DIST

    def for_resolution(self) -> Dist | InstalledDist:
        return self.dist

    def for_installation(self) -> Dist | InstalledDist:
        if self.kind is CompatibleKind.INCOMPATIBLE_WHEEL:
            return self.sdist
        return self.dist


@dataclass(frozen=True)
class Incompatible:
    "A version with no distribution usable on the target"

    reason: str


# ==============================================================================
# Version maps
# ==============================================================================


class VersionMap:
    """
    The distributions available for each version of a package, as listed by an
    index.

    :param entries: Mapping from version to its best distribution
    """

    def __init__(self, entries: Mapping[Version | str, CompatibleDist | Incompatible]) -> None:
        self.__entries = {Version(str(k)): v for k, v in entries.items()}
        self.__ordered = sorted(self.__entries)

    def get(self, version: Version) -> CompatibleDist | Incompatible | None:
        return self.__entries.get(version)

    def versions(self, descending: bool = False) -> Iterator[Version]:
        yield from reversed(self.__ordered) if descending else self.__ordered

    def __contains__(self, version: Version) -> bool:
        return version in self.__entries

    def __len__(self) -> int:
        return len(self.__entries)


class ResponseStatus(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not found"
    NO_INDEX = "no index"
    OFFLINE = "offline"


@dataclass(frozen=True)
class VersionsResponse:
    "Outcome of listing a package's versions"

    status: ResponseStatus
    version_map: VersionMap | None = None

    @classmethod
    def found(cls, version_map: VersionMap) -> "VersionsResponse":
        return cls(ResponseStatus.FOUND, version_map)

    @classmethod
    def not_found(cls) -> "VersionsResponse":
        return cls(ResponseStatus.NOT_FOUND)

    @classmethod
    def no_index(cls) -> "VersionsResponse":
        return cls(ResponseStatus.NO_INDEX)

    @classmethod
    def offline(cls) -> "VersionsResponse":
        return cls(ResponseStatus.OFFLINE)


# ==============================================================================
# Selection
# ==============================================================================


@dataclass(frozen=True)
class Candidate:
    name: NormalizedName
    version: Version
    dist: CompatibleDist | Incompatible

    def package_id(self) -> PackageId:
        return PackageId(self.name, self.version)


class ResolutionMode(StrEnum):
    HIGHEST = "highest"
    LOWEST = "lowest"
    LOWEST_DIRECT = "lowest-direct"


@dataclass(frozen=True)
class CandidateSelector:
    """
    Chooses which version of a package to try next.

    :param resolution: Whether to prefer the newest or oldest versions
    :param direct:     Direct dependencies, which prefer the oldest version
                       under ``lowest-direct``
    """

    resolution: ResolutionMode = ResolutionMode.HIGHEST
    direct: frozenset[NormalizedName] = field(default_factory=frozenset)

    def use_highest_version(self, name: str) -> bool:
        match self.resolution:
            case ResolutionMode.HIGHEST:
                return True
            case ResolutionMode.LOWEST:
                return False
            case ResolutionMode.LOWEST_DIRECT:
                return canonicalize_name(name) not in self.direct

    def select_no_preference(
        self, name: str, range: Range, version_map: VersionMap
    ) -> Candidate | None:
        """
        Pick the preferred version within a range, ignoring any preferences from
        lock files or installed packages.

        :param name:        Package to select for
        :param range:       Versions which are acceptable
        :param version_map: Versions which are available
        :returns:           The candidate, or None if no available version fits
        """
        for version in version_map.versions(descending=self.use_highest_version(name)):
            if version in range:
                return Candidate(canonicalize_name(name), version, version_map.get(version))
        return None
