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

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from packaging.version import Version

from .candidates import (
    Candidate,
    CandidateSelector,
    CompatibleDist,
    PackageKind,
    PubGrubPackage,
    ResponseStatus,
    VersionMap,
)
from .errors import UnregisteredError
from .once_map import InMemoryIndex
from .ranges import Range
from .requests import Request

if TYPE_CHECKING:
    from ..config import CacheConfig

DEFAULT_THRESHOLDS = (5, 10, 20)
DEFAULT_INTERVAL = 20
DEFAULT_BATCH_LIMIT = 50


class RequestSink(Protocol):
    async def send(self, request: Request) -> None: ...


class PrefetchPhase(StrEnum):
    COMPATIBLE = "compatible"
    IN_ORDER = "in order"


@dataclass(frozen=True)
class BatchPrefetchStrategy:
    """
    Cursor over the versions of a package while emitting a batch. It starts by
    walking the range the solver currently considers compatible. Once that is
    exhausted it walks the versions beyond the last one selected regardless of
    the range, because packages released in lock step (for example one that
    pins its sibling to the same version) only reveal which version of the
    sibling will be needed next after the current one is rejected.
    """

    phase: PrefetchPhase
    previous: Version
    compatible: Range | None = None

    @classmethod
    def compatible_with(cls, compatible: Range, previous: Version) -> "BatchPrefetchStrategy":
        return cls(PrefetchPhase.COMPATIBLE, previous, compatible)

    @classmethod
    def in_order(cls, previous: Version) -> "BatchPrefetchStrategy":
        return cls(PrefetchPhase.IN_ORDER, previous)

    def advance(
        self, name: str, version_map: VersionMap, selector: CandidateSelector
    ) -> tuple[Candidate | None, "BatchPrefetchStrategy | None"]:
        """
        Select the next candidate.

        :returns: The candidate and the strategy to continue with. A missing
                  candidate with a strategy means the compatible range ran out
                  and the walk continues in order, while a missing strategy
                  means there is nothing left to select.
        """
        match self.phase:
            case PrefetchPhase.COMPATIBLE:
                candidate = selector.select_no_preference(name, self.compatible, version_map)
                if candidate is None:
                    return None, BatchPrefetchStrategy.in_order(self.previous)
                remaining = self.compatible & ~Range.singleton(candidate.version)
                return candidate, BatchPrefetchStrategy.compatible_with(
                    remaining, candidate.version
                )
            case PrefetchPhase.IN_ORDER:
                if selector.use_highest_version(name):
                    beyond = Range.strictly_lower_than(self.previous)
                else:
                    beyond = Range.strictly_higher_than(self.previous)
                candidate = selector.select_no_preference(name, beyond, version_map)
                if candidate is None:
                    return None, None
                return candidate, BatchPrefetchStrategy.in_order(candidate.version)


class BatchPrefetcher:
    """
    Fetches metadata for many versions of a package ahead of the solver once it
    has already tried several of them without success. A batch is triggered the
    first time the number of versions tried reaches each threshold, then every
    ``interval`` further versions after the last threshold.

    :param thresholds:  Tried counts which trigger the early batches
    :param interval:    Tried versions between later batches
    :param batch_limit: Largest number of versions considered in one batch
    """

    def __init__(
        self,
        thresholds: Iterable[int] = DEFAULT_THRESHOLDS,
        interval: int = DEFAULT_INTERVAL,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
    ) -> None:
        self.__thresholds = tuple(sorted(thresholds))
        self.__interval = interval
        self.__batch_limit = batch_limit
        self.tried_versions: dict[PubGrubPackage, int] = {}
        self.last_prefetch: dict[PubGrubPackage, int] = {}

    @classmethod
    def from_config(cls, config: "CacheConfig") -> "BatchPrefetcher":
        return cls(
            thresholds=config.prefetch_thresholds,
            interval=config.prefetch_interval,
            batch_limit=config.prefetch_batch_limit,
        )

    def version_tried(self, package: PubGrubPackage) -> None:
        "Record that the solver tried a version of the package"
        self.tried_versions[package] = self.tried_versions.get(package, 0) + 1

    def should_prefetch(self, package: PubGrubPackage) -> tuple[int, bool]:
        """
        Decide whether a batch is due for a package, recording the tried count
        as handled when it is.

        :returns: The number of versions tried and whether to prefetch
        """
        num_tried = self.tried_versions.get(package, 0)
        previous = self.last_prefetch.get(package, 0)
        steady = max(self.__thresholds, default=0)
        due = any(num_tried >= x > previous for x in self.__thresholds) or (
            num_tried >= steady and num_tried - previous >= self.__interval
        )
        if due:
            self.last_prefetch[package] = num_tried
        return num_tried, due

    async def prefetch_batches(
        self,
        next: PubGrubPackage,
        version: Version,
        current_range: Range,
        request_sink: RequestSink,
        index: InMemoryIndex,
        selector: CandidateSelector,
    ) -> None:
        """
        Send requests for a batch of versions of the package, if one is due.

        :param next:          Package the solver just chose a version of
        :param version:       The version chosen
        :param current_range: Versions the solver considers compatible
        :param request_sink:  Where to send fetch requests
        :param index:         Shared index of listings and registered fetches
        :param selector:      Selector deciding the order versions are tried in
        """
        if next.kind is not PackageKind.PACKAGE:
            return

        num_tried, due = self.should_prefetch(next)
        if not due:
            return
        total_prefetch = min(num_tried, self.__batch_limit)

        # The listing was fetched before the solver chose a version, so this
        # returns immediately
        response = await index.packages.wait(next.name)
        if response is None:
            raise UnregisteredError(next.name)
        if response.status is not ResponseStatus.FOUND:
            return

        strategy = BatchPrefetchStrategy.compatible_with(current_range, version)
        prefetch_count = 0
        for _ in range(total_prefetch):
            candidate, strategy = strategy.advance(next.name, response.version_map, selector)
            if strategy is None:
                break
            if candidate is None:
                continue
            if not isinstance(candidate.dist, CompatibleDist):
                continue
            # Avoid building lots of source distributions
            if not candidate.dist.prefetchable():
                continue
            dist = candidate.dist.for_resolution()
            logging.debug(f"Prefetching {prefetch_count} ({strategy.phase}) {dist}")
            prefetch_count += 1
            if index.distributions.register(candidate.package_id()):
                await request_sink.send(Request.for_dist(dist))

        logging.debug(f"Prefetching {prefetch_count} {next.name} versions")
        self.last_prefetch[next] = num_tried
