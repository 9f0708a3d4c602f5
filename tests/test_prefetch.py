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

import asyncio

import pytest
from packaging.version import Version

from stockpile.resolver import (
    BatchPrefetcher,
    BatchPrefetchStrategy,
    CandidateSelector,
    CompatibleDist,
    Dist,
    DistKind,
    InMemoryIndex,
    Incompatible,
    PackageId,
    PrefetchPhase,
    PubGrubPackage,
    Range,
    RequestChannel,
    RequestSendError,
    ResolutionMode,
    UnregisteredError,
    VersionMap,
    VersionsResponse,
)

V = Version
FOO = PubGrubPackage.package("foo")


def version_map(count: int = 10, **overrides) -> VersionMap:
    "Wheels for foo 1.0 up to ``count``.0, with individual versions overridden"
    entries = {
        f"{x}.0": CompatibleDist.compatible_wheel(Dist("foo", V(f"{x}.0")))
        for x in range(1, count + 1)
    }
    entries.update(overrides)
    return VersionMap(entries)


def index_with(response: VersionsResponse) -> InMemoryIndex:
    index = InMemoryIndex()
    index.packages.register("foo")
    index.packages.done("foo", response)
    return index


def run_batch(
    prefetcher: BatchPrefetcher,
    index: InMemoryIndex,
    version: str,
    current_range: Range,
    selector: CandidateSelector | None = None,
    package: PubGrubPackage = FOO,
) -> list[Version]:
    "Run one batch and return the versions requested, in order"

    async def scenario():
        channel = RequestChannel()
        await prefetcher.prefetch_batches(
            package, V(version), current_range, channel, index, selector or CandidateSelector()
        )
        channel.close()
        return [x.dist.version async for x in channel]

    return asyncio.run(scenario())


def tried(prefetcher: BatchPrefetcher, count: int, package: PubGrubPackage = FOO) -> None:
    for _ in range(count):
        prefetcher.version_tried(package)


class TestShouldPrefetch:

    def test_thresholds(self) -> None:
        """ Batches start at each threshold then recur at a fixed interval """
        prefetcher = BatchPrefetcher()
        triggered = []
        for _ in range(100):
            prefetcher.version_tried(FOO)
            num_tried, due = prefetcher.should_prefetch(FOO)
            if due:
                triggered.append(num_tried)
        assert triggered == [5, 10, 20, 40, 60, 80, 100]

    def test_scenario(self) -> None:
        """ A batch fires at the fifth attempt but not the sixth """
        prefetcher = BatchPrefetcher()
        tried(prefetcher, 5)
        assert prefetcher.should_prefetch(FOO) == (5, True)
        tried(prefetcher, 1)
        assert prefetcher.should_prefetch(FOO) == (6, False)

    def test_per_package(self) -> None:
        """ Counts are tracked separately for each package """
        prefetcher = BatchPrefetcher()
        bar = PubGrubPackage.package("bar")
        tried(prefetcher, 5)
        tried(prefetcher, 4, bar)
        assert prefetcher.should_prefetch(FOO) == (5, True)
        assert prefetcher.should_prefetch(bar) == (4, False)
        assert prefetcher.should_prefetch(PubGrubPackage.package("baz")) == (0, False)

    def test_skipped_thresholds(self) -> None:
        """ Jumping past several thresholds triggers a single batch """
        prefetcher = BatchPrefetcher()
        tried(prefetcher, 25)
        assert prefetcher.should_prefetch(FOO) == (25, True)
        assert prefetcher.should_prefetch(FOO) == (25, False)
        tried(prefetcher, 19)
        assert prefetcher.should_prefetch(FOO) == (44, False)
        tried(prefetcher, 1)
        assert prefetcher.should_prefetch(FOO) == (45, True)

    def test_custom(self) -> None:
        """ Thresholds and interval are configurable """
        prefetcher = BatchPrefetcher(thresholds=[2], interval=3)
        triggered = []
        for _ in range(9):
            prefetcher.version_tried(FOO)
            num_tried, due = prefetcher.should_prefetch(FOO)
            if due:
                triggered.append(num_tried)
        assert triggered == [2, 5, 8]


class TestStrategy:

    def test_downgrade(self) -> None:
        """ The compatible walk falls back to walking in order once exhausted """
        selector = CandidateSelector()
        versions = version_map(5)
        strategy = BatchPrefetchStrategy.compatible_with(Range.singleton(V("3.0")), V("4.0"))
        candidate, strategy = strategy.advance("foo", versions, selector)
        assert candidate.version == V("3.0")
        assert strategy.phase is PrefetchPhase.COMPATIBLE
        candidate, strategy = strategy.advance("foo", versions, selector)
        assert candidate is None
        assert strategy == BatchPrefetchStrategy.in_order(V("3.0"))
        candidate, strategy = strategy.advance("foo", versions, selector)
        assert candidate.version == V("2.0")

    def test_never_upgrades(self) -> None:
        """ Once walking in order the compatible range is never used again """
        selector = CandidateSelector()
        versions = version_map(10)
        strategy = BatchPrefetchStrategy.compatible_with(
            Range.between(V("7.0"), V("9.0")), V("9.0")
        )
        phases = []
        while strategy is not None:
            phases.append(strategy.phase)
            _, strategy = strategy.advance("foo", versions, selector)
        first = phases.index(PrefetchPhase.IN_ORDER)
        assert PrefetchPhase.COMPATIBLE not in phases[first:]
        assert phases[:first] == [PrefetchPhase.COMPATIBLE] * 3

    def test_exhausted(self) -> None:
        """ Walking in order stops at the end of the versions """
        selector = CandidateSelector()
        strategy = BatchPrefetchStrategy.in_order(V("1.0"))
        assert strategy.advance("foo", version_map(3), selector) == (None, None)

    def test_lowest(self) -> None:
        """ Walking in order goes upwards when the oldest versions are preferred """
        selector = CandidateSelector(ResolutionMode.LOWEST)
        strategy = BatchPrefetchStrategy.in_order(V("2.0"))
        candidate, _ = strategy.advance("foo", version_map(5), selector)
        assert candidate.version == V("3.0")


class TestPrefetchBatches:

    def test_compatible(self) -> None:
        """ A batch walks down the compatible range """
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(version_map(10)))
        tried(prefetcher, 5)
        requested = run_batch(prefetcher, index, "10.0", Range.between(V("5.0"), V("10.0")))
        assert requested == [V("9.0"), V("8.0"), V("7.0"), V("6.0"), V("5.0")]
        assert prefetcher.last_prefetch[FOO] == 5
        for version in requested:
            assert PackageId("foo", version) in index.distributions

    def test_downgrade_consumes_iteration(self) -> None:
        """ Switching strategy takes one slot of the batch """
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(version_map(10)))
        tried(prefetcher, 5)
        requested = run_batch(prefetcher, index, "10.0", Range.between(V("8.0"), V("10.0")))
        assert requested == [V("9.0"), V("8.0"), V("7.0"), V("6.0")]

    def test_not_due(self) -> None:
        """ Nothing is requested before the first threshold """
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(version_map(10)))
        tried(prefetcher, 4)
        assert run_batch(prefetcher, index, "10.0", Range.full()) == []
        assert FOO not in prefetcher.last_prefetch

    def test_batch_limit(self) -> None:
        """ Batches are capped at the configured limit """
        prefetcher = BatchPrefetcher(batch_limit=3)
        index = index_with(VersionsResponse.found(version_map(10)))
        tried(prefetcher, 5)
        assert len(run_batch(prefetcher, index, "10.0", Range.full())) == 3

    def test_deduplicated(self) -> None:
        """ Versions already registered for fetching are not requested again """
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(version_map(10)))
        index.distributions.register(PackageId("foo", V("8.0")))
        tried(prefetcher, 5)
        requested = run_batch(prefetcher, index, "10.0", Range.between(V("5.0"), V("10.0")))
        assert requested == [V("9.0"), V("7.0"), V("6.0"), V("5.0")]
        # A second batch finds the compatible versions already registered and
        # moves on to older ones
        tried(prefetcher, 5)
        requested = run_batch(prefetcher, index, "10.0", Range.between(V("5.0"), V("10.0")))
        assert requested == [V("4.0"), V("3.0"), V("2.0"), V("1.0")]
        assert prefetcher.last_prefetch[FOO] == 10

    def test_skips_builds(self) -> None:
        """ Source distributions and incompatible versions are never prefetched """
        sdist = Dist("foo", V("9.0"), DistKind.SOURCE)
        versions = version_map(
            10,
            **{"9.0": CompatibleDist.source_dist(sdist), "8.0": Incompatible("no wheels")},
        )
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(versions))
        tried(prefetcher, 5)
        requested = run_batch(prefetcher, index, "10.0", Range.between(V("5.0"), V("10.0")))
        assert requested == [V("7.0"), V("6.0"), V("5.0")]
        assert PackageId("foo", V("9.0")) not in index.distributions

    def test_incompatible_wheel(self) -> None:
        """ Incompatible wheels are fetched for their metadata """
        wheel = Dist("foo", V("9.0"))
        sdist = Dist("foo", V("9.0"), DistKind.SOURCE)
        versions = version_map(10, **{"9.0": CompatibleDist.incompatible_wheel(sdist, wheel)})
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(versions))
        tried(prefetcher, 5)

        async def scenario():
            channel = RequestChannel()
            await prefetcher.prefetch_batches(
                FOO, V("10.0"), Range.singleton(V("9.0")), channel, index, CandidateSelector()
            )
            return channel.recv_nowait()

        assert asyncio.run(scenario()).dist == wheel

    def test_not_found(self) -> None:
        """ Packages without a listing end the batch quietly """
        for response in (VersionsResponse.not_found(), VersionsResponse.offline()):
            prefetcher = BatchPrefetcher()
            index = index_with(response)
            tried(prefetcher, 5)
            assert run_batch(prefetcher, index, "10.0", Range.full()) == []

    def test_unregistered(self) -> None:
        """ A package the index never heard of is an error """
        prefetcher = BatchPrefetcher()
        tried(prefetcher, 5)
        with pytest.raises(UnregisteredError):
            run_batch(prefetcher, InMemoryIndex(), "10.0", Range.full())

    def test_closed_channel(self) -> None:
        """ Failing to send a request aborts the batch """
        prefetcher = BatchPrefetcher()
        index = index_with(VersionsResponse.found(version_map(10)))
        tried(prefetcher, 5)

        async def scenario():
            channel = RequestChannel()
            channel.close()
            await prefetcher.prefetch_batches(
                FOO, V("10.0"), Range.full(), channel, index, CandidateSelector()
            )

        with pytest.raises(RequestSendError):
            asyncio.run(scenario())

    def test_virtual_packages(self) -> None:
        """ Only real packages are prefetched """
        prefetcher = BatchPrefetcher()
        root = PubGrubPackage.root()
        tried(prefetcher, 5, root)
        assert run_batch(prefetcher, InMemoryIndex(), "1.0", Range.full(), package=root) == []
        assert root not in prefetcher.last_prefetch
