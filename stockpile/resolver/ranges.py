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

from collections.abc import Iterable
from dataclasses import dataclass

from packaging.version import Version


@dataclass(frozen=True)
class Bound:
    "One end of a segment, where a value of None is unbounded"

    value: Version | None = None
    inclusive: bool = False

    @property
    def unbounded(self) -> bool:
        return self.value is None

    def flipped(self) -> "Bound":
        return Bound(self.value, not self.inclusive)

    def lower_key(self) -> tuple:
        if self.value is None:
            return (0,)
        return (1, self.value, 0 if self.inclusive else 1)

    def upper_key(self) -> tuple:
        if self.value is None:
            return (1,)
        return (0, self.value, 1 if self.inclusive else 0)


@dataclass(frozen=True)
class Segment:
    lower: Bound
    upper: Bound

    def is_empty(self) -> bool:
        if self.lower.unbounded or self.upper.unbounded:
            return False
        if self.lower.value < self.upper.value:
            return False
        if self.lower.value == self.upper.value:
            return not (self.lower.inclusive and self.upper.inclusive)
        return True

    def contains(self, version: Version) -> bool:
        lower, upper = self.lower, self.upper
        if not lower.unbounded:
            if version < lower.value or (version == lower.value and not lower.inclusive):
                return False
        if not upper.unbounded:
            if version > upper.value or (version == upper.value and not upper.inclusive):
                return False
        return True

    def intersection(self, other: "Segment") -> "Segment":
        return Segment(
            max(self.lower, other.lower, key=Bound.lower_key),
            min(self.upper, other.upper, key=Bound.upper_key),
        )

    def touches(self, other: "Segment") -> bool:
        "True if ``other``, which starts no earlier, overlaps or abuts this segment"
        if self.upper.unbounded or other.lower.unbounded:
            return True
        if other.lower.value < self.upper.value:
            return True
        if other.lower.value == self.upper.value:
            return other.lower.inclusive or self.upper.inclusive
        return False

    def __str__(self) -> str:
        lower, upper = self.lower, self.upper
        if lower.unbounded and upper.unbounded:
            return "*"
        if lower.value is not None and lower.value == upper.value:
            return f"=={lower.value}"
        parts = []
        if not lower.unbounded:
            parts.append(f"{'>=' if lower.inclusive else '>'}{lower.value}")
        if not upper.unbounded:
            parts.append(f"{'<=' if upper.inclusive else '<'}{upper.value}")
        return ", ".join(parts)


def _normalise(segments: Iterable[Segment]) -> tuple[Segment, ...]:
    ordered = sorted(
        (x for x in segments if not x.is_empty()),
        key=lambda x: (x.lower.lower_key(), x.upper.upper_key()),
    )
    merged: list[Segment] = []
    for segment in ordered:
        if merged and merged[-1].touches(segment):
            last = merged.pop()
            segment = Segment(last.lower, max(last.upper, segment.upper, key=Bound.upper_key))
        merged.append(segment)
    return tuple(merged)


@dataclass(frozen=True, init=False)
class Range:
    """
    A set of versions, held as sorted, disjoint segments. Ranges are immutable
    and support the usual set algebra through ``&``, ``|`` and ``~``.
    """

    segments: tuple[Segment, ...]

    def __init__(self, segments: Iterable[Segment] = ()) -> None:
        object.__setattr__(self, "segments", _normalise(segments))

    @classmethod
    def empty(cls) -> "Range":
        return cls()

    @classmethod
    def full(cls) -> "Range":
        return cls([Segment(Bound(), Bound())])

    @classmethod
    def singleton(cls, version: Version) -> "Range":
        return cls([Segment(Bound(version, True), Bound(version, True))])

    @classmethod
    def higher_than(cls, version: Version) -> "Range":
        return cls([Segment(Bound(version, True), Bound())])

    @classmethod
    def strictly_higher_than(cls, version: Version) -> "Range":
        return cls([Segment(Bound(version, False), Bound())])

    @classmethod
    def lower_than(cls, version: Version) -> "Range":
        return cls([Segment(Bound(), Bound(version, True))])

    @classmethod
    def strictly_lower_than(cls, version: Version) -> "Range":
        return cls([Segment(Bound(), Bound(version, False))])

    @classmethod
    def between(cls, lower: Version, upper: Version) -> "Range":
        "Versions from ``lower`` (inclusive) up to ``upper`` (exclusive)"
        return cls([Segment(Bound(lower, True), Bound(upper, False))])

    def is_empty(self) -> bool:
        return not self.segments

    def contains(self, version: Version) -> bool:
        return any(x.contains(version) for x in self.segments)

    def __contains__(self, version: Version) -> bool:
        return self.contains(version)

    def complement(self) -> "Range":
        gaps = []
        start: Bound | None = Bound()
        for segment in self.segments:
            if not segment.lower.unbounded:
                gaps.append(Segment(start, segment.lower.flipped()))
            if segment.upper.unbounded:
                start = None
                break
            start = segment.upper.flipped()
        if start is not None:
            gaps.append(Segment(start, Bound()))
        return Range(gaps)

    def intersection(self, other: "Range") -> "Range":
        return Range(x.intersection(y) for x in self.segments for y in other.segments)

    def union(self, other: "Range") -> "Range":
        return Range(self.segments + other.segments)

    def __and__(self, other: "Range") -> "Range":
        return self.intersection(other)

    def __or__(self, other: "Range") -> "Range":
        return self.union(other)

    def __invert__(self) -> "Range":
        return self.complement()

    def __str__(self) -> str:
        if not self.segments:
            return "<empty>"
        return " | ".join(str(x) for x in self.segments)
