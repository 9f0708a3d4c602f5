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

from packaging.version import Version

from stockpile.resolver import Range

V = Version


class TestRange:

    def test_bounds(self) -> None:
        """ Constructors include or exclude their boundary """
        assert V("1.0") in Range.higher_than(V("1.0"))
        assert V("1.0") not in Range.strictly_higher_than(V("1.0"))
        assert V("1.0") in Range.lower_than(V("1.0"))
        assert V("1.0") not in Range.strictly_lower_than(V("1.0"))
        between = Range.between(V("1.0"), V("2.0"))
        assert V("1.0") in between
        assert V("1.5") in between
        assert V("2.0") not in between
        assert V("0.9") not in between
        assert V("3") in Range.full()
        assert Range.empty().is_empty()
        assert not Range.full().is_empty()

    def test_complement(self) -> None:
        """ The complement of a singleton excludes exactly that version """
        without = ~Range.singleton(V("1.0"))
        assert V("1.0") not in without
        assert V("0.9") in without
        assert V("1.0.post1") in without
        assert ~Range.full() == Range.empty()
        assert ~Range.empty() == Range.full()
        assert ~~Range.between(V("1"), V("2")) == Range.between(V("1"), V("2"))

    def test_intersection(self) -> None:
        """ Intersections keep only versions in both ranges """
        both = Range.higher_than(V("1")) & Range.strictly_lower_than(V("2"))
        assert both == Range.between(V("1"), V("2"))
        assert (Range.lower_than(V("1")) & Range.strictly_higher_than(V("1"))).is_empty()
        assert Range.lower_than(V("1")) & Range.higher_than(V("1")) == Range.singleton(V("1"))

    def test_union(self) -> None:
        """ Unions merge touching segments """
        joined = Range.between(V("1"), V("2")) | Range.between(V("2"), V("3"))
        assert joined == Range.between(V("1"), V("3"))
        split = Range.between(V("1"), V("2")) | Range.between(V("3"), V("4"))
        assert len(split.segments) == 2
        assert V("2.5") not in split
        assert Range.strictly_lower_than(V("1")) | Range.higher_than(V("1")) == Range.full()

    def test_shrinking(self) -> None:
        """ Punching versions out one by one exhausts a range """
        versions = [V("1"), V("2"), V("3")]
        remaining = Range.lower_than(V("3")) & Range.higher_than(V("1"))
        for version in versions:
            assert version in remaining
            remaining = remaining & ~Range.singleton(version)
        assert all(x not in remaining for x in versions)
        assert V("2.5") in remaining

    def test_str(self) -> None:
        """ Ranges render as version specifiers """
        assert str(Range.full()) == "*"
        assert str(Range.empty()) == "<empty>"
        assert str(Range.singleton(V("1.0"))) == "==1.0"
        assert str(Range.between(V("1"), V("2"))) == ">=1, <2"
        assert str(~Range.singleton(V("1"))) == "<1 | >1"
