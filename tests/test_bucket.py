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

from pathlib import Path

from stockpile.cache import CacheBucket, Removal, WheelCache, WheelCacheKind
from stockpile.cache.bucket import REMOVAL_STRATEGIES, is_built_for, remove_built_wheels

from .conftest import write, write_sidecar


class Buckets:
    "Minimal stand-in for a cache, mapping buckets below a directory"

    def __init__(self, root: Path) -> None:
        self.root = root

    def bucket(self, bucket: CacheBucket) -> Path:
        return self.root / bucket


class TestBucket:

    def test_names(self) -> None:
        """ Buckets are named with their schema version and iterate in a fixed order """
        assert [str(x) for x in CacheBucket] == [
            "wheels-v0",
            "built-wheels-v2",
            "flat-index-v0",
            "git-v0",
            "interpreter-v0",
            "simple-v6",
            "archive-v0",
        ]
        assert set(REMOVAL_STRATEGIES) == set(CacheBucket)

    def test_wheels(self, tmp_path: Path) -> None:
        """ Only the named package is removed from each wheel namespace """
        cache = Buckets(tmp_path)
        root = cache.bucket(CacheBucket.WHEELS)
        for namespace in ("pypi", "index/0123456789abcdef", "url/fedcba9876543210"):
            write(root / namespace / "foo" / "foo-1.0.whl", "foo")
            write(root / namespace / "bar" / "bar-1.0.whl", "bar")
        removal = CacheBucket.WHEELS.remove(cache, "Foo")
        assert removal == Removal(num_files=3, num_dirs=3, total_bytes=9)
        for namespace in ("pypi", "index/0123456789abcdef", "url/fedcba9876543210"):
            assert not (root / namespace / "foo").exists()
            assert (root / namespace / "bar" / "bar-1.0.whl").exists()

    def test_built_wheels(self, tmp_path: Path) -> None:
        """ Keyed builds are matched on their metadata """
        cache = Buckets(tmp_path)
        root = cache.bucket(CacheBucket.BUILT_WHEELS)
        write(root / "pypi" / "foo" / "foo-1.0.tar.gz", "sdist")
        write(root / "index" / "0123456789abcdef" / "foo" / "foo-1.0.tar.gz", "sdist")
        # URL builds where one of several versions names the package
        write_sidecar(root / "url" / "aaaa" / "1.0", "bar")
        write_sidecar(root / "url" / "aaaa" / "2.0", "Foo")
        write_sidecar(root / "url" / "bbbb" / "1.0", "bar")
        # Unreadable metadata is never a match
        write(root / "path" / "cccc" / "1.0" / "metadata.json", "{not json")
        write(root / "path" / "dddd" / "1.0" / "metadata.json", '["foo"]')
        write_sidecar(root / "path" / "eeee" / "1.0", "foo")
        # Git builds are matched per commit
        write_sidecar(root / "git" / "repo" / "abc123", "foo")
        write_sidecar(root / "git" / "repo" / "def456", "bar")

        remove_built_wheels(cache, "foo")

        assert not (root / "pypi" / "foo").exists()
        assert not (root / "index" / "0123456789abcdef" / "foo").exists()
        assert not (root / "url" / "aaaa").exists()
        assert (root / "url" / "bbbb").exists()
        assert (root / "path" / "cccc").exists()
        assert (root / "path" / "dddd").exists()
        assert not (root / "path" / "eeee").exists()
        assert not (root / "git" / "repo" / "abc123").exists()
        assert (root / "git" / "repo" / "def456").exists()

    def test_is_built_for(self, tmp_path: Path) -> None:
        """ Names in metadata are compared in normalised form """
        write_sidecar(tmp_path / "a", "Foo_Bar")
        assert is_built_for(tmp_path / "a", "foo-bar")
        assert not is_built_for(tmp_path / "a", "foo")
        assert not is_built_for(tmp_path / "missing", "foo")
        write(tmp_path / "b" / "metadata.json", '{"name": 1}')
        assert not is_built_for(tmp_path / "b", "foo")

    def test_simple(self, tmp_path: Path) -> None:
        """ Index responses are single files per package """
        cache = Buckets(tmp_path)
        root = cache.bucket(CacheBucket.SIMPLE)
        write(root / "pypi" / "foo.json", "{}")
        write(root / "pypi" / "bar.json", "{}")
        write(root / "url" / "0123456789abcdef" / "foo.json", "{}")
        removal = CacheBucket.SIMPLE.remove(cache, "foo")
        assert removal == Removal(num_files=2, total_bytes=4)
        assert (root / "pypi" / "bar.json").exists()

    def test_flat_index(self, tmp_path: Path) -> None:
        """ Flat index responses cannot be attributed so the bucket is dropped """
        cache = Buckets(tmp_path)
        root = cache.bucket(CacheBucket.FLAT_INDEX)
        write(root / "0123456789abcdef.json", "{}")
        assert CacheBucket.FLAT_INDEX.remove(cache, "anything").num_files == 1
        assert not root.exists()

    def test_not_addressable(self, tmp_path: Path) -> None:
        """ Buckets without package structure are left alone """
        cache = Buckets(tmp_path)
        for bucket in (CacheBucket.GIT, CacheBucket.INTERPRETER, CacheBucket.ARCHIVE):
            write(cache.bucket(bucket) / "foo" / "data", "data")
            assert bucket.remove(cache, "foo") == Removal()
            assert (cache.bucket(bucket) / "foo" / "data").exists()

    def test_missing_bucket(self, tmp_path: Path) -> None:
        """ Removing from buckets that do not exist yet finds nothing """
        cache = Buckets(tmp_path)
        for bucket in CacheBucket:
            assert bucket.remove(cache, "foo") == Removal()


class TestWheelCache:

    def test_layout(self) -> None:
        """ Wheel sources map onto their namespaces """
        assert WheelCache.pypi().root() == Path("pypi")
        assert WheelCache.pypi().wheel_dir("foo") == Path("pypi/foo")
        index = WheelCache.index("https://example.org/simple/").root()
        assert index.parts[0] == "index"
        assert len(index.parts[1]) == 16
        assert WheelCache.remote("https://example.org/foo.whl").root().parts[0] == "url"
        assert WheelCache.local("file:///src/foo").root().parts[0] == "path"
        assert WheelCache.editable("file:///src/foo").root().parts[0] == "editable"
        git = WheelCache.git("https://github.com/org/repo.git", "abc123")
        assert git.kind is WheelCacheKind.GIT
        assert git.root().parts[0] == "git"
        assert git.root().parts[2] == "abc123"

    def test_canonical_urls(self) -> None:
        """ Trivially different spellings of a location share a directory """
        assert (
            WheelCache.index("https://Example.org/simple/").root()
            == WheelCache.index("https://example.org/simple").root()
        )
        assert (
            WheelCache.git("https://github.com/org/repo.git", "abc").root()
            == WheelCache.git("https://github.com/org/repo", "abc").root()
        )
        assert (
            WheelCache.index("https://example.org/a").root()
            != WheelCache.index("https://example.org/b").root()
        )
