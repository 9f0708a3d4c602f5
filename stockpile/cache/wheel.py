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

import hashlib
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit


class WheelCacheKind(StrEnum):
    "Top-level namespaces used inside the wheel buckets"
    PYPI = "pypi"
    INDEX = "index"
    URL = "url"
    PATH = "path"
    EDITABLE = "editable"
    GIT = "git"


def canonical_url(url: str) -> str:
    """
    Normalise a URL so that trivially different spellings of the same location
    share a cache key: scheme and host are lower-cased and trailing slashes
    dropped, as is a ``.git`` suffix on repository paths.
    """
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def digest(value: str) -> str:
    "Short, stable hex digest used to name keyed cache directories"
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class WheelCache:
    """
    Location of a wheel (or a wheel built from source) inside the ``Wheels`` or
    ``BuiltWheels`` buckets. The layout is::

        pypi/<name>/...
        index/<digest(index-url)>/<name>/...
        url/<digest(url)>/<name>/...
        path/<digest(url)>/<name>/...
        editable/<digest(url)>/<name>/...
        git/<digest(repository)>/<sha>/<name>/...
    """

    kind: WheelCacheKind
    url: str | None = None
    sha: str | None = None

    @classmethod
    def pypi(cls) -> "WheelCache":
        return cls(WheelCacheKind.PYPI)

    @classmethod
    def index(cls, url: str) -> "WheelCache":
        return cls(WheelCacheKind.INDEX, url)

    @classmethod
    def remote(cls, url: str) -> "WheelCache":
        return cls(WheelCacheKind.URL, url)

    @classmethod
    def local(cls, url: str) -> "WheelCache":
        return cls(WheelCacheKind.PATH, url)

    @classmethod
    def editable(cls, url: str) -> "WheelCache":
        return cls(WheelCacheKind.EDITABLE, url)

    @classmethod
    def git(cls, url: str, sha: str) -> "WheelCache":
        return cls(WheelCacheKind.GIT, url, sha)

    def root(self) -> Path:
        "Bucket-relative directory for this wheel source"
        base = Path(self.kind)
        if self.kind is WheelCacheKind.PYPI:
            return base
        assert self.url is not None, f"{self.kind} wheel cache requires a URL"
        base /= digest(canonical_url(self.url))
        if self.kind is WheelCacheKind.GIT:
            assert self.sha is not None, "git wheel cache requires a commit"
            base /= self.sha
        return base

    def wheel_dir(self, package: str) -> Path:
        return self.root() / package
