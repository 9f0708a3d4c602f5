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
import logging
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from packaging.utils import NormalizedName, canonicalize_name

from .fs import directories
from .removal import Removal, rm_rf
from .wheel import WheelCacheKind

SIDECAR_METADATA = "metadata.json"
"Per-version record written next to wheels built from source"

SIMPLE_EXTENSION = "json"
"File extension of serialised simple-index responses"


class CacheBucket(StrEnum):
    """
    The kinds of data held in the cache. Each bucket is a sub-directory of the
    cache root whose name embeds a schema version; bumping the version orphans
    the old directory, which is then reclaimed by ``Cache.prune``.
    """

    # Wheels (excluding those built from source) with their metadata:
    #   wheels-v0/{pypi,index/<idx>,url/<url>}/<name>/...
    WHEELS = "wheels-v0"
    # Wheels built from source distributions, keyed by source location:
    #   built-wheels-v2/{pypi,index/<idx>}/<name>/...
    #   built-wheels-v2/{url,path}/<digest>/<version>/metadata.json
    #   built-wheels-v2/git/<repo>/<sha>/metadata.json
    BUILT_WHEELS = "built-wheels-v2"
    # Flat index responses, one opaque record per index URL
    FLAT_INDEX = "flat-index-v0"
    # Git checkouts
    GIT = "git-v0"
    # Interpreter information keyed by interpreter path
    INTERPRETER = "interpreter-v0"
    # Simple API responses: simple-v6/{pypi,url/<idx>}/<name>.json
    SIMPLE = "simple-v6"
    # Published artifact directories, only ever referenced through symlinks
    ARCHIVE = "archive-v0"

    def remove(self, cache: "SupportsBucket", name: str) -> Removal:
        """
        Remove everything belonging to a package from this bucket.

        :param cache: Anything which maps a bucket to its directory
        :param name:  Package name (normalised before use)
        :returns:     Summary of what was deleted
        """
        return REMOVAL_STRATEGIES[self](cache, canonicalize_name(name))


class SupportsBucket(Protocol):
    def bucket(self, bucket: CacheBucket) -> Path: ...


def is_built_for(path: Path, name: NormalizedName) -> bool:
    """
    True if the directory holds a wheel built for the given package, as named by
    its sidecar metadata. Missing, unreadable or malformed metadata is never a
    match.
    """
    try:
        with (path / SIDECAR_METADATA).open("r", encoding="utf-8") as fh:
            metadata = json.load(fh)
    except (OSError, ValueError) as ex:
        logging.debug(f"Ignoring unreadable metadata in {path}: {ex}")
        return False
    if not isinstance(metadata, dict) or not isinstance(metadata.get("name"), str):
        return False
    return canonicalize_name(metadata["name"]) == name


def remove_named(root: Path, name: NormalizedName) -> Removal:
    "Remove ``<root>/<kind>/[<key>/]<name>`` for the pypi, index and url namespaces"
    summary = rm_rf(root / WheelCacheKind.PYPI / name)
    for kind in (WheelCacheKind.INDEX, WheelCacheKind.URL):
        for directory in directories(root / kind):
            summary += rm_rf(directory / name)
    return summary


def remove_wheels(cache: SupportsBucket, name: NormalizedName) -> Removal:
    return remove_named(cache.bucket(CacheBucket.WHEELS), name)


def remove_built_wheels(cache: SupportsBucket, name: NormalizedName) -> Removal:
    root = cache.bucket(CacheBucket.BUILT_WHEELS)

    # Registry builds are laid out by name, just like downloaded wheels
    summary = rm_rf(root / WheelCacheKind.PYPI / name)
    for directory in directories(root / WheelCacheKind.INDEX):
        summary += rm_rf(directory / name)

    # URL and path builds are keyed by a digest of the source location, so the
    # sidecar metadata of each version decides whether the key is relevant
    for kind in (WheelCacheKind.URL, WheelCacheKind.PATH):
        for keyed in directories(root / kind):
            if any(is_built_for(version, name) for version in directories(keyed)):
                summary += rm_rf(keyed)

    # Git builds are keyed by repository then commit
    for repository in directories(root / WheelCacheKind.GIT):
        for sha in directories(repository):
            if is_built_for(sha, name):
                summary += rm_rf(sha)
    return summary


def remove_simple(cache: SupportsBucket, name: NormalizedName) -> Removal:
    root = cache.bucket(CacheBucket.SIMPLE)
    filename = f"{name}.{SIMPLE_EXTENSION}"
    summary = rm_rf(root / WheelCacheKind.PYPI / filename)
    for directory in directories(root / WheelCacheKind.URL):
        summary += rm_rf(directory / filename)
    return summary


def remove_flat_index(cache: SupportsBucket, name: NormalizedName) -> Removal:
    # Responses are keyed by index URL, so there is no way to tell which of them
    # mention the package - drop the whole bucket
    return rm_rf(cache.bucket(CacheBucket.FLAT_INDEX))


def remove_nothing(cache: SupportsBucket, name: NormalizedName) -> Removal:
    return Removal()


REMOVAL_STRATEGIES: dict[CacheBucket, Callable[[SupportsBucket, NormalizedName], Removal]] = {
    CacheBucket.WHEELS: remove_wheels,
    CacheBucket.BUILT_WHEELS: remove_built_wheels,
    CacheBucket.FLAT_INDEX: remove_flat_index,
    CacheBucket.GIT: remove_nothing,
    CacheBucket.INTERPRETER: remove_nothing,
    CacheBucket.SIMPLE: remove_simple,
    CacheBucket.ARCHIVE: remove_nothing,
}
