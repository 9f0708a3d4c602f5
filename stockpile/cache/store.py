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
import os
import tempfile
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from packaging.utils import NormalizedName, canonicalize_name
from platformdirs import user_cache_dir

from .bucket import CacheBucket
from .entry import CacheEntry, CacheShard
from .errors import CacheClosedError, CacheError
from .fs import create_new, replace_symlink
from .removal import Removal, rm_rf
from .timestamp import Timestamp

if TYPE_CHECKING:
    from ..config import CacheConfig

CACHEDIR_TAG = "CACHEDIR.TAG"
GITIGNORE = ".gitignore"
PHONY_GIT = ".git"
MARKERS = frozenset((CACHEDIR_TAG, GITIGNORE, PHONY_GIT))

CACHEDIR_TAG_CONTENT = (
    b"Signature: 8a477f597d28d172789f06886806bc55\n"
    b"# This file is a cache directory tag created by stockpile.\n"
    b"# For information about cache directory tags see https://bford.info/cachedir/\n"
)


def default_cache_dir() -> Path:
    return Path(user_cache_dir("stockpile"))


class RefreshMode(StrEnum):
    NONE = "none"
    PACKAGES = "packages"
    ALL = "all"


@dataclass(frozen=True)
class Refresh:
    """
    Invalidation policy requested by the user. Entries written before the cutoff
    timestamp are considered stale, either for every package or only for the
    packages listed.
    """

    mode: RefreshMode = RefreshMode.NONE
    packages: frozenset[NormalizedName] = field(default_factory=frozenset)
    timestamp: Timestamp | None = None

    def __post_init__(self) -> None:
        if self.mode is not RefreshMode.NONE and self.timestamp is None:
            raise ValueError(f"A refresh of {self.mode} requires a cutoff timestamp")
        object.__setattr__(
            self, "packages", frozenset(canonicalize_name(x) for x in self.packages)
        )

    @classmethod
    def none(cls) -> "Refresh":
        return cls()

    @classmethod
    def all(cls, timestamp: Timestamp | None = None) -> "Refresh":
        return cls(RefreshMode.ALL, timestamp=timestamp or Timestamp.now())

    @classmethod
    def for_packages(
        cls, packages: Iterable[str], timestamp: Timestamp | None = None
    ) -> "Refresh":
        return cls(
            RefreshMode.PACKAGES,
            frozenset(packages),
            timestamp or Timestamp.now(),
        )

    @classmethod
    def from_args(cls, refresh: bool, refresh_package: Iterable[str]) -> "Refresh":
        "Build a policy from the refresh flag and any packages listed for refresh"
        if refresh:
            return cls.all()
        packages = list(refresh_package)
        if packages:
            return cls.for_packages(packages)
        return cls.none()

    def is_none(self) -> bool:
        return self.mode is RefreshMode.NONE


class Freshness(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"

    def is_fresh(self) -> bool:
        return self is Freshness.FRESH

    def is_stale(self) -> bool:
        return self is Freshness.STALE


@dataclass
class TemporaryRoot:
    "An owned temporary directory backing a cache that does not persist"

    directory: tempfile.TemporaryDirectory
    released: bool = False

    @property
    def path(self) -> Path:
        return Path(self.directory.name)

    def release(self) -> None:
        if not self.released:
            self.released = True
            self.directory.cleanup()


def init_root(root: Path) -> Path:
    """
    Prepare a directory for use as a cache and return its canonical path. This
    is safe to repeat, and safe to race against other processes doing the same.

    :param root: Directory to initialise, created if it does not exist
    :returns:    Canonicalised root directory
    """
    root.mkdir(parents=True, exist_ok=True)
    # Identify the directory as a cache to backup tools
    create_new(root / CACHEDIR_TAG, CACHEDIR_TAG_CONTENT)
    create_new(root / GITIGNORE, b"*")
    # Build backends walk upwards looking for ignore files, they must stop at the
    # built wheels bucket rather than reaching the catch-all at the root
    built = root / CacheBucket.BUILT_WHEELS
    built.mkdir(parents=True, exist_ok=True)
    create_new(built / GITIGNORE)
    # Must come after the ignore file, so builds never look like they are
    # happening inside a user's repository
    (built / PHONY_GIT).touch(exist_ok=True)
    return root.resolve(strict=True)


class Cache:
    """
    Handle on the cache for the lifetime of a session.

    :param root:    Canonical, initialised root directory
    :param refresh: Invalidation policy for this session
    :param temp:    Temporary directory owned by this cache, if not persistent
    """

    def __init__(
        self,
        root: Path,
        refresh: Refresh | None = None,
        temp: TemporaryRoot | None = None,
    ) -> None:
        self.__root = root
        self.__refresh = refresh or Refresh.none()
        self.__temp = temp

    @classmethod
    def from_path(cls, root: Path | str) -> "Cache":
        "Open (creating if necessary) a persistent cache at the given location"
        return cls(init_root(Path(root).expanduser()))

    @classmethod
    def temp(cls) -> "Cache":
        "Create a cache in a temporary directory, removed when the cache is closed"
        temp = TemporaryRoot(tempfile.TemporaryDirectory(prefix="stockpile-"))
        try:
            return cls(init_root(temp.path), temp=temp)
        except OSError:
            temp.release()
            raise

    @classmethod
    def from_config(cls, config: "CacheConfig") -> "Cache":
        if config.no_cache:
            cache = cls.temp()
        elif config.cache_dir:
            cache = cls.from_path(config.cache_dir)
        else:
            cache = cls.from_path(default_cache_dir())
        return cache.with_refresh(Refresh.from_args(config.refresh, config.refresh_package))

    def with_refresh(self, refresh: Refresh) -> "Cache":
        "Return a cache over the same directory with a different refresh policy"
        return Cache(self.__root, refresh, self.__temp)

    # ==========================================================================
    # Lifetime
    # ==========================================================================

    @property
    def is_temporary(self) -> bool:
        return self.__temp is not None

    def close(self) -> None:
        "Release the temporary directory, if this cache owns one"
        if self.__temp is not None:
            logging.debug(f"Removing temporary cache {self.__root}")
            self.__temp.release()

    def __enter__(self) -> "Cache":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Cache(root={str(self.__root)!r}, refresh={self.__refresh.mode})"

    # ==========================================================================
    # Paths
    # ==========================================================================

    @property
    def root(self) -> Path:
        if self.__temp is not None and self.__temp.released:
            raise CacheClosedError(f"Temporary cache {self.__root} has been closed")
        return self.__root

    @property
    def refresh(self) -> Refresh:
        return self.__refresh

    def bucket(self, bucket: CacheBucket) -> Path:
        return self.root / bucket

    def shard(self, bucket: CacheBucket, dirx: Path | str) -> CacheShard:
        return CacheShard(self.bucket(bucket) / dirx)

    def entry(self, bucket: CacheBucket, dirx: Path | str, file: Path | str) -> CacheEntry:
        return CacheEntry.new(self.bucket(bucket) / dirx, file)

    # ==========================================================================
    # Freshness
    # ==========================================================================

    def must_revalidate(self, package: str) -> bool:
        "True if cached network responses for the package must be revalidated"
        match self.__refresh.mode:
            case RefreshMode.NONE:
                return False
            case RefreshMode.ALL:
                return True
            case RefreshMode.PACKAGES:
                return canonicalize_name(package) in self.__refresh.packages

    def freshness(self, entry: CacheEntry, package: str | None) -> Freshness:
        """
        Decide whether a cache entry can be used under the refresh policy.

        :param entry:   Entry to check
        :param package: Package the entry belongs to, None if it is unknown
        :returns:       Whether the entry is fresh, stale or missing
        """
        refresh = self.__refresh
        match refresh.mode:
            case RefreshMode.NONE:
                return Freshness.FRESH
            case RefreshMode.PACKAGES:
                if package is not None and canonicalize_name(package) not in refresh.packages:
                    return Freshness.FRESH
        try:
            metadata = os.stat(entry.path)
        except FileNotFoundError:
            return Freshness.MISSING
        if Timestamp.from_stat(metadata) >= refresh.timestamp:
            return Freshness.FRESH
        return Freshness.STALE

    # ==========================================================================
    # Publication
    # ==========================================================================

    def persist(self, temp_dir: Path | str, path: Path | str) -> Path:
        """
        Move a fully written temporary directory into the archive bucket, then
        point a symlink at it from its logical location. The artifact only
        becomes visible once the symlink is in place.

        :param temp_dir: Directory holding the artifact
        :param path:     Location at which the artifact should appear
        :returns:        Path of the archive entry
        """
        path = Path(path)
        if path.parent == path:
            raise CacheError(f"Cannot persist to {path} as it has no parent directory")
        archive = self.entry(CacheBucket.ARCHIVE, "", uuid.uuid4().hex).path
        logging.debug(f"Persisting {temp_dir} to {archive}")
        archive.parent.mkdir(parents=True, exist_ok=True)
        os.rename(temp_dir, archive)
        path.parent.mkdir(parents=True, exist_ok=True)
        replace_symlink(archive, path)
        return archive

    # ==========================================================================
    # Maintenance
    # ==========================================================================

    def clear(self) -> Removal:
        "Delete the entire cache"
        return rm_rf(self.root)

    def remove(self, package: str) -> Removal:
        "Delete every entry belonging to a package from every bucket"
        summary = Removal()
        for bucket in CacheBucket:
            summary += bucket.remove(self, package)
        return summary

    def prune(self) -> Removal:
        """
        Garbage collect the cache. Directories left behind by outdated bucket
        versions and stray files at the root are deleted first, then any archive
        entry that no symlink in the cache refers to.
        """
        summary = Removal()
        known = {str(x) for x in CacheBucket}

        for entry in sorted(os.scandir(self.root), key=lambda x: x.name):
            if entry.name in MARKERS:
                continue
            if entry.is_dir(follow_symlinks=False) and entry.name in known:
                continue
            logging.debug(f"Removing dangling cache entry: {entry.path}")
            summary += rm_rf(entry.path)

        # Archives are only ever referenced through symlinks, so collect the
        # targets of every link in the cache
        # TODO: Reclaim unused source distributions in the built wheels bucket,
        # which needs their manifests to be read.
        archive = self.bucket(CacheBucket.ARCHIVE)
        if not archive.is_dir():
            return summary

        references = set()
        for bucket in CacheBucket:
            for dirpath, dirnames, filenames in os.walk(self.bucket(bucket), onerror=_raise):
                for name in dirnames + filenames:
                    candidate = Path(dirpath) / name
                    if candidate.is_symlink():
                        references.add(candidate.resolve())

        for entry in sorted(archive.iterdir()):
            if entry.resolve() not in references:
                logging.debug(f"Removing dangling cache entry: {entry}")
                summary += rm_rf(entry)

        return summary


def _raise(error: OSError) -> None:
    # A bucket that does not exist simply holds no references
    if not isinstance(error, FileNotFoundError):
        raise error
