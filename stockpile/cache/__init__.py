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

from .archive import ArchiveTarget, ArchiveTimestamp, TimestampKind
from .bucket import CacheBucket
from .entry import CacheEntry, CacheShard
from .errors import CacheClosedError, CacheError
from .removal import Removal, rm_rf
from .store import Cache, Freshness, Refresh, RefreshMode, default_cache_dir
from .timestamp import CachedByTimestamp, Timestamp
from .wheel import WheelCache, WheelCacheKind

assert all(
    (
        ArchiveTarget,
        ArchiveTimestamp,
        Cache,
        CacheBucket,
        CacheClosedError,
        CacheEntry,
        CacheError,
        CacheShard,
        CachedByTimestamp,
        Freshness,
        Refresh,
        RefreshMode,
        Removal,
        Timestamp,
        TimestampKind,
        WheelCache,
        WheelCacheKind,
        default_cache_dir,
        rm_rf,
    )
)
