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

import dataclasses
import logging
from pathlib import Path
from typing import Any

from .common.checkeddataclasses import dataclass, field
from .common.yaml import DataclassParser


@dataclass
class CacheConfig:
    """
    Settings for the cache and the prefetcher, read from a ``!Stockpile`` YAML
    document and overridden from the command line or environment.
    """

    cache_dir: str | None = None
    "Root of a persistent cache, the user cache directory is used if unset"
    no_cache: bool = False
    "Use a temporary cache which is removed on exit"
    refresh: bool = False
    refresh_package: list[str] = field(default_factory=list)
    prefetch_batch_limit: int = field(default=50)
    prefetch_thresholds: list[int] = field(default_factory=lambda: [5, 10, 20])
    prefetch_interval: int = field(default=20)

    @prefetch_batch_limit.check
    @prefetch_interval.check
    def positive(_field, value):
        if value < 1:
            raise ValueError(f"Expected a positive number, but got {value}")

    @prefetch_thresholds.check
    def ascending(_field, value):
        if any(x < 1 for x in value):
            raise ValueError(f"Expected positive thresholds, but got {value}")
        if value != sorted(set(value)):
            raise ValueError(f"Expected strictly ascending thresholds, but got {value}")

    def with_overrides(self, **overrides: Any) -> "CacheConfig":
        """
        Apply values given on the command line or through the environment. Unset
        values (None, False or empty) leave the configured value in place.
        """
        given = {
            k: list(v) if isinstance(v, tuple) else v
            for k, v in overrides.items()
            if v not in (None, False, (), [])
        }
        if given:
            logging.debug(f"Overriding configuration: {', '.join(sorted(given))}")
        return dataclasses.replace(self, **given)


CacheConfigParser = DataclassParser(CacheConfig, tag="!Stockpile")


def load_config(path: Path | None = None, **overrides: Any) -> CacheConfig:
    """
    Read configuration from a file (if given) and apply overrides on top.

    :param path:      Optional YAML file holding a ``!Stockpile`` document
    :param overrides: Values from the command line or environment
    :returns:         The resolved configuration
    """
    config = CacheConfigParser.parse(path) if path else CacheConfig()
    return config.with_overrides(**overrides)
