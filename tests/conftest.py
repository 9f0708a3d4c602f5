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
from pathlib import Path

import pytest

from stockpile.cache import Cache


@pytest.fixture
def cache(tmp_path: Path) -> Cache:
    with Cache.from_path(tmp_path / "cache") as cache:
        yield cache


def write(path: Path, content: str = "") -> Path:
    "Create a file, along with any missing parent directories"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def write_sidecar(directory: Path, name: str) -> Path:
    "Record the package a built wheel directory belongs to"
    return write(directory / "metadata.json", json.dumps({"name": name}))
