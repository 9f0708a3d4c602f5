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

import click
from ordered_set import OrderedSet as OSet
from packaging.utils import canonicalize_name

from ..cache import Cache, Removal


@click.group()
def cache() -> None:
    """
    Cache utilities
    """
    pass


@cache.command(name="dir")
@click.pass_obj
def cache_dir(cache: Cache) -> None:
    """
    Show the cache directory
    """
    print(cache.root)


@cache.command(name="clean")
@click.argument("packages", nargs=-1, type=click.STRING)
@click.pass_obj
def clean(cache: Cache, packages: tuple[str, ...]) -> None:
    """
    Clear the cache, or only the entries for the given packages
    """
    if not packages:
        print(f"Clearing cache at: {cache.root}")
        print(cache.clear())
        return
    summary = Removal()
    for package in OSet(canonicalize_name(x) for x in packages):
        removed = cache.remove(package)
        if removed:
            print(f"Removed cache entries for: {package}")
        else:
            print(f"No cache entries found for: {package}")
        summary += removed
    print(summary)


@cache.command(name="prune")
@click.pass_obj
def prune(cache: Cache) -> None:
    """
    Remove outdated buckets and unreferenced archives from the cache
    """
    print(f"Pruning cache at: {cache.root}")
    print(cache.prune())
