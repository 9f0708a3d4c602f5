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
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from .activities import activities
from .cache import Cache
from .config import load_config

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
)


@dataclasses.dataclass
class DebugOptions:
    VERBOSE: bool = False
    POSTMORTEM: bool = False


DEBUG = DebugOptions()


@click.group()
@click.pass_context
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Path to the cache directory",
)
@click.option(
    "--no-cache",
    is_flag=True,
    default=False,
    help="Use a temporary cache directory, removed on exit",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read settings from a YAML file",
)
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="Treat every cached entry as stale",
)
@click.option(
    "--refresh-package",
    multiple=True,
    type=click.STRING,
    help="Treat cached entries for a package as stale (may be repeated)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Raise the verbosity of messages to debug",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    default=False,
    help="Lower the verbosity of messages to warning",
)
@click.option(
    "--pdb",
    is_flag=True,
    default=False,
    help="Enable PDB post-mortem debugging on any exception",
)
def stockpile(
    ctx: click.Context,
    cache_dir: str | None,
    no_cache: bool,
    config_file: Path | None,
    refresh: bool,
    refresh_package: tuple[str, ...],
    verbose: bool,
    quiet: bool,
    pdb: bool,
) -> None:
    DEBUG.POSTMORTEM = pdb
    DEBUG.VERBOSE = verbose
    if verbose:
        logging.info("Setting logging verbosity to DEBUG")
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.WARNING)
    config = load_config(
        config_file,
        cache_dir=cache_dir,
        no_cache=no_cache,
        refresh=refresh,
        refresh_package=refresh_package,
    )
    # The cache lives until the command completes, a temporary one is then removed
    ctx.obj = ctx.with_resource(Cache.from_config(config))


for activity in activities:
    stockpile.add_command(activity)


def main():
    try:
        stockpile(auto_envvar_prefix="STOCKPILE")
        sys.exit(0)
    except Exception as e:
        logging.error(f"{type(e).__name__}: {e}")
        if DEBUG.VERBOSE:
            Console().print_exception()
        if DEBUG.POSTMORTEM:
            import pdb

            pdb.post_mortem()
        sys.exit(1)


if __name__ == "__main__":
    main()
