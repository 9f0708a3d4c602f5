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

import os
import uuid
from collections.abc import Iterator
from pathlib import Path


def directories(path: Path) -> Iterator[Path]:
    """
    Iterate over the immediate sub-directories of a path in name order. A path
    that does not exist (or is not a directory) yields nothing. Symlinks are not
    treated as directories.
    """
    try:
        entries = sorted(os.scandir(path), key=lambda x: x.name)
    except (FileNotFoundError, NotADirectoryError):
        return
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield Path(entry.path)


def create_new(path: Path, content: bytes = b"") -> bool:
    """
    Create a file with the given content only if it does not already exist.

    :param path:    File to create
    :param content: Bytes to write into a newly created file
    :returns:       True if the file was created, False if it already existed
    """
    try:
        with path.open("xb") as fh:
            fh.write(content)
    except FileExistsError:
        return False
    return True


def replace_symlink(target: Path, link: Path) -> None:
    """
    Point ``link`` at ``target``, atomically replacing any existing symlink. The
    new link is created under a temporary name beside the destination and then
    renamed over it, so readers observe either the old or the new target.
    """
    staging = link.parent / f".{link.name}.{uuid.uuid4().hex[:12]}.tmp"
    os.symlink(target, staging, target_is_directory=True)
    try:
        os.replace(staging, link)
    except OSError:
        staging.unlink(missing_ok=True)
        raise
