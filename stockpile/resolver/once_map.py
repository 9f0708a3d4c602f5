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

import asyncio
import logging
import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from packaging.utils import NormalizedName

from .candidates import PackageId, VersionsResponse

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def _settle(future: asyncio.Future, value: Any) -> None:
    if not future.done():
        future.set_result(value)


class OnceMap(Generic[K, V]):
    """
    A keyed set of write-once slots. A caller first registers a key to claim
    the work of producing its value, any number of callers may then wait for
    the value, and the first value delivered for a key is the one every waiter
    observes. Registration is atomic so the map may be shared with worker
    threads.
    """

    def __init__(self) -> None:
        self.__lock = threading.Lock()
        self.__registered: set[K] = set()
        self.__values: dict[K, V] = {}
        self.__waiters: dict[K, list[tuple[asyncio.AbstractEventLoop, asyncio.Future]]] = {}

    def register(self, key: K) -> bool:
        """
        Claim a key.

        :param key: Key to claim
        :returns:   True if this call claimed the key, False if it was claimed
                    (or completed) before
        """
        with self.__lock:
            if key in self.__registered:
                return False
            self.__registered.add(key)
            return True

    def done(self, key: K, value: V) -> None:
        "Deliver the value for a key and wake anyone waiting on it"
        with self.__lock:
            if key in self.__values:
                return
            self.__registered.add(key)
            self.__values[key] = value
            waiters = self.__waiters.pop(key, [])
        for loop, future in waiters:
            # A waiter whose loop has gone away can no longer be woken
            if loop.is_closed():
                continue
            try:
                loop.call_soon_threadsafe(_settle, future, value)
            except RuntimeError:
                logging.debug(f"Dropping waiter on {key} as its event loop has closed")

    async def wait(self, key: K) -> V | None:
        """
        Wait for the value of a key. A wait that is cancelled (for example by a
        timeout) stops being tracked, so abandoned waits do not accumulate.

        :param key: Key to wait on
        :returns:   The value, or None if the key was never registered
        """
        with self.__lock:
            if key in self.__values:
                return self.__values[key]
            if key not in self.__registered:
                return None
            loop = asyncio.get_running_loop()
            future = loop.create_future()
            waiter = (loop, future)
            self.__waiters.setdefault(key, []).append(waiter)
        try:
            return await future
        finally:
            if not future.done() or future.cancelled():
                self.__forget(key, waiter)

    def __forget(self, key: K, waiter: tuple[asyncio.AbstractEventLoop, asyncio.Future]) -> None:
        with self.__lock:
            waiters = self.__waiters.get(key)
            if waiters is None:
                return
            if waiter in waiters:
                waiters.remove(waiter)
            if not waiters:
                del self.__waiters[key]

    def waiting(self, key: K) -> int:
        "Return how many callers are currently waiting on a key"
        with self.__lock:
            return len(self.__waiters.get(key, ()))

    def get(self, key: K) -> V | None:
        "Return the value of a key if it has been delivered"
        with self.__lock:
            return self.__values.get(key)

    def __contains__(self, key: K) -> bool:
        with self.__lock:
            return key in self.__registered


@dataclass
class InMemoryIndex:
    """
    State shared between the solver and the fetch workers: version listings
    per package, and metadata per distribution.
    """

    packages: OnceMap[NormalizedName, VersionsResponse] = field(default_factory=OnceMap)
    distributions: OnceMap[PackageId, Any] = field(default_factory=OnceMap)
