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
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum

from packaging.utils import NormalizedName

from .candidates import Dist, InstalledDist
from .errors import RequestSendError


class RequestKind(StrEnum):
    PACKAGE = "package"
    DIST = "dist"
    INSTALLED = "installed"


@dataclass(frozen=True)
class Request:
    "Work for the fetch workers: list a package's versions or fetch a distribution's metadata"

    kind: RequestKind
    package: NormalizedName | None = None
    dist: Dist | InstalledDist | None = None

    @classmethod
    def for_package(cls, name: NormalizedName) -> "Request":
        return cls(RequestKind.PACKAGE, package=name)

    @classmethod
    def for_dist(cls, dist: Dist | InstalledDist) -> "Request":
        if isinstance(dist, InstalledDist):
            return cls(RequestKind.INSTALLED, package=dist.name, dist=dist)
        return cls(RequestKind.DIST, package=dist.name, dist=dist)


_CLOSED = object()


class RequestChannel:
    """
    Bounded queue of requests from the solver to the fetch workers. Once closed
    no more requests may be sent, while receivers drain what remains and then
    receive None.

    :param maxsize: Number of requests that may be queued before senders wait,
                    zero for no limit
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.__queue: asyncio.Queue = asyncio.Queue(maxsize)
        self.__closed = False

    @property
    def closed(self) -> bool:
        return self.__closed

    async def send(self, request: Request) -> None:
        if self.__closed:
            raise RequestSendError(f"Cannot send {request.kind} request, the channel is closed")
        await self.__queue.put(request)

    async def recv(self) -> Request | None:
        if self.__closed and self.__queue.empty():
            return None
        item = await self.__queue.get()
        if item is _CLOSED:
            # Leave the marker in place for any other receiver
            try:
                self.__queue.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                pass
            return None
        return item

    def recv_nowait(self) -> Request | None:
        "Take a queued request without waiting, None if there is nothing queued"
        try:
            item = self.__queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self.__queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        if self.__closed:
            return
        self.__closed = True
        # A full queue has no receiver blocked on it, so the marker is only
        # needed to wake receivers of an empty one
        try:
            self.__queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def qsize(self) -> int:
        return self.__queue.qsize()

    async def __aiter__(self) -> AsyncIterator[Request]:
        while (request := await self.recv()) is not None:
            yield request
