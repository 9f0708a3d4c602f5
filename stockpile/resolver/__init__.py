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

from .candidates import (
    Candidate,
    CandidateSelector,
    CompatibleDist,
    CompatibleKind,
    Dist,
    DistKind,
    Incompatible,
    InstalledDist,
    PackageId,
    PackageKind,
    PubGrubPackage,
    ResolutionMode,
    ResponseStatus,
    VersionMap,
    VersionsResponse,
)
from .errors import RequestSendError, ResolveError, UnregisteredError
from .once_map import InMemoryIndex, OnceMap
from .prefetch import BatchPrefetcher, BatchPrefetchStrategy, PrefetchPhase
from .ranges import Range
from .requests import Request, RequestChannel, RequestKind

assert all(
    (
        BatchPrefetchStrategy,
        BatchPrefetcher,
        Candidate,
        CandidateSelector,
        CompatibleDist,
        CompatibleKind,
        Dist,
        DistKind,
        InMemoryIndex,
        Incompatible,
        InstalledDist,
        OnceMap,
        PackageId,
        PackageKind,
        PrefetchPhase,
        PubGrubPackage,
        Range,
        Request,
        RequestChannel,
        RequestKind,
        RequestSendError,
        ResolutionMode,
        ResolveError,
        ResponseStatus,
        UnregisteredError,
        VersionMap,
        VersionsResponse,
    )
)
