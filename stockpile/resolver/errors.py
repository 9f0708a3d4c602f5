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


class ResolveError(Exception):
    pass


class UnregisteredError(ResolveError):
    "Raised when a package's versions were never requested from the index"

    def __init__(self, package: str) -> None:
        super().__init__(f"Package '{package}' was not registered with the in-memory index")
        self.package = package


class RequestSendError(ResolveError):
    "Raised when a request cannot be handed to the fetch workers"
