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
from pathlib import Path
from typing import Any, Generic, TypeVar

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader


class ConfigError(yaml.YAMLError):
    "Configuration could not be read"

    def __init__(self, location: Path | str, msg: str) -> None:
        super().__init__(f"{location}: {msg}")
        self.location = location
        self.msg = msg

    def __str__(self) -> str:
        return f"{self.location}: {self.msg}"


class ConfigFieldError(ConfigError):
    def __init__(self, location: str, ex: Exception, field: str | None = None) -> None:
        self.field = field
        self.orig_ex = ex
        suffix = "" if field is None else f" at field `{field}`"
        super().__init__(f"{location}{suffix}", str(getattr(ex, "msg", ex)))


class ConfigMissingFieldsError(ConfigError):
    def __init__(self, location: str, fields: set[str]) -> None:
        self.fields = fields
        super().__init__(location, f"Missing field(s) `{', '.join(sorted(fields))}`")


class ConfigExtraFieldsError(ConfigError):
    def __init__(self, location: str, fields: set[str]) -> None:
        self.fields = fields
        super().__init__(location, f"Got extra field(s) `{', '.join(sorted(fields))}`")


_Data = TypeVar("_Data")


def _location(node: yaml.Node) -> str:
    mark = node.start_mark
    return f"{mark.name}:{mark.line + 1}:{mark.column + 1}"


class DataclassParser(Generic[_Data]):
    """
    Reads YAML documents holding a single tagged mapping, converting it into a
    dataclass. For example::

        @dataclass
        class Settings:
            limit: int = 10

        parser = DataclassParser(Settings, tag="!Settings")
        parser.parse_str("!Settings\\nlimit: 20\\n")

    :param typ: Dataclass to construct
    :param tag: YAML tag of the document, ``!<class name>`` by default
    """

    def __init__(self, typ: type[_Data], tag: str | None = None) -> None:
        self.typ = typ
        self.tag = tag or f"!{typ.__name__}"

        class Loader(SafeLoader):
            pass

        Loader.add_constructor(self.tag, self.construct)
        self.loader = Loader

    def construct(self, loader: yaml.SafeLoader, node: yaml.Node) -> _Data:
        loc = _location(node)
        if not isinstance(node, yaml.MappingNode):
            raise ConfigError(loc, f"Expected a mapping for {self.tag}")
        values: dict[str, Any] = loader.construct_mapping(node, deep=True)

        known = set()
        required = set()
        for fld in dataclasses.fields(self.typ):
            if not fld.init:
                continue
            known.add(fld.name)
            if fld.default is dataclasses.MISSING and fld.default_factory is dataclasses.MISSING:
                required.add(fld.name)

        if extra := set(values) - known:
            raise ConfigExtraFieldsError(loc, extra)
        if missing := required - set(values):
            raise ConfigMissingFieldsError(loc, missing)

        try:
            return self.typ(**values)
        except TypeError as ex:
            raise ConfigFieldError(loc, ex, getattr(ex, "field", None)) from None

    def _check(self, parsed: Any, location: Path | str) -> _Data:
        if not isinstance(parsed, self.typ):
            raise ConfigError(
                location, f"Expected a {self.tag} document, got {type(parsed).__name__}"
            )
        return parsed

    def parse(self, path: Path) -> _Data:
        """
        Parse a YAML file.

        :param path: Path to the YAML file
        :returns:    The dataclass instance it describes
        """
        with path.open("r", encoding="utf-8") as fh:
            parsed = yaml.load(fh, Loader=self.loader)
        return self._check(parsed, path)

    def parse_str(self, data: str) -> _Data:
        return self._check(yaml.load(data, Loader=self.loader), "<unicode string>")
