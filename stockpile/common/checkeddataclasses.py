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
import warnings
from collections.abc import Callable
from typing import Any, dataclass_transform

import typeguard


class FieldError(TypeError):
    "Raised when a dataclass field holds a value of the wrong type or fails a check"

    def __init__(self, msg: str, field: str) -> None:
        super().__init__(msg)
        self.msg = msg
        self.field = field

    def __str__(self) -> str:
        return f"{self.field}: {self.msg}"


class Field(dataclasses.Field):
    """
    A dataclass field which can carry extra validation, registered with the
    ``check`` decorator. Checkers are called with the field and the value, and
    reject a value by raising TypeError or ValueError.
    """

    __slots__ = ("checkers",)

    def __init__(self, base: dataclasses.Field) -> None:
        for name in dataclasses.Field.__slots__:
            setattr(self, name, getattr(base, name))
        self.checkers: list[Callable[["Field", Any], None]] = []

    def check(self, checker: Callable[["Field", Any], None]) -> Callable[["Field", Any], None]:
        self.checkers.append(checker)
        return checker

    def run_checks(self, value: Any) -> None:
        for checker in self.checkers:
            try:
                checker(self, value)
            except (TypeError, ValueError) as ex:
                raise FieldError(str(ex), self.name) from None


def field(**kwargs) -> Any:
    """
    Checked version of ``dataclasses.field`` which allows validators to be
    attached to the field, for example::

        @dataclass
        class Limits:
            batch: int = field(default=50)

            @batch.check
            def positive(_field, value):
                if value < 1:
                    raise ValueError(f"Expected a positive number, got {value}")
    """
    return Field(dataclasses.field(**kwargs))


def _check_fields(cls: type) -> type:
    orig_init = cls.__init__

    def _checked_init(self, *args, **kwargs) -> None:
        orig_init(self, *args, **kwargs)
        for fld in dataclasses.fields(cls):
            value = getattr(self, fld.name)
            with warnings.catch_warnings():
                # String annotations which cannot be resolved are left unchecked
                warnings.simplefilter("ignore", category=typeguard.TypeHintWarning)
                try:
                    typeguard.check_type(value, fld.type)
                except typeguard.TypeCheckError as ex:
                    raise FieldError(str(ex), fld.name) from None
            if isinstance(fld, Field):
                fld.run_checks(value)

    cls.__init__ = _checked_init
    return cls


@dataclass_transform(kw_only_default=True, frozen_default=True, field_specifiers=(field,))
def dataclass(cls: type | None = None, /, **kwargs) -> Any:
    """
    Checked version of the dataclass decorator. Instances are keyword-only and
    frozen by default, and every field is type checked after initialisation.
    """
    kwargs.setdefault("kw_only", True)
    kwargs.setdefault("frozen", True)

    def wrap(inner: type) -> type:
        return _check_fields(dataclasses.dataclass(**kwargs)(inner))

    if cls is None:
        return wrap
    return wrap(cls)
