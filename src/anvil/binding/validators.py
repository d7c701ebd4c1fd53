# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import re
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol, runtime_checkable

from .exceptions import ValidationError

__all__ = (  # noqa: RUF022
    'Validator',
    'ValidatorFunction',
    'validator_chain',

    'BooleanValidator',
    'DateTimeValidator',
    'FunctionValidator',
    'IntegerValidator',
    'StringValidator',
)


type ValidatorFunction = Callable[[str], None]


@runtime_checkable
class Validator(Protocol):
    def validate(self, value: str, /) -> None:
        """Check the attribute value, raising ValidationError if it is not acceptable"""
        ...


class FunctionValidator:
    """Adapt a function that raises ValidationError to the Validator protocol"""

    __slots__ = ('function',)

    def __init__(self, function: ValidatorFunction) -> None:
        self.function = function

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({getattr(self.function, '__qualname__', self.function)!s})'

    def validate(self, value: str, /) -> None:
        self.function(value)


class BooleanValidator:
    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'

    def validate(self, value: str, /) -> None:
        if value.strip().lower() not in {'true', 'false'}:
            raise ValidationError(f'Cannot resolve {value!r} to a boolean value')


class DateTimeValidator:
    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'

    def validate(self, value: str, /) -> None:
        try:
            datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f'Cannot resolve {value!r} to a date/time value') from exc


class IntegerValidator:
    __slots__ = 'base', 'max_value', 'min_value', 'pattern'

    # ASCII digits only, no separators or base prefixes
    _digits = {2: '[01]', 8: '[0-7]', 10: '[0-9]', 16: '[0-9a-fA-F]'}

    def __init__(self, *, min_value: int | None = None, max_value: int | None = None, base: int = 10) -> None:
        if base not in self._digits:
            raise ValueError(f'base must be one of 2, 8, 10 or 16, not {base}')
        if min_value is not None and max_value is not None and min_value > max_value:
            raise ValueError(f'min_value ({min_value}) cannot be greater than max_value ({max_value})')
        self.min_value = min_value
        self.max_value = max_value
        self.base = base
        self.pattern = re.compile(rf'\s*[+-]?{self._digits[base]}+\s*', re.ASCII)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(min_value={self.min_value!r}, max_value={self.max_value!r}, base={self.base!r})'

    def validate(self, value: str, /) -> None:
        if self.pattern.fullmatch(value) is None:
            raise ValidationError(f'Cannot resolve {value!r} to an integer value in base {self.base}')
        number = int(value, self.base)
        if self.min_value is not None and number < self.min_value:
            raise ValidationError(f'Cannot resolve {value!r} to an integer value. The value must be greater than or equal to {self.min_value}')
        if self.max_value is not None and number > self.max_value:
            raise ValidationError(f'Cannot resolve {value!r} to an integer value. The value must be less than or equal to {self.max_value}')


class StringValidator:
    __slots__ = 'allow_empty', 'expression', 'message'

    def __init__(self, *, allow_empty: bool = True, expression: str | None = None, message: str | None = None) -> None:
        self.allow_empty = allow_empty
        self.expression = re.compile(expression) if expression is not None else None
        self.message = message

    def __repr__(self) -> str:
        expression = self.expression.pattern if self.expression is not None else None
        return f'{self.__class__.__name__}(allow_empty={self.allow_empty!r}, expression={expression!r})'

    def validate(self, value: str, /) -> None:
        if not value:
            if not self.allow_empty:
                raise ValidationError('An empty value is not allowed')
            return
        if self.expression is not None and self.expression.fullmatch(value) is None:
            raise ValidationError(self.message or f'String {value!r} does not match expression {self.expression.pattern!r}')


def validator_chain(validators: Iterable[Validator | ValidatorFunction], /) -> tuple[Validator, ...]:
    """Normalize validators to a tuple of Validator objects, preserving their order"""
    chain: list[Validator] = []
    for item in validators:
        if isinstance(item, Validator):
            chain.append(item)
        elif callable(item):
            chain.append(FunctionValidator(item))
        else:
            raise TypeError(f'validators must implement the Validator protocol or be callable, not {type(item).__qualname__!r}')
    return tuple(chain)
