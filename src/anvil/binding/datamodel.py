# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import re
from collections.abc import Callable, MutableMapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from math import inf
from typing import ClassVar, Protocol, Self, cast, runtime_checkable

from .exceptions import InvalidEnumValueError

__all__ = (  # noqa: RUF022
    'DataConverter',
    'DataAdapter',
    'AdapterRegistry',
    'coerce',
    'resolve_adapter',

    'StringAdapter',
    'BooleanAdapter',
    'DatetimeAdapter',
    'FloatAdapter',
    'DecimalAdapter',
    'EnumAdapter',

    'IntegerAdapter',
    'PositiveIntegerAdapter',
    'NonNegativeIntegerAdapter',
    'Int8Adapter',
    'Int16Adapter',
    'Int32Adapter',
    'Int64Adapter',
    'UInt8Adapter',
    'UInt16Adapter',
    'UInt32Adapter',
    'UInt64Adapter',
)


# Numbers in build files use the invariant notation regardless of the host
# locale: ASCII digits, '.' as decimal point and no group separators.
_integer_pattern = re.compile(r'\s*[+-]?[0-9]+\s*', re.ASCII)
_real_pattern = re.compile(r'\s*[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\s*', re.ASCII)


@runtime_checkable
class DataConverter(Protocol):
    """A protocol that describes how a data type converts itself from an attribute value"""

    @classmethod
    def xml_parse(cls, value: str) -> Self:
        """Parse an attribute value into the data type"""
        ...


@runtime_checkable
class DataAdapter[T](Protocol):
    """A protocol that describes an external adapter between attribute values and a data type T"""

    @staticmethod
    def xml_parse(value: str, /) -> T:
        """Parse an attribute value into the data type"""
        ...


type DataAdapterType[T] = type[DataAdapter[T]]


class AdapterRegistry[T]:
    _adapters: ClassVar[MutableMapping[type, type[DataAdapter]]] = {}

    @classmethod
    def associate(cls, data_type: type[T], adapter: type[DataAdapter[T]]) -> None:
        if issubclass(data_type, DataConverter):
            raise TypeError('Adapters for types that already support the DataConverter protocol must be explicitly provided with the attribute descriptors.')
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type[T]) -> type[DataAdapter[T]] | None:
        return cls._adapters.get(data_type, None)


class StringAdapter:
    @staticmethod
    def xml_parse(value: str) -> str:
        return value


class BooleanAdapter:
    @staticmethod
    def xml_parse(value: str) -> bool:
        match value.strip().lower():
            case 'true':
                return True
            case 'false':
                return False
            case _:
                raise ValueError(f'Invalid boolean value: {value!r}')


class DatetimeAdapter:
    @staticmethod
    def xml_parse(value: str) -> datetime:
        return datetime.fromisoformat(value.strip())


class FloatAdapter:
    @staticmethod
    def xml_parse(value: str) -> float:
        if _real_pattern.fullmatch(value) is None:
            raise ValueError(f'Invalid floating point value: {value!r}')
        return float(value)


class DecimalAdapter:
    @staticmethod
    def xml_parse(value: str) -> Decimal:
        if _real_pattern.fullmatch(value) is None:
            raise ValueError(f'Invalid decimal value: {value!r}')
        return Decimal(value.strip())


class EnumAdapter:
    """
    Base for adapters that parse enum members by name.

    Names are matched case-sensitively. Subclasses are created by for_type,
    one for each enum type, and are cached.
    """

    enum_type: ClassVar[type[Enum]]

    _cache: ClassVar[MutableMapping[type[Enum], type['EnumAdapter']]] = {}

    @classmethod
    def for_type[E: Enum](cls, enum_type: type[E]) -> DataAdapterType[E]:
        try:
            return cast(DataAdapterType[E], cls._cache[enum_type])
        except KeyError:
            adapter = cls._cache.setdefault(enum_type, type(f'{enum_type.__name__}Adapter', (cls,), {'enum_type': enum_type}))
            return cast(DataAdapterType[E], adapter)

    @classmethod
    def valid_values(cls) -> list[str]:
        return [member.name for member in cls.enum_type]

    @classmethod
    def xml_parse(cls, value: str) -> Enum:
        member = cls.enum_type.__members__.get(value)
        if member is None:
            raise InvalidEnumValueError(value, cls.valid_values())
        return member


AdapterRegistry.associate(str, StringAdapter)
AdapterRegistry.associate(bool, BooleanAdapter)
AdapterRegistry.associate(float, FloatAdapter)
AdapterRegistry.associate(Decimal, DecimalAdapter)
AdapterRegistry.associate(datetime, DatetimeAdapter)


class IntegerAdapter:
    def __init_subclass__(cls, *, min_value: int | None = None, max_value: int | None = None, name: str = 'integer', bits: int | None = None, unsigned: bool = False, **kw: object) -> None:
        super().__init_subclass__(**kw)

        # Subclasses should specify either min_value/max_value/name or bits/unsigned.
        # When bits is specified it overwrites the name and boundaries with computed values.

        lower_bound: int | float
        upper_bound: int | float

        if bits is not None:
            if bits <= 0:
                raise ValueError('when specified, bits must be a positive integer')
            name = f'{"unsigned" if unsigned else "signed"} {bits}-bit integer'
            offset: int = 0 if unsigned else 2 ** (bits - 1)
            lower_bound = 0 - offset
            upper_bound = 2**bits - 1 - offset
        else:
            lower_bound = min_value if min_value is not None else -inf
            upper_bound = max_value if max_value is not None else +inf

        def xml_parse(value: str) -> int:
            number = IntegerAdapter.xml_parse(value)
            if lower_bound <= number <= upper_bound:
                return number
            raise ValueError(f"invalid value '{value}' for {name}")

        cls.xml_parse = staticmethod(xml_parse)  # type: ignore[method-assign]

    @staticmethod
    def xml_parse(value: str) -> int:
        if _integer_pattern.fullmatch(value) is None:
            raise ValueError(f'Invalid integer value: {value!r}')
        return int(value)


AdapterRegistry.associate(int, IntegerAdapter)


class PositiveIntegerAdapter(IntegerAdapter, min_value=+1, name='positive integer'):
    pass


class NonNegativeIntegerAdapter(IntegerAdapter, min_value=0, name='non-negative integer'):
    pass


class Int8Adapter(IntegerAdapter, bits=8):
    pass


class Int16Adapter(IntegerAdapter, bits=16):
    pass


class Int32Adapter(IntegerAdapter, bits=32):
    pass


class Int64Adapter(IntegerAdapter, bits=64):
    pass


class UInt8Adapter(IntegerAdapter, bits=8, unsigned=True):
    pass


class UInt16Adapter(IntegerAdapter, bits=16, unsigned=True):
    pass


class UInt32Adapter(IntegerAdapter, bits=32, unsigned=True):
    pass


class UInt64Adapter(IntegerAdapter, bits=64, unsigned=True):
    pass


def resolve_adapter[T](data_type: type[T], adapter: DataAdapterType[T] | None = None) -> Callable[[str], T]:
    """Return the function that parses attribute values into data_type"""
    if adapter is None:
        if issubclass(data_type, DataConverter):
            adapter = cast(DataAdapterType[T], data_type)  # A type that implements the DataConverter protocol is its own DataAdapter
        elif issubclass(data_type, Enum):
            adapter = cast(DataAdapterType[T], EnumAdapter.for_type(data_type))
        else:
            adapter = AdapterRegistry.get_adapter(data_type)
    if adapter is not None:
        return adapter.xml_parse
    return cast(Callable[[str], T], data_type)


def coerce[T](value: str, data_type: type[T], /, *, adapter: DataAdapterType[T] | None = None) -> T:
    """
    Convert an attribute value to data_type.

    Raises InvalidEnumValueError for enum types when the value does not name
    one of its members and ValueError when the value cannot be converted.
    """
    parse = resolve_adapter(data_type, adapter)
    try:
        return parse(value)
    except InvalidEnumValueError:
        raise
    except (ValueError, TypeError, ArithmeticError) as exc:
        raise ValueError(f'cannot convert {value!r} to {data_type.__qualname__}: {exc!s}') from exc
