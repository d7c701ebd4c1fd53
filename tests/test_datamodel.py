# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Self

import pytest

from anvil.binding.datamodel import (
    AdapterRegistry,
    EnumAdapter,
    Int8Adapter,
    Int16Adapter,
    Int32Adapter,
    Int64Adapter,
    NonNegativeIntegerAdapter,
    PositiveIntegerAdapter,
    UInt8Adapter,
    UInt16Adapter,
    UInt32Adapter,
    UInt64Adapter,
    coerce,
    resolve_adapter,
)
from anvil.binding.exceptions import InvalidEnumValueError


class OutputKind(Enum):
    Exe = 1
    Library = 2
    Module = 3


class Version:
    def __init__(self, major: int, minor: int) -> None:
        self.major = major
        self.minor = minor

    @classmethod
    def xml_parse(cls, value: str) -> Self:
        major, _, minor = value.partition('.')
        return cls(int(major), int(minor or 0))


class TestCoercion:

    def test_strings(self) -> None:
        assert coerce('', str) == ''
        assert coerce('  text ', str) == '  text '

    def test_booleans(self) -> None:
        assert coerce('true', bool) is True
        assert coerce('True', bool) is True
        assert coerce(' true ', bool) is True
        assert coerce('FALSE', bool) is False
        for value in ('1', '0', 'yes'):
            with pytest.raises(ValueError, match=r'Invalid boolean value'):
                coerce(value, bool)
        with pytest.raises(ValueError, match=r'Invalid boolean value'):
            coerce('on', bool)

    def test_integers(self) -> None:
        assert coerce('42', int) == 42
        assert coerce('-7', int) == -7
        assert coerce('+7', int) == 7
        for value in ('', '1.0', '1,000', '1_000', '0x10', '١٢', 'ten'):
            with pytest.raises(ValueError):
                coerce(value, int)

    def test_sized_integers(self) -> None:
        assert coerce('-128', int, adapter=Int8Adapter) == -128
        assert coerce('127', int, adapter=Int8Adapter) == 127
        assert coerce('65535', int, adapter=UInt16Adapter) == 65535
        assert coerce('0', int, adapter=NonNegativeIntegerAdapter) == 0
        with pytest.raises(ValueError, match=r'signed 8-bit integer'):
            coerce('128', int, adapter=Int8Adapter)
        with pytest.raises(ValueError, match=r'unsigned 16-bit integer'):
            coerce('-1', int, adapter=UInt16Adapter)
        with pytest.raises(ValueError, match=r'positive integer'):
            coerce('0', int, adapter=PositiveIntegerAdapter)

    def test_integer_widths(self) -> None:
        boundaries = [
            (Int8Adapter, -2**7, 2**7 - 1),
            (Int16Adapter, -2**15, 2**15 - 1),
            (Int32Adapter, -2**31, 2**31 - 1),
            (Int64Adapter, -2**63, 2**63 - 1),
            (UInt8Adapter, 0, 2**8 - 1),
            (UInt16Adapter, 0, 2**16 - 1),
            (UInt32Adapter, 0, 2**32 - 1),
            (UInt64Adapter, 0, 2**64 - 1),
        ]
        for adapter, lowest, highest in boundaries:
            assert coerce(str(lowest), int, adapter=adapter) == lowest
            assert coerce(str(highest), int, adapter=adapter) == highest
            with pytest.raises(ValueError, match=r'bit integer'):
                coerce(str(lowest - 1), int, adapter=adapter)
            with pytest.raises(ValueError, match=r'bit integer'):
                coerce(str(highest + 1), int, adapter=adapter)

    def test_reals(self) -> None:
        assert coerce('1.5', float) == 1.5
        assert coerce('.5', float) == 0.5
        assert coerce('1e3', float) == 1000.0
        assert coerce('2.50', Decimal) == Decimal('2.50')
        for value in ('1,5', '1_000.0', 'nan', 'inf', ''):
            with pytest.raises(ValueError):
                coerce(value, float)
            with pytest.raises(ValueError):
                coerce(value, Decimal)

    def test_datetime(self) -> None:
        assert coerce('2003-04-01T12:30:00', datetime) == datetime(2003, 4, 1, 12, 30)
        with pytest.raises(ValueError):
            coerce('April 1st', datetime)

    def test_enums(self) -> None:
        assert coerce('Library', OutputKind) is OutputKind.Library
        with pytest.raises(InvalidEnumValueError) as exc_info:
            coerce('library', OutputKind)
        assert exc_info.value.value == 'library'
        assert exc_info.value.valid_values == ['Exe', 'Library', 'Module']
        assert str(exc_info.value) == 'Invalid value "library". Valid values for this attribute are: Exe, Library, Module'

    def test_enum_adapters_are_cached(self) -> None:
        adapter = EnumAdapter.for_type(OutputKind)
        assert EnumAdapter.for_type(OutputKind) is adapter
        assert issubclass(adapter, EnumAdapter)
        assert adapter.xml_parse('Exe') is OutputKind.Exe

    def test_data_converter(self) -> None:
        version = coerce('1.1', Version)
        assert (version.major, version.minor) == (1, 1)
        with pytest.raises(ValueError, match=r"cannot convert 'x.y' to Version"):
            coerce('x.y', Version)

    def test_type_constructor_fallback(self) -> None:
        assert coerce('src/main.cs', Path) == Path('src/main.cs')
        assert resolve_adapter(Path) is Path


class TestAdapterRegistry:

    def test_builtin_associations(self) -> None:
        for data_type in (str, bool, int, float, Decimal, datetime):
            assert AdapterRegistry.get_adapter(data_type) is not None
        assert AdapterRegistry.get_adapter(Path) is None

    def test_data_converters_are_refused(self) -> None:
        with pytest.raises(TypeError):
            AdapterRegistry.associate(Version, Int8Adapter)  # type: ignore[arg-type]
