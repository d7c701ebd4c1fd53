# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

__all__ = 'reprproxy',  # noqa: COM818


class reprproxy:  # noqa: N801
    """
    A proxy to provide better representation for types.

    Types render by their qualified name (int, Path, Compile) the way they
    are written in the element definitions, which keeps module paths out of
    the binding error messages. Other values use their regular repr.
    """

    def __init__(self, value: object) -> None:
        self.value = value

    def __repr__(self) -> str:
        match self.value:
            case type() as value:
                return value.__qualname__
            case value:
                return repr(value)

    __str__ = __repr__
