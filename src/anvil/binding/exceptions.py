# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Sequence

from anvil.location import UNKNOWN_LOCATION, Location
from anvil.python import reprproxy

__all__ = (  # noqa: RUF022
    'BindingError',

    'BuildError',
    'MissingRequiredAttributeError',
    'MissingRequiredElementError',
    'ValidationError',
    'ValidationFailedError',
    'AttributeCoercionError',
    'InvalidEnumValueError',
    'PropertyExpansionError',
    'ProjectNotSupportedError',

    'ElementDefinitionError',
    'NullElementPropertyError',
    'MalformedElementTypeError',
)


class BindingError(Exception):
    """Base class for the errors produced while binding build file nodes to elements."""

    def __init__(self, message: str, location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location.is_known:
            return f'{self.location}: {self.message}'
        return self.message


# User errors (problems in the build file)

class BuildError(BindingError):
    """
    Raised when a build file node cannot be bound to its element.

    These are problems in the build file, which the user has to fix.
    """


class MissingRequiredAttributeError(BuildError):
    def __init__(self, attribute_name: str, element_name: str | None, location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(f"'{attribute_name}' is a required attribute of <{element_name} ... />", location)
        self.attribute_name = attribute_name
        self.element_name = element_name


class MissingRequiredElementError(BuildError):
    def __init__(self, child_name: str, element_name: str | None, location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(f"'{child_name}' is a required element of <{element_name} ... />", location)
        self.child_name = child_name
        self.element_name = element_name


class ValidationError(ValueError):
    """Raised by validators when they reject a value. It carries no location."""


class ValidationFailedError(BuildError):
    def __init__(self, owner: type, location: Location, cause: ValidationError) -> None:
        super().__init__(f'Validation failed on {reprproxy(owner)}: {cause!s}', location)
        self.owner = owner
        self.cause = cause


class AttributeCoercionError(BuildError):
    def __init__(self, attribute_name: str, value: str, target_type: object, location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(f"Cannot convert {value!r} to {reprproxy(target_type)} for the '{attribute_name}' attribute", location)
        self.attribute_name = attribute_name
        self.value = value
        self.target_type = target_type


class InvalidEnumValueError(BuildError, ValueError):
    def __init__(self, value: str, valid_values: Sequence[str], location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(f'Invalid value "{value}". Valid values for this attribute are: {', '.join(valid_values)}', location)
        self.value = value
        self.valid_values = list(valid_values)


class PropertyExpansionError(BuildError):
    """Raised when property references in an attribute value cannot be resolved."""


class ProjectNotSupportedError(BuildError):
    """Raised when a project file is not of the kind its loader supports."""


# Tool errors (problems in the element type definitions)

class ElementDefinitionError(BindingError):
    """
    Raised when an element type is defined incorrectly.

    These indicate a bug in the element definitions, not in the build file,
    even though they also stop the build when encountered during binding.
    """


class NullElementPropertyError(ElementDefinitionError):
    def __init__(self, field_name: str, element_name: str | None, location: Location = UNKNOWN_LOCATION) -> None:
        super().__init__(f"The '{field_name}' nested element of <{element_name} ... /> was not allocated before binding", location)
        self.field_name = field_name
        self.element_name = element_name


class MalformedElementTypeError(ElementDefinitionError, TypeError):
    """Raised when an element type or one of its descriptors is not well formed."""
