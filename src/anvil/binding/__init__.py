# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, MutableMapping, Sequence
from dataclasses import dataclass
from typing import ClassVar, Protocol, Self, overload
from weakref import ReferenceType
from weakref import ref as wref

from lxml import etree

from anvil.location import UNKNOWN_LOCATION, Location

from .datamodel import DataAdapterType, coerce
from .exceptions import (
    AttributeCoercionError,
    InvalidEnumValueError,
    MalformedElementTypeError,
    MissingRequiredAttributeError,
    MissingRequiredElementError,
    NullElementPropertyError,
    ValidationError,
    ValidationFailedError,
)
from .validators import Validator, ValidatorFunction, validator_chain

__all__ = (  # noqa: RUF022
    'ProjectContext',
    'BuildElement',
    'ElementDescription',
    'describe',
    'bind',

    'FieldDescriptor',
    'AttributeDescriptor',
    'ElementDescriptor',

    'Attribute',
    'OptionalAttribute',
    'Element',
    'OptionalElement',
    'MultiElement',
)


logger = logging.getLogger(__name__)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class ProjectContext(Protocol):
    """The build context that owns the elements and provides the services they need while binding"""

    namespace_uri: str | None
    properties: MutableMapping[str, str]

    def expand_properties(self, value: str, location: Location) -> str: ...

    def location_of(self, node: ETreeElement) -> Location: ...


@dataclass(frozen=True, slots=True)
class ElementDescription:
    attributes: tuple['AttributeDescriptor', ...]
    elements: tuple['ElementDescriptor', ...]


class BuildElement:
    """
    An element of the build file.

    Subclasses declare their XML name using the name class parameter and their
    attributes and nested elements using field descriptors:

      class Copy(Task, name='copy'):
          to_dir = Attribute(Path, name='todir')
          overwrite = OptionalAttribute(bool, default=False)
          filesets = MultiElement(FileSet, optional=True)

    Instances are created empty, get assigned a project and are then bound
    to a build file node by initialize() (or by the bind() function). Fields
    named location, project, xml_node, parent, properties and element_name
    are reserved.
    """

    # Public attributes. These can either be overwritten by subclasses, or preferably specified via class parameters:
    #
    # class MyElement(BuildElement, name=...):
    #     ...
    #
    # Class attributes use sunder names to avoid conflicts with application defined attributes and elements.

    _name_: ClassVar[str | None] = None

    # Derived and internal attributes (these should not be overwritten in subclasses)

    _fields_: ClassVar[dict[str, 'FieldDescriptor']] = {}
    _description_: ClassVar[ElementDescription] = ElementDescription(attributes=(), elements=())

    location: Location
    project: ProjectContext | None
    xml_node: ETreeElement | None

    _parent_: ReferenceType | None

    def __init__(self) -> None:
        self.location = UNKNOWN_LOCATION
        self.project = None
        self.xml_node = None
        self._parent_ = None

    def __init_subclass__(cls, name: str | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)

        if name is not None:
            if '_name_' in cls.__dict__ and cls._name_ != name:
                raise TypeError(f'The name specified via class parameter and the "_name_" class attribute are different ({name!r} != {cls._name_!r})')
            cls._name_ = name

        # all the fields on this element (both inherited and locally defined)
        fields = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}

        attributes = tuple(field for field in fields.values() if isinstance(field, AttributeDescriptor))
        elements = tuple(field for field in fields.values() if isinstance(field, ElementDescriptor))

        xml_names: dict[str, str] = {}
        for attribute in attributes:
            if attribute.xml_name in xml_names:
                raise MalformedElementTypeError(f'{cls.__qualname__} maps the {attribute.xml_name!r} attribute to both {xml_names[attribute.xml_name]!r} and {attribute.name!r}')
            xml_names[attribute.xml_name] = attribute.name  # type: ignore[assignment]

        cls._fields_ = fields
        cls._description_ = ElementDescription(attributes=attributes, elements=elements)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__} {self.element_name!r} at {self.location}>'

    @property
    def element_name(self) -> str | None:
        """The name of the XML element used to initialize this element"""
        return self._name_

    @property
    def parent(self) -> 'BuildElement | ProjectContext | None':
        """The task, target or project in which this element is defined"""
        return self._parent_() if self._parent_ is not None else None

    @parent.setter
    def parent(self, value: 'BuildElement | ProjectContext | None') -> None:
        self._parent_ = wref(value) if value is not None else None

    @property
    def properties(self) -> MutableMapping[str, str]:
        """The properties of the project this element belongs to"""
        if self.project is None:
            raise RuntimeError(f'{self.__class__.__qualname__} does not belong to a project')
        return self.project.properties

    @classmethod
    def from_xml(cls, node: ETreeElement, project: ProjectContext, parent: 'BuildElement | ProjectContext | None' = None) -> Self:
        """Create a new element of this type and bind it to node"""
        instance = cls()
        instance.parent = parent
        bind(instance, node, project)
        return instance

    def copy_context(self, other: 'BuildElement') -> None:
        """Take over the location, project and node of another element"""
        self.location = other.location
        self.project = other.project
        self.xml_node = other.xml_node

    def initialize(self, node: ETreeElement) -> None:
        """
        Bind the attributes and nested elements of node to this element.

        The attributes are processed first, then the nested elements, each in
        the order they were declared (inherited fields first). The first error
        aborts the process and leaves the element partially initialized.
        """
        if self.project is None:
            raise RuntimeError(f'{self.__class__.__qualname__} must be assigned a project before it is initialized')

        try:
            self.location = self.project.location_of(node)
        except LookupError as exc:
            logger.debug('Could not determine the location of <%s>: %s', self.element_name, exc)

        self.xml_node = node

        description = self._description_
        for attribute in description.attributes:
            attribute.from_xml(self, node)
        for element in description.elements:
            element.from_xml(self, node)

        # give subclasses a chance to do their own initialization and validation
        self.initialize_element(node)

    def initialize_element(self, node: ETreeElement) -> None:
        """Subclasses can override this to provide extra initialization not covered by the field descriptors"""


def describe(element_type: type) -> ElementDescription:
    """Return the attribute and element descriptors of a BuildElement type"""
    if not (isinstance(element_type, type) and issubclass(element_type, BuildElement)):
        raise MalformedElementTypeError(f'{element_type!r} is not a BuildElement type')
    return element_type._description_


def bind(instance: BuildElement, node: ETreeElement, project: ProjectContext) -> None:
    """Assign the project to instance and populate it from node"""
    instance.project = project
    instance.initialize(node)


def _qualified_name(name: str, namespace: str | None) -> str:
    return f'{{{namespace}}}{name}' if namespace else name


class FieldDescriptor[F](ABC):
    name: str | None
    type: type[F]

    xml_name: str
    required: bool

    def __set_name__(self, owner: type, name: str) -> None:
        if not (isinstance(owner, type) and issubclass(owner, BuildElement)):  # static type analysis does not catch this
            raise MalformedElementTypeError(f'Can only use {self.__class__.__qualname__} descriptors on BuildElement classes')
        if self.name is None:
            self.name = name
            self.xml_name = self.xml_name or name
        elif name != self.name:
            raise MalformedElementTypeError(f'cannot assign the same {self.__class__.__name__} descriptor to two different names: {self.name} and {name}')

    @abstractmethod
    def from_xml(self, instance: BuildElement, node: ETreeElement) -> None:
        """Fill in the instance's field value from the build file node"""
        raise NotImplementedError


class AttributeDescriptor[D](FieldDescriptor[D], ABC):
    expand: bool
    validators: tuple[Validator, ...]
    adapter: DataAdapterType[D] | None

    def __init__(self, data_type: type[D], /, *, name: str | None = None, expand: bool = True, validators: Iterable[Validator | ValidatorFunction] = (), adapter: DataAdapterType[D] | None = None) -> None:
        if not isinstance(data_type, type):
            raise MalformedElementTypeError(f'the attribute data type must be a type, not {data_type!r}')
        self.name = None
        self.type = data_type
        self.xml_name = name or ''
        self.expand = expand
        self.validators = validator_chain(validators)
        self.adapter = adapter

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        adapter_name = self.adapter.__qualname__ if self.adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, {name=}, expand={self.expand!r}, adapter={adapter_name})'

    def from_xml(self, instance: BuildElement, node: ETreeElement) -> None:
        """Fill in the instance's field value from the corresponding attribute of the build file node"""
        assert instance.project is not None  # noqa: S101 (used by type checkers)
        assert self.name is not None  # noqa: S101 (used by type checkers)

        value = node.get(self.xml_name)
        if value is None:
            if self.required:
                raise MissingRequiredAttributeError(self.xml_name, instance.element_name, instance.location)
            return

        logger.debug('Found %r attribute for %s', self.xml_name, instance.__class__.__qualname__)

        if self.expand:
            value = instance.project.expand_properties(value, instance.location)

        for validator in self.validators:
            logger.debug('Validating %r against %r', self.xml_name, validator)
            try:
                validator.validate(value)
            except ValidationError as exc:
                raise ValidationFailedError(instance.__class__, instance.location, exc) from exc

        try:
            instance.__dict__[self.name] = result = coerce(value, self.type, adapter=self.adapter)
        except InvalidEnumValueError as exc:
            raise InvalidEnumValueError(exc.value, exc.valid_values, instance.location) from None
        except ValueError as exc:
            raise AttributeCoercionError(self.xml_name, value, self.type, instance.location) from exc

        logger.debug('Setting value: %s.%s = %r', instance.__class__.__qualname__, self.name, result)


class Attribute[D](AttributeDescriptor[D]):
    required = True

    @overload
    def __get__(self, instance: None, owner: type[BuildElement]) -> Self: ...

    @overload
    def __get__(self, instance: BuildElement, owner: type[BuildElement] | None = None) -> D: ...

    def __get__(self, instance: BuildElement | None, owner: type[BuildElement] | None = None) -> Self | D:
        if instance is None:
            return self
        try:
            return instance.__dict__[self.name]
        except KeyError:
            raise AttributeError(f'mandatory attribute {self.name!r} is missing') from None

    def __set__(self, instance: BuildElement, value: D) -> None:
        if not isinstance(value, self.type):
            raise TypeError(f'the {self.name!r} attribute must be of type {self.type.__qualname__}')
        instance.__dict__[self.name] = value

    def __delete__(self, instance: BuildElement) -> None:
        raise AttributeError(f'mandatory attribute {self.name!r} cannot be deleted')


class OptionalAttribute[D](AttributeDescriptor[D]):
    required = False

    default: D | None

    def __init__(self, data_type: type[D], /, *, name: str | None = None, default: D | None = None, expand: bool = True, validators: Iterable[Validator | ValidatorFunction] = (), adapter: DataAdapterType[D] | None = None) -> None:
        super().__init__(data_type, name=name, expand=expand, validators=validators, adapter=adapter)
        self.default = default

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        adapter_name = self.adapter.__qualname__ if self.adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, {name=}, default={self.default!r}, expand={self.expand!r}, adapter={adapter_name})'

    @overload
    def __get__(self, instance: None, owner: type[BuildElement]) -> Self: ...

    @overload
    def __get__(self, instance: BuildElement, owner: type[BuildElement] | None = None) -> D | None: ...

    def __get__(self, instance: BuildElement | None, owner: type[BuildElement] | None = None) -> Self | D | None:
        if instance is None:
            return self
        return instance.__dict__.get(self.name, self.default)

    def __set__(self, instance: BuildElement, value: D | None) -> None:
        if value is None:
            instance.__dict__.pop(self.name, None)
        else:
            if not isinstance(value, self.type):
                raise TypeError(f'the {self.name!r} attribute must be of type {self.type.__qualname__}')
            instance.__dict__[self.name] = value

    def __delete__(self, instance: BuildElement) -> None:
        instance.__dict__.pop(self.name, None)


class ElementDescriptor[E: BuildElement](FieldDescriptor[E], ABC):
    is_array: ClassVar[bool] = False

    def __init__(self, element_type: type[E], /, *, name: str | None = None) -> None:
        if not (isinstance(element_type, type) and issubclass(element_type, BuildElement)):
            raise MalformedElementTypeError(f'element type must be a subclass of BuildElement, not {element_type!r}')
        self.name = None
        self.type = element_type
        self.xml_name = name or element_type._name_ or ''

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__qualname__}, name={self.xml_name!r})'


class _ScalarElementDescriptor[E: BuildElement](ElementDescriptor[E], ABC):
    def from_xml(self, instance: BuildElement, node: ETreeElement) -> None:
        """Bind the pre-allocated nested element of instance to the matching child of the build file node"""
        assert instance.project is not None  # noqa: S101 (used by type checkers)
        assert self.name is not None  # noqa: S101 (used by type checkers)

        child_node = next(node.iterchildren(_qualified_name(self.xml_name, instance.project.namespace_uri)), None)
        if child_node is None:
            if self.required:
                raise MissingRequiredElementError(self.xml_name, instance.element_name, instance.location)
            return

        child = instance.__dict__.get(self.name)
        if child is None:
            raise NullElementPropertyError(self.name, instance.element_name, instance.location)

        logger.debug('Found <%s> element for %s', self.xml_name, instance.__class__.__qualname__)

        child.project = instance.project
        child.parent = instance
        child.initialize(child_node)


class Element[E: BuildElement](_ScalarElementDescriptor[E]):
    """
    A mandatory nested element.

    The owner must allocate the element instance (usually in its __init__),
    binding only populates it.
    """

    required = True

    @overload
    def __get__(self, instance: None, owner: type[BuildElement]) -> Self: ...

    @overload
    def __get__(self, instance: BuildElement, owner: type[BuildElement] | None = None) -> E: ...

    def __get__(self, instance: BuildElement | None, owner: type[BuildElement] | None = None) -> Self | E:
        if instance is None:
            return self
        try:
            return instance.__dict__[self.name]
        except KeyError:
            raise AttributeError(f'mandatory element {self.name!r} is missing') from None

    def __set__(self, instance: BuildElement, value: E) -> None:
        if not isinstance(value, self.type):
            raise TypeError(f'the {self.name!r} element must be of type {self.type.__qualname__}')
        instance.__dict__[self.name] = value

    def __delete__(self, instance: BuildElement) -> None:
        raise AttributeError(f'mandatory element {self.name!r} cannot be deleted')


class OptionalElement[E: BuildElement](_ScalarElementDescriptor[E]):
    """
    An optional nested element.

    Like with Element, the owner must allocate the instance. Setting it to
    None is allowed, but binding a build file that contains the element is
    an error in that case.
    """

    required = False

    @overload
    def __get__(self, instance: None, owner: type[BuildElement]) -> Self: ...

    @overload
    def __get__(self, instance: BuildElement, owner: type[BuildElement] | None = None) -> E | None: ...

    def __get__(self, instance: BuildElement | None, owner: type[BuildElement] | None = None) -> Self | E | None:
        if instance is None:
            return self
        return instance.__dict__.get(self.name)

    def __set__(self, instance: BuildElement, value: E | None) -> None:
        if value is not None and not isinstance(value, self.type):
            raise TypeError(f'the {self.name!r} element must be of type {self.type.__qualname__}')
        instance.__dict__[self.name] = value

    def __delete__(self, instance: BuildElement) -> None:
        instance.__dict__.pop(self.name, None)


class MultiElement[E: BuildElement](ElementDescriptor[E]):
    """
    A list of nested elements of the same type.

    The items are the children named after the element type (or name when
    given). With container, the items are looked up inside the first child
    with that name instead, i.e. container='fileset' collects the items of:

      <fileset>
        <include name="*.txt"/>
        <include name="*.md"/>
      </fileset>

    Binding replaces the field value with a new list, which is empty when no
    items are found and the field is optional.
    """

    is_array = True

    item_name: str
    container: str | None
    optional: bool

    def __init__(self, element_type: type[E], /, *, name: str | None = None, container: str | None = None, optional: bool = False) -> None:
        super().__init__(element_type, name=name)
        self.item_name = self.xml_name
        self.container = container
        self.optional = optional
        if container is not None:
            self.xml_name = container

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__qualname__}, name={self.item_name!r}, container={self.container!r}, optional={self.optional!r})'

    def __set_name__(self, owner: type, name: str) -> None:
        super().__set_name__(owner, name)
        if not self.item_name:
            if self.container is not None:
                raise MalformedElementTypeError(f'the items of the {name!r} container must have a name, either from the element type or from the descriptor')
            self.item_name = self.xml_name

    @property
    def required(self) -> bool:  # type: ignore[override]
        return not self.optional

    @overload
    def __get__(self, instance: None, owner: type[BuildElement]) -> Self: ...

    @overload
    def __get__(self, instance: BuildElement, owner: type[BuildElement] | None = None) -> Sequence[E]: ...

    def __get__(self, instance: BuildElement | None, owner: type[BuildElement] | None = None) -> Self | Sequence[E]:
        if instance is None:
            return self
        return instance.__dict__.get(self.name, ())

    def __set__(self, instance: BuildElement, value: Iterable[E]) -> None:
        elements = list(value)
        if not elements and not self.optional:
            raise ValueError(f'the {self.name!r} element must have at least one item')
        for element in elements:
            if not isinstance(element, self.type):
                raise TypeError(f'the {self.name!r} element must be of type {self.type.__qualname__}')
        instance.__dict__[self.name] = elements

    def __delete__(self, instance: BuildElement) -> None:
        if not self.optional:
            raise AttributeError(f'mandatory element {self.name!r} cannot be deleted')
        instance.__dict__.pop(self.name, None)

    def from_xml(self, instance: BuildElement, node: ETreeElement) -> None:
        """Replace the instance's field value with new elements bound to the matching children of the build file node"""
        assert instance.project is not None  # noqa: S101 (used by type checkers)
        assert self.name is not None  # noqa: S101 (used by type checkers)

        namespace = instance.project.namespace_uri
        if self.container is not None:
            container_node = next(node.iterchildren(_qualified_name(self.container, namespace)), None)
            parent_node = container_node
        else:
            parent_node = node
        child_nodes = list(parent_node.iterchildren(_qualified_name(self.item_name, namespace))) if parent_node is not None else []

        if not child_nodes and not self.optional:
            raise MissingRequiredElementError(self.xml_name, instance.element_name, instance.location)

        logger.debug('Found %d <%s> elements for %s', len(child_nodes), self.item_name, instance.__class__.__qualname__)

        elements: list[E] = []
        for child_node in child_nodes:
            child = self.type()
            child.project = instance.project
            child.parent = instance
            child.initialize(child_node)
            elements.append(child)
        instance.__dict__[self.name] = elements
