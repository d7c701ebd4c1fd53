# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
import re
from collections.abc import Mapping, MutableMapping
from os import PathLike
from pathlib import Path
from typing import Self

from lxml import etree

from anvil.binding import BuildElement, ProjectContext, bind
from anvil.binding.exceptions import BuildError, PropertyExpansionError
from anvil.location import UNKNOWN_LOCATION, Location, LocationMap

__all__ = 'Project',  # noqa: COM818


logger = logging.getLogger(__name__)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class Project:
    """
    The context in which the elements of a build file are bound.

    It holds the property table used to expand attribute values, the namespace
    of the build file (used to look up nested elements) and maps build file
    nodes to their location. Property references use the ${name} syntax.
    """

    property_reference = re.compile(r'\$\{\s*(?P<name>[^{}\s]+)\s*\}')

    namespace_uri: str | None
    properties: MutableMapping[str, str]
    base_directory: Path
    location_map: LocationMap
    document: etree._ElementTree | None  # noqa: SLF001

    def __init__(self, *, namespace_uri: str | None = None, properties: Mapping[str, str] | None = None, base_directory: str | PathLike[str] | None = None) -> None:
        self.namespace_uri = namespace_uri
        self.properties = dict(properties or {})
        self.base_directory = Path(base_directory) if base_directory is not None else Path.cwd()
        self.location_map = LocationMap()
        self.document = None

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(namespace_uri={self.namespace_uri!r}, base_directory={str(self.base_directory)!r})'

    @classmethod
    def from_file(cls, path: str | PathLike[str], *, properties: Mapping[str, str] | None = None) -> Self:
        """Load a build file, taking the namespace from its document element"""
        path = Path(path)
        try:
            document = etree.parse(str(path))  # noqa: S320
        except etree.XMLSyntaxError as exc:
            raise BuildError(f'Error loading build file: {exc.msg}', Location(str(path), exc.lineno, exc.offset)) from exc
        return cls._from_document(document, base_directory=path.absolute().parent, properties=properties)

    @classmethod
    def from_string(cls, data: str | bytes, *, filename: str = '<string>', properties: Mapping[str, str] | None = None, base_directory: str | PathLike[str] | None = None) -> Self:
        """Load a build file from a string, using filename when reporting locations"""
        # lxml refuses str input that carries an encoding declaration
        parser = None
        if isinstance(data, str):
            data = data.encode('utf-8')
            parser = etree.XMLParser(encoding='utf-8')
        try:
            root = etree.fromstring(data, parser, base_url=filename)  # noqa: S320
        except etree.XMLSyntaxError as exc:
            raise BuildError(f'Error loading build file: {exc.msg}', Location(filename, exc.lineno, exc.offset)) from exc
        return cls._from_document(root.getroottree(), base_directory=base_directory, properties=properties)

    @classmethod
    def _from_document(cls, document: etree._ElementTree, *, base_directory: str | PathLike[str] | None, properties: Mapping[str, str] | None) -> Self:  # noqa: SLF001
        namespace_uri = etree.QName(document.getroot()).namespace
        instance = cls(namespace_uri=namespace_uri, properties=properties, base_directory=base_directory)
        instance.document = document
        logger.debug('Loaded build file %s (namespace %r)', document.docinfo.URL, namespace_uri)
        return instance

    @property
    def document_element(self) -> ETreeElement:
        if self.document is None:
            raise RuntimeError('the project does not have a build file loaded')
        return self.document.getroot()

    def location_of(self, node: ETreeElement) -> Location:
        return self.location_map.get_location(node)

    def expand_properties(self, value: str, location: Location = UNKNOWN_LOCATION) -> str:
        """Replace the ${name} references in value with the corresponding property values"""

        def lookup(match: re.Match[str]) -> str:
            name = match.group('name')
            try:
                return self.properties[name]
            except KeyError:
                raise PropertyExpansionError(f'Property {name!r} has not been set', location) from None

        return self.property_reference.sub(lookup, value)

    def create_element[E: BuildElement](self, element_type: type[E], node: ETreeElement | None = None, parent: BuildElement | ProjectContext | None = None) -> E:
        """Create an element of element_type bound to node (the document element if node is None)"""
        if node is None:
            node = self.document_element
        element = element_type()
        element.parent = parent if parent is not None else self
        bind(element, node, self)
        return element
