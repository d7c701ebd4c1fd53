# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from lxml import etree

__all__ = 'Location', 'LocationMap', 'UNKNOWN_LOCATION'


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


@dataclass(frozen=True, slots=True)
class Location:
    """A position in a build file"""

    filename: str | None = None
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        if self.filename is None:
            return 'unknown location'
        if self.line is None:
            return self.filename
        if self.column is None:
            return f'{self.filename}:{self.line}'
        return f'{self.filename}:{self.line}:{self.column}'

    @property
    def is_known(self) -> bool:
        return self.filename is not None


UNKNOWN_LOCATION = Location()


class LocationMap:
    """
    Maps lxml nodes to their position in the build file they were parsed from.

    lxml records the source line of every parsed element, and the document URL
    when the document was parsed from a file or given a base_url. It does not
    record columns, so the locations produced here never carry one.
    """

    def get_location(self, node: ETreeElement) -> Location:
        line = node.sourceline
        url = node.getroottree().docinfo.URL
        if line is None or url is None:
            raise LookupError(f'the <{etree.QName(node).localname}> node was not loaded from a build file')
        return Location(self._filename(url), line)

    @staticmethod
    def _filename(url: str) -> str:
        parsed_url = urlparse(url)
        if parsed_url.scheme == 'file':
            return str(Path(unquote(parsed_url.path)))
        return url
