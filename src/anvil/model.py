# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from pathlib import Path

from lxml import etree

from anvil.binding import Attribute, BuildElement, MultiElement, OptionalAttribute
from anvil.binding.exceptions import BuildError
from anvil.binding.validators import StringValidator
from anvil.project import Project

__all__ = 'Owner', 'Task', 'Target', 'FileSet', 'Include', 'Exclude'  # noqa: RUF022


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class Task(BuildElement):
    """Base class for the build file tasks"""

    fail_on_error: OptionalAttribute[bool] = OptionalAttribute(bool, name='failonerror', default=True)
    verbose: OptionalAttribute[bool] = OptionalAttribute(bool, default=False)

    @property
    def owner(self) -> 'Owner | None':
        match self.parent:
            case Task() | Target() | Project() as owner:
                return owner
            case _:
                return None

    @property
    def target(self) -> 'Target | None':
        """The target in which this task is defined, if any"""
        owner = self.owner
        while isinstance(owner, Task):
            owner = owner.owner
        return owner if isinstance(owner, Target) else None


class Target(BuildElement, name='target'):
    target_name: Attribute[str] = Attribute(str, name='name', validators=[StringValidator(allow_empty=False)])
    depends: OptionalAttribute[str] = OptionalAttribute(str, default='')
    description: OptionalAttribute[str] = OptionalAttribute(str, default=None)

    @property
    def dependencies(self) -> list[str]:
        return [name.strip() for name in self.depends.split(',')] if self.depends else []

    def initialize_element(self, node: ETreeElement) -> None:
        if any(not name for name in self.dependencies):
            raise BuildError(f'Target {self.target_name!r} has an empty name in its dependency list {self.depends!r}', self.location)


type Owner = Task | Target | Project


class PatternElement(BuildElement):
    pattern: Attribute[str] = Attribute(str, validators=[StringValidator(allow_empty=False)])


class Include(PatternElement, name='include'):
    pass


class Exclude(PatternElement, name='exclude'):
    pass


class FileSet(BuildElement, name='fileset'):
    base_directory: OptionalAttribute[Path] = OptionalAttribute(Path, name='basedir', default=None)
    default_excludes: OptionalAttribute[bool] = OptionalAttribute(bool, name='defaultexcludes', default=True)

    includes: MultiElement[Include] = MultiElement(Include, optional=True)
    excludes: MultiElement[Exclude] = MultiElement(Exclude, optional=True)

    @property
    def include_patterns(self) -> list[str]:
        return [include.pattern for include in self.includes]

    @property
    def exclude_patterns(self) -> list[str]:
        return [exclude.pattern for exclude in self.excludes]
