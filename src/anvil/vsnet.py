# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Visual Studio .NET (2002/2003) C# project files.

The project file is bound to elements using the same machinery as the build
files, and CSharpProject derives from it what is needed to run the compiler:
the object directory used as working directory and the compiler command line.
Launching the compiler is left to the caller.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from os import PathLike
from pathlib import Path, PureWindowsPath
from typing import Self

from lxml import etree

from anvil.binding import Attribute, BuildElement, Element, MultiElement, OptionalAttribute, OptionalElement
from anvil.binding.datamodel import NonNegativeIntegerAdapter
from anvil.binding.exceptions import ProjectNotSupportedError
from anvil.binding.validators import IntegerValidator, StringValidator
from anvil.location import Location
from anvil.project import Project

__all__ = (  # noqa: RUF022
    'CSharpProject',
    'ProcessStartInfo',

    'ProjectType',
    'OutputType',
    'BuildAction',

    'VisualStudioProject',
    'CSharpDefinition',
    'BuildDefinition',
    'ProjectSettings',
    'ProjectConfiguration',
    'Reference',
    'FilesDefinition',
    'FileReference',
)


logger = logging.getLogger(__name__)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class ProjectType(Enum):
    Local = 'Local'
    Web = 'Web'


class OutputType(Enum):
    Exe = 'Exe'
    WinExe = 'WinExe'
    Library = 'Library'
    Module = 'Module'


# None is a keyword, so this cannot use the class syntax
BuildAction = Enum('BuildAction', ['None', 'Compile', 'Content', 'EmbeddedResource'])


class ProjectConfiguration(BuildElement, name='Config'):
    config_name: Attribute[str] = Attribute(str, name='Name', expand=False, validators=[StringValidator(allow_empty=False)])
    output_path: Attribute[PureWindowsPath] = Attribute(PureWindowsPath, name='OutputPath', expand=False)
    define_constants: OptionalAttribute[str] = OptionalAttribute(str, name='DefineConstants', expand=False, default='')
    documentation_file: OptionalAttribute[str] = OptionalAttribute(str, name='DocumentationFile', expand=False, default='')
    debug_symbols: OptionalAttribute[bool] = OptionalAttribute(bool, name='DebugSymbols', expand=False, default=False)
    optimize: OptionalAttribute[bool] = OptionalAttribute(bool, name='Optimize', expand=False, default=False)
    allow_unsafe_blocks: OptionalAttribute[bool] = OptionalAttribute(bool, name='AllowUnsafeBlocks', expand=False, default=False)
    check_for_overflow: OptionalAttribute[bool] = OptionalAttribute(bool, name='CheckForOverflowUnderflow', expand=False, default=False)
    treat_warnings_as_errors: OptionalAttribute[bool] = OptionalAttribute(bool, name='TreatWarningsAsErrors', expand=False, default=False)
    warning_level: OptionalAttribute[int] = OptionalAttribute(int, name='WarningLevel', expand=False, default=4, validators=[IntegerValidator(min_value=0, max_value=4)])
    file_alignment: OptionalAttribute[int] = OptionalAttribute(int, name='FileAlignment', expand=False, default=4096, adapter=NonNegativeIntegerAdapter)

    @property
    def defines(self) -> list[str]:
        return [name for name in (self.define_constants or '').split(';') if name]


class ProjectSettings(BuildElement, name='Settings'):
    assembly_name: Attribute[str] = Attribute(str, name='AssemblyName', expand=False, validators=[StringValidator(allow_empty=False)])
    output_type: Attribute[OutputType] = Attribute(OutputType, name='OutputType', expand=False)
    root_namespace: OptionalAttribute[str] = OptionalAttribute(str, name='RootNamespace', expand=False, default=None)
    startup_object: OptionalAttribute[str] = OptionalAttribute(str, name='StartupObject', expand=False, default='')

    configurations: MultiElement[ProjectConfiguration] = MultiElement(ProjectConfiguration)


class Reference(BuildElement, name='Reference'):
    reference_name: Attribute[str] = Attribute(str, name='Name', expand=False)
    assembly_name: OptionalAttribute[str] = OptionalAttribute(str, name='AssemblyName', expand=False, default=None)
    hint_path: OptionalAttribute[PureWindowsPath] = OptionalAttribute(PureWindowsPath, name='HintPath', expand=False, default=None)
    project_guid: OptionalAttribute[str] = OptionalAttribute(str, name='Project', expand=False, default=None)


class BuildDefinition(BuildElement, name='Build'):
    settings: Element[ProjectSettings] = Element(ProjectSettings)
    references: MultiElement[Reference] = MultiElement(Reference, container='References', optional=True)

    def __init__(self) -> None:
        super().__init__()
        self.settings = ProjectSettings()


class FileReference(BuildElement, name='File'):
    relative_path: Attribute[PureWindowsPath] = Attribute(PureWindowsPath, name='RelPath', expand=False)
    build_action: OptionalAttribute[Enum] = OptionalAttribute(BuildAction, name='BuildAction', expand=False, default=BuildAction['None'])  # type: ignore[arg-type]
    sub_type: OptionalAttribute[str] = OptionalAttribute(str, name='SubType', expand=False, default=None)


class FilesDefinition(BuildElement, name='Files'):
    files: MultiElement[FileReference] = MultiElement(FileReference, container='Include', optional=True)


class CSharpDefinition(BuildElement, name='CSHARP'):
    project_type: OptionalAttribute[ProjectType] = OptionalAttribute(ProjectType, name='ProjectType', expand=False, default=ProjectType.Local)
    product_version: OptionalAttribute[str] = OptionalAttribute(str, name='ProductVersion', expand=False, default=None)
    schema_version: OptionalAttribute[str] = OptionalAttribute(str, name='SchemaVersion', expand=False, default=None)
    project_guid: OptionalAttribute[str] = OptionalAttribute(str, name='ProjectGuid', expand=False, default=None)

    build: Element[BuildDefinition] = Element(BuildDefinition)
    files: OptionalElement[FilesDefinition] = OptionalElement(FilesDefinition)

    def __init__(self) -> None:
        super().__init__()
        self.build = BuildDefinition()
        self.files = FilesDefinition()


class VisualStudioProject(BuildElement, name='VisualStudioProject'):
    csharp: Element[CSharpDefinition] = Element(CSharpDefinition)

    def __init__(self) -> None:
        super().__init__()
        self.csharp = CSharpDefinition()


@dataclass(frozen=True, slots=True)
class ProcessStartInfo:
    """What is needed to launch a process: the program, its arguments and the working directory"""

    file_name: Path
    arguments: str
    working_directory: Path


class CSharpProject:
    compiler_name = 'csc.exe'

    def __init__(self, project_path: str | PathLike[str], definition: VisualStudioProject) -> None:
        self.project_path = Path(project_path)
        self.definition = definition

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({str(self.project_path)!r})'

    @classmethod
    def load(cls, project_path: str | PathLike[str]) -> Self:
        project = Project.from_file(project_path)
        if not cls.is_supported(project.document_element):
            raise ProjectNotSupportedError(f'Project {str(project_path)!r} is not a valid C# project.', Location(str(project_path)))
        logger.debug('Loading C# project %s', project_path)
        return cls(project_path, project.create_element(VisualStudioProject))

    @staticmethod
    def is_supported(document_element: ETreeElement | None) -> bool:
        """
        Check if the XML document element describes a C# project.

        A C# project has at least the following structure:

          <VisualStudioProject>
              <CSHARP ... />
          </VisualStudioProject>
        """
        if document_element is None:
            return False
        if document_element.tag != 'VisualStudioProject':
            return False
        # TODO @dan: check ProductVersion and SchemaVersion once more project versions are supported
        return document_element.find('CSHARP') is not None

    @property
    def project_directory(self) -> Path:
        return self.project_path.absolute().parent

    @property
    def settings(self) -> ProjectSettings:
        return self.definition.csharp.build.settings

    @property
    def name(self) -> str:
        return self.settings.assembly_name

    @property
    def configurations(self) -> dict[str, ProjectConfiguration]:
        return {config.config_name: config for config in self.settings.configurations}

    def configuration(self, name: str) -> ProjectConfiguration:
        try:
            return self.configurations[name]
        except KeyError:
            raise KeyError(f'Project {self.name!r} does not have a {name!r} configuration') from None

    def object_directory(self, config: ProjectConfiguration) -> Path:
        return self.project_directory / 'obj' / config.config_name

    def output_directory(self, config: ProjectConfiguration) -> Path:
        return self.project_directory.joinpath(*config.output_path.parts)

    def compile_sources(self) -> list[Path]:
        files = self.definition.csharp.files
        if files is None:
            return []
        return [self.project_directory.joinpath(*file.relative_path.parts) for file in files.files if file.build_action is BuildAction.Compile]

    def prepare(self, config: ProjectConfiguration) -> None:
        """Make sure the configuration's object directory exists"""
        # The compiler runs in <project dir>/obj/<configuration>, so relative
        # paths (like the AssemblyKeyFile attribute) are resolved from there.
        object_directory = self.object_directory(config)
        logger.debug('Preparing object directory %s', object_directory)
        object_directory.mkdir(parents=True, exist_ok=True)

    def process_start_info(self, config: ProjectConfiguration, response_file: str | PathLike[str], framework_directory: str | PathLike[str]) -> ProcessStartInfo:
        return ProcessStartInfo(
            file_name=Path(framework_directory) / self.compiler_name,
            arguments=f'/noconfig @"{response_file!s}"',
            working_directory=self.object_directory(config),
        )
