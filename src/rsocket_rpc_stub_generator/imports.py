"""Resolution of the message modules that a generated stub module imports.

Every generated file references the message modules of its own schema file and of its
dependencies. The same dependency is referenced from many generated files independently, so
aliases and paths are pure functions of the two file names involved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rsocket_rpc_stub_generator import helper
from rsocket_rpc_stub_generator.rpc_types import MODULE_ALIAS_MARKER, WELL_KNOWN_PACKAGE, WELL_KNOWN_PREFIX
from rsocket_rpc_stub_generator.schema import SchemaFile

_NON_IDENTIFIER = re.compile(r"\W")


@dataclass(frozen=True)
class ModuleImport:
    """A single `from <package> import <module> as <alias>` statement."""

    alias: str
    package: str
    module: str

    @property
    def statement(self) -> str:
        """The import statement as it appears in generated code."""
        return f"from {self.package} import {self.module} as {self.alias}"


def is_well_known(filename: str) -> bool:
    """Whether a schema file belongs to the well-known types that ship with protobuf."""
    return filename.startswith(WELL_KNOWN_PREFIX)


def module_alias(filename: str) -> str:
    """Returns the alias that generated code assigns to the message module of a schema file.

    Path separators and punctuation are flattened into a single identifier, and the module
    marker is appended so that the alias cannot collide with service or message names.
    Underscores are doubled first, so that `foo/bar.proto` and `foo_bar.proto` stay apart.

    Examples:
        >>> module_alias("foo/bar_baz.proto")
        'foo_dot_bar__baz__pb2'
        >>> module_alias("google/protobuf/empty.proto")
        'google_dot_protobuf_dot_empty__pb2'

    Args:
        filename (str): The schema file name.

    Returns:
        str: A valid Python identifier.
    """
    basename = helper.strip_proto_suffix(filename)
    basename = basename.replace("_", "__")
    basename = basename.replace("/", "_dot_").replace(".", "_dot_")
    basename = basename.replace("-", "_dash_")
    basename = _NON_IDENTIFIER.sub("_", basename)
    if basename[:1].isdigit():
        basename = f"_{basename}"
    return basename + MODULE_ALIAS_MARKER


def relative_package(current_file: str, dependency_file: str) -> str:
    """The package, relative to the generated module of `current_file`, that holds the messages of `dependency_file`.

    Both names are relative to the same root. Every path separator in `current_file` adds one
    parent step, so `a/b/c.proto` importing `x/y.proto` yields `...x`.

    Args:
        current_file (str): The schema file for which code is generated.
        dependency_file (str): The schema file whose messages are imported.

    Returns:
        str: The package part of the import statement.
    """
    if is_well_known(dependency_file):
        return WELL_KNOWN_PACKAGE

    parent_steps = current_file.count("/")
    directory = dependency_file.rsplit("/", 1)[0] if "/" in dependency_file else ""
    return "." * (parent_steps + 1) + directory.replace("/", ".")


def resolve_import(current_file: str, dependency_file: str) -> ModuleImport:
    """Resolve the import of a dependency's message module from a generated module.

    Args:
        current_file (str): The schema file for which code is generated.
        dependency_file (str): The schema file whose messages are imported.

    Returns:
        ModuleImport: The alias and path of the import.
    """
    return ModuleImport(
        alias=module_alias(dependency_file),
        package=relative_package(current_file, dependency_file),
        module=helper.message_module_name(dependency_file),
    )


def collect_imports(schema_file: SchemaFile) -> list[ModuleImport]:
    """Collect the message module imports for a generated file.

    The file's own messages come first (if it has any), followed by its dependencies in
    declaration order. Files that own a referenced type without being a direct dependency
    (e.g. through public imports) are appended in sorted order.

    Args:
        schema_file (SchemaFile): The schema file for which code is generated.

    Returns:
        list[ModuleImport]: The imports, without duplicates.
    """
    filenames: list[str] = []
    if schema_file.has_messages:
        filenames.append(schema_file.name)

    for dependency in schema_file.dependencies:
        if dependency not in filenames:
            filenames.append(dependency)

    owners = {record.file_name for record in schema_file.referenced_types()}
    filenames.extend(sorted(owners.difference(filenames)))

    return [resolve_import(schema_file.name, filename) for filename in filenames]
