"""Generate the RSocket RPC stub module of a schema file."""

from __future__ import annotations

import logging

from rsocket_rpc_stub_generator import helper, imports
from rsocket_rpc_stub_generator.client_writer import ClientWriter
from rsocket_rpc_stub_generator.comments import CommentReattacher
from rsocket_rpc_stub_generator.emitter import Emitter
from rsocket_rpc_stub_generator.schema import SchemaFile
from rsocket_rpc_stub_generator.server_writer import ServerWriter
from rsocket_rpc_stub_generator.templates import FileHeader, ModulePreamble, PayloadHelpers

logger = logging.getLogger(__name__)


class Writer:
    """A class that handles writing the stub module, based on a provided schema file."""

    def __init__(self, schema_file: SchemaFile):
        """Initialize the stub writer with a schema file.

        Args:
            schema_file (SchemaFile): The schema file to write the stub module for.
        """
        self._schema_file = schema_file
        self._comments = CommentReattacher(schema_file.comments)
        self._out = Emitter()

    @property
    def output_filename(self) -> str:
        """The name of the generated module, relative to the output root."""
        return helper.service_module_filename(self._schema_file.name)

    @property
    def imports(self) -> list[str]:
        """The import statements of the message modules that the stubs reference."""
        return [module_import.statement for module_import in imports.collect_imports(self._schema_file)]

    def generate_all(self):
        """Generate the whole module: header, imports, helpers, then all clients before all servers."""
        schema_file = self._schema_file
        out = self._out
        logger.debug("Generating stubs for '%s'.", schema_file.name)

        out.render(FileHeader(source=schema_file.name))
        file_comments = self._comments.leading(schema_file.location)
        if file_comments:
            out.line("# Original file comments:")
            out.extend(file_comments)

        out.blank()
        out.render(ModulePreamble(source=schema_file.name))
        out.extend(self.imports)

        out.blank()
        out.blank()
        out.render(PayloadHelpers())

        for service in schema_file.services:
            out.blank()
            out.blank()
            ClientWriter(service, self._comments).write(out)

        for service in schema_file.services:
            out.blank()
            out.blank()
            ServerWriter(service, self._comments).write(out)

        trailing = self._comments.trailing(schema_file.location)
        if trailing:
            out.blank()
            out.extend(trailing)

    def dumps(self) -> str:
        """Generates string output for the stub module.

        Returns:
            str: The output string.
        """
        return self._out.dumps()
