"""The resolved schema model that the stub writers consume.

The model is built once by the schema front end (see `descriptors.py`) and is never mutated
during generation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from rsocket_rpc_stub_generator.rpc_types import FILE_SYNTAX_FIELD, InteractionShape, classify

Location = tuple[int, ...]


@dataclass(frozen=True)
class NodeComments:
    """Comments that the schema attaches to a single node.

    Attributes:
        leading: The comment block directly above the node.
        trailing: The comment block directly behind the node.
        detached: Comment blocks above the node that are separated from it by blank lines.
    """

    leading: str = ""
    trailing: str = ""
    detached: tuple[str, ...] = ()


NO_COMMENTS = NodeComments()


@dataclass(frozen=True)
class CommentIndex:
    """Source comments of a schema file, keyed by the location path of each node."""

    entries: Mapping[Location, NodeComments] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        """Freeze the entries so the index can be shared between writers."""
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def get(self, location: Location) -> NodeComments:
        """Look up the comments of a node.

        Args:
            location (Location): The location path of the node.

        Returns:
            NodeComments: The comments, which are empty if the node has none.
        """
        return self.entries.get(location, NO_COMMENTS)


@dataclass(frozen=True)
class RecordType:
    """A message type referenced by a method.

    Only the name and the owning file matter, the fields are never inspected.
    """

    full_name: str
    file_name: str
    package: str = ""

    @property
    def relative_name(self) -> str:
        """The name of the type, relative to the package of its file.

        Nested types keep their parents, e.g. `pkg.Outer.Inner` becomes `Outer.Inner`.
        """
        if self.package and self.full_name.startswith(self.package + "."):
            return self.full_name[len(self.package) + 1 :]
        return self.full_name


@dataclass(frozen=True)
class Method:
    """A single RPC method of a service."""

    name: str
    input_type: RecordType
    output_type: RecordType
    client_streaming: bool = False
    server_streaming: bool = False
    fire_and_forget: bool = False
    location: Location = ()

    @property
    def shape(self) -> InteractionShape:
        """The interaction shape of this method."""
        return classify(self.client_streaming, self.server_streaming, self.fire_and_forget)


@dataclass(frozen=True)
class Service:
    """A service with its ordered methods."""

    name: str
    full_name: str
    methods: tuple[Method, ...] = ()
    location: Location = ()


@dataclass(frozen=True)
class SchemaFile:
    """A schema file, as handed over by the schema front end.

    Attributes:
        name: The path-like identifier of the file, e.g. `chat/chat.proto`.
        package: The package that the file declares.
        services: The services of the file, in declaration order.
        dependencies: Identifiers of the files that this file imports, in declaration order.
        has_messages: Whether the file declares message types of its own.
        comments: The source comments of the file.
    """

    name: str
    package: str = ""
    services: tuple[Service, ...] = ()
    dependencies: tuple[str, ...] = ()
    has_messages: bool = False
    comments: CommentIndex = field(default_factory=CommentIndex)

    @property
    def location(self) -> Location:
        """File level comments are attached to the `syntax` statement."""
        return (FILE_SYNTAX_FIELD,)

    def referenced_types(self) -> list[RecordType]:
        """All input and output types used by the services of this file, in order of first use."""
        seen: dict[str, RecordType] = {}
        for service in self.services:
            for method in service.methods:
                for record in (method.input_type, method.output_type):
                    seen.setdefault(record.full_name, record)
        return list(seen.values())
