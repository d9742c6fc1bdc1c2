"""Build the schema model from compiled protobuf descriptors.

protoc hands compiled schemas over as `FileDescriptorProto` messages, either inside a
`CodeGeneratorRequest` (plugin mode) or a `FileDescriptorSet` (written by
`protoc --descriptor_set_out`). This module resolves the message types that methods refer to
across all supplied files, collects the source comments and reads the method options.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from google.protobuf import descriptor_pb2, empty_pb2
from google.protobuf.compiler import plugin_pb2
from google.protobuf.unknown_fields import UnknownFieldSet

from rsocket_rpc_stub_generator.rpc_types import (
    FILE_SERVICE_FIELD,
    FILE_SYNTAX_FIELD,
    FIRE_AND_FORGET_FIELD,
    METHOD_OPTIONS_FIELD,
    SERVICE_METHOD_FIELD,
)
from rsocket_rpc_stub_generator.schema import CommentIndex, Location, Method, NodeComments, RecordType, SchemaFile, Service

logger = logging.getLogger(__name__)

TypeIndex = dict[str, RecordType]

WIRETYPE_VARINT = 0
WIRETYPE_LENGTH_DELIMITED = 2


def _qualify(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _index_messages(
    index: TypeIndex,
    messages: Iterable[descriptor_pb2.DescriptorProto],
    scope: str,
    file_proto: descriptor_pb2.FileDescriptorProto,
):
    for message in messages:
        full_name = _qualify(scope, message.name)
        index[full_name] = RecordType(full_name=full_name, file_name=file_proto.name, package=file_proto.package)
        _index_messages(index, message.nested_type, full_name, file_proto)


def build_type_index(files: Iterable[descriptor_pb2.FileDescriptorProto]) -> TypeIndex:
    """Map the fully qualified name of every message type, nested ones included, to its record.

    Args:
        files (Iterable[FileDescriptorProto]): All files that types may be resolved from.

    Returns:
        TypeIndex: The records, keyed by their fully qualified names without a leading dot.
    """
    index: TypeIndex = {}
    for file_proto in files:
        _index_messages(index, file_proto.message_type, file_proto.package, file_proto)
    return index


def resolve_type(type_name: str, index: TypeIndex) -> RecordType:
    """Look up the record of a message type, as referenced by a method descriptor.

    Args:
        type_name (str): The fully qualified type name, e.g. `.chat.Message`.
        index (TypeIndex): The records of all known message types.

    Raises:
        ValueError: If the type is not declared in any of the supplied files.

    Returns:
        RecordType: The record of the type.
    """
    full_name = type_name.lstrip(".")
    try:
        return index[full_name]
    except KeyError:
        raise ValueError(f"Message type '{full_name}' is not declared in any of the supplied files.") from None


def read_fire_and_forget(options: descriptor_pb2.MethodOptions) -> bool:
    """Read the fire-and-forget flag from the RSocket extension of the method options.

    The extension is not registered with the protobuf runtime, so it survives parsing as an
    unknown field of the options. The last occurrence wins, as for any non-repeated field.

    Args:
        options (MethodOptions): The options of a method.

    Returns:
        bool: Whether the method is flagged as fire-and-forget.
    """
    fire_and_forget = False
    for option in UnknownFieldSet(options):
        if option.field_number != METHOD_OPTIONS_FIELD or option.wire_type != WIRETYPE_LENGTH_DELIMITED:
            continue

        for flag in UnknownFieldSet(empty_pb2.Empty.FromString(option.data)):
            if flag.field_number == FIRE_AND_FORGET_FIELD and flag.wire_type == WIRETYPE_VARINT:
                fire_and_forget = bool(flag.data)

    return fire_and_forget


def _is_commented_node(path: Location) -> bool:
    """Comments are only kept for the nodes that the generated code has a counterpart of."""
    if path == (FILE_SYNTAX_FIELD,):
        return True
    if len(path) == 2:
        return path[0] == FILE_SERVICE_FIELD
    if len(path) == 4:
        return path[0] == FILE_SERVICE_FIELD and path[2] == SERVICE_METHOD_FIELD
    return False


def read_comments(file_proto: descriptor_pb2.FileDescriptorProto) -> CommentIndex:
    """Collect the comments of the file, its services and their methods.

    Args:
        file_proto (FileDescriptorProto): The file, compiled with source info.

    Returns:
        CommentIndex: The comments, keyed by location path.
    """
    entries: dict[Location, NodeComments] = {}
    for location in file_proto.source_code_info.location:
        path = tuple(location.path)
        if not _is_commented_node(path):
            continue

        if not (location.leading_comments or location.trailing_comments or location.leading_detached_comments):
            continue

        entries[path] = NodeComments(
            leading=location.leading_comments,
            trailing=location.trailing_comments,
            detached=tuple(location.leading_detached_comments),
        )

    if not file_proto.HasField("source_code_info"):
        logger.debug("'%s' carries no source info, comments are not preserved.", file_proto.name)

    return CommentIndex(entries)


def to_schema_file(file_proto: descriptor_pb2.FileDescriptorProto, index: TypeIndex) -> SchemaFile:
    """Convert a single file descriptor into a schema file.

    Args:
        file_proto (FileDescriptorProto): The file to convert.
        index (TypeIndex): The records of all message types the file may refer to.

    Returns:
        SchemaFile: The schema file.
    """
    services: list[Service] = []
    for service_index, service_proto in enumerate(file_proto.service):
        methods: list[Method] = []
        for method_index, method_proto in enumerate(service_proto.method):
            methods.append(
                Method(
                    name=method_proto.name,
                    input_type=resolve_type(method_proto.input_type, index),
                    output_type=resolve_type(method_proto.output_type, index),
                    client_streaming=method_proto.client_streaming,
                    server_streaming=method_proto.server_streaming,
                    fire_and_forget=read_fire_and_forget(method_proto.options),
                    location=(FILE_SERVICE_FIELD, service_index, SERVICE_METHOD_FIELD, method_index),
                )
            )

        services.append(
            Service(
                name=service_proto.name,
                full_name=_qualify(file_proto.package, service_proto.name),
                methods=tuple(methods),
                location=(FILE_SERVICE_FIELD, service_index),
            )
        )

    return SchemaFile(
        name=file_proto.name,
        package=file_proto.package,
        services=tuple(services),
        dependencies=tuple(file_proto.dependency),
        has_messages=len(file_proto.message_type) > 0,
        comments=read_comments(file_proto),
    )


def schema_files(
    files: Sequence[descriptor_pb2.FileDescriptorProto], selected: Iterable[str] | None = None
) -> list[SchemaFile]:
    """Convert file descriptors into schema files.

    Args:
        files (Sequence[FileDescriptorProto]): All files, including the dependencies of the selected ones.
        selected (Iterable[str] | None): Names of the files to convert, in output order. All files by default.

    Returns:
        list[SchemaFile]: The converted files.
    """
    index = build_type_index(files)
    by_name = {file_proto.name: file_proto for file_proto in files}
    names = list(selected) if selected is not None else [file_proto.name for file_proto in files]

    converted: list[SchemaFile] = []
    for name in names:
        if name not in by_name:
            raise ValueError(f"File '{name}' is not among the supplied descriptors.")
        converted.append(to_schema_file(by_name[name], index))
    return converted


def from_request(request: plugin_pb2.CodeGeneratorRequest) -> list[SchemaFile]:
    """The schema files that protoc asks a plugin to generate code for."""
    return schema_files(request.proto_file, request.file_to_generate)


def from_descriptor_set(data: bytes, selected: Iterable[str] | None = None) -> list[SchemaFile]:
    """Parse a serialized `FileDescriptorSet` and convert its files.

    Args:
        data (bytes): The serialized descriptor set.
        selected (Iterable[str] | None): Names of the files to convert. All files by default.

    Returns:
        list[SchemaFile]: The converted files.
    """
    descriptor_set = descriptor_pb2.FileDescriptorSet.FromString(data)
    return schema_files(descriptor_set.file, selected)
