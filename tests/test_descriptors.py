"""Tests for building the schema model from protobuf descriptors."""

from __future__ import annotations

import pytest
from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from rsocket_rpc_stub_generator import descriptors
from rsocket_rpc_stub_generator.rpc_types import FIRE_AND_FORGET_FIELD, METHOD_OPTIONS_FIELD, InteractionShape


def _varint(value: int) -> bytes:
    encoded = bytearray()
    while value > 0x7F:
        encoded.append((value & 0x7F) | 0x80)
        value >>= 7
    encoded.append(value)
    return bytes(encoded)


def rsocket_options(fire_and_forget: bool) -> bytes:
    """Serialized method options carrying the RSocket extension, as protoc writes them."""
    inner = _varint(FIRE_AND_FORGET_FIELD << 3) + _varint(int(fire_and_forget))
    return _varint(METHOD_OPTIONS_FIELD << 3 | 2) + _varint(len(inner)) + inner


def method_options(fire_and_forget: bool) -> descriptor_pb2.MethodOptions:
    return descriptor_pb2.MethodOptions.FromString(rsocket_options(fire_and_forget))


@pytest.fixture
def common_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name="common/reply.proto", package="common")
    file_proto.message_type.add(name="Reply")
    return file_proto


@pytest.fixture
def chat_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="chat/chat.proto", package="chat", dependency=["common/reply.proto"]
    )
    envelope = file_proto.message_type.add(name="Envelope")
    envelope.nested_type.add(name="Header")

    greeter = file_proto.service.add(name="Greeter")
    greeter.method.add(name="SayHello", input_type=".chat.Envelope.Header", output_type=".common.Reply")
    notify = greeter.method.add(name="Notify", input_type=".chat.Envelope", output_type=".common.Reply")
    notify.options.MergeFromString(rsocket_options(fire_and_forget=True))
    greeter.method.add(
        name="Chat",
        input_type=".chat.Envelope",
        output_type=".common.Reply",
        client_streaming=True,
        server_streaming=True,
    )

    info = file_proto.source_code_info
    info.location.add(path=[12], leading_comments=" Chat.\n", leading_detached_comments=[" License.\n"])
    info.location.add(path=[6, 0], leading_comments=" Greets.\n")
    info.location.add(path=[6, 0, 2, 0], leading_comments=" Hello.\n", trailing_comments=" Reply.\n")
    info.location.add(path=[4, 0], leading_comments=" A message.\n")
    info.location.add(path=[6, 0, 2, 1])
    return file_proto


class TestFireAndForgetOption:
    def test_flag_set(self):
        assert descriptors.read_fire_and_forget(method_options(fire_and_forget=True)) is True

    def test_flag_cleared(self):
        assert descriptors.read_fire_and_forget(method_options(fire_and_forget=False)) is False

    def test_no_options(self):
        assert descriptors.read_fire_and_forget(descriptor_pb2.MethodOptions()) is False

    def test_known_options_are_ignored(self):
        assert descriptors.read_fire_and_forget(descriptor_pb2.MethodOptions(deprecated=True)) is False


class TestTypeIndex:
    def test_nested_types(self, chat_descriptor, common_descriptor):
        index = descriptors.build_type_index([chat_descriptor, common_descriptor])

        assert set(index) == {"chat.Envelope", "chat.Envelope.Header", "common.Reply"}
        assert index["chat.Envelope.Header"].relative_name == "Envelope.Header"
        assert index["common.Reply"].file_name == "common/reply.proto"

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="chat.Missing"):
            descriptors.resolve_type(".chat.Missing", {})


class TestSchemaFile:
    def test_services_and_methods(self, chat_descriptor, common_descriptor):
        [schema_file] = descriptors.schema_files([chat_descriptor, common_descriptor], ["chat/chat.proto"])

        assert schema_file.name == "chat/chat.proto"
        assert schema_file.has_messages
        assert schema_file.dependencies == ("common/reply.proto",)

        [greeter] = schema_file.services
        assert greeter.full_name == "chat.Greeter"
        assert greeter.location == (6, 0)
        assert [method.shape for method in greeter.methods] == [
            InteractionShape.REQUEST_RESPONSE,
            InteractionShape.FIRE_AND_FORGET,
            InteractionShape.REQUEST_CHANNEL,
        ]
        assert greeter.methods[0].input_type.full_name == "chat.Envelope.Header"
        assert greeter.methods[0].location == (6, 0, 2, 0)

    def test_comments(self, chat_descriptor, common_descriptor):
        [schema_file] = descriptors.schema_files([chat_descriptor, common_descriptor], ["chat/chat.proto"])
        comments = schema_file.comments

        assert comments.get((12,)).detached == (" License.\n",)
        assert comments.get((6, 0)).leading == " Greets.\n"
        assert comments.get((6, 0, 2, 0)).trailing == " Reply.\n"
        assert set(comments.entries) == {(12,), (6, 0), (6, 0, 2, 0)}

    def test_unknown_file(self, common_descriptor):
        with pytest.raises(ValueError, match="chat/chat.proto"):
            descriptors.schema_files([common_descriptor], ["chat/chat.proto"])


class TestSources:
    def test_from_request_only_converts_requested_files(self, chat_descriptor, common_descriptor):
        request = plugin_pb2.CodeGeneratorRequest(
            file_to_generate=["chat/chat.proto"], proto_file=[common_descriptor, chat_descriptor]
        )

        assert [schema_file.name for schema_file in descriptors.from_request(request)] == ["chat/chat.proto"]

    def test_from_descriptor_set(self, chat_descriptor, common_descriptor):
        data = descriptor_pb2.FileDescriptorSet(file=[common_descriptor, chat_descriptor]).SerializeToString()

        names = [schema_file.name for schema_file in descriptors.from_descriptor_set(data)]

        assert names == ["common/reply.proto", "chat/chat.proto"]
