"""Tests for the generated client and server classes."""

from __future__ import annotations

import pytest

from rsocket_rpc_stub_generator.client_writer import ClientWriter, client_call
from rsocket_rpc_stub_generator.comments import CommentReattacher
from rsocket_rpc_stub_generator.emitter import Emitter
from rsocket_rpc_stub_generator.schema import Method, RecordType, Service
from rsocket_rpc_stub_generator.server_writer import ServerWriter
from rsocket_rpc_stub_generator.templates import FireAndForgetCall, RequestChannelCall, SingleRequestCall
from rsocket_rpc_stub_generator.writer_dto import MethodContext, ServiceMethods, type_reference


def write_client(service, comments) -> str:
    out = Emitter()
    ClientWriter(service, CommentReattacher(comments)).write(out)
    return out.dumps()


def write_server(service, comments) -> str:
    out = Emitter()
    ServerWriter(service, CommentReattacher(comments)).write(out)
    return out.dumps()


def method_blocks(text: str) -> dict[str, str]:
    """Split a generated class into its methods, keyed by name."""
    blocks: dict[str, str] = {}
    for chunk in text.split("\n    def ")[1:]:
        blocks[chunk.split("(", 1)[0]] = chunk
    return blocks


class TestMethodContext:
    def test_names(self, greeter_service):
        context = MethodContext.create(greeter_service.methods[2], greeter_service)

        assert context.rpc_name == "StreamGreetings"
        assert context.python_name == "stream_greetings"
        assert context.operation_name == "Greeter.stream_greetings"
        assert context.trace_attribute == "_stream_greetings_trace"
        assert context.service_name == "chat.Greeter"
        assert context.input_type == "google_dot_protobuf_dot_wrappers__pb2.StringValue"

    def test_type_reference_keeps_nesting(self):
        record = RecordType("pkg.Outer.Inner", "foo/bar.proto", "pkg")

        assert type_reference(record) == "foo_dot_bar__pb2.Outer.Inner"

    def test_contexts_are_independent(self, greeter_service):
        """Nothing carries over from one method to the next."""
        contexts = ServiceMethods.collect(greeter_service).contexts

        assert len({context.trace_attribute for context in contexts}) == len(contexts)

    @pytest.mark.parametrize(("first", "second"), [("SayHello", "say_hello"), ("GetHTTP", "GetHttp")])
    def test_colliding_python_names_are_rejected(self, first, second):
        message = RecordType("chat.Note", "chat/note.proto", "chat")
        service = Service(
            name="Greeter",
            full_name="chat.Greeter",
            methods=(Method(first, message, message), Method(second, message, message)),
        )

        with pytest.raises(ValueError, match=f"'{first}' and '{second}' of service 'chat.Greeter'"):
            ServiceMethods.collect(service)


class TestClientWriter:
    def test_one_call_per_method_with_its_transport_primitive(self, greeter_service, chat_comments):
        blocks = method_blocks(write_client(greeter_service, chat_comments))

        assert "self._rs.fire_and_forget(" in blocks["notify"]
        assert "self._rs.request_response(" in blocks["say_hello"]
        assert "self._rs.request_stream(" in blocks["stream_greetings"]
        assert "self._rs.request_channel(" in blocks["chat"]
        assert "self._rs.request_channel(" in blocks["collect"]

    def test_channel_calls_take_a_stream(self, greeter_service, chat_comments):
        blocks = method_blocks(write_client(greeter_service, chat_comments))

        assert blocks["chat"].startswith("chat(self, messages, metadata=None):")
        assert blocks["say_hello"].startswith("say_hello(self, message, metadata=None):")

    def test_routing_metadata(self, greeter_service, chat_comments):
        text = write_client(greeter_service, chat_comments)

        assert 'rsocket_rpc_frames.encode_metadata("chat.Greeter", "SayHello", tracing_metadata, metadata or b"")' in text

    def test_trace_factories(self, greeter_service, chat_comments):
        text = write_client(greeter_service, chat_comments)

        assert "self._notify_trace = rsocket_rpc_tracing.trace_single(" in text
        assert "self._say_hello_trace = rsocket_rpc_tracing.trace_single(" in text
        assert "self._stream_greetings_trace = rsocket_rpc_tracing.trace(" in text
        assert "self._chat_trace = rsocket_rpc_tracing.trace(" in text
        assert '{"rsocket.rpc.type": "client"}' in text

    def test_comments_surround_their_nodes(self, greeter_service, chat_comments):
        lines = write_client(greeter_service, chat_comments).splitlines()

        assert lines[0] == "# The greeting service."
        assert lines[1] == "class GreeterClient:"

        start = lines.index("    def say_hello(self, message, metadata=None):")
        assert lines[start - 1] == "    # Sends a greeting."
        end = lines.index("    def stream_greetings(self, message, metadata=None):")
        assert lines[end - 2] == "    # Replies with a greeting."

    def test_call_templates(self, greeter_service):
        contexts = ServiceMethods.collect(greeter_service).contexts

        assert [type(client_call(context)) for context in contexts] == [
            FireAndForgetCall,
            SingleRequestCall,
            SingleRequestCall,
            RequestChannelCall,
            RequestChannelCall,
        ]


class TestServerWriter:
    def test_each_dispatcher_only_routes_its_own_shape(self, greeter_service, chat_comments):
        blocks = method_blocks(write_server(greeter_service, chat_comments))

        def routed(block):
            return [rpc for rpc in ("Notify", "SayHello", "StreamGreetings", "Chat", "Collect") if f'"{rpc}"' in block]

        assert routed(blocks["fire_and_forget"]) == ["Notify"]
        assert routed(blocks["request_response"]) == ["SayHello"]
        assert routed(blocks["request_stream"]) == ["StreamGreetings"]
        assert routed(blocks["_channel_switch"]) == ["Chat", "Collect"]
        assert routed(blocks["request_channel"]) == []

    def test_handlers_are_called_by_their_python_names(self, greeter_service, chat_comments):
        text = write_server(greeter_service, chat_comments)

        assert "self._service.notify(" in text
        assert "self._service.say_hello(" in text
        assert "self._service.stream_greetings(" in text
        assert "self._service.chat(messages, payload.metadata)" in text

    def test_errors(self, greeter_service, chat_comments):
        blocks = method_blocks(write_server(greeter_service, chat_comments))

        assert 'raise rsocket_rpc_core.MissingMetadataError("metadata is empty")' in blocks["fire_and_forget"]
        assert 'raise rsocket_rpc_core.UnknownMethodError(f"unknown method {service}.{method}")' in blocks["fire_and_forget"]
        for name in ("request_response", "request_stream", "_channel_switch"):
            assert 'return reactivex.throw(rsocket_rpc_core.MissingMetadataError("metadata is empty"))' in blocks[name]
            assert "return reactivex.throw(rsocket_rpc_core.UnknownMethodError(" in blocks[name]

    def test_handler_failures_are_returned_as_errors(self, greeter_service, chat_comments):
        blocks = method_blocks(write_server(greeter_service, chat_comments))

        for name in ("request_response", "request_stream"):
            assert "except Exception as error:" in blocks[name]
            assert "return reactivex.throw(error)" in blocks[name]

    def test_trace_factories(self, greeter_service, chat_comments):
        text = write_server(greeter_service, chat_comments)

        assert "self._notify_trace = rsocket_rpc_tracing.trace_single_as_child(" in text
        assert "self._chat_trace = rsocket_rpc_tracing.trace_as_child(" in text
        assert '{"rsocket.rpc.type": "server"}' in text

    def test_shapes_without_methods_are_not_implemented(self, echo_service, chat_comments):
        blocks = method_blocks(write_server(echo_service, chat_comments))

        assert 'raise NotImplementedError("fire_and_forget() is not implemented")' in blocks["fire_and_forget"]
        assert 'return reactivex.throw(NotImplementedError("request_stream() is not implemented"))' in blocks[
            "request_stream"
        ]
        assert 'return reactivex.throw(NotImplementedError("request_channel() is not implemented"))' in blocks[
            "request_channel"
        ]
        assert "_channel_switch" not in blocks

    def test_metadata_push_is_not_supported(self, echo_service, chat_comments):
        blocks = method_blocks(write_server(echo_service, chat_comments))

        assert 'NotImplementedError("metadata_push() is not implemented")' in blocks["metadata_push"]
