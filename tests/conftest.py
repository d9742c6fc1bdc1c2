"""Pytest configuration and fixtures for rsocket-rpc stub generator tests."""

from __future__ import annotations

import pytest

from rsocket_rpc_stub_generator.schema import CommentIndex, Method, NodeComments, RecordType, SchemaFile, Service

STRING_VALUE = RecordType(
    full_name="google.protobuf.StringValue",
    file_name="google/protobuf/wrappers.proto",
    package="google.protobuf",
)


@pytest.fixture
def greeter_service() -> Service:
    """A service with one method of every interaction shape, plus a client-streaming one."""
    return Service(
        name="Greeter",
        full_name="chat.Greeter",
        location=(6, 0),
        methods=(
            Method("Notify", STRING_VALUE, STRING_VALUE, fire_and_forget=True, location=(6, 0, 2, 0)),
            Method("SayHello", STRING_VALUE, STRING_VALUE, location=(6, 0, 2, 1)),
            Method("StreamGreetings", STRING_VALUE, STRING_VALUE, server_streaming=True, location=(6, 0, 2, 2)),
            Method(
                "Chat", STRING_VALUE, STRING_VALUE, client_streaming=True, server_streaming=True, location=(6, 0, 2, 3)
            ),
            Method("Collect", STRING_VALUE, STRING_VALUE, client_streaming=True, location=(6, 0, 2, 4)),
        ),
    )


@pytest.fixture
def echo_service() -> Service:
    """A service with a single request-response method."""
    return Service(
        name="Echo",
        full_name="chat.Echo",
        location=(6, 1),
        methods=(Method("Echo", STRING_VALUE, STRING_VALUE, location=(6, 1, 2, 0)),),
    )


@pytest.fixture
def chat_comments() -> CommentIndex:
    """Comments of the chat schema file, its first service and one of its methods."""
    return CommentIndex(
        {
            (12,): NodeComments(leading=" Chat service definitions.\n", detached=(" Copyright (c) chat authors.\n",)),
            (6, 0): NodeComments(leading=" The greeting service.\n"),
            (6, 0, 2, 1): NodeComments(leading=" Sends a greeting.\n", trailing=" Replies with a greeting.\n"),
        }
    )


@pytest.fixture
def chat_file(greeter_service, echo_service, chat_comments) -> SchemaFile:
    """A schema file that only references well-known types, so its stubs run without generated messages."""
    return SchemaFile(
        name="chat/chat.proto",
        package="chat",
        services=(greeter_service, echo_service),
        dependencies=("google/protobuf/wrappers.proto",),
        has_messages=False,
        comments=chat_comments,
    )
