"""Types and constants that are common to RSocket RPC service definitions."""

from __future__ import annotations

from enum import Enum


class InteractionShape(Enum):
    """The four RSocket interaction models a service method can map to."""

    FIRE_AND_FORGET = "fire_and_forget"
    REQUEST_RESPONSE = "request_response"
    REQUEST_STREAM = "request_stream"
    REQUEST_CHANNEL = "request_channel"

    @property
    def streaming(self) -> bool:
        """Whether the interaction produces a multi-value stream of responses."""
        return self in (InteractionShape.REQUEST_STREAM, InteractionShape.REQUEST_CHANNEL)


def classify(client_streaming: bool, server_streaming: bool, fire_and_forget: bool = False) -> InteractionShape:
    """Derive the interaction shape of a method from its streaming flags and options.

    A client stream always maps to a channel, since the channel primitive is bidirectional.
    The fire-and-forget option only applies to methods without any streaming.

    Args:
        client_streaming (bool): Whether the method accepts a stream of requests.
        server_streaming (bool): Whether the method produces a stream of responses.
        fire_and_forget (bool): Whether the method is flagged as fire-and-forget.

    Returns:
        InteractionShape: The shape of the method.
    """
    if client_streaming:
        return InteractionShape.REQUEST_CHANNEL

    if server_streaming:
        return InteractionShape.REQUEST_STREAM

    if fire_and_forget:
        return InteractionShape.FIRE_AND_FORGET

    return InteractionShape.REQUEST_RESPONSE


# Schema files and generated output
PROTO_SUFFIXES = (".protodevel", ".proto")
MESSAGE_MODULE_SUFFIX = "_pb2"
SERVICE_MODULE_SUFFIX = "_pb2_rsocket.py"
MODULE_ALIAS_MARKER = "__pb2"

# Well-known types ship with the protobuf runtime, not next to the generated code.
WELL_KNOWN_PREFIX = "google/protobuf/"
WELL_KNOWN_PACKAGE = "google.protobuf"

# Tags attached to every span the generated stubs open.
TRACE_SERVICE_TAG = "rsocket.rpc.service"
TRACE_TYPE_TAG = "rsocket.rpc.type"

# `extend google.protobuf.MethodOptions { RSocketMethodOptions options = 1057; }`
METHOD_OPTIONS_FIELD = 1057
FIRE_AND_FORGET_FIELD = 1

# SourceCodeInfo path components, see descriptor.proto.
FILE_SERVICE_FIELD = 6
FILE_SYNTAX_FIELD = 12
SERVICE_METHOD_FIELD = 2
