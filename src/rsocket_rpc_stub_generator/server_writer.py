"""Generate the callee-side dispatcher of a service.

The dispatcher implements the server contract of the transport: one entry point per
interaction shape. Each entry point decodes the routing metadata of an incoming payload and
forwards the payload to the handler of the method it names, restricted to methods of the
entry point's own shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rsocket_rpc_stub_generator.comments import CommentReattacher
from rsocket_rpc_stub_generator.emitter import Emitter
from rsocket_rpc_stub_generator.rpc_types import InteractionShape
from rsocket_rpc_stub_generator.schema import Service
from rsocket_rpc_stub_generator.templates import (
    ChannelCase,
    FireAndForgetCase,
    MetadataPushDispatcher,
    RequestChannelDispatcher,
    RoutingPreamble,
    ServerHeader,
    SingleRequestCase,
    TraceBinding,
    UnimplementedDispatcher,
)
from rsocket_rpc_stub_generator.writer_dto import MethodContext, ServiceMethods

logger = logging.getLogger(__name__)

SERVER_ROLE = "server"

MISSING_METADATA_ERROR = 'rsocket_rpc_core.MissingMetadataError("metadata is empty")'
UNKNOWN_METHOD_ERROR = 'rsocket_rpc_core.UnknownMethodError(f"unknown method {service}.{method}")'


@dataclass(frozen=True)
class Dispatcher:
    """A dispatcher entry point of the transport's server contract.

    Attributes:
        name: The name of the entry point.
        parameter: The name of its only parameter.
        shape: The interaction shape it serves.
        raises: Whether failures are raised, rather than returned as a failed observable.
    """

    name: str
    parameter: str
    shape: InteractionShape
    raises: bool = False

    def reject(self, error: str) -> str:
        """The statement that surfaces `error` from this entry point."""
        if self.raises:
            return f"raise {error}"
        return f"return reactivex.throw({error})"


FIRE_AND_FORGET = Dispatcher("fire_and_forget", "payload", InteractionShape.FIRE_AND_FORGET, raises=True)
REQUEST_RESPONSE = Dispatcher("request_response", "payload", InteractionShape.REQUEST_RESPONSE)
REQUEST_STREAM = Dispatcher("request_stream", "payload", InteractionShape.REQUEST_STREAM)
REQUEST_CHANNEL = Dispatcher("request_channel", "payloads", InteractionShape.REQUEST_CHANNEL)


def server_name(service: Service) -> str:
    """The name of the generated server class of a service."""
    return f"{service.name}Server"


def server_trace_binding(context: MethodContext) -> TraceBinding:
    """The trace wrapper of a handler.

    Server spans are children of the span context that arrives with the request.
    """
    return TraceBinding(
        attribute=context.trace_attribute,
        factory="trace_as_child" if context.shape.streaming else "trace_single_as_child",
        operation=context.operation_name,
        service_name=context.service_name,
        role=SERVER_ROLE,
    )


def not_implemented(dispatcher: Dispatcher) -> UnimplementedDispatcher:
    """The body of an entry point whose shape the service has no methods of."""
    error = f'NotImplementedError("{dispatcher.name}() is not implemented")'
    return UnimplementedDispatcher(
        name=dispatcher.name,
        parameter=dispatcher.parameter,
        rejection=dispatcher.reject(error),
    )


def dispatch_case(context: MethodContext) -> FireAndForgetCase | SingleRequestCase | ChannelCase:
    """The branch of a dispatcher that routes to the handler of one method."""
    if context.shape is InteractionShape.FIRE_AND_FORGET:
        record_type = FireAndForgetCase
    elif context.shape is InteractionShape.REQUEST_CHANNEL:
        record_type = ChannelCase
    else:
        record_type = SingleRequestCase

    return record_type(
        rpc_name=context.rpc_name,
        trace_attribute=context.trace_attribute,
        python_name=context.python_name,
        input_type=context.input_type,
    )


class ServerWriter:
    """Writes the `<Service>Server` class of a service."""

    def __init__(self, service: Service, comments: CommentReattacher):
        """Initialize the writer.

        Args:
            service (Service): The service to write the server for.
            comments (CommentReattacher): The comments of the schema file that declares the service.
        """
        self._service = service
        self._comments = comments
        self._methods = ServiceMethods.collect(service)

    def write(self, out: Emitter):
        """Emit the server class, surrounded by the comments of the service.

        Args:
            out (Emitter): The emitter to write to.
        """
        logger.debug("Writing server for service '%s'.", self._service.full_name)

        out.extend(self._comments.leading(self._service.location))
        out.render(ServerHeader(server_name=server_name(self._service)))

        with out.indented():
            with out.indented():
                for context in self._methods.contexts:
                    out.render(server_trace_binding(context))

            for dispatcher in (FIRE_AND_FORGET, REQUEST_RESPONSE, REQUEST_STREAM):
                out.blank()
                self._write_dispatcher(out, dispatcher)

            out.blank()
            self._write_request_channel(out)

            out.blank()
            out.render(MetadataPushDispatcher())

        out.extend(self._comments.trailing(self._service.location))

    def _write_routing(self, out: Emitter, dispatcher: Dispatcher, contexts: list[MethodContext]):
        """Emit the metadata checks, one branch per method and the fallback for unknown methods.

        Args:
            out (Emitter): The emitter to write to.
            dispatcher (Dispatcher): The entry point that the routing belongs to.
            contexts (list[MethodContext]): The methods that the entry point routes to.
        """
        out.render(RoutingPreamble(missing_metadata=dispatcher.reject(MISSING_METADATA_ERROR)))
        for context in contexts:
            out.render(dispatch_case(context))
        out.line(dispatcher.reject(UNKNOWN_METHOD_ERROR))

    def _write_dispatcher(self, out: Emitter, dispatcher: Dispatcher):
        """Emit the entry point for fire-and-forget, request-response or request-stream payloads.

        Result-bearing entry points never raise: any error, including one thrown by a handler,
        is returned as a failed observable.

        Args:
            out (Emitter): The emitter to write to.
            dispatcher (Dispatcher): The entry point to write.
        """
        contexts = self._methods.of_shape(dispatcher.shape)
        if not contexts:
            out.render(not_implemented(dispatcher))
            return

        out.line(f"def {dispatcher.name}(self, {dispatcher.parameter}):")
        with out.indented():
            if dispatcher.raises:
                self._write_routing(out, dispatcher, contexts)
                return

            out.line("try:")
            with out.indented():
                self._write_routing(out, dispatcher, contexts)
            out.line("except Exception as error:")
            with out.indented():
                out.line("return reactivex.throw(error)")

    def _write_request_channel(self, out: Emitter):
        """Emit the channel entry point and the switch that routes a channel by its first payload.

        Args:
            out (Emitter): The emitter to write to.
        """
        contexts = self._methods.of_shape(InteractionShape.REQUEST_CHANNEL)
        if not contexts:
            out.render(not_implemented(REQUEST_CHANNEL))
            return

        out.render(RequestChannelDispatcher())
        out.blank()
        out.line("def _channel_switch(self, payload, relay):")
        with out.indented():
            self._write_routing(out, REQUEST_CHANNEL, contexts)
