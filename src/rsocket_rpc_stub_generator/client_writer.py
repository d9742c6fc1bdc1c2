"""Generate the caller-side proxy of a service."""

from __future__ import annotations

import logging

from rsocket_rpc_stub_generator.comments import CommentReattacher
from rsocket_rpc_stub_generator.emitter import Emitter
from rsocket_rpc_stub_generator.rpc_types import InteractionShape
from rsocket_rpc_stub_generator.schema import Service
from rsocket_rpc_stub_generator.templates import (
    ClientHeader,
    FireAndForgetCall,
    RequestChannelCall,
    SingleRequestCall,
    Template,
    TraceBinding,
)
from rsocket_rpc_stub_generator.writer_dto import MethodContext, ServiceMethods

logger = logging.getLogger(__name__)

CLIENT_ROLE = "client"


def client_name(service: Service) -> str:
    """The name of the generated client class of a service."""
    return f"{service.name}Client"


def client_trace_binding(context: MethodContext) -> TraceBinding:
    """The trace wrapper of a client method.

    Streaming shapes are traced over the whole stream, all others over a single value.
    """
    return TraceBinding(
        attribute=context.trace_attribute,
        factory="trace" if context.shape.streaming else "trace_single",
        operation=context.operation_name,
        service_name=context.service_name,
        role=CLIENT_ROLE,
    )


def client_call(context: MethodContext) -> Template:
    """Select the call-site template of a method, by its interaction shape.

    Args:
        context (MethodContext): The method to generate the call for.

    Returns:
        Template: The record of the call-site function.
    """
    if context.shape is InteractionShape.FIRE_AND_FORGET:
        return FireAndForgetCall(
            python_name=context.python_name,
            trace_attribute=context.trace_attribute,
            service_name=context.service_name,
            rpc_name=context.rpc_name,
        )

    if context.shape is InteractionShape.REQUEST_CHANNEL:
        return RequestChannelCall(
            python_name=context.python_name,
            trace_attribute=context.trace_attribute,
            service_name=context.service_name,
            rpc_name=context.rpc_name,
            output_type=context.output_type,
        )

    # Request-response and request-stream only differ in the transport primitive.
    return SingleRequestCall(
        python_name=context.python_name,
        trace_attribute=context.trace_attribute,
        service_name=context.service_name,
        rpc_name=context.rpc_name,
        transport_call=context.shape.value,
        output_type=context.output_type,
    )


class ClientWriter:
    """Writes the `<Service>Client` class of a service."""

    def __init__(self, service: Service, comments: CommentReattacher):
        """Initialize the writer.

        Args:
            service (Service): The service to write the client for.
            comments (CommentReattacher): The comments of the schema file that declares the service.
        """
        self._service = service
        self._comments = comments
        self._methods = ServiceMethods.collect(service)

    def write(self, out: Emitter):
        """Emit the client class, surrounded by the comments of the service.

        Args:
            out (Emitter): The emitter to write to.
        """
        logger.debug("Writing client for service '%s'.", self._service.full_name)

        out.extend(self._comments.leading(self._service.location))
        out.render(ClientHeader(client_name=client_name(self._service)))

        with out.indented():
            with out.indented():
                for context in self._methods.contexts:
                    out.render(client_trace_binding(context))

            for context in self._methods.contexts:
                out.blank()
                out.extend(self._comments.leading(context.method.location))
                out.render(client_call(context))
                out.extend(self._comments.trailing(context.method.location))

        out.extend(self._comments.trailing(self._service.location))
