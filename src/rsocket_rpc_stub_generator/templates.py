"""Templates of the generated code, one record type per template.

Every record carries its template text and one field per placeholder, so that a template can
only be rendered once all of its placeholders are supplied. Literal braces in the generated
code are doubled.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from textwrap import dedent
from typing import ClassVar

from rsocket_rpc_stub_generator.rpc_types import TRACE_SERVICE_TAG, TRACE_TYPE_TAG


@dataclass(frozen=True)
class Template:
    """Base class of all template records."""

    TEMPLATE: ClassVar[str] = ""

    def render(self) -> str:
        """Substitute the fields of this record into its template.

        Returns:
            str: The rendered text, without a trailing line break.
        """
        values = {field.name: getattr(self, field.name) for field in fields(self)}
        return self.TEMPLATE.format_map(values).rstrip("\n")


# ===== Module level =====


@dataclass(frozen=True)
class FileHeader(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        # Generated by the rsocket-rpc Python stub generator.  DO NOT EDIT!
        # source: {source}
        """
    )

    source: str


@dataclass(frozen=True)
class ModulePreamble(Template):
    """The module docstring and the imports of the runtime collaborators."""

    TEMPLATE: ClassVar[str] = dedent(
        '''\
        """RSocket RPC client and server stubs for `{source}`."""

        from collections import deque

        import reactivex
        from reactivex import operators as ops
        from reactivex.disposable import CompositeDisposable
        from reactivex.subject import Subject
        from rsocket_rpc import core as rsocket_rpc_core
        from rsocket_rpc import frames as rsocket_rpc_frames
        from rsocket_rpc import tracing as rsocket_rpc_tracing
        '''
    )

    source: str


@dataclass(frozen=True)
class PayloadHelpers(Template):
    TEMPLATE: ClassVar[str] = dedent(
        '''\
        def _as_bytes(data):
            """Payload data may arrive as any buffer, messages are always parsed from `bytes`."""
            return data if isinstance(data, bytes) else bytes(data)


        def _to_payload(message):
            return rsocket_rpc_core.Payload(message.SerializeToString(), b"")


        class _ChannelRelay:
            """Queues inbound channel data until the handler subscribes, then forwards it.

            Queued items are dropped once delivered, nothing is kept after the handler attaches.
            """

            def __init__(self):
                self._subject = Subject()
                self._queue = deque()
                self._terminal = None
                self._attached = False

            @property
            def pending(self):
                return len(self._queue)

            def on_next(self, data):
                if self._attached:
                    self._subject.on_next(data)
                else:
                    self._queue.append(data)

            def on_error(self, error):
                if self._attached:
                    self._subject.on_error(error)
                else:
                    self._terminal = lambda: self._subject.on_error(error)

            def on_completed(self):
                if self._attached:
                    self._subject.on_completed()
                else:
                    self._terminal = self._subject.on_completed

            def as_observable(self):
                def subscribe(observer, scheduler=None):
                    subscription = self._subject.subscribe(observer, scheduler=scheduler)
                    if not self._attached:
                        while self._queue:
                            self._subject.on_next(self._queue.popleft())
                        self._attached = True
                        if self._terminal is not None:
                            self._terminal()
                            self._terminal = None
                    return subscription

                return reactivex.create(subscribe)
        '''
    )


# ===== Shared by client and server =====


@dataclass(frozen=True)
class TraceBinding(Template):
    """Binds the trace wrapper of a single method inside `__init__`."""

    TEMPLATE: ClassVar[str] = dedent(
        """\
        self.{attribute} = rsocket_rpc_tracing.{factory}(
            tracer, "{operation}", {{"{service_tag}": "{service_name}"}}, {{"{type_tag}": "{role}"}}
        )
        """
    )

    attribute: str
    factory: str
    operation: str
    service_name: str
    role: str
    service_tag: str = TRACE_SERVICE_TAG
    type_tag: str = TRACE_TYPE_TAG


# ===== Client =====


@dataclass(frozen=True)
class ClientHeader(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        class {client_name}:
            def __init__(self, rs, tracer=None):
                self._rs = rs
                self._tracer = tracer
        """
    )

    client_name: str


@dataclass(frozen=True)
class FireAndForgetCall(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        def {python_name}(self, message, metadata=None):
            trace_map = {{}}
            self.{trace_attribute}(trace_map)(reactivex.empty()).subscribe(on_next=lambda _: None, on_error=lambda _: None)
            data = message.SerializeToString()
            tracing_metadata = rsocket_rpc_tracing.map_to_bytes(trace_map)
            metadata_bytes = rsocket_rpc_frames.encode_metadata("{service_name}", "{rpc_name}", tracing_metadata, metadata or b"")
            self._rs.fire_and_forget(rsocket_rpc_core.Payload(data, metadata_bytes))
        """
    )

    python_name: str
    trace_attribute: str
    service_name: str
    rpc_name: str


@dataclass(frozen=True)
class SingleRequestCall(Template):
    """A call that sends one request, for request-response and request-stream methods."""

    TEMPLATE: ClassVar[str] = dedent(
        """\
        def {python_name}(self, message, metadata=None):
            trace_map = {{}}

            def subscribe(observer, scheduler=None):
                data = message.SerializeToString()
                tracing_metadata = rsocket_rpc_tracing.map_to_bytes(trace_map)
                metadata_bytes = rsocket_rpc_frames.encode_metadata("{service_name}", "{rpc_name}", tracing_metadata, metadata or b"")
                return (
                    self._rs.{transport_call}(rsocket_rpc_core.Payload(data, metadata_bytes))
                    .pipe(ops.map(lambda payload: {output_type}.FromString(_as_bytes(payload.data))))
                    .subscribe(observer, scheduler=scheduler)
                )

            return self.{trace_attribute}(trace_map)(reactivex.create(subscribe))
        """
    )

    python_name: str
    trace_attribute: str
    service_name: str
    rpc_name: str
    transport_call: str
    output_type: str


@dataclass(frozen=True)
class RequestChannelCall(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        def {python_name}(self, messages, metadata=None):
            trace_map = {{}}

            def subscribe(observer, scheduler=None):
                tracing_metadata = rsocket_rpc_tracing.map_to_bytes(trace_map)
                metadata_bytes = rsocket_rpc_frames.encode_metadata("{service_name}", "{rpc_name}", tracing_metadata, metadata or b"")

                def to_payload(message):
                    return rsocket_rpc_core.Payload(message.SerializeToString(), metadata_bytes)

                return (
                    self._rs.request_channel(messages.pipe(ops.map(to_payload)))
                    .pipe(ops.map(lambda payload: {output_type}.FromString(_as_bytes(payload.data))))
                    .subscribe(observer, scheduler=scheduler)
                )

            return self.{trace_attribute}(trace_map)(reactivex.create(subscribe))
        """
    )

    python_name: str
    trace_attribute: str
    service_name: str
    rpc_name: str
    output_type: str


# ===== Server =====


@dataclass(frozen=True)
class ServerHeader(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        class {server_name}:
            def __init__(self, service, tracer=None):
                self._service = service
                self._tracer = tracer
        """
    )

    server_name: str


@dataclass(frozen=True)
class UnimplementedDispatcher(Template):
    """A dispatcher entry point for a shape that the service has no methods of."""

    TEMPLATE: ClassVar[str] = dedent(
        """\
        def {name}(self, {parameter}):
            {rejection}
        """
    )

    name: str
    parameter: str
    rejection: str


@dataclass(frozen=True)
class RoutingPreamble(Template):
    """Validates the metadata of a payload and decodes the routing and trace information."""

    TEMPLATE: ClassVar[str] = dedent(
        """\
        if not payload.metadata:
            {missing_metadata}
        service = rsocket_rpc_frames.get_service(payload.metadata)
        method = rsocket_rpc_frames.get_method(payload.metadata)
        span_context = rsocket_rpc_tracing.deserialize_trace_data(self._tracer, payload.metadata)
        """
    )

    missing_metadata: str


@dataclass(frozen=True)
class FireAndForgetCase(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        if method == "{rpc_name}":
            self.{trace_attribute}(span_context)(reactivex.empty()).subscribe(on_next=lambda _: None, on_error=lambda _: None)
            self._service.{python_name}({input_type}.FromString(_as_bytes(payload.data)), payload.metadata)
            return
        """
    )

    rpc_name: str
    trace_attribute: str
    python_name: str
    input_type: str


@dataclass(frozen=True)
class SingleRequestCase(Template):
    """Routes a request-response or request-stream payload to its handler."""

    TEMPLATE: ClassVar[str] = dedent(
        """\
        if method == "{rpc_name}":
            return self.{trace_attribute}(span_context)(
                self._service.{python_name}({input_type}.FromString(_as_bytes(payload.data)), payload.metadata).pipe(
                    ops.map(_to_payload)
                )
            )
        """
    )

    rpc_name: str
    trace_attribute: str
    python_name: str
    input_type: str


@dataclass(frozen=True)
class ChannelCase(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        if method == "{rpc_name}":
            messages = relay.as_observable().pipe(ops.map(lambda data: {input_type}.FromString(_as_bytes(data))))
            return self.{trace_attribute}(span_context)(
                self._service.{python_name}(messages, payload.metadata).pipe(ops.map(_to_payload))
            )
        """
    )

    rpc_name: str
    trace_attribute: str
    python_name: str
    input_type: str


@dataclass(frozen=True)
class RequestChannelDispatcher(Template):
    """Routes a whole channel by its first payload.

    Only the first payload carries the routing metadata. Every payload, the first included, is
    relayed to the handler that the first payload selected.
    """

    TEMPLATE: ClassVar[str] = dedent(
        """\
        def request_channel(self, payloads):
            def subscribe(observer, scheduler=None):
                relay = _ChannelRelay()
                subscriptions = CompositeDisposable()
                routed = False

                def on_next(payload):
                    nonlocal routed
                    if not routed:
                        routed = True
                        try:
                            subscriptions.add(self._channel_switch(payload, relay).subscribe(observer, scheduler=scheduler))
                        except Exception as error:
                            observer.on_error(error)
                    relay.on_next(payload.data)

                def on_error(error):
                    (relay if routed else observer).on_error(error)

                def on_completed():
                    (relay if routed else observer).on_completed()

                subscriptions.add(payloads.subscribe(on_next, on_error, on_completed, scheduler=scheduler))
                return subscriptions

            return reactivex.create(subscribe)
        """
    )


@dataclass(frozen=True)
class MetadataPushDispatcher(Template):
    TEMPLATE: ClassVar[str] = dedent(
        """\
        def metadata_push(self, payload):
            return reactivex.throw(NotImplementedError("metadata_push() is not implemented"))
        """
    )
