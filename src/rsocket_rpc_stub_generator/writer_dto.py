from __future__ import annotations

from dataclasses import dataclass, field

from rsocket_rpc_stub_generator import helper, imports
from rsocket_rpc_stub_generator.rpc_types import InteractionShape
from rsocket_rpc_stub_generator.schema import Method, RecordType, Service


def type_reference(record: RecordType) -> str:
    """The expression that generated code uses to refer to a message type.

    E.g. `pkg.Outer.Inner` defined in `foo/bar.proto` becomes `foo_dot_bar__pb2.Outer.Inner`.
    """
    return f"{imports.module_alias(record.file_name)}.{record.relative_name}"


@dataclass(frozen=True)
class MethodContext:
    """Everything the stub writers need to know about a single method.

    A new context is created for every method, so nothing carries over from one method to the next.

    Attributes:
        method: The schema method.
        shape: The interaction shape of the method.
        rpc_name: The method name as it travels in the routing metadata (e.g. "SayHello").
        python_name: The name of the generated client function and service handler (e.g. "say_hello").
        service_name: The fully qualified name of the service (e.g. "chat.Greeter").
        operation_name: The name of the spans opened for this method (e.g. "Greeter.say_hello").
        trace_attribute: The attribute that holds the bound trace wrapper (e.g. "_say_hello_trace").
        input_type: The reference to the request message type.
        output_type: The reference to the response message type.
    """

    method: Method
    shape: InteractionShape
    rpc_name: str
    python_name: str
    service_name: str
    operation_name: str
    trace_attribute: str
    input_type: str
    output_type: str

    @classmethod
    def create(cls, method: Method, service: Service) -> MethodContext:
        """Factory method that derives all names of a method.

        Args:
            method: The schema method.
            service: The service that the method belongs to.

        Returns:
            A fully initialized MethodContext
        """
        python_name = helper.python_name(method.name)

        return cls(
            method=method,
            shape=method.shape,
            rpc_name=method.name,
            python_name=python_name,
            service_name=service.full_name,
            operation_name=f"{service.name}.{python_name}",
            trace_attribute=f"_{python_name.rstrip('_')}_trace",
            input_type=type_reference(method.input_type),
            output_type=type_reference(method.output_type),
        )


@dataclass
class ServiceMethods:
    """The method contexts of a service, grouped by interaction shape.

    The order of declaration is preserved within every group.
    """

    contexts: list[MethodContext] = field(default_factory=list)

    @classmethod
    def collect(cls, service: Service) -> ServiceMethods:
        """Create the contexts of all methods of a service.

        Raises:
            ValueError: If two methods map to the same generated function or trace attribute.
        """
        contexts = [MethodContext.create(method, service) for method in service.methods]

        claimed: dict[str, MethodContext] = {}
        for context in contexts:
            for name in (context.python_name, context.trace_attribute):
                other = claimed.setdefault(name, context)
                if other is not context:
                    raise ValueError(
                        f"Methods '{other.rpc_name}' and '{context.rpc_name}' of service "
                        f"'{service.full_name}' both generate '{name}'"
                    )

        return cls(contexts)

    def of_shape(self, shape: InteractionShape) -> list[MethodContext]:
        """The methods with the given interaction shape."""
        return [context for context in self.contexts if context.shape is shape]
