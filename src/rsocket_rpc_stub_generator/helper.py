"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

import keyword
import re

from rsocket_rpc_stub_generator.rpc_types import MESSAGE_MODULE_SUFFIX, PROTO_SUFFIXES, SERVICE_MODULE_SUFFIX

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def sanitize_name(name: str) -> str:
    """Sanitize a name to avoid Python keywords.

    If the name is a Python keyword, append an underscore.
    E.g. 'lambda' becomes 'lambda_', 'class' becomes 'class_'.

    Args:
        name (str): The original name.

    Returns:
        str: The sanitized name.
    """
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


def strip_proto_suffix(filename: str) -> str:
    """Remove the schema file extension, if there is one.

    For example, `foo/bar.proto` becomes `foo/bar`.

    Args:
        filename (str): The schema file name.

    Returns:
        str: The file name without its extension.
    """
    for suffix in PROTO_SUFFIXES:
        if filename.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


def to_snake_case(name: str) -> str:
    """Convert an UpperCamel method name to snake_case.

    E.g. `SayHello` becomes `say_hello` and `GetHTTPStatus` becomes `get_http_status`.
    Names that are already snake_case are returned unchanged.

    Args:
        name (str): The original name.

    Returns:
        str: The snake_case name.
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def python_name(name: str) -> str:
    """The name under which a schema method is exposed on generated classes.

    Args:
        name (str): The method name as declared in the schema.

    Returns:
        str: A snake_case name that is a valid, non-keyword identifier.
    """
    return sanitize_name(to_snake_case(name))


def message_module_name(filename: str) -> str:
    """The name of the message module that protoc's Python generator emits for a schema file.

    For example, `foo/bar-baz.proto` becomes `bar_baz_pb2`.

    Args:
        filename (str): The schema file name.

    Returns:
        str: The bare module name, without any package.
    """
    basename = strip_proto_suffix(filename).rsplit("/", 1)[-1]
    return basename.replace("-", "_") + MESSAGE_MODULE_SUFFIX


def service_module_filename(filename: str) -> str:
    """The output file name of the generated stubs for a schema file.

    For example, `foo/bar.proto` becomes `foo/bar_pb2_rsocket.py`.

    Args:
        filename (str): The schema file name.

    Returns:
        str: The output file name, relative to the output root.
    """
    return strip_proto_suffix(filename) + SERVICE_MODULE_SUFFIX
