"""Command-line interfaces for generating RSocket RPC stubs from *.proto schemas.

Two entry points are provided:
    - `rsocket-rpc-stub-generator` compiles schemas with protoc (or reads pre-built descriptor
      sets) and writes the stub modules below an output directory.
    - `protoc-gen-rsocket-rpc-python` is a protoc plugin, used as
      `protoc --rsocket-rpc-python_out=<dir> ...`.
"""

from __future__ import annotations

import argparse
import logging
import os.path
import sys
from collections.abc import Sequence
from typing import BinaryIO

from google.protobuf.compiler import plugin_pb2

from rsocket_rpc_stub_generator import descriptors
from rsocket_rpc_stub_generator.run import generate, run

logger = logging.getLogger(__name__)


def _add_recursive_argument(parser: argparse.ArgumentParser):
    """Add a recursive argument to a parser.

    Args:
        parser (argparse.ArgumentParser): The parser to add the argument to.
    """
    parser.add_argument(
        "-r",
        "--recursive",
        dest="recursive",
        default=False,
        action="store_true",
        help="recursively search for *.proto files with a given glob expression.",
    )


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Generate RSocket RPC client and server stubs for proto schema files.")

    parser.add_argument(
        "-c",
        "--clean",
        type=str,
        nargs="+",
        default=[],
        help="path or glob expressions that match files to clean up before stub generation.",
    )

    parser.add_argument(
        "-p",
        "--paths",
        type=str,
        nargs="+",
        default=["**/*.proto"],
        help="path or glob expressions that match *.proto files for stub generation.",
    )

    parser.add_argument(
        "-d",
        "--descriptor-sets",
        dest="descriptor_sets",
        type=str,
        nargs="+",
        default=[],
        help="pre-built descriptor set files to generate stubs from, instead of running protoc.",
    )

    parser.add_argument(
        "-e",
        "--excludes",
        type=str,
        nargs="+",
        default=[],
        help="path or glob expressions to exclude from path matches.",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default="",
        help="directory to write all generated stub outputs; defaults to the working directory.",
    )

    parser.add_argument(
        "-I",
        "--import-path",
        dest="import_paths",
        type=str,
        nargs="+",
        default=[],
        help="additional import paths that protoc resolves imported schemas in.",
    )

    parser.add_argument(
        "--protoc",
        type=str,
        default="protoc",
        help="the protoc executable.",
    )

    parser.add_argument(
        "--no-format",
        dest="no_format",
        default=False,
        action="store_true",
        help="skip formatting the generated stubs with ruff.",
    )

    parser.add_argument(
        "--pyright",
        dest="pyright",
        default=False,
        action="store_true",
        help="validate the generated stubs with pyright.",
    )

    _add_recursive_argument(parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the stub generator.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    logging.basicConfig(level=logging.INFO)

    root_directory = os.getcwd()
    logging.info("Working from root directory: %s", root_directory)

    parser = setup_parser()
    args = parser.parse_args(argv)

    run(args, root_directory)

    return 0


def process_request(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Generate the stub modules for a protoc plugin request.

    Args:
        request (CodeGeneratorRequest): The request, as sent by protoc.

    Returns:
        CodeGeneratorResponse: One file per requested schema file that declares services.
    """
    if request.parameter:
        logger.debug("Ignoring plugin parameter '%s'.", request.parameter)

    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    for filename, text in generate(descriptors.from_request(request)):
        generated = response.file.add()
        generated.name = filename
        generated.content = text

    return response


def plugin_main(stdin: BinaryIO | None = None, stdout: BinaryIO | None = None) -> int:
    """Entry point of the protoc plugin.

    Reads a `CodeGeneratorRequest` from stdin and writes the `CodeGeneratorResponse` to stdout.
    Generation failures are reported to protoc through the response, not through the exit code.

    Args:
        stdin (BinaryIO | None, optional): The stream to read the request from. Defaults to the standard input.
        stdout (BinaryIO | None, optional): The stream to write the response to. Defaults to the standard output.

    Returns:
        int: Error code.
    """
    # stdout carries the response, so only warnings go to stderr.
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer

    request = plugin_pb2.CodeGeneratorRequest.FromString(stdin.read())
    try:
        response = process_request(request)
    except ValueError as e:
        logger.error("Stub generation failed: %s", e)
        response = plugin_pb2.CodeGeneratorResponse(error=str(e))

    stdout.write(response.SerializeToString())
    stdout.flush()
    return 0
