"""Top-level module for stub generation."""

from __future__ import annotations

import argparse
import glob
import logging
import os.path
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

from rsocket_rpc_stub_generator import descriptors, imports
from rsocket_rpc_stub_generator.rpc_types import PROTO_SUFFIXES
from rsocket_rpc_stub_generator.schema import SchemaFile
from rsocket_rpc_stub_generator.writer import Writer

logger = logging.getLogger(__name__)

PY_SUFFIX = ".py"


class PyrightValidationError(Exception):
    """Raised when pyright validation finds type errors in generated stubs."""

    pass


class ProtocError(Exception):
    """Raised when protoc is missing or fails to compile the schemas."""

    pass


def generate(files: Sequence[SchemaFile]) -> list[tuple[str, str]]:
    """Entry-point for generating stub modules from schema files.

    Files without services produce no output.

    Args:
        files (Sequence[SchemaFile]): The schema files, in output order.

    Returns:
        list[tuple[str, str]]: The file name and the text of every generated module.
    """
    outputs: list[tuple[str, str]] = []
    for schema_file in files:
        if not schema_file.services:
            logger.debug("Skipping '%s', it declares no services.", schema_file.name)
            continue

        writer = Writer(schema_file)
        writer.generate_all()
        outputs.append((writer.output_filename, writer.dumps()))

    return outputs


def format_outputs(raw_input: str) -> str:
    """Formats raw input using ruff.

    Args:
        raw_input (str): The unformatted input.

    Returns:
        str: The formatted outputs, or the raw input if ruff fails.
    """
    try:
        with tempfile.NamedTemporaryFile(mode="w", suffix=PY_SUFFIX, delete=False, encoding="utf-8") as f:
            temp_path = Path(f.name)
            f.write(raw_input)

        try:
            # Sort the message module imports into the fixed ones.
            subprocess.run(
                ["ruff", "check", "--fix", "--select", "I", str(temp_path)],
                capture_output=True,
                check=False,
            )
            subprocess.run(
                ["ruff", "format", "--line-length", "120", str(temp_path)],
                capture_output=True,
                check=True,
            )
            return temp_path.read_text(encoding="utf-8")

        finally:
            temp_path.unlink(missing_ok=True)

    except subprocess.CalledProcessError as e:
        logger.error(f"Ruff formatting failed: {e}")
        logger.error(f"Stderr: {e.stderr.decode('utf-8', errors='replace')}")
        return raw_input
    except OSError as e:
        logger.error(f"Unable to run ruff: {e}")
        return raw_input


def validate_with_pyright(output_files: Sequence[str]) -> None:
    """Validate generated stub modules using pyright.

    Args:
        output_files: The paths of the generated modules.

    Raises:
        PyrightValidationError: If pyright finds any errors.
    """
    if not output_files:
        logger.warning("No stub files found to validate")
        return

    logger.info(f"Validating {len(output_files)} generated stub file(s) with pyright...")

    try:
        result = subprocess.run(
            ["pyright", *output_files],
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        logger.error("pyright not found. Please install pyright: pip install pyright")
        raise PyrightValidationError("pyright command not found. Please install pyright.")
    except subprocess.SubprocessError as e:
        error_msg = f"Error running pyright: {e}"
        logger.error(error_msg)
        raise PyrightValidationError(error_msg)

    error_count = result.stdout.count(" error:")
    if error_count > 0 or result.returncode != 0:
        error_msg = f"Pyright validation failed with {error_count} error(s):\n\n{result.stdout}"
        logger.error(error_msg)
        raise PyrightValidationError(error_msg)

    logger.info("Pyright validation passed - no errors found")


def compile_descriptor_set(
    proto_files: Sequence[str], import_paths: Sequence[str], descriptor_set_path: str, protoc: str = "protoc"
) -> None:
    """Compile schema files into a descriptor set with protoc.

    The set includes all imports and the source info, which carries the comments.

    Args:
        proto_files: The schema files to compile, relative to one of the import paths.
        import_paths: The directories that protoc resolves schema files in.
        descriptor_set_path: The file to write the descriptor set to.
        protoc: The protoc executable.

    Raises:
        ProtocError: If protoc is missing or reports an error.
    """
    command = [protoc, "--include_imports", "--include_source_info", f"--descriptor_set_out={descriptor_set_path}"]
    command.extend(f"--proto_path={path}" for path in import_paths)
    command.extend(proto_files)
    logger.debug("Running %s", " ".join(command))

    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except FileNotFoundError:
        raise ProtocError(f"protoc executable '{protoc}' not found. Please install protobuf-compiler.") from None

    if result.returncode != 0:
        raise ProtocError(f"protoc failed with exit code {result.returncode}:\n{result.stderr}")


def _find_proto_files(args: argparse.Namespace, root_directory: str) -> set[str]:
    """Expand the path arguments into schema files, without the excluded ones."""
    excluded_paths: set[str] = set()
    for exclude in args.excludes:
        exclude_path = os.path.join(root_directory, exclude)
        if os.path.isfile(exclude_path):
            excluded_paths.add(exclude_path)
        else:
            excluded_paths = excluded_paths.union(glob.glob(exclude_path, recursive=args.recursive))

    search_paths: set[str] = set()
    for path in args.paths:
        search_path = os.path.join(root_directory, path)

        if args.recursive and os.path.isdir(search_path):
            for root, _, files in os.walk(search_path):
                for file in files:
                    if file.endswith(PROTO_SUFFIXES):
                        search_paths.add(os.path.join(root, file))
        elif os.path.isdir(search_path):
            for file in os.listdir(search_path):
                file_path = os.path.join(search_path, file)
                if os.path.isfile(file_path) and file.endswith(PROTO_SUFFIXES):
                    search_paths.add(file_path)
        else:
            search_paths = search_paths.union(glob.glob(search_path, recursive=args.recursive))

    return {os.path.abspath(path) for path in search_paths - excluded_paths}


def _schema_name(path: str, root_directory: str) -> str:
    """The name protoc assigns to a schema file, i.e. its path relative to the root, with `/` separators."""
    return Path(os.path.relpath(path, root_directory)).as_posix()


def load_schema_files(args: argparse.Namespace, root_directory: str) -> list[SchemaFile]:
    """Load the schema files that stubs are generated for.

    Pre-built descriptor sets are used as they are. Otherwise the schema files that the path
    arguments point to are compiled with protoc, relative to the root directory.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the stub generator.
        root_directory (str): The directory, from which the generator is executed.

    Returns:
        list[SchemaFile]: The schema files, sorted by name.
    """
    descriptor_sets: list[str] = getattr(args, "descriptor_sets", None) or []
    if descriptor_sets:
        loaded: dict[str, SchemaFile] = {}
        for descriptor_set in descriptor_sets:
            data = Path(root_directory, descriptor_set).read_bytes()
            for schema_file in descriptors.from_descriptor_set(data):
                if not imports.is_well_known(schema_file.name):
                    loaded.setdefault(schema_file.name, schema_file)
        return [loaded[name] for name in sorted(loaded)]

    proto_files = sorted(_schema_name(path, root_directory) for path in _find_proto_files(args, root_directory))
    if not proto_files:
        logger.warning("No schema files found.")
        return []

    import_paths = [root_directory] + [os.path.join(root_directory, p) for p in getattr(args, "import_paths", [])]
    protoc: str = getattr(args, "protoc", "protoc")

    with tempfile.TemporaryDirectory() as temp_directory:
        descriptor_set_path = os.path.join(temp_directory, "descriptors.pb")
        compile_descriptor_set(proto_files, import_paths, descriptor_set_path, protoc)
        data = Path(descriptor_set_path).read_bytes()

    return descriptors.from_descriptor_set(data, proto_files)


def run(args: argparse.Namespace, root_directory: str):
    """Run the stub generator on a set of paths that point to *.proto schemas.

    Uses `generate` on all schema files at once, and writes each module below the output directory.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the stub generator.
        root_directory (str): The directory, from which the generator is executed.
    """
    clean: list[str] = args.clean
    output_dir: str = getattr(args, "output_dir", "") or root_directory
    skip_format: bool = getattr(args, "no_format", False)
    pyright: bool = getattr(args, "pyright", False)

    cleanup_paths: set[str] = set()
    for c in clean:
        cleanup_directory = os.path.join(root_directory, c)
        cleanup_paths = cleanup_paths.union(glob.glob(cleanup_directory, recursive=args.recursive))

    for cleanup_path in cleanup_paths:
        os.remove(cleanup_path)

    output_files: list[str] = []
    for filename, text in generate(load_schema_files(args, root_directory)):
        output_path = os.path.join(output_dir, filename)
        os.makedirs(os.path.dirname(output_path), exist_ok=True)

        if not skip_format:
            text = format_outputs(text)

        with open(output_path, "w", encoding="utf8") as output_file:
            output_file.write(text)

        logger.info("Wrote stubs to '%s'.", output_path)
        output_files.append(output_path)

    if pyright:
        validate_with_pyright(output_files)
