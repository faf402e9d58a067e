"""Command-line interface for inspecting and converting protobuf messages."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.table import Table

from protoreflect.descriptor import DescriptorError, DescriptorPool, FileDescriptorSet
from protoreflect.dynamic import DynamicMessage, JsonError, SerializeOptions
from protoreflect.wire import WireError

if TYPE_CHECKING:
    from protoreflect.descriptor import FileDescriptor, MessageDescriptor


def _read_input(input_file: str | None) -> bytes:
    if input_file is None:
        return sys.stdin.buffer.read()
    with open(input_file, "rb") as f:
        return f.read()


def _load_pool(schema_file: str) -> tuple[DescriptorPool, FileDescriptorSet]:
    with open(schema_file, "rb") as f:
        data = f.read()
    pool = DescriptorPool.decode(data)
    return pool, FileDescriptorSet.unpack(data)


def _find_message(pool: DescriptorPool, name: str) -> MessageDescriptor:
    descriptor = pool.get_message_by_name(name)
    if descriptor is None:
        print(f"Unknown message type: {name}")
        sys.exit(1)
    return descriptor


@click.group()
def cli() -> None:
    """Inspect descriptor sets and convert messages between binary and JSON."""


@cli.command()
@click.option("--descriptor-set", "-d", "schema_file", required=True, help="Serialized FileDescriptorSet")
@click.option("--json", "output_json", is_flag=True, help="Output the raw descriptor records as JSON")
def info(schema_file: str, output_json: bool) -> None:
    """Display the contents of a descriptor set."""
    try:
        pool, descriptor_set = _load_pool(schema_file)
    except (DescriptorError, WireError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    if output_json:
        print(descriptor_set.to_json(indent=2))
        return

    files = [pool.get_file_by_name(proto.name or "") for proto in descriptor_set.file]
    _output_plain([file for file in files if file is not None])


def _output_plain(files: list[FileDescriptor]) -> None:
    """Output descriptor set contents using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Files[/bold cyan]")
    file_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    file_table.add_column("Name", style="white")
    file_table.add_column("Package", style="dim")
    file_table.add_column("Syntax", style="dim")
    for file in files:
        file_table.add_row(file.name, file.package, file.syntax)
    console.print(file_table)
    console.print()

    console.print("[bold cyan]Messages[/bold cyan]")
    message_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    message_table.add_column("Name", style="white")
    message_table.add_column("Fields", style="yellow", justify="right")
    message_table.add_column("Oneofs", style="yellow", justify="right")
    for file in files:
        pending = list(file.messages)
        while pending:
            message = pending.pop(0)
            pending.extend(message.child_messages)
            if message.is_map_entry:
                continue
            message_table.add_row(message.full_name, str(len(message.fields)), str(len(message.oneofs)))
    console.print(message_table)
    console.print()

    enums = [enum for file in files for enum in file.parent_pool.all_enums() if enum.parent_file is file]
    if enums:
        console.print("[bold cyan]Enums[/bold cyan]")
        enum_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Values", style="dim")
        for enum in enums:
            enum_table.add_row(enum.full_name, ", ".join(f"{v.name}={v.number}" for v in enum.values))
        console.print(enum_table)
        console.print()

    extensions = [ext for file in files for ext in file.parent_pool.all_extensions() if ext.parent_file is file]
    if extensions:
        console.print("[bold cyan]Extensions[/bold cyan]")
        extension_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        extension_table.add_column("Name", style="white")
        extension_table.add_column("Extends", style="dim")
        extension_table.add_column("Number", style="green", justify="right")
        for ext in extensions:
            extension_table.add_row(ext.full_name, ext.containing_message.full_name, str(ext.number))
        console.print(extension_table)
        console.print()

    services = [service for file in files for service in file.services]
    if services:
        console.print("[bold cyan]Services[/bold cyan]")
        service_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        service_table.add_column("Method", style="white")
        service_table.add_column("Input", style="dim")
        service_table.add_column("Output", style="dim")
        for service in services:
            for method in service.methods:
                service_table.add_row(method.full_name, method.input.full_name, method.output.full_name)
        console.print(service_table)


@cli.command()
@click.option("--descriptor-set", "-d", "schema_file", required=True, help="Serialized FileDescriptorSet")
@click.option("--message", "-m", "message_name", required=True, help="Fully-qualified message type")
@click.option("--input", "-i", "input_file", default=None, help="Binary message file (default: stdin)")
@click.option("--emit-defaults", is_flag=True, default=False, help="Include fields holding default values")
@click.option("--enum-numbers", is_flag=True, default=False, help="Render enums as numbers")
def decode(
    schema_file: str, message_name: str, input_file: str | None, emit_defaults: bool, enum_numbers: bool
) -> None:
    """Decode a binary message and print it as JSON."""
    options = SerializeOptions(emit_defaults=emit_defaults, use_enum_numbers=enum_numbers)
    try:
        pool, _ = _load_pool(schema_file)
        descriptor = _find_message(pool, message_name)
        message = DynamicMessage.decode(descriptor, _read_input(input_file))
        print(message.to_json_string(options, indent=2))
    except (DescriptorError, WireError, JsonError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)


@cli.command()
@click.option("--descriptor-set", "-d", "schema_file", required=True, help="Serialized FileDescriptorSet")
@click.option("--message", "-m", "message_name", required=True, help="Fully-qualified message type")
@click.option("--input", "-i", "input_file", default=None, help="JSON message file (default: stdin)")
@click.option("--output", "-o", "output_file", required=True, help="Output file")
def encode(schema_file: str, message_name: str, input_file: str | None, output_file: str) -> None:
    """Encode a JSON message to binary."""
    try:
        pool, _ = _load_pool(schema_file)
        descriptor = _find_message(pool, message_name)
        message = DynamicMessage.from_json(descriptor, _read_input(input_file))
        data = message.encode()
    except (DescriptorError, WireError, JsonError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    with open(output_file, "wb") as f:
        f.write(data)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
