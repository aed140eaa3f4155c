"""Command parser for CLI input."""

import shlex

from cli.models import (
    BackendsCommand,
    CommandRequest,
    DownloadCommand,
    EstimateCommand,
    HealthCommand,
    ManifestCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    args = tokens[1:]

    if command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "manifest":
        return _parse_manifest(args)
    elif command_name == "estimate":
        return _parse_estimate(args)
    elif command_name == "backends":
        _expect_no_args("backends", args)
        return BackendsCommand()
    elif command_name == "health":
        _expect_no_args("health", args)
        return HealthCommand()
    else:
        raise ParseError(f"Unknown command: {tokens[0]}")


def _expect_no_args(command: str, args: list) -> None:
    if args:
        raise ParseError(f"{command} takes no arguments")


def _parse_upload(args: list) -> UploadCommand:
    """Parse 'upload <path>' command."""
    if len(args) != 1:
        raise ParseError("upload requires exactly 1 argument: <path>")
    return UploadCommand(path=args[0])


def _parse_download(args: list) -> DownloadCommand:
    """Parse 'download <manifest_cid> [output_path]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("download requires 1 or 2 arguments: <manifest_cid> [output_path]")

    manifest_cid = args[0]
    output_path = args[1] if len(args) > 1 else None

    return DownloadCommand(manifest_cid=manifest_cid, output_path=output_path)


def _parse_manifest(args: list) -> ManifestCommand:
    """Parse 'manifest <manifest_cid>' command."""
    if len(args) != 1:
        raise ParseError("manifest requires exactly 1 argument: <manifest_cid>")
    return ManifestCommand(manifest_cid=args[0])


def _parse_estimate(args: list) -> EstimateCommand:
    """Parse 'estimate <path>' command."""
    if len(args) != 1:
        raise ParseError("estimate requires exactly 1 argument: <path>")
    return EstimateCommand(path=args[0])
