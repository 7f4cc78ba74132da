"""Error formatting utilities for crdkit.

Provides clean, user-friendly error messages from Pydantic validation errors
and other exceptions raised while loading bundles or talking to a store.
"""

import aiohttp
import yaml
from pydantic import ValidationError

from crdkit import cli_logger, exit_codes


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic ValidationError into clean, user-friendly message.

    Removes Pydantic-specific URLs and technical jargon, producing a message
    suitable for CLI output and view messages.

    Args:
        error: The Pydantic ValidationError to format.

    Returns:
        A clean, human-readable error message.
    """
    messages = []

    for err in error.errors():
        # Field path, e.g. "crds.0" or "metadata.displayName"
        loc = ".".join(str(part) for part in err["loc"])

        error_type = err["type"]
        msg = err["msg"]

        if error_type == "missing":
            messages.append(f"'{loc}': field is required")
        elif error_type == "string_type":
            messages.append(f"'{loc}': expected string")
        elif error_type == "list_type":
            messages.append(f"'{loc}': expected list")
        elif error_type in ("dict_type", "model_type"):
            messages.append(f"'{loc}': expected mapping")
        elif error_type == "int_type":
            messages.append(f"'{loc}': expected integer")
        elif error_type == "bool_type":
            messages.append(f"'{loc}': expected boolean")
        elif error_type == "extra_forbidden":
            messages.append(f"'{loc}': unknown field")
        elif error_type in ("literal_error", "enum"):
            expected = err.get("ctx", {}).get("expected", "")
            messages.append(f"'{loc}': expected {expected}".rstrip())
        else:
            # Pydantic prefixes custom validator messages with "Value error, "
            clean_msg = msg.removeprefix("Value error, ")
            clean_msg = clean_msg[:1].lower() + clean_msg[1:]
            messages.append(f"'{loc}': {clean_msg}" if loc else clean_msg)

    if len(messages) == 1:
        return messages[0]

    return "; ".join(messages)


def handle_cli_error(error: Exception) -> int:
    """Handle an unhandled exception at the CLI boundary.

    Formats the error into a clean user-friendly message and returns
    an appropriate exit code, so raw tracebacks never reach the user.

    Args:
        error: The exception to handle.

    Returns:
        An exit code from exit_codes.
    """
    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid configuration: {format_validation_errors(error)}")
        return exit_codes.PLUGIN_INVALID

    if isinstance(error, aiohttp.ClientError):
        cli_logger.error(f"Network error: {error}")
        return exit_codes.GENERAL_ERROR

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"{error.strerror}: {error.filename}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Invalid YAML: {error}")
        return exit_codes.GENERAL_ERROR

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
