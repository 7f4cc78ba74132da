"""Console home resolution and configuration.

The console home is a directory holding ``config.yaml`` (the bundle
locations to load and store settings) and the YAML resource file backing
the resource store.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from crdkit.errors import format_validation_errors
from crdkit.sources import DEFAULT_FETCH_TIMEOUT, BundleSource, source_for
from crdkit.store import YamlResourceStore
from crdkit.validation import ValidationResult

# Schema version - update when the config schema changes
CONFIG_SCHEMA_VERSION = "2026-10-01"

CONFIG_FILENAME = "config.yaml"

DEFAULT_CONSOLE_HOME = Path.home() / ".crdkit"

# Environment variable for a custom console home
CONSOLE_HOME_ENV_VAR = "CRDKIT_HOME"


class ConfigError(ValueError):
    """Raised when config.yaml is missing or invalid."""


class ConsoleHomeNotInitializedError(Exception):
    """Raised when the console home is not initialized."""

    def __init__(self, path: Path, errors: list[str] | None = None) -> None:
        """Initialize with the path that was checked."""
        self.path = path
        self.errors = errors or []
        error_details = "\n  - ".join(self.errors) if self.errors else ""
        message = f"Console home not initialized at {path}. Run 'crdkit init' first."
        if error_details:
            message += f"\nIssues found:\n  - {error_details}"
        super().__init__(message)


class ConsoleConfig(BaseModel):
    """Root schema for config.yaml."""

    schema_version: str = Field(description="Schema version in YYYY-MM-DD format")
    bundles: list[str] = Field(
        default_factory=list,
        description="Plugin bundle locations: file paths or http(s) URLs",
    )
    store: str = Field(
        default="resources.yaml",
        description="Resource file, relative to the console home",
    )
    fetch_timeout: float = Field(
        default=DEFAULT_FETCH_TIMEOUT,
        gt=0,
        description="Network timeout in seconds for bundle URLs",
    )

    @field_validator("bundles")
    @classmethod
    def validate_bundles(cls, v: list[str]) -> list[str]:
        """Validate bundle locations are non-empty and unique."""
        if any(not location.strip() for location in v):
            msg = "bundle locations must not be empty"
            raise ValueError(msg)
        duplicates = sorted({location for location in v if v.count(location) > 1})
        if duplicates:
            msg = f"duplicate bundle locations: {', '.join(duplicates)}"
            raise ValueError(msg)
        return v

    def bundle_sources(self, home: Path) -> list[BundleSource]:
        """Build the bundle sources; relative paths resolve against ``home``."""
        return [source_for(location, base_dir=home, timeout=self.fetch_timeout) for location in self.bundles]

    def store_path(self, home: Path) -> Path:
        """Return the resource file path."""
        path = Path(self.store).expanduser()
        return path if path.is_absolute() else home / path

    def open_store(self, home: Path) -> YamlResourceStore:
        """Open the YAML resource store configured for ``home``."""
        return YamlResourceStore(self.store_path(home))


def get_console_home() -> Path:
    """Get the console home directory path.

    Resolution order:
    1. CRDKIT_HOME environment variable (if set)
    2. Default: ~/.crdkit/

    Returns:
        Path to the console home directory.
    """
    env_value = os.environ.get(CONSOLE_HOME_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_CONSOLE_HOME


def validate_console_home(path: Path) -> ValidationResult:
    """Validate a directory as a console home.

    A valid console home is an existing directory containing config.yaml.

    Args:
        path: Path to check.

    Returns:
        ValidationResult with is_valid=True if valid, otherwise is_valid=False
        with a list of specific error messages.
    """
    if not path.exists():
        return ValidationResult(is_valid=False, errors=[f"Path does not exist: {path}"])
    if not path.is_dir():
        return ValidationResult(is_valid=False, errors=[f"Path is not a directory: {path}"])
    if not (path / CONFIG_FILENAME).is_file():
        return ValidationResult(is_valid=False, errors=[f"Missing {CONFIG_FILENAME} file"])
    return ValidationResult(is_valid=True)


def require_console_home(path: Path) -> None:
    """Raise ConsoleHomeNotInitializedError unless ``path`` is a valid home."""
    validation = validate_console_home(path)
    if not validation.is_valid:
        raise ConsoleHomeNotInitializedError(path, validation.errors)


def load_config(home: Path) -> ConsoleConfig:
    """Load and validate config.yaml from the console home.

    Args:
        home: Path to the console home directory.

    Returns:
        Validated ConsoleConfig instance.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails
            schema validation.
    """
    config_path = home / CONFIG_FILENAME
    if not config_path.exists():
        msg = f"{CONFIG_FILENAME} not found at {config_path}"
        raise ConfigError(msg)

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in '{config_path}': {e}"
        raise ConfigError(msg) from e

    try:
        return ConsoleConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid config '{config_path}': {format_validation_errors(e)}"
        raise ConfigError(msg) from e


def save_config(config: ConsoleConfig, home: Path) -> None:
    """Save ConsoleConfig to config.yaml in the console home."""
    (home / CONFIG_FILENAME).write_text(
        yaml.dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    )


def init_console_home(path: Path, bundles: list[str] | None = None) -> ValidationResult:
    """Initialize a console home directory.

    Creates the directory and a default config.yaml. If the path is already
    a valid console home this is a no-op.

    Args:
        path: Target directory to initialize.
        bundles: Bundle locations written into the new config.

    Returns:
        ValidationResult indicating success or failure with error messages.
    """
    if path.exists():
        if validate_console_home(path).is_valid:
            return ValidationResult(is_valid=True)
        if path.is_file():
            return ValidationResult(
                is_valid=False,
                errors=[f"Path exists but is a file, not a directory: {path}"],
            )

    try:
        config = ConsoleConfig(schema_version=CONFIG_SCHEMA_VERSION, bundles=bundles or [])
    except ValidationError as e:
        return ValidationResult(is_valid=False, errors=[format_validation_errors(e)])

    try:
        path.mkdir(parents=True, exist_ok=True)
        save_config(config, path)
    except OSError as e:
        return ValidationResult(
            is_valid=False,
            errors=[f"Failed to create console home: {e}"],
        )
    return ValidationResult(is_valid=True)
