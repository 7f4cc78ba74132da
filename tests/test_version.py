"""Test crdkit version and basic imports."""

from importlib.metadata import version

from typer.testing import CliRunner

from crdkit import __version__
from crdkit.cli import app


class TestVersion:
    """Tests for crdkit version and package structure."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_version_is_defined(self) -> None:
        """Verify that __version__ matches the package metadata."""
        # Given
        expected = version("crdkit")

        # When
        actual = __version__

        # Then
        assert actual == expected

    def test_cli_app_is_importable(self) -> None:
        assert app is not None
        assert app.info.name == "crdkit"

    def test_version_flag(self) -> None:
        """Verify that --version prints the version and exits."""
        # When
        result = self.runner.invoke(app, ["--version"])

        # Then
        assert result.exit_code == 0
        assert f"crdkit {version('crdkit')}" in result.output
