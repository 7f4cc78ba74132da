"""crdkit - schema-driven views for plugin-defined custom resources."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("crdkit")
except PackageNotFoundError:
    __version__ = "0.0.0"
