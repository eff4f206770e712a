"""Package version, read from the installed distribution metadata."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cachetree")
except PackageNotFoundError:
    # Running from a source checkout without an install
    __version__ = "0.0.0-dev"
