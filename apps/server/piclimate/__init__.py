"""PiClimate climate-telemetry package (logger agent and monitor)."""

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__: str = version("piclimate")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
