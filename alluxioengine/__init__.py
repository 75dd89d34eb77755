"""Alluxio chart value generation, reserved-port parsing and shell operations."""

__version__ = "0.6.0"
__all__ = ["__version__"]