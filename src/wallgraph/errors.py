# src/wallgraph/errors.py
"""Exceptions raised by the wall topology engine."""


class WallGraphError(Exception):
    """Base exception for all wallgraph errors."""
    pass


class ConfigurationError(WallGraphError):
    """Raised when engine settings are invalid."""
    pass


class GeometryError(WallGraphError):
    """Raised for recoverable geometric degeneracy (near-parallel or zero-length input)."""
    pass


class ScanInProgressError(WallGraphError):
    """Raised when a proximity scan is requested while another is being applied."""
    pass
