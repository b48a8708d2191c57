# src/wallgraph/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from wallgraph.errors import ConfigurationError


@dataclass
class EngineConfig:
    """Policy constants for the topology engine.

    Distances share the units of the drawing coordinates.
    """

    intersection_epsilon: float = 1e-6
    snap_tolerance: float = 1e-4
    collinear_tolerance: float = 1e-6
    selection_tolerance: float = 10.0
    proximity_threshold: float = 15.0
    scan_interval: float = 0.1  # seconds
    parallel_angle_tolerance_deg: float = 10.0
    perpendicular_angle_tolerance_deg: float = 10.0
    event_history_size: int = 1000

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "scan_interval":
                if value < 0:
                    raise ConfigurationError("scan_interval must be >= 0")
            elif value <= 0:
                raise ConfigurationError(f"{f.name} must be positive, got {value!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
