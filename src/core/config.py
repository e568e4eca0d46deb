"""Calculator settings, saved and loaded as JSON."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .constants import (
    BOUNDARY_SEARCH_MAX_ITER,
    DATAFILE_UNIT,
    DEFAULT_LIBRARY_NAME,
    ISOTHERMAL_INTERVAL,
    STABILITY_THRESHOLD,
)
from .types import CustomError

logger = logging.getLogger(__name__)


class ConfigurationError(CustomError):
    """Raised when a settings file is missing, unreadable or inconsistent."""
    pass


@dataclass(frozen=True)
class CalculatorConfig:
    """
    Settings shared by a Calculator and its searches.

    Instances are immutable. Derive changed settings with
    `dataclasses.replace`, which validates them again.

    Attributes:
        library_name: Solver library to load
        symbol_template: Export name pattern of the library routines
        datafile_unit: Fortran unit used while reading datafiles
        isothermal_low: Lower bound (K) handed to isothermal calculations
        isothermal_high: Upper bound (K) handed to isothermal calculations
        stability_threshold: Phase activity above which a phase is stable
        boundary_max_iter: Bisection budget of the boundary search
    """
    library_name: str = DEFAULT_LIBRARY_NAME
    symbol_template: str = "{name}"
    datafile_unit: int = DATAFILE_UNIT
    isothermal_low: float = ISOTHERMAL_INTERVAL[0]
    isothermal_high: float = ISOTHERMAL_INTERVAL[1]
    stability_threshold: float = STABILITY_THRESHOLD
    boundary_max_iter: int = BOUNDARY_SEARCH_MAX_ITER

    FILE_EXTENSION = ".json"

    def __post_init__(self):
        if not self.isothermal_low < self.isothermal_high:
            raise ConfigurationError(
                f"isothermal_low ({self.isothermal_low}) must be below "
                f"isothermal_high ({self.isothermal_high})"
            )
        if 10 < self.datafile_unit < 20:
            raise ConfigurationError(
                f"datafile_unit {self.datafile_unit} is not permitted (<=10 or >=20)"
            )
        if self.boundary_max_iter < 1:
            raise ConfigurationError("boundary_max_iter must be at least 1")

    @property
    def isothermal_interval(self) -> tuple[float, float]:
        return (self.isothermal_low, self.isothermal_high)

    def save(self, path: str | Path) -> Path:
        """
        Write the settings to a JSON file.

        Args:
            path: Target file; ".json" is appended when it has no suffix

        Returns:
            Path actually written
        """
        path = Path(path)
        if not path.suffix:
            path = path.with_suffix(self.FILE_EXTENSION)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2)
        logger.debug("Saved calculator settings to %s", path)
        return path

    @classmethod
    def load(cls, path: str | Path) -> "CalculatorConfig":
        """
        Read settings from a JSON file. Missing keys keep their defaults.

        Raises:
            ConfigurationError: If the file cannot be read or has unknown keys
        """
        path = Path(path)
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read settings file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown settings in {path}: {', '.join(unknown)}"
            )
        logger.debug("Loaded calculator settings from %s", path)
        return cls(**data)
