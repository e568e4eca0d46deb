"""
Data types and exceptions for solver orchestration.

Keeps the small value objects handed back to callers separate from the
calculator itself, so the query and search modules can import them without
pulling in the native binding.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from ..utils.error_codes import describe_error, error_category


class CalculatorState(Enum):
    """Lifecycle of a Calculator."""
    UNINITIALIZED = "uninitialized"
    DATABASE_LOADED = "database loaded"
    BASIS_SET = "basis set"
    EQUILIBRATED = "equilibrated"


@dataclass
class ComponentStoichiometry:
    """
    Stoichiometry of a system component as reported by the solver.

    Attributes:
        stoichiometry: Stoichiometric coefficients of the component
        molecular_mass: Molecular mass of the component (g/mol)
    """
    stoichiometry: NDArray[np.float64]
    molecular_mass: float


@dataclass
class BoundarySearchResult:
    """
    Outcome of a composition boundary search.

    Attributes:
        composition_internal: Composition in the solver's component basis
        composition: Same composition in the caller's formula basis
        iterations: Number of isothermal calculations performed
        target: Index of the phase that became uniquely stable
    """
    composition_internal: NDArray[np.float64]
    composition: NDArray[np.float64]
    iterations: int
    target: int

    def __repr__(self) -> str:
        x = ", ".join(f"{v:.5f}" for v in self.composition)
        return f"BoundarySearchResult(phase={self.target}, x=[{x}], iterations={self.iterations})"


class ChemAppError(Exception):
    """Base exception for every failure raised by this package."""
    pass


class LoadError(ChemAppError):
    """Exception raised when the solver library or a datafile cannot be loaded."""
    pass


class FormatError(ChemAppError):
    """Exception raised for unrecognized file formats and undecodable solver text."""
    pass


class UnsupportedDatafileError(LoadError, FormatError):
    """Exception raised for a datafile whose extension has no loader."""
    pass


class ConvergenceError(ChemAppError):
    """Exception raised when a target or boundary search finds no solution."""
    pass


class CustomError(ChemAppError):
    """Exception raised with a caller-facing description."""
    pass


class TransformError(CustomError):
    """Exception raised when a basis transform cannot be built or applied."""
    pass


class CalculatorStateError(CustomError):
    """Exception raised when an operation is not valid in the current state."""
    pass


class NativeError(ChemAppError):
    """
    Exception raised for a nonzero status code reported by the solver.

    Attributes:
        code: Native status code
        routine: Name of the solver routine that reported it (may be empty)
    """

    def __init__(self, code: int, routine: str = ""):
        self.code = int(code)
        self.routine = routine
        super().__init__(self.description)

    @property
    def description(self) -> str:
        text = describe_error(self.code)
        if self.routine:
            return f"{text} (in {self.routine})"
        return text

    @property
    def category(self) -> str:
        return error_category(self.code)
