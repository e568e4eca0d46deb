"""Solver orchestration core - independent of any front end."""

from .constants import (
    DEFAULT_LIBRARY_NAME,
    ISOTHERMAL_INTERVAL,
    STABILITY_THRESHOLD,
    BOUNDARY_SEARCH_MAX_ITER,
)
from .types import (
    CalculatorState,
    ComponentStoichiometry,
    BoundarySearchResult,
    ChemAppError,
    LoadError,
    FormatError,
    UnsupportedDatafileError,
    ConvergenceError,
    CustomError,
    TransformError,
    CalculatorStateError,
    NativeError,
)
from .config import CalculatorConfig, ConfigurationError
from .transform import (
    FormulaTransform,
    parse_formula,
    build_element_matrix,
    normalize_fractions,
)
from .native import Engine
from .queries import (
    ComponentQuery,
    PhaseQuery,
    ConstituentQuery,
    ConstituentCountCache,
    components,
    phases,
    constituents,
)
from .boundary_search import find_composition_boundary
from .calculator import Calculator

__all__ = [
    # Constants
    "DEFAULT_LIBRARY_NAME",
    "ISOTHERMAL_INTERVAL",
    "STABILITY_THRESHOLD",
    "BOUNDARY_SEARCH_MAX_ITER",
    # Types
    "CalculatorState",
    "ComponentStoichiometry",
    "BoundarySearchResult",
    # Errors
    "ChemAppError",
    "LoadError",
    "FormatError",
    "UnsupportedDatafileError",
    "ConvergenceError",
    "CustomError",
    "TransformError",
    "CalculatorStateError",
    "NativeError",
    # Configuration
    "CalculatorConfig",
    "ConfigurationError",
    # Basis transform
    "FormulaTransform",
    "parse_formula",
    "build_element_matrix",
    "normalize_fractions",
    # Native binding
    "Engine",
    # Queries
    "ComponentQuery",
    "PhaseQuery",
    "ConstituentQuery",
    "ConstituentCountCache",
    "components",
    "phases",
    "constituents",
    # Calculations
    "find_composition_boundary",
    "Calculator",
]
