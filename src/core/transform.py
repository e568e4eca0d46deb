"""
Conversion of compositions between a formula basis and the solver basis.

The solver works in terms of its own system components (usually the
elements of the datafile). Callers usually think in terms of other formulas,
e.g. oxides for an Al-Si-O system. Both bases are expanded into element
counts; the conversion matrices follow from the two element matrices:

    E_c @ x_internal = E_b @ x_formula

    f2i = pinv(E_c) @ E_b
    i2f = pinv(E_b) @ E_c

A basis is compatible when every element of the basis formulas is spanned by
the system components and the basis formulas are linearly independent; then
a forward-then-inverse conversion returns the original vector.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .types import TransformError

# Residual tolerance for the span check
_SPAN_TOL = 1e-9

_TOKEN = re.compile(r"(?:([A-Z][a-z]?)|(\()|(\)))(\d+(?:\.\d+)?|\.\d+)?")


# =============================================================================
# Formula Parsing
# =============================================================================


def parse_formula(formula: str) -> dict[str, float]:
    """
    Parse a chemical formula into element counts.

    Handles decimal stoichiometry ("Fe0.947O") and parenthesised groups
    ("Ca(OH)2"). A trailing phase tag such as "(G)" is ignored, as are
    characters that are not part of an element symbol (charges, primes).

    Args:
        formula: Formula text, e.g. "Al2O3"

    Returns:
        Mapping of element symbol to count

    Raises:
        TransformError: If the parentheses are unbalanced
    """
    formula = re.sub(r"\([GLSC]\)$", "", formula.strip())
    stack: list[dict[str, float]] = [{}]
    for match in _TOKEN.finditer(formula):
        symbol, opening, closing, count_str = match.groups()
        count = float(count_str) if count_str else 1.0
        if opening:
            stack.append({})
        elif closing:
            if len(stack) == 1:
                raise TransformError(f"Unbalanced parentheses in formula '{formula}'")
            group = stack.pop()
            for element, n in group.items():
                stack[-1][element] = stack[-1].get(element, 0.0) + n * count
        else:
            stack[-1][symbol] = stack[-1].get(symbol, 0.0) + count
    if len(stack) != 1:
        raise TransformError(f"Unbalanced parentheses in formula '{formula}'")
    return stack[0]


def build_element_matrix(
    formulas: Sequence[str], element_list: list[str]
) -> NDArray[np.float64]:
    """Build matrix a[i,j] = atoms of element i in formula j."""
    a_matrix = np.zeros((len(element_list), len(formulas)), dtype=np.float64)
    for j, name in enumerate(formulas):
        counts = parse_formula(name)
        for i, element in enumerate(element_list):
            a_matrix[i, j] = counts.get(element, 0.0)
    return a_matrix


def normalize_fractions(x: Sequence[float] | NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Rescale a composition so that its entries sum to one.

    Raises:
        TransformError: If the entries sum to zero
    """
    arr = np.ascontiguousarray(x, dtype=np.float64)
    total = float(np.sum(arr))
    if total == 0.0:
        raise TransformError("Cannot normalise a composition whose entries sum to zero")
    return arr / total


def _as_vector(x, expected: int, label: str) -> NDArray[np.float64]:
    arr = np.ascontiguousarray(x, dtype=np.float64)
    if arr.ndim != 1 or arr.shape[0] != expected:
        raise TransformError(
            f"{label} composition has {arr.size} entries, expected {expected}"
        )
    return arr


# =============================================================================
# Transform
# =============================================================================


@dataclass
class FormulaTransform:
    """
    Linear map between a formula basis and the solver's component basis.

    Attributes:
        internal_names: System component names (solver basis), in index order
        formula_names: Basis formulas chosen by the caller
        f2i: Matrix (n_internal x n_formula), formula -> internal
        i2f: Matrix (n_formula x n_internal), internal -> formula
    """

    internal_names: list[str]
    formula_names: list[str]
    f2i: NDArray[np.float64]
    i2f: NDArray[np.float64]

    @classmethod
    def identity(cls, components: Sequence[str]) -> "FormulaTransform":
        """Transform that leaves compositions in the component basis."""
        n = len(components)
        eye = np.eye(n, dtype=np.float64)
        return cls(list(components), list(components), eye, eye.copy())

    @classmethod
    def from_formulas(
        cls, components: Sequence[str], basis: Sequence[str]
    ) -> "FormulaTransform":
        """
        Build a transform from component names to basis formulas.

        Args:
            components: Names of the solver's system components
            basis: Formulas the caller will express compositions in

        Returns:
            FormulaTransform with n_internal == len(components)

        Raises:
            TransformError: If the basis is empty, linearly dependent, or
                contains elements the components cannot represent
        """
        components = [str(c) for c in components]
        basis = [str(b) for b in basis]
        if not basis:
            raise TransformError("Basis must contain at least one formula")
        if not components:
            raise TransformError("No system components to transform into")
        if list(components) == list(basis):
            return cls.identity(components)

        elements: set[str] = set()
        for name in [*components, *basis]:
            elements.update(parse_formula(name).keys())
        element_list = sorted(elements)

        e_comp = build_element_matrix(components, element_list)
        e_basis = build_element_matrix(basis, element_list)

        if np.linalg.matrix_rank(e_basis) < len(basis):
            raise TransformError(
                f"Basis formulas {basis} are not linearly independent"
            )

        comp_pinv = np.linalg.pinv(e_comp)
        residual = e_comp @ comp_pinv @ e_basis - e_basis
        if np.max(np.abs(residual)) > _SPAN_TOL:
            missing = [
                element_list[i] for i in range(len(element_list))
                if np.max(np.abs(residual[i])) > _SPAN_TOL
            ]
            raise TransformError(
                f"Basis {basis} is not compatible with system components "
                f"{components} (unrepresented elements: {', '.join(missing)})"
            )

        f2i = np.ascontiguousarray(comp_pinv @ e_basis)
        i2f = np.ascontiguousarray(np.linalg.pinv(e_basis) @ e_comp)
        return cls(components, basis, f2i, i2f)

    @property
    def n_internal(self) -> int:
        return self.f2i.shape[0]

    @property
    def n_formula(self) -> int:
        return self.f2i.shape[1]

    def transform_f2i(self, x) -> NDArray[np.float64]:
        """Formula basis -> internal basis, any-length input checked against the basis."""
        return self.f2i @ _as_vector(x, self.n_formula, "Formula-basis")

    def transform_i2f(self, x) -> NDArray[np.float64]:
        """Internal basis -> formula basis."""
        return self.i2f @ _as_vector(x, self.n_internal, "Internal-basis")

    def transform_f2i_s(self, x, size: int) -> NDArray[np.float64]:
        """
        Formula basis -> internal basis for a caller-declared input size.

        Raises:
            TransformError: If `size` differs from the basis dimension
        """
        self._check_size(size, self.n_formula)
        return self.transform_f2i(x)

    def transform_i2f_s(self, x, size: int) -> tuple[float, ...]:
        """Internal basis -> formula basis as a tuple of exactly `size` values."""
        self._check_size(size, self.n_formula)
        return tuple(float(v) for v in self.transform_i2f(x))

    @staticmethod
    def _check_size(size: int, actual: int) -> None:
        if size != actual:
            raise TransformError(
                f"Declared vector size {size} does not match basis dimension {actual}"
            )

    def __repr__(self) -> str:
        return (
            f"FormulaTransform({', '.join(self.formula_names)} -> "
            f"{', '.join(self.internal_names)})"
        )
