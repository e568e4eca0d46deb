"""
Composition search for the point where a phase becomes the only stable one.

Bisection along the segment between two internal-basis compositions x1 and
x2. The candidate starts at x1 and is moved halfway towards a reference
endpoint at every step; the endpoint is chosen from the outcome of the last
isothermal calculation:

    target stable, alone          -> done
    target stable, not alone      -> next reference is x2
    target not stable             -> next reference is x1

The search assumes phase stability changes monotonically along the segment.
It is a heuristic, not a guaranteed root finder.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .types import BoundarySearchResult, ConvergenceError, TransformError

if TYPE_CHECKING:
    from .calculator import Calculator

logger = logging.getLogger(__name__)


def find_composition_boundary(
    calculator: Calculator,
    x1: NDArray[np.float64],
    x2: NDArray[np.float64],
    temperature: float,
    target: int,
    max_iter: int | None = None,
) -> BoundarySearchResult:
    """
    Locate a composition near x1 at which `target` is the unique stable phase.

    Args:
        calculator: Calculator with a loaded database
        x1: Starting composition (internal basis)
        x2: Opposite endpoint (internal basis)
        temperature: Temperature of every isothermal calculation (K)
        target: Phase index that must become the only stable phase
        max_iter: Iteration budget (default: calculator.config.boundary_max_iter)

    Returns:
        BoundarySearchResult; the calculator is left equilibrated at the result

    Raises:
        ConvergenceError: If the budget is exhausted without success; the
            calculator then holds no equilibrium
        ValueError: If `max_iter` is below one
        NativeError: If an isothermal calculation fails
    """
    x1 = np.ascontiguousarray(x1, dtype=np.float64)
    x2 = np.ascontiguousarray(x2, dtype=np.float64)
    if x1.shape != x2.shape:
        raise TransformError(
            f"Endpoints have different sizes ({x1.size} and {x2.size})"
        )
    if max_iter is None:
        max_iter = calculator.config.boundary_max_iter
    if max_iter < 1:
        raise ValueError(f"max_iter must be at least 1, got {max_iter}")

    current = x1.copy()
    other = x2
    for iteration in range(1, max_iter + 1):
        current = 0.5 * (current + other)
        calculator.calculate_isothermal_internal(current, temperature)
        stable = list(calculator.phases().stable())
        logger.debug(
            "Boundary search step %d: x=%s stable=%s", iteration, current, stable
        )
        if target in stable:
            if len(stable) == 1:
                logger.info(
                    "Phase %d uniquely stable after %d iterations", target, iteration
                )
                return BoundarySearchResult(
                    composition_internal=current,
                    composition=calculator.transform.transform_i2f(current),
                    iterations=iteration,
                    target=target,
                )
            other = x2
        else:
            other = x1

    calculator._drop_equilibrium()
    raise ConvergenceError(
        f"Cannot converge composition target: phase {target} not uniquely "
        f"stable after {max_iter} iterations"
    )
