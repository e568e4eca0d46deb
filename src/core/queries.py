"""
Lazy queries over the solver's index spaces.

A query wraps an iterable of candidate index numbers and a Calculator.
Filters return a new query of the same kind, projections return plain
iterators of values, and nothing is read from the solver until the result
is consumed:

    >>> names = PhaseQuery(calc, range(100)).valid().stable().names()
    >>> list(names)
    ['LIQUID', 'MULLITE']

Rules shared by every query:
    - single pass: a query consumes its input once
    - order is preserved, duplicates are kept
    - each element is resolved against the solver state at consumption time
    - filters only look at the element being tested

Result options (solver naming):
    A    amount                 AC   activity
    MU   chemical potential     X    mole fraction (components)
    H/G/S/CP/V          extensive properties of a phase or constituent
    HM/GM/SM/CPM/VM     the same per mole
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .constants import MODEL_PURE, STATUS_DORMANT, STATUS_ELIMINATED, STATUS_ENTERED
from .types import ComponentStoichiometry

if TYPE_CHECKING:
    from .calculator import Calculator

ConstituentKey = tuple[int, int]


class IndexQuery:
    """Base for the three index domains."""

    def __init__(self, calculator: Calculator, indices: Iterable):
        self.calculator = calculator
        self._indices = iter(indices)

    def __iter__(self) -> Iterator:
        return self._indices

    @property
    def engine(self):
        return self.calculator.engine

    def _derive(self, indices: Iterable):
        return type(self)(self.calculator, indices)

    def where(self, predicate) -> IndexQuery:
        """Keep the elements for which `predicate(element)` is true."""
        return self._derive(item for item in self if predicate(item))

    def _key(self, item) -> tuple[int, int]:
        raise NotImplementedError

    def results(self, option: str) -> Iterator[float]:
        """Project every element onto the solver result `option`."""
        engine = self.engine
        for item in self:
            indexp, indexc = self._key(item)
            yield engine.tqgetr(option, indexp, indexc)

    def amounts(self) -> Iterator[float]:
        return self.results("A")

    def activities(self) -> Iterator[float]:
        return self.results("AC")

    def chemical_potentials(self) -> Iterator[float]:
        return self.results("MU")


class _PropertyProjections:
    """Extensive and molar properties, shared by phases and constituents."""

    def enthalpies(self) -> Iterator[float]:
        return self.results("H")

    def gibbs_energies(self) -> Iterator[float]:
        return self.results("G")

    def entropies(self) -> Iterator[float]:
        return self.results("S")

    def heat_capacities(self) -> Iterator[float]:
        return self.results("CP")

    def volumes(self) -> Iterator[float]:
        return self.results("V")

    def molar_enthalpies(self) -> Iterator[float]:
        return self.results("HM")

    def molar_gibbs_energies(self) -> Iterator[float]:
        return self.results("GM")

    def molar_entropies(self) -> Iterator[float]:
        return self.results("SM")

    def molar_heat_capacities(self) -> Iterator[float]:
        return self.results("CPM")

    def molar_volumes(self) -> Iterator[float]:
        return self.results("VM")


# =============================================================================
# System components
# =============================================================================


class ComponentQuery(IndexQuery):
    """Query over system component indices."""

    def _key(self, item: int) -> tuple[int, int]:
        return (0, item)

    def valid(self) -> ComponentQuery:
        """Keep indices in [1, number of components]."""
        def _valid():
            ncomp = self.engine.tqnosc()
            for idx in self:
                if 0 < idx <= ncomp:
                    yield idx
        return self._derive(_valid())

    def names(self) -> Iterator[str]:
        engine = self.engine
        return (engine.tqgnsc(idx) for idx in self)

    def _stoichiometries(self) -> Iterator[ComponentStoichiometry]:
        engine = self.engine
        return (engine.tqstsc(idx) for idx in self)

    def molecular_masses(self) -> Iterator[float]:
        return (s.molecular_mass for s in self._stoichiometries())

    def stoichiometries(self) -> Iterator[NDArray[np.float64]]:
        return (s.stoichiometry for s in self._stoichiometries())

    def mole_fractions(self) -> Iterator[float]:
        return self.results("X")


# =============================================================================
# Phases
# =============================================================================


class PhaseQuery(_PropertyProjections, IndexQuery):
    """Query over phase indices."""

    def _key(self, item: int) -> tuple[int, int]:
        return (item, 0)

    def valid(self) -> PhaseQuery:
        """Keep indices in [1, number of phases]."""
        def _valid():
            nphases = self.engine.tqnop()
            for idx in self:
                if 0 < idx <= nphases:
                    yield idx
        return self._derive(_valid())

    def stable(self) -> PhaseQuery:
        """Keep phases of the stable assemblage (activity strictly above the threshold)."""
        engine = self.engine
        threshold = self.calculator.config.stability_threshold
        return self.where(lambda idx: engine.tqgetr("AC", idx, 0) > threshold)

    def _status_is(self, prefix: str) -> PhaseQuery:
        engine = self.engine
        return self.where(lambda idx: engine.tqgsp(idx)[:4] == prefix)

    def entered(self) -> PhaseQuery:
        return self._status_is(STATUS_ENTERED)

    def dormant(self) -> PhaseQuery:
        return self._status_is(STATUS_DORMANT)

    def eliminated(self) -> PhaseQuery:
        return self._status_is(STATUS_ELIMINATED)

    def compounds(self) -> PhaseQuery:
        """Keep stoichiometric phases (model name starting with PURE)."""
        engine = self.engine
        return self.where(lambda idx: engine.tqmodl(idx)[:4] == MODEL_PURE)

    def solutions(self) -> PhaseQuery:
        """Keep multi-constituent solution phases."""
        engine = self.engine
        return self.where(lambda idx: engine.tqmodl(idx)[:4] != MODEL_PURE)

    def names(self) -> Iterator[str]:
        engine = self.engine
        return (engine.tqgnp(idx) for idx in self)

    def models(self) -> Iterator[str]:
        engine = self.engine
        return (engine.tqmodl(idx).strip() for idx in self)

    def statuses(self) -> Iterator[str]:
        engine = self.engine
        return (engine.tqgsp(idx).strip() for idx in self)

    def compositions(self) -> Iterator[NDArray[np.float64]]:
        """Phase compositions in the calculator's formula basis, summing to one."""
        calculator = self.calculator
        return (calculator.read_phase_composition(idx) for idx in self)

    def constituents(self) -> ConstituentQuery:
        """Expand each phase into all of its (phase, constituent) keys."""
        engine = self.engine

        def _expand():
            for indexp in self:
                for indexc in range(1, engine.tqnopc(indexp) + 1):
                    yield (indexp, indexc)
        return ConstituentQuery(self.calculator, _expand())


# =============================================================================
# Phase constituents
# =============================================================================


class ConstituentCountCache:
    """
    Constituent counts per phase, read from the solver once each.

    Owned by a single query evaluation; create a new one for every traversal.
    """

    def __init__(self, calculator: Calculator):
        self.calculator = calculator
        self._counts: dict[int, int] = {}

    def count(self, indexp: int) -> int:
        if indexp not in self._counts:
            self._counts[indexp] = self.calculator.engine.tqnopc(indexp)
        return self._counts[indexp]

    def __contains__(self, indexp: int) -> bool:
        return indexp in self._counts

    def __len__(self) -> int:
        return len(self._counts)


class ConstituentQuery(_PropertyProjections, IndexQuery):
    """Query over (phase, constituent) keys."""

    def _key(self, item: ConstituentKey) -> tuple[int, int]:
        return item

    def valid(self, cache: ConstituentCountCache | None = None) -> ConstituentQuery:
        """
        Keep keys whose phase and constituent indices are both in range.

        Args:
            cache: Count cache for this evaluation; a fresh one is created
                when omitted
        """
        if cache is None:
            cache = ConstituentCountCache(self.calculator)

        def _valid():
            nphases = self.engine.tqnop()
            for indexp, indexc in self:
                if indexp < 1 or indexp > nphases:
                    continue
                if 0 < indexc <= cache.count(indexp):
                    yield (indexp, indexc)
        return self._derive(_valid())

    def names(self) -> Iterator[tuple[str, str]]:
        """(phase name, constituent name) pairs."""
        engine = self.engine
        return ((engine.tqgnp(p), engine.tqgnpc(p, c)) for p, c in self)


def components(calculator: Calculator, indices: Iterable[int]) -> ComponentQuery:
    return ComponentQuery(calculator, indices)


def phases(calculator: Calculator, indices: Iterable[int]) -> PhaseQuery:
    return PhaseQuery(calculator, indices)


def constituents(calculator: Calculator, keys: Iterable[ConstituentKey]) -> ConstituentQuery:
    return ConstituentQuery(calculator, keys)
