"""
High-level driver for the native equilibrium solver.

A Calculator owns one solver engine with one loaded datafile, and the basis
transform used to express compositions. It sets conditions, runs isothermal
and temperature-target calculations, and hands out queries over the
solver's index spaces.

Lifecycle:
    UNINITIALIZED -> DATABASE_LOADED -> BASIS_SET -> EQUILIBRATED

Loading a datafile installs the identity transform over the datafile's own
system components, so calculations are permitted from DATABASE_LOADED on.
Result accessors require EQUILIBRATED. A failed calculation falls back to
the last non-equilibrated state.

Example:
    >>> with Calculator.from_library("ca_vc_e_local.dll", "Al-Si-O.dat") as calc:
    ...     calc.set_transform(["SiO2", "Al2O3"])
    ...     calc.calculate_isothermal([0.1, 0.9], 2200.0)
    ...     list(calc.phases().stable().names())
"""

import logging
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .boundary_search import find_composition_boundary
from .config import CalculatorConfig
from .constants import DATAFILE_KINDS, REMOVE_ALL_CONDITIONS, TARGET_FAILURE_CODES
from .native import Engine
from .queries import ComponentQuery, ConstituentQuery, PhaseQuery
from .transform import FormulaTransform, normalize_fractions
from .types import (
    BoundarySearchResult,
    CalculatorState,
    CalculatorStateError,
    ConvergenceError,
    LoadError,
    NativeError,
    UnsupportedDatafileError,
)

logger = logging.getLogger(__name__)


def get_extension(filename: str | Path) -> str | None:
    """Lower-case extension of `filename` without the dot, None if absent."""
    suffix = Path(filename).suffix
    if not suffix or suffix == ".":
        return None
    return suffix[1:].lower()


class Calculator:
    """Calculation session bound to one solver engine and one datafile."""

    def __init__(self, engine, datafile: str | Path, config: CalculatorConfig | None = None):
        """
        Initialize the engine and load `datafile` into it.

        Args:
            engine: Solver engine (native.Engine or an object with the same routines)
            datafile: Thermodynamic datafile (.dat, .cst or .bin)
            config: Settings; defaults are used when omitted

        Raises:
            UnsupportedDatafileError: If the extension is missing or unknown
            LoadError: If the engine cannot be initialized or the file read
        """
        self.engine = engine
        self.config = config if config is not None else CalculatorConfig()
        self.file = str(datafile)
        self.number_isothermal = 0
        self.number_target_t = 0
        self._state = CalculatorState.UNINITIALIZED
        self._settled_state = CalculatorState.UNINITIALIZED

        self._init_engine()
        self.transform = FormulaTransform.identity(self.names_components())
        self._settle(CalculatorState.DATABASE_LOADED)
        logger.info(
            "Loaded %s: %d components, %d phases",
            self.file, self.transform.n_internal, self.engine.tqnop(),
        )

    @classmethod
    def from_library(
        cls,
        library_name: str | Path | None,
        datafile: str | Path,
        config: CalculatorConfig | None = None,
    ) -> "Calculator":
        """
        Load the solver library and a datafile.

        Args:
            library_name: Solver library; config.library_name when None
            datafile: Thermodynamic datafile
            config: Settings

        Raises:
            LoadError: If the library or the datafile cannot be loaded
        """
        config = config if config is not None else CalculatorConfig()
        engine = Engine(str(library_name or config.library_name), config.symbol_template)
        try:
            return cls(engine, datafile, config)
        except Exception:
            engine.close()
            raise

    # =========================================================================
    # Loading
    # =========================================================================

    def _init_engine(self) -> None:
        try:
            self.engine.tqini()
        except NativeError as e:
            raise LoadError(f"Cannot initialize solver: {e.description}") from e
        self._load_datafile(self.file)

    def _load_datafile(self, datafile: str) -> None:
        extension = get_extension(datafile)
        if extension is None:
            raise UnsupportedDatafileError(f"{datafile} has no extension")
        kind = DATAFILE_KINDS.get(extension)
        if kind is None:
            raise UnsupportedDatafileError(
                f"{extension} is not a recognized datafile extension for {datafile}"
            )
        if not Path(datafile).exists():
            raise LoadError(f"Datafile not found: {datafile}")

        engine = self.engine
        open_file, read_file = {
            "ascii": (engine.tqopna, engine.tqrfil),
            "transparent": (engine.tqopnt, engine.tqrcst),
            "binary": (engine.tqopnb, engine.tqrbin),
        }[kind]
        unit = self.config.datafile_unit

        logger.debug("Reading %s datafile %s on unit %d", kind, datafile, unit)
        try:
            open_file(datafile, unit)
            try:
                read_file()
            finally:
                engine.tqclos(unit)
        except NativeError as e:
            raise LoadError(f"Cannot load datafile {datafile}: {e.description}") from e

    def close(self) -> None:
        """Release the solver engine."""
        close = getattr(self.engine, "close", None)
        if close is not None:
            close()
        self._state = CalculatorState.UNINITIALIZED
        self._settled_state = CalculatorState.UNINITIALIZED

    def __enter__(self) -> "Calculator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> CalculatorState:
        return self._state

    @property
    def is_equilibrated(self) -> bool:
        return self._state is CalculatorState.EQUILIBRATED

    def _settle(self, state: CalculatorState) -> None:
        self._state = state
        self._settled_state = state

    def _drop_equilibrium(self) -> None:
        """Fall back to the last non-equilibrated state."""
        self._state = self._settled_state

    def _require_loaded(self) -> None:
        if self._state is CalculatorState.UNINITIALIZED:
            raise CalculatorStateError("No datafile is loaded")

    def _require_equilibrium(self) -> None:
        if self._state is not CalculatorState.EQUILIBRATED:
            raise CalculatorStateError(
                "No equilibrium has been calculated; run an isothermal or "
                "target calculation first"
            )

    # =========================================================================
    # Basis and index spaces
    # =========================================================================

    def set_transform(self, basis: list[str]) -> None:
        """
        Express compositions in `basis` from now on.

        Raises:
            TransformError: If the basis is incompatible with the components
        """
        self._require_loaded()
        self.transform = FormulaTransform.from_formulas(self.names_components(), basis)
        self._settle(CalculatorState.BASIS_SET)
        logger.debug("Basis set to %s", self.transform)

    def reset(self) -> None:
        """Remove every equilibrium condition."""
        self.engine.tqremc(REMOVE_ALL_CONDITIONS)

    def components(self) -> ComponentQuery:
        """Query over all system components."""
        return ComponentQuery(self, range(1, self.engine.tqnosc() + 1))

    def phases(self) -> PhaseQuery:
        """Query over all phases."""
        return PhaseQuery(self, range(1, self.engine.tqnop() + 1))

    def constituents(self) -> ConstituentQuery:
        """Query over all (phase, constituent) keys."""
        return self.phases().constituents()

    def names_components(self) -> list[str]:
        return list(self.components().names())

    def names_phases(self) -> list[str]:
        return list(self.phases().names())

    # =========================================================================
    # Calculations
    # =========================================================================

    def _set_amounts(self, x_internal: NDArray[np.float64]) -> None:
        for k, amount in enumerate(x_internal, start=1):
            self.engine.tqsetc("IA", 0, k, float(amount))

    def calculate_isothermal_internal(self, x_internal, temperature: float) -> None:
        """
        Isothermal calculation for a composition already in the solver basis.

        Raises:
            NativeError: If the solver rejects a condition or the calculation
        """
        self._require_loaded()
        x_internal = np.asarray(x_internal, dtype=np.float64)
        self._drop_equilibrium()

        self.reset()
        self.engine.tqsetc("T", 0, 0, float(temperature))
        self._set_amounts(x_internal)
        self.engine.tqce(" ", 0, 0, self.config.isothermal_interval)

        self.number_isothermal += 1
        self._state = CalculatorState.EQUILIBRATED
        logger.debug("Isothermal calculation #%d at T=%.2f K", self.number_isothermal, temperature)

    def calculate_isothermal(self, composition, temperature: float) -> None:
        """Isothermal calculation for a composition in the formula basis."""
        self.calculate_isothermal_internal(self.transform.transform_f2i(composition), temperature)

    def calculate_isothermal_s(self, composition, temperature: float, size: int) -> None:
        """As calculate_isothermal, for a composition of declared size."""
        self.calculate_isothermal_internal(
            self.transform.transform_f2i_s(composition, size), temperature
        )

    def set_clim(self, interval: tuple[float, float], inverse_order: bool = True) -> None:
        """
        Set the (low, high) limits of the target temperature.

        The solver accepts the two limits in one order only, depending on the
        limits already in place. The preferred order (THIGH first when
        `inverse_order`) is tried, then the opposite order once.

        Raises:
            NativeError: The error of the second attempt, chained to the first
        """
        low, high = interval
        order = [("THIGH", high), ("TLOW", low)]
        if not inverse_order:
            order.reverse()
        try:
            for option, value in order:
                self.engine.tqclim(option, value)
        except NativeError as first_error:
            logger.warning(
                "Solver rejected limit order %s (%s); retrying in opposite order",
                "/".join(option for option, _ in order), first_error.description,
            )
            try:
                for option, value in reversed(order):
                    self.engine.tqclim(option, value)
            except NativeError as second_error:
                raise second_error from first_error

    def calculate_target_t_internal(
        self, x_internal, target: int, interval: tuple[float, float]
    ) -> None:
        """
        Find the temperature at which phase `target` appears.

        Raises:
            ConvergenceError: If no solution exists within `interval`
            NativeError: For any other solver failure
        """
        self._require_loaded()
        x_internal = np.asarray(x_internal, dtype=np.float64)
        self._drop_equilibrium()

        self.reset()
        self._set_amounts(x_internal)
        self.engine.tqsetc("A", target, 0, 0.0)
        self.set_clim(interval, True)
        try:
            self.engine.tqce("T", 0, 0, interval)
        except NativeError as e:
            if e.code in TARGET_FAILURE_CODES:
                raise ConvergenceError(
                    f"No target temperature for phase {target} in "
                    f"[{interval[0]}, {interval[1]}] K: {e.description}"
                ) from e
            raise

        self.number_target_t += 1
        self._state = CalculatorState.EQUILIBRATED
        logger.debug("Target calculation #%d for phase %d", self.number_target_t, target)

    def calculate_target_t(self, composition, target: int, interval: tuple[float, float]) -> None:
        """Temperature-target calculation for a composition in the formula basis."""
        self.calculate_target_t_internal(self.transform.transform_f2i(composition), target, interval)

    def calculate_target_t_s(
        self, composition, target: int, interval: tuple[float, float], size: int
    ) -> None:
        self.calculate_target_t_internal(
            self.transform.transform_f2i_s(composition, size), target, interval
        )

    def calculate_target_x_from_left(
        self, x1, x2, temperature: float, target: int
    ) -> BoundarySearchResult:
        """
        Search from `x1` towards `x2` for the composition where `target`
        is the only stable phase. Compositions are in the formula basis.
        """
        return find_composition_boundary(
            self,
            self.transform.transform_f2i(x1),
            self.transform.transform_f2i(x2),
            temperature,
            target,
        )

    def calculate_target_x_from_left_s(
        self, x1, x2, temperature: float, target: int, size: int
    ) -> BoundarySearchResult:
        return find_composition_boundary(
            self,
            self.transform.transform_f2i_s(x1, size),
            self.transform.transform_f2i_s(x2, size),
            temperature,
            target,
        )

    # =========================================================================
    # Results
    # =========================================================================

    def _result(self, option: str, indexp: int = 0, indexc: int = 0) -> float:
        self._require_equilibrium()
        return self.engine.tqgetr(option, indexp, indexc)

    def system_temperature(self) -> float:
        return self._result("T")

    def system_pressure(self) -> float:
        return self._result("P")

    def phase_enthalpy(self, indexp: int) -> float:
        return self._result("H", indexp)

    def phase_gibbs_energy(self, indexp: int) -> float:
        return self._result("G", indexp)

    def phase_entropy(self, indexp: int) -> float:
        return self._result("S", indexp)

    def phase_heat_capacity(self, indexp: int) -> float:
        return self._result("CP", indexp)

    def phase_volume(self, indexp: int) -> float:
        return self._result("V", indexp)

    def phase_molar_enthalpy(self, indexp: int) -> float:
        return self._result("HM", indexp)

    def phase_molar_gibbs_energy(self, indexp: int) -> float:
        return self._result("GM", indexp)

    def phase_molar_entropy(self, indexp: int) -> float:
        return self._result("SM", indexp)

    def phase_molar_heat_capacity(self, indexp: int) -> float:
        return self._result("CPM", indexp)

    def phase_molar_volume(self, indexp: int) -> float:
        return self._result("VM", indexp)

    def _phase_fractions(self, indexp: int) -> NDArray[np.float64]:
        ncomp = self.engine.tqnosc()
        return np.array(
            [self.engine.tqgetr("XP", indexp, k) for k in range(1, ncomp + 1)],
            dtype=np.float64,
        )

    def read_phase_composition(self, indexp: int) -> NDArray[np.float64]:
        """Formula-basis composition of a phase from the current solver state."""
        return normalize_fractions(self.transform.transform_i2f(self._phase_fractions(indexp)))

    def phase_composition(self, indexp: int) -> NDArray[np.float64]:
        """
        Composition of phase `indexp` in the formula basis, summing to one.

        Raises:
            CalculatorStateError: If no equilibrium has been calculated
        """
        self._require_equilibrium()
        return self.read_phase_composition(indexp)

    def phase_composition_static(self, indexp: int, size: int) -> tuple[float, ...]:
        """As phase_composition, as a tuple of exactly `size` fractions."""
        self._require_equilibrium()
        xe = self.transform.transform_i2f_s(self._phase_fractions(indexp), size)
        return tuple(float(v) for v in normalize_fractions(xe))

    def __repr__(self) -> str:
        return (
            f"Calculator(file={self.file!r}, state={self._state.value}, "
            f"isothermal={self.number_isothermal}, target={self.number_target_t})"
        )
