"""
Unit tests for the Calculator, driven through an in-memory engine.
"""

import pytest
from numpy.testing import assert_allclose

from src.core.calculator import Calculator, get_extension
from src.core.config import CalculatorConfig
from src.core.types import (
    CalculatorState,
    CalculatorStateError,
    ConvergenceError,
    FormatError,
    LoadError,
    NativeError,
    TransformError,
    UnsupportedDatafileError,
)

from conftest import FakeEngine, FakePhase, two_component_phases


def touch(path):
    path.write_text("")
    return path


class TestDatafileLoading:
    """Test extension dispatch and load failures."""

    def test_get_extension(self):
        assert get_extension("Al-Si-O.DAT") == "dat"
        assert get_extension("dir.d/file") is None

    @pytest.mark.parametrize("filename, routines", [
        ("system.dat", ["tqopna", "tqrfil", "tqclos"]),
        ("system.CST", ["tqopnt", "tqrcst", "tqclos"]),
        ("system.bin", ["tqopnb", "tqrbin", "tqclos"]),
    ])
    def test_dispatch_by_extension(self, tmp_path, engine, filename, routines):
        Calculator(engine, touch(tmp_path / filename))
        assert engine.routines()[:4] == ["tqini"] + routines

    def test_datafile_unit_from_config(self, tmp_path, engine):
        Calculator(engine, touch(tmp_path / "a.dat"), CalculatorConfig(datafile_unit=21))
        assert ("tqclos", 21) in engine.calls

    def test_unsupported_extension(self, tmp_path, engine):
        with pytest.raises(UnsupportedDatafileError, match="txt"):
            Calculator(engine, touch(tmp_path / "system.txt"))

    def test_unsupported_is_load_and_format_error(self, tmp_path, engine):
        with pytest.raises(LoadError):
            Calculator(engine, touch(tmp_path / "system"))
        with pytest.raises(FormatError):
            Calculator(engine, touch(tmp_path / "system"))

    def test_missing_file(self, tmp_path, engine):
        with pytest.raises(LoadError, match="not found"):
            Calculator(engine, tmp_path / "missing.dat")
        assert "tqopna" not in engine.routines()

    def test_read_failure_still_closes_file(self, engine, datafile):
        engine.fail_codes["tqrfil"] = 103
        with pytest.raises(LoadError) as excinfo:
            Calculator(engine, datafile)
        assert isinstance(excinfo.value.__cause__, NativeError)
        assert excinfo.value.__cause__.code == 103
        assert engine.routines()[-1] == "tqclos"

    def test_init_failure(self, engine, datafile):
        engine.fail_codes["tqini"] = 104
        with pytest.raises(LoadError):
            Calculator(engine, datafile)

    def test_identity_transform_after_load(self, calc):
        assert calc.transform.formula_names == ["SiO2", "Al2O3"]
        assert calc.names_components() == ["SiO2", "Al2O3"]

    def test_missing_library(self, datafile):
        with pytest.raises(LoadError):
            Calculator.from_library("/nonexistent/libsolver.so", datafile)


class TestStateMachine:
    """Test lifecycle states and guarded accessors."""

    def test_loaded(self, calc):
        assert calc.state is CalculatorState.DATABASE_LOADED
        assert not calc.is_equilibrated

    def test_basis_set(self, calc):
        calc.set_transform(["SiO2", "Al2O3"])
        assert calc.state is CalculatorState.BASIS_SET

    def test_incompatible_basis_keeps_state(self, calc):
        with pytest.raises(TransformError):
            calc.set_transform(["MgO"])
        assert calc.state is CalculatorState.DATABASE_LOADED

    def test_equilibrated(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        assert calc.state is CalculatorState.EQUILIBRATED

    @pytest.mark.parametrize("accessor, args", [
        ("system_temperature", ()),
        ("system_pressure", ()),
        ("phase_enthalpy", (1,)),
        ("phase_molar_volume", (1,)),
        ("phase_composition", (1,)),
        ("phase_composition_static", (1, 2)),
    ])
    def test_results_require_equilibrium(self, calc, accessor, args):
        with pytest.raises(CalculatorStateError):
            getattr(calc, accessor)(*args)

    def test_failed_calculation_drops_equilibrium(self, calc, engine):
        calc.set_transform(["SiO2", "Al2O3"])
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        engine.fail_codes["tqce"] = 704
        with pytest.raises(NativeError):
            calc.calculate_isothermal([0.1, 0.9], 2300.0)
        assert calc.state is CalculatorState.BASIS_SET
        assert calc.number_isothermal == 1

    def test_context_manager_closes_engine(self, engine, datafile):
        with Calculator(engine, datafile) as calc:
            pass
        assert engine.closed
        assert calc.state is CalculatorState.UNINITIALIZED

    def test_calculation_after_close(self, calc):
        calc.close()
        with pytest.raises(CalculatorStateError):
            calc.calculate_isothermal([0.1, 0.9], 2200.0)

    def test_repr(self, calc):
        assert "Al2O3-SiO2.dat" in repr(calc)


class TestIsothermal:
    """Test isothermal calculations."""

    def test_condition_sequence(self, calc, engine):
        engine.calls.clear()
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        assert engine.calls == [
            ("tqremc", -2),
            ("tqsetc", "T", 0, 0, 2200.0),
            ("tqsetc", "IA", 0, 1, 0.1),
            ("tqsetc", "IA", 0, 2, 0.9),
            ("tqce", " ", 0, 0, (10.0, 6000.0)),
        ]

    def test_counter(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        calc.calculate_isothermal([0.2, 0.8], 2200.0)
        assert calc.number_isothermal == 2
        assert calc.number_target_t == 0

    def test_system_results(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        assert calc.system_temperature() == 2200.0
        assert calc.system_pressure() == 1.0

    def test_phase_properties(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        assert calc.phase_enthalpy(1) == -100.0
        assert calc.phase_molar_enthalpy(1) == -1000.0
        assert calc.phase_gibbs_energy(2) == 0.0

    def test_wrong_size(self, calc):
        with pytest.raises(TransformError):
            calc.calculate_isothermal([0.1, 0.2, 0.7], 2200.0)

    def test_fixed_size(self, calc, engine):
        calc.calculate_isothermal_s([0.25, 0.75], 1800.0, 2)
        assert engine.amounts == [0.25, 0.75]
        with pytest.raises(TransformError):
            calc.calculate_isothermal_s([0.25, 0.75], 1800.0, 3)

    def test_oxide_basis_over_elements(self, datafile):
        engine = FakeEngine(components=("Al", "Si", "O"), phases=[FakePhase("GAS")])
        calc = Calculator(engine, datafile)
        calc.set_transform(["SiO2", "Al2O3"])
        calc.calculate_isothermal([1.0, 1.0], 2000.0)
        assert engine.amounts == pytest.approx([2.0, 1.0, 5.0])


class TestCompositions:
    """Test phase compositions in the formula basis."""

    def test_sums_to_one(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        x = calc.phase_composition(1)
        assert_allclose(x, [0.2 / 0.9, 0.7 / 0.9])

    def test_static(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        x = calc.phase_composition_static(2, 2)
        assert isinstance(x, tuple)
        assert x == pytest.approx((0.4, 0.6))

    def test_static_size_mismatch(self, calc):
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        with pytest.raises(TransformError):
            calc.phase_composition_static(2, 3)

    def test_stable_phases_end_to_end(self, calc):
        calc.set_transform(["SiO2", "Al2O3"])
        calc.calculate_isothermal([0.1, 0.9], 2200.0)
        for x in calc.phases().stable().compositions():
            assert len(x) == 2
            assert abs(x.sum() - 1.0) < 1e-9


class TestTargetTemperature:
    """Test temperature-target calculations."""

    def test_condition_sequence(self, calc, engine):
        engine.calls.clear()
        calc.calculate_target_t([0.1, 0.9], 3, (1000.0, 3000.0))
        assert engine.calls == [
            ("tqremc", -2),
            ("tqsetc", "IA", 0, 1, 0.1),
            ("tqsetc", "IA", 0, 2, 0.9),
            ("tqsetc", "A", 3, 0, 0.0),
            ("tqclim", "THIGH", 3000.0),
            ("tqclim", "TLOW", 1000.0),
            ("tqce", "T", 0, 0, (1000.0, 3000.0)),
        ]
        assert calc.number_target_t == 1
        assert calc.is_equilibrated

    @pytest.mark.parametrize("code", [707, 711, 712, 713])
    def test_no_solution_is_convergence_error(self, calc, engine, code):
        engine.fail_codes["tqce"] = code
        with pytest.raises(ConvergenceError) as excinfo:
            calc.calculate_target_t([0.1, 0.9], 3, (1000.0, 3000.0))
        assert excinfo.value.__cause__.code == code
        assert calc.number_target_t == 0
        assert not calc.is_equilibrated

    def test_other_failures_propagate(self, calc, engine):
        engine.fail_codes["tqce"] = 704
        with pytest.raises(NativeError) as excinfo:
            calc.calculate_target_t([0.1, 0.9], 3, (1000.0, 3000.0))
        assert not isinstance(excinfo.value, ConvergenceError)

    def test_fixed_size(self, calc, engine):
        calc.calculate_target_t_s([0.3, 0.7], 1, (1000.0, 3000.0), 2)
        assert engine.amounts == [0.3, 0.7]


class TestTemperatureLimits:
    """Test the order-retrying limit setter."""

    def limit_calls(self, engine):
        return [c for c in engine.calls if c[0] == "tqclim"]

    def test_preferred_order(self, calc, engine):
        calc.set_clim((1000.0, 3000.0))
        assert self.limit_calls(engine) == [
            ("tqclim", "THIGH", 3000.0),
            ("tqclim", "TLOW", 1000.0),
        ]

    def test_low_first_order(self, calc, engine):
        engine.require_low_first = True
        calc.set_clim((1000.0, 3000.0), inverse_order=False)
        assert self.limit_calls(engine) == [
            ("tqclim", "TLOW", 1000.0),
            ("tqclim", "THIGH", 3000.0),
        ]

    def test_retry_in_opposite_order(self, calc, engine):
        engine.require_low_first = True
        calc.set_clim((1000.0, 3000.0))
        assert self.limit_calls(engine) == [
            ("tqclim", "THIGH", 3000.0),
            ("tqclim", "TLOW", 1000.0),
            ("tqclim", "THIGH", 3000.0),
        ]
        assert engine.limits == {"TLOW": 1000.0, "THIGH": 3000.0}

    def test_both_orders_rejected(self, calc, engine):
        engine.limit_fail_codes = {"THIGH": 505, "TLOW": 506}
        with pytest.raises(NativeError) as excinfo:
            calc.set_clim((1000.0, 3000.0))
        assert excinfo.value.code == 506
        assert excinfo.value.__cause__.code == 505

    def test_target_with_reversed_limits(self, calc, engine):
        engine.require_low_first = True
        calc.calculate_target_t([0.1, 0.9], 3, (1000.0, 3000.0))
        assert calc.is_equilibrated


class TestMultiplePhaseSets:
    """Calculators over different systems stay independent."""

    def test_names_phases(self, calc):
        assert calc.names_phases() == [p.name for p in two_component_phases()]

    def test_empty_system(self, datafile):
        calc = Calculator(FakeEngine(components=("Fe",), phases=[]), datafile)
        assert list(calc.phases()) == []
        assert list(calc.constituents()) == []
