"""
Shared fixtures: a scriptable in-memory stand-in for the solver library.
"""

from dataclasses import dataclass, field

import numpy as np
import pytest

from src.core.calculator import Calculator
from src.core.types import ComponentStoichiometry, NativeError


@dataclass
class FakePhase:
    name: str
    model: str = "PURE"
    status: str = "ENTERED"
    constituents: tuple[str, ...] = ("X",)
    activity: float = 0.0
    amount: float = 0.0
    fractions: tuple[float, ...] = ()
    results: dict[str, float] = field(default_factory=dict)


class FakeEngine:
    """
    Mimics the routines of native.Engine.

    - every call is logged in `calls` as (routine, *args)
    - `fail_codes[routine]` makes that routine report a native error
    - `limit_fail_codes[option]` makes tqclim reject that limit
    - `require_low_first` rejects THIGH until TLOW has been set (code 505)
    - `on_calculate(engine)` runs inside tqce to update phase activities
    """

    def __init__(self, components=("SiO2", "Al2O3"), phases=()):
        self.component_names = list(components)
        self.phase_list = list(phases)
        self.calls: list[tuple] = []
        self.fail_codes: dict[str, int] = {}
        self.limit_fail_codes: dict[str, int] = {}
        self.require_low_first = False
        self.on_calculate = None
        self.conditions: dict[int, tuple] = {}
        self.limits: dict[str, float] = {}
        self.amounts = [0.0] * len(self.component_names)
        self.temperature = 0.0
        self.component_results: dict[tuple[str, int], float] = {}
        self.closed = False
        self._numcon = 0

    # helpers ---------------------------------------------------------------

    def _log(self, routine, *args):
        self.calls.append((routine, *args))
        code = self.fail_codes.get(routine)
        if code:
            raise NativeError(code, routine.upper())

    def routines(self) -> list[str]:
        return [c[0] for c in self.calls]

    def count(self, routine: str) -> int:
        return self.routines().count(routine)

    def _phase(self, indexp) -> FakePhase:
        if not 1 <= indexp <= len(self.phase_list):
            raise NativeError(402, "TQ")
        return self.phase_list[indexp - 1]

    # initialization and files ----------------------------------------------

    def tqini(self):
        self._log("tqini")

    def tqopna(self, filename, unit):
        self._log("tqopna", filename, unit)

    def tqopnt(self, filename, unit):
        self._log("tqopnt", filename, unit)

    def tqopnb(self, filename, unit):
        self._log("tqopnb", filename, unit)

    def tqrfil(self):
        self._log("tqrfil")

    def tqrcst(self):
        self._log("tqrcst")

    def tqrbin(self):
        self._log("tqrbin")

    def tqclos(self, unit):
        self._log("tqclos", unit)

    def close(self):
        self.closed = True

    # components, phases, constituents ---------------------------------------

    def tqnosc(self):
        self._log("tqnosc")
        return len(self.component_names)

    def tqgnsc(self, indexs):
        self._log("tqgnsc", indexs)
        if not 1 <= indexs <= len(self.component_names):
            raise NativeError(401, "TQGNSC")
        return self.component_names[indexs - 1]

    def tqstsc(self, indexs):
        self._log("tqstsc", indexs)
        stoi = np.zeros(len(self.component_names))
        stoi[indexs - 1] = 1.0
        return ComponentStoichiometry(stoichiometry=stoi, molecular_mass=10.0 * indexs)

    def tqnop(self):
        self._log("tqnop")
        return len(self.phase_list)

    def tqgnp(self, indexp):
        self._log("tqgnp", indexp)
        return self._phase(indexp).name

    def tqmodl(self, indexp):
        self._log("tqmodl", indexp)
        return self._phase(indexp).model.ljust(24)

    def tqgsp(self, indexp):
        self._log("tqgsp", indexp)
        return self._phase(indexp).status.ljust(24)

    def tqnopc(self, indexp):
        self._log("tqnopc", indexp)
        return len(self._phase(indexp).constituents)

    def tqgnpc(self, indexp, indexc):
        self._log("tqgnpc", indexp, indexc)
        phase = self._phase(indexp)
        if not 1 <= indexc <= len(phase.constituents):
            raise NativeError(403, "TQGNPC")
        return phase.constituents[indexc - 1]

    # conditions and calculation ---------------------------------------------

    def tqsetc(self, option, indexp, indexc, value):
        self._log("tqsetc", option, indexp, indexc, value)
        if option == "T":
            self.temperature = value
        elif option == "IA":
            if not 1 <= indexc <= len(self.component_names):
                raise NativeError(401, "TQSETC")
            self.amounts[indexc - 1] = value
        self._numcon += 1
        self.conditions[self._numcon] = (option, indexp, indexc, value)
        return self._numcon

    def tqremc(self, numcon):
        self._log("tqremc", numcon)
        if numcon == -2:
            self.conditions.clear()
            self.limits.clear()
        else:
            self.conditions.pop(numcon, None)

    def tqclim(self, option, value):
        self._log("tqclim", option, value)
        code = self.limit_fail_codes.get(option)
        if code:
            raise NativeError(code, "TQCLIM")
        if self.require_low_first and option == "THIGH" and "TLOW" not in self.limits:
            raise NativeError(505, "TQCLIM")
        self.limits[option] = value

    def tqce(self, option, indexp, indexc, vals):
        self._log("tqce", option, indexp, indexc, tuple(vals))
        if self.on_calculate is not None:
            self.on_calculate(self)

    def tqgetr(self, option, indexp, indexc):
        self._log("tqgetr", option, indexp, indexc)
        if option == "T":
            return self.temperature
        if option == "P":
            return 1.0
        if indexp == 0:
            if not 1 <= indexc <= len(self.component_names):
                raise NativeError(401, "TQGETR")
            return self.component_results.get((option, indexc), 0.0)
        phase = self._phase(indexp)
        if option == "XP":
            return phase.fractions[indexc - 1]
        if indexc == 0:
            if option == "AC":
                return phase.activity
            if option == "A":
                return phase.amount
            return phase.results.get(option, 0.0)
        if not 1 <= indexc <= len(phase.constituents):
            raise NativeError(403, "TQGETR")
        return phase.results.get(f"{option}:{indexc}", 0.0)


def two_component_phases():
    return [
        FakePhase("LIQUID", model="SUBG", status="ENTERED",
                  constituents=("SiO2", "Al2O3"), activity=1.0, amount=0.6,
                  fractions=(0.2, 0.7),
                  results={"H": -100.0, "HM": -1000.0, "HM:1": -910.0, "HM:2": -1670.0}),
        FakePhase("MULLITE", model="PURE", status="ENTERED",
                  constituents=("Al6Si2O13",), activity=1.0, amount=0.4,
                  fractions=(0.4, 0.6),
                  results={"H": -200.0, "HM:1": -6800.0}),
        FakePhase("CRISTOBALITE", model="PURE", status="ELIMINATED",
                  constituents=("SiO2",), activity=0.5, fractions=(1.0, 0.0)),
        FakePhase("CORUNDUM", model="PURE", status="DORMANT",
                  constituents=("Al2O3",), activity=0.99991, fractions=(0.0, 1.0)),
        FakePhase("SPINEL", model="SUBLM", status="ENTERED",
                  constituents=("Al", "Si", "O"), activity=0.9999,
                  fractions=(0.5, 0.5)),
    ]


@pytest.fixture
def engine():
    return FakeEngine(components=("SiO2", "Al2O3"), phases=two_component_phases())


@pytest.fixture
def datafile(tmp_path):
    path = tmp_path / "Al2O3-SiO2.dat"
    path.write_text("")
    return path


@pytest.fixture
def calc(engine, datafile):
    return Calculator(engine, datafile)
