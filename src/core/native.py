"""
ctypes binding to the native equilibrium solver library.

Every routine of the library follows the same calling convention: scalar
arguments are passed by reference, character arguments are passed as a
pointer followed by their length, and the last argument is an integer
error code written by the routine. A nonzero code is raised as NativeError.

Only the routines the calculator needs are bound here. The library keeps a
single implicit system and equilibrium, so an Engine must not be shared
between threads.
"""

import _ctypes
import ctypes
import logging
import sys
from pathlib import Path

import numpy as np

from .constants import DEFAULT_LIBRARY_NAME, NAME_LENGTH_MAX, STATUS_LENGTH_MAX
from .types import ComponentStoichiometry, FormatError, LoadError, NativeError

logger = logging.getLogger(__name__)

_size_t = ctypes.c_size_t
_int = ctypes.c_int
_double = ctypes.c_double


def decode_name(buffer: bytes) -> str:
    """
    Decode a blank-padded name buffer returned by the solver.

    The name ends at the first blank or NUL byte.

    Raises:
        FormatError: If the bytes are not valid UTF-8
    """
    end = len(buffer)
    for k, byte in enumerate(buffer):
        if byte in (0x20, 0x00):
            end = k
            break
    try:
        return buffer[:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Solver returned undecodable text: {e}") from e


def decode_text(buffer: bytes) -> str:
    """Decode a full-width text buffer (status, model name) keeping its padding."""
    try:
        return buffer.decode("utf-8").replace("\0", "")
    except UnicodeDecodeError as e:
        raise FormatError(f"Solver returned undecodable text: {e}") from e


class Engine:
    """
    Handle to one loaded copy of the solver library.

    Method names mirror the library routines (tqini, tqsetc, tqce, ...).
    """

    def __init__(self, library_name: str = DEFAULT_LIBRARY_NAME, symbol_template: str = "{name}"):
        """
        Load the solver library.

        Args:
            library_name: Path or name of the shared library
            symbol_template: Format applied to the upper-case routine name to
                obtain the exported symbol, e.g. "_{name}@16" style decorations

        Raises:
            LoadError: If the library cannot be opened
        """
        self.library_name = str(library_name)
        self.symbol_template = symbol_template
        loader = ctypes.WinDLL if sys.platform == "win32" else ctypes.CDLL
        try:
            self._library = loader(self.library_name)
        except OSError as e:
            raise LoadError(f"Cannot open solver library {self.library_name}: {e}") from e
        logger.debug("Loaded solver library %s", self.library_name)

    def close(self) -> None:
        """
        Unload the library, discarding the solver state it holds.

        Safe to call more than once.
        """
        library, self._library = self._library, None
        if library is None:
            return
        if sys.platform == "win32":
            _ctypes.FreeLibrary(library._handle)
        else:
            _ctypes.dlclose(library._handle)
        logger.debug("Unloaded solver library %s", self.library_name)

    @property
    def is_open(self) -> bool:
        return self._library is not None

    def _routine(self, name: str):
        if self._library is None:
            raise LoadError(f"Solver library {self.library_name} has been released")
        symbol = self.symbol_template.format(name=name.upper())
        try:
            return getattr(self._library, symbol)
        except AttributeError as e:
            raise LoadError(f"Routine {symbol} not found in {self.library_name}") from e

    def _call(self, name: str, *args) -> None:
        errcode = _size_t(0)
        self._routine(name)(*args, ctypes.byref(errcode))
        if errcode.value != 0:
            raise NativeError(errcode.value, name.upper())

    @staticmethod
    def _text(value: str) -> tuple[ctypes.c_char_p, _size_t]:
        raw = value.encode("utf-8")
        if b"\0" in raw:
            raise FormatError(f"Text argument contains a NUL byte: {value!r}")
        return ctypes.c_char_p(raw), _size_t(len(raw))

    # =========================================================================
    # Initialization and files
    # =========================================================================

    def tqini(self) -> None:
        """Initialize the interface."""
        self._call("tqini")

    def tqvers(self) -> int:
        """Version number of the library."""
        vers = _int(0)
        self._call("tqvers", ctypes.byref(vers))
        return vers.value

    def _open(self, routine: str, filename: str, unit: int) -> None:
        name, length = self._text(str(Path(filename)))
        self._call(routine, name, length, ctypes.byref(_int(unit)))

    def tqopna(self, filename: str, unit: int) -> None:
        """Open an ASCII datafile on `unit`."""
        self._open("tqopna", filename, unit)

    def tqopnt(self, filename: str, unit: int) -> None:
        """Open a transparent-header datafile on `unit`."""
        self._open("tqopnt", filename, unit)

    def tqopnb(self, filename: str, unit: int) -> None:
        """Open a binary datafile on `unit`."""
        self._open("tqopnb", filename, unit)

    def tqrfil(self) -> None:
        self._call("tqrfil")

    def tqrcst(self) -> None:
        self._call("tqrcst")

    def tqrbin(self) -> None:
        self._call("tqrbin")

    def tqclos(self, unit: int) -> None:
        self._call("tqclos", ctypes.byref(_int(unit)))

    # =========================================================================
    # System components
    # =========================================================================

    def tqnosc(self) -> int:
        """Number of system components."""
        n = _size_t(0)
        self._call("tqnosc", ctypes.byref(n))
        return n.value

    def tqgnsc(self, indexs: int) -> str:
        """Name of system component `indexs`."""
        buf = ctypes.create_string_buffer(NAME_LENGTH_MAX)
        self._call("tqgnsc", ctypes.byref(_size_t(indexs)), buf, _size_t(NAME_LENGTH_MAX))
        return decode_name(buf.raw)

    def tqstsc(self, indexs: int) -> ComponentStoichiometry:
        """Stoichiometry and molecular mass of system component `indexs`."""
        ncomp = self.tqnosc()
        stoi = (_double * max(ncomp, 1))()
        wmass = _double(0.0)
        self._call("tqstsc", ctypes.byref(_size_t(indexs)), stoi, ctypes.byref(wmass))
        return ComponentStoichiometry(
            stoichiometry=np.array(stoi[:ncomp], dtype=np.float64),
            molecular_mass=wmass.value,
        )

    # =========================================================================
    # Phases and constituents
    # =========================================================================

    def tqnop(self) -> int:
        """Number of phases."""
        n = _size_t(0)
        self._call("tqnop", ctypes.byref(n))
        return n.value

    def tqgnp(self, indexp: int) -> str:
        """Name of phase `indexp`."""
        buf = ctypes.create_string_buffer(NAME_LENGTH_MAX)
        self._call("tqgnp", ctypes.byref(_size_t(indexp)), buf, _size_t(NAME_LENGTH_MAX))
        return decode_name(buf.raw)

    def tqmodl(self, indexp: int) -> str:
        """Model name of phase `indexp` (padded)."""
        buf = ctypes.create_string_buffer(NAME_LENGTH_MAX)
        self._call("tqmodl", ctypes.byref(_size_t(indexp)), buf, _size_t(NAME_LENGTH_MAX))
        return decode_text(buf.raw)

    def tqgsp(self, indexp: int) -> str:
        """Status of phase `indexp` ("ENTERED", "DORMANT", "ELIMINATED")."""
        buf = ctypes.create_string_buffer(STATUS_LENGTH_MAX)
        self._call("tqgsp", ctypes.byref(_size_t(indexp)), buf, _size_t(STATUS_LENGTH_MAX))
        return decode_text(buf.raw)

    def tqnopc(self, indexp: int) -> int:
        """Number of constituents of phase `indexp`."""
        n = _size_t(0)
        self._call("tqnopc", ctypes.byref(_size_t(indexp)), ctypes.byref(n))
        return n.value

    def tqgnpc(self, indexp: int, indexc: int) -> str:
        """Name of constituent `indexc` of phase `indexp`."""
        buf = ctypes.create_string_buffer(NAME_LENGTH_MAX)
        self._call(
            "tqgnpc",
            ctypes.byref(_size_t(indexp)), ctypes.byref(_size_t(indexc)),
            buf, _size_t(NAME_LENGTH_MAX),
        )
        return decode_name(buf.raw)

    # =========================================================================
    # Conditions and calculation
    # =========================================================================

    def tqsetc(self, option: str, indexp: int, indexc: int, value: float) -> int:
        """Set an equilibrium condition; returns its condition number."""
        opt, length = self._text(option)
        numcon = _int(0)
        self._call(
            "tqsetc", opt, length,
            ctypes.byref(_size_t(indexp)), ctypes.byref(_size_t(indexc)),
            ctypes.byref(_double(value)), ctypes.byref(numcon),
        )
        return numcon.value

    def tqremc(self, numcon: int) -> None:
        """Remove condition `numcon` (-2 removes all)."""
        self._call("tqremc", ctypes.byref(_int(numcon)))

    def tqclim(self, option: str, value: float) -> None:
        """Change a limit of the target variable ("TLOW"/"THIGH")."""
        opt, length = self._text(option)
        self._call("tqclim", opt, length, ctypes.byref(_double(value)))

    def tqce(self, option: str, indexp: int, indexc: int, vals: tuple[float, float]) -> None:
        """Calculate the equilibrium; `vals` is the (low, high) bracket."""
        opt, length = self._text(option)
        bracket = (_double * 2)(float(vals[0]), float(vals[1]))
        self._call(
            "tqce", opt, length,
            ctypes.byref(_size_t(indexp)), ctypes.byref(_size_t(indexc)), bracket,
        )

    def tqgetr(self, option: str, indexp: int, indexc: int) -> float:
        """Read a calculated result."""
        opt, length = self._text(option)
        value = _double(0.0)
        self._call(
            "tqgetr", opt, length,
            ctypes.byref(_size_t(indexp)), ctypes.byref(_size_t(indexc)),
            ctypes.byref(value),
        )
        return value.value

    def __repr__(self) -> str:
        state = "open" if self.is_open else "released"
        return f"Engine({self.library_name!r}, {state})"
