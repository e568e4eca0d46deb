"""
Fixed values of the solver calling convention.

The numbers here are dictated by the native solver library: unit numbers,
name buffer sizes, condition sentinels and the default search bracket used
for plain isothermal calculations.
"""

from typing import Final

# Solver library loaded when the settings name no other
DEFAULT_LIBRARY_NAME: Final[str] = "ca_vc_e_local.dll"

# Fortran unit used to open/read/close datafiles
# Permitted values are <= 10 or >= 20 (solver error 105 otherwise)
DATAFILE_UNIT: Final[int] = 10

# Name buffers returned by the solver are at most 24 characters + padding
NAME_LENGTH_MAX: Final[int] = 25

# Status strings are returned in 24-character buffers as well
STATUS_LENGTH_MAX: Final[int] = 25

# Passed to the remove-condition routine to clear every condition at once
REMOVE_ALL_CONDITIONS: Final[int] = -2

# Temperature bracket (K) handed to the solver for non-target calculations
ISOTHERMAL_INTERVAL: Final[tuple[float, float]] = (10.0, 6000.0)

# A phase whose activity exceeds this value belongs to the stable assemblage
STABILITY_THRESHOLD: Final[float] = 0.9999

# Bisection budget for the composition boundary search
BOUNDARY_SEARCH_MAX_ITER: Final[int] = 10

# Phase status prefixes (first four characters of TQGSP output)
STATUS_ENTERED: Final[str] = "ENTE"
STATUS_DORMANT: Final[str] = "DORM"
STATUS_ELIMINATED: Final[str] = "ELIM"

# Model name prefix of stoichiometric single-species phases
MODEL_PURE: Final[str] = "PURE"

# Native codes a target calculation reports when no bracketed solution exists
TARGET_FAILURE_CODES: Final[frozenset[int]] = frozenset({707, 711, 712, 713})

# Datafile extension -> loader kind
DATAFILE_KINDS: Final[dict[str, str]] = {
    "dat": "ascii",
    "cst": "transparent",
    "bin": "binary",
}
