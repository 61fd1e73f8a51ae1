"""
Error types and optional bounds checking.

Two classes of failure are distinguished:
- BoundsError: an array handed to a kernel disagrees with the sizes declared by
  its Coordinate. This is a programming error upstream and is never recovered.
- ConfigurationError: an unknown discretization, finite-difference scheme or
  advection option. Raised at setup, before any time stepping starts.

Bounds checks are advisory. They are on by default and can be elided by setting
the environment variable MOMENT_KINETICS_BOUNDSCHECK=0 for production runs.
"""

import os


BOUNDSCHECK_ENV_VAR = "MOMENT_KINETICS_BOUNDSCHECK"


class BoundsError(IndexError):
    """Array size disagrees with the coordinate it is used with."""


class ConfigurationError(ValueError):
    """Unrecognised setup option."""


def boundscheck_enabled() -> bool:
    """Return True unless bounds checking has been switched off via the environment."""
    return os.environ.get(BOUNDSCHECK_ENV_VAR, "1").lower() not in ("0", "false", "no", "off")


def check_bounds(condition: bool, message: str) -> None:
    """Raise BoundsError with `message` if checking is enabled and `condition` is False."""
    if boundscheck_enabled() and not condition:
        raise BoundsError(message)


def check_extent(name: str, array, expected: int, axis: int = 0) -> None:
    """Check that `array` has `expected` entries along `axis`."""
    if not boundscheck_enabled():
        return
    if array.ndim <= axis or array.shape[axis] != expected:
        raise BoundsError(
            f"{name} has shape {tuple(array.shape)}, expected {expected} entries along axis {axis}"
        )
