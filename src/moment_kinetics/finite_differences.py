"""
Finite-difference derivatives on an equally spaced grid.

The finite-difference discretization shares the element bookkeeping of the
spectral-element one: the derivative is evaluated on the full grid and then
laid out as [ngrid, nelement] so that the same boundary reconciliation in
calculus.py applies to both. Since both copies of a shared point hold the same
value, the reconciliation leaves them unchanged.

Schemes (fd_option):
- "second_order_centered": (f[i+1] - f[i-1]) / 2h
- "first_order_upwind":    one-sided difference taken on the upwind side
- "second_order_upwind":   (3f[i] - 4f[i-1] + f[i-2]) / 2h on the upwind side

The upwind side is chosen from the sign of the advection factor at each point:
adv_fac < 0 (positive speed) uses points at smaller coordinate, adv_fac > 0
uses points at larger coordinate, adv_fac == 0 falls back to the centered stencil.
Periodic coordinates wrap around; otherwise stencils that would leave the grid
are replaced by the one-sided stencil of the same order pointing inwards.
"""

from functools import partial
from typing import TYPE_CHECKING, Optional

import jax
import jax.numpy as jnp
from jax import Array
from pydantic import BaseModel, ConfigDict

from moment_kinetics.config import FiniteDifferenceOption
from moment_kinetics.errors import ConfigurationError

if TYPE_CHECKING:
    from moment_kinetics.coordinates import Coordinate


class FiniteDifferenceInfo(BaseModel):
    """Finite-difference scheme for one coordinate."""

    model_config = ConfigDict(frozen=True)

    fd_option: FiniteDifferenceOption = "second_order_centered"

    @property
    def upwind(self) -> bool:
        return self.fd_option != "second_order_centered"


def setup_finite_differences(coord: "Coordinate") -> FiniteDifferenceInfo:
    if coord.n < 3:
        raise ConfigurationError(
            f"finite_difference on coordinate '{coord.name}' needs at least 3 points, got {coord.n}"
        )
    return FiniteDifferenceInfo(fd_option=coord.fd_option)


def composite_simpson_weights(grid: Array) -> Array:
    """
    Integration weights for an equally spaced grid.

    Composite Simpson's rule for an odd number of points; with an even number
    of points Simpson's 3/8 rule closes the last three intervals. Two points
    fall back to the trapezoidal rule.
    """
    n = grid.shape[0]
    if n == 1:
        return jnp.ones(1)
    h = grid[1] - grid[0]
    if n == 2:
        return jnp.full(2, 0.5 * h)
    nsimpson = n if n % 2 == 1 else n - 3
    wgts = jnp.zeros(n)
    if nsimpson >= 3:
        simpson = jnp.where(jnp.arange(nsimpson) % 2 == 1, 4.0, 2.0)
        simpson = simpson.at[0].set(1.0).at[-1].set(1.0)
        wgts = wgts.at[:nsimpson].add(simpson * h / 3.0)
    if n % 2 == 0:
        wgts = wgts.at[n - 4 :].add(jnp.array([1.0, 3.0, 3.0, 1.0]) * 3.0 * h / 8.0)
    return wgts


def _shifted(f: Array, shift: int, periodic: bool) -> Array:
    """
    f[i + shift] for every i, wrapping over the n-1 distinct points of a
    periodic grid and clamping at the ends otherwise.
    """
    n = f.shape[0]
    i = jnp.arange(n)
    if periodic:
        index = (i % (n - 1) + shift) % (n - 1)
    else:
        index = jnp.clip(i + shift, 0, n - 1)
    return f[index]


def _column(mask: Array, ndim: int) -> Array:
    return mask.reshape((-1,) + (1,) * (ndim - 1))


@partial(jax.jit, static_argnames=["order", "periodic"])
def _upwind_difference(f: Array, adv_fac: Array, h: float, order: int, periodic: bool) -> Array:
    n = f.shape[0]
    fm1, fp1 = _shifted(f, -1, periodic), _shifted(f, 1, periodic)
    if order == 1:
        backward = (f - fm1) / h
        forward = (fp1 - f) / h
        span = 1
    else:
        fm2, fp2 = _shifted(f, -2, periodic), _shifted(f, 2, periodic)
        backward = (3.0 * f - 4.0 * fm1 + fm2) / (2.0 * h)
        forward = (-3.0 * f + 4.0 * fp1 - fp2) / (2.0 * h)
        span = 2
    centered = _centered_difference(f, h, periodic)

    if not periodic:
        i = _column(jnp.arange(n), f.ndim)
        # swap to the inward-pointing stencil where the upwind one leaves the grid
        backward, forward = (
            jnp.where(i < span, forward, backward),
            jnp.where(i > n - 1 - span, backward, forward),
        )

    # adv_fac < 0 means positive speed: information arrives from smaller coordinate
    return jnp.where(adv_fac < 0.0, backward, jnp.where(adv_fac > 0.0, forward, centered))


@partial(jax.jit, static_argnames=["periodic"])
def _centered_difference(f: Array, h: float, periodic: bool) -> Array:
    n = f.shape[0]
    df = (_shifted(f, 1, periodic) - _shifted(f, -1, periodic)) / (2.0 * h)
    if not periodic:
        df = df.at[0].set((-3.0 * f[0] + 4.0 * f[1] - f[2]) / (2.0 * h))
        df = df.at[n - 1].set((3.0 * f[n - 1] - 4.0 * f[n - 2] + f[n - 3]) / (2.0 * h))
    return df


@partial(jax.jit, static_argnames=["periodic"])
def _second_difference(f: Array, h: float, periodic: bool) -> Array:
    n = f.shape[0]
    d2f = (_shifted(f, 1, periodic) - 2.0 * f + _shifted(f, -1, periodic)) / h**2
    if not periodic:
        # first-order one-sided closure at the domain ends
        d2f = d2f.at[0].set((f[0] - 2.0 * f[1] + f[2]) / h**2)
        d2f = d2f.at[n - 1].set((f[n - 1] - 2.0 * f[n - 2] + f[n - 3]) / h**2)
    return d2f


def finite_difference_derivative(
    f: Array,
    coord: "Coordinate",
    fd: FiniteDifferenceInfo,
    adv_fac: Optional[Array] = None,
    order: int = 1,
) -> Array:
    """
    Elementwise finite-difference derivative.

    Args:
        f: Field on the local grid, shape [n, ...]
        coord: Equally spaced coordinate along axis 0
        fd: Scheme selection
        adv_fac: Advection factor selecting the upwind side (upwind schemes
            only; without it the centered stencil is used)
        order: 1 for df/dx, 2 for d²f/dx² (always the centered 3-point stencil)

    Returns:
        Derivative laid out per element, shape [ngrid, nelement_local, ...]
    """
    h = coord.grid[1] - coord.grid[0]
    periodic = coord.periodic
    if order == 2:
        df = _second_difference(f, h, periodic)
    elif order == 1 and fd.upwind and adv_fac is not None:
        scheme_order = 1 if fd.fd_option == "first_order_upwind" else 2
        df = _upwind_difference(f, adv_fac, h, scheme_order, periodic)
    elif order == 1:
        df = _centered_difference(f, h, periodic)
    else:
        raise ValueError(f"Derivative order must be 1 or 2, got {order}")
    return df[coord.element_indices]
