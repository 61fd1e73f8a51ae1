"""
Derivatives and integrals on element-decomposed grids.

A derivative computed element by element is two-valued at every point shared
by neighbouring elements. `derivative` evaluates the elementwise derivative
with whichever discretization the coordinate uses and then maps it onto the
full grid, resolving the shared points with one of two policies:

- upwind (an advection factor is supplied): take the value from the element
  the flow comes from. adv_fac > 0 (negative speed) selects the element at
  larger coordinate, adv_fac < 0 the element at smaller coordinate, and
  adv_fac == 0 averages the two.
- centered (no advection factor): average the two values.

On a periodic coordinate the two ends of the grid are the same point and the
"neighbouring element" wraps to the other end of the domain. Otherwise the
ends take the value of the single element they belong to.

The set of discretizations is closed: `Discretization` is either a
ChebyshevInfo or a FiniteDifferenceInfo, chosen once by `setup_discretization`.
"""

from functools import partial
from typing import TYPE_CHECKING, Optional, Union

import jax
import jax.numpy as jnp
from jax import Array

from moment_kinetics.chebyshev import (
    ChebyshevInfo,
    chebyshev_derivative,
    setup_chebyshev_pseudospectral,
)
from moment_kinetics.errors import ConfigurationError, check_bounds, check_extent
from moment_kinetics.finite_differences import (
    FiniteDifferenceInfo,
    finite_difference_derivative,
    setup_finite_differences,
)

if TYPE_CHECKING:
    from moment_kinetics.coordinates import Coordinate


Discretization = Union[ChebyshevInfo, FiniteDifferenceInfo]


def setup_discretization(coord: "Coordinate") -> Discretization:
    """
    Build the discretization state for a coordinate.

    Raises:
        ConfigurationError: For an unknown discretization, or a resolution
            the discretization cannot work with
    """
    if coord.discretization == "chebyshev_pseudospectral":
        if coord.ngrid < 2:
            raise ConfigurationError(
                f"chebyshev_pseudospectral on coordinate '{coord.name}' needs ngrid >= 2"
            )
        return setup_chebyshev_pseudospectral(coord)
    elif coord.discretization == "finite_difference":
        return setup_finite_differences(coord)
    raise ConfigurationError(f"discretization option '{coord.discretization}' unrecognized")


def elementwise_derivative(
    f: Array,
    coord: "Coordinate",
    spectral: Discretization,
    adv_fac: Optional[Array] = None,
    order: int = 1,
) -> Array:
    """
    Derivative of f on each element separately.

    Returns:
        Array of shape [ngrid, nelement_local, ...]
    """
    if isinstance(spectral, ChebyshevInfo):
        if order != 1:
            raise ValueError("Chebyshev elementwise derivative is first order only")
        return chebyshev_derivative(f, spectral, coord)
    elif isinstance(spectral, FiniteDifferenceInfo):
        return finite_difference_derivative(f, coord, spectral, adv_fac, order)
    raise ConfigurationError(f"Unsupported discretization {type(spectral).__name__}")


def derivative(
    f: Array,
    coord: "Coordinate",
    spectral: Discretization,
    adv_fac: Optional[Array] = None,
    order: int = 1,
) -> Array:
    """
    Derivative of f along axis 0 on the full local grid.

    Args:
        f: Field, shape [n, ...]
        coord: Coordinate along axis 0
        spectral: Discretization state from setup_discretization
        adv_fac: Advection factor, same shape as f. If given, shared element
            boundaries use the upwind element; otherwise they are averaged.
        order: 1 or 2

    Returns:
        df/dcoord (or d²f/dcoord²), same shape as f

    Raises:
        BoundsError: If f or adv_fac do not match coord.n

    Note:
        A second derivative is never the elementwise first derivative applied
        twice: that would keep the jump at element boundaries and misjudge
        e.g. a maximum sitting on a boundary. Finite differences use a
        dedicated stencil; the spectral-element method applies the full
        centered first derivative twice, so the intermediate result is made
        single-valued before it is differentiated again.
    """
    check_extent("f", f, coord.n)
    if adv_fac is not None:
        check_bounds(
            adv_fac.shape == f.shape,
            f"adv_fac shape {tuple(adv_fac.shape)} does not match f shape {tuple(f.shape)}",
        )

    if order == 2:
        if isinstance(spectral, FiniteDifferenceInfo):
            df2d = elementwise_derivative(f, coord, spectral, order=2)
            return derivative_elements_to_full_grid(df2d, coord)
        df = derivative(f, coord, spectral)
        return derivative(df, coord, spectral)
    elif order != 1:
        raise ValueError(f"Derivative order must be 1 or 2, got {order}")

    df2d = elementwise_derivative(f, coord, spectral, adv_fac)
    return derivative_elements_to_full_grid(df2d, coord, adv_fac)


def second_derivative(f: Array, coord: "Coordinate", spectral: Discretization) -> Array:
    return derivative(f, coord, spectral, order=2)


# =============================================================================
# Element → full-grid mapping (JIT-compiled)
# =============================================================================


def derivative_elements_to_full_grid(
    df2d: Array, coord: "Coordinate", adv_fac: Optional[Array] = None
) -> Array:
    """
    Map an elementwise derivative onto the full grid.

    Args:
        df2d: Elementwise derivative, shape [ngrid, nelement_local, ...]
        coord: Coordinate the derivative was taken along
        adv_fac: If given, resolve shared points by upwinding, else by averaging

    Returns:
        Single-valued derivative, shape [n, ...]
    """
    check_extent("df2d", df2d, coord.ngrid)
    check_extent("df2d", df2d, coord.nelement_local, axis=1)
    if adv_fac is None:
        return _elements_to_full_grid_centered(df2d, coord.element_indices, coord.periodic)
    check_extent("adv_fac", adv_fac, coord.n)
    return _elements_to_full_grid_upwind(df2d, adv_fac, coord.element_indices, coord.periodic)


def elements_to_full_grid_interior_pts(df2d: Array, element_indices: Array) -> Array:
    """
    Copy the points strictly inside each element onto the full grid.

    Shared and domain-boundary points are left at zero for the
    reconcile step to fill.
    """
    ngrid, nelement = element_indices.shape
    n = (ngrid - 1) * nelement + 1
    df1d = jnp.zeros((n,) + df2d.shape[2:], dtype=df2d.dtype)
    return df1d.at[element_indices[1 : ngrid - 1]].set(df2d[1 : ngrid - 1])


def _upwind_choice(adv_fac: Array, from_larger: Array, from_smaller: Array) -> Array:
    # adv_fac > 0 is a negative speed: the upwind element is at larger coordinate
    return jnp.where(
        adv_fac > 0.0,
        from_larger,
        jnp.where(adv_fac < 0.0, from_smaller, 0.5 * (from_larger + from_smaller)),
    )


def reconcile_element_boundaries_upwind(
    df1d: Array, df2d: Array, adv_fac: Array, element_indices: Array, periodic: bool
) -> Array:
    """Fill shared and domain-boundary points with the upwind element's value."""
    ngrid, nelement = element_indices.shape
    n = df1d.shape[0]
    first = df2d[0, 0]
    last = df2d[ngrid - 1, nelement - 1]
    if periodic:
        df1d = df1d.at[0].set(_upwind_choice(adv_fac[0], first, last))
        df1d = df1d.at[n - 1].set(_upwind_choice(adv_fac[n - 1], first, last))
    else:
        df1d = df1d.at[0].set(first).at[n - 1].set(last)
    if nelement > 1:
        shared = element_indices[ngrid - 1, : nelement - 1]
        df1d = df1d.at[shared].set(
            _upwind_choice(adv_fac[shared], df2d[0, 1:], df2d[ngrid - 1, : nelement - 1])
        )
    return df1d


def reconcile_element_boundaries_centered(
    df1d: Array, df2d: Array, element_indices: Array, periodic: bool
) -> Array:
    """Fill shared and domain-boundary points with the average of both elements."""
    ngrid, nelement = element_indices.shape
    n = df1d.shape[0]
    first = df2d[0, 0]
    last = df2d[ngrid - 1, nelement - 1]
    if periodic:
        average = 0.5 * (first + last)
        df1d = df1d.at[0].set(average).at[n - 1].set(average)
    else:
        df1d = df1d.at[0].set(first).at[n - 1].set(last)
    if nelement > 1:
        shared = element_indices[ngrid - 1, : nelement - 1]
        df1d = df1d.at[shared].set(
            0.5 * (df2d[0, 1:] + df2d[ngrid - 1, : nelement - 1])
        )
    return df1d


@partial(jax.jit, static_argnames=["periodic"])
def _elements_to_full_grid_upwind(
    df2d: Array, adv_fac: Array, element_indices: Array, periodic: bool
) -> Array:
    df1d = elements_to_full_grid_interior_pts(df2d, element_indices)
    return reconcile_element_boundaries_upwind(df1d, df2d, adv_fac, element_indices, periodic)


@partial(jax.jit, static_argnames=["periodic"])
def _elements_to_full_grid_centered(
    df2d: Array, element_indices: Array, periodic: bool
) -> Array:
    df1d = elements_to_full_grid_interior_pts(df2d, element_indices)
    return reconcile_element_boundaries_centered(df1d, df2d, element_indices, periodic)


# =============================================================================
# Quadrature
# =============================================================================


def integral(
    integrand: Array,
    wgts: Array,
    v: Optional[Array] = None,
    power: int = 1,
) -> Array:
    """
    Σ_i integrand[i]·wgts[i], optionally weighted by v[i]**power.

    Args:
        integrand: Values on the grid, shape [n]
        wgts: Quadrature weights of the coordinate, shape [n]
        v: Optional extra factor (e.g. the velocity grid), shape [n]
        power: Exponent applied to v

    Example:
        >>> density = integral(f, vpa.wgts)
        >>> flow = integral(f, vpa.wgts, v=vpa.grid)
        >>> pressure = integral(f, vpa.wgts, v=vpa.grid, power=2)
    """
    n = wgts.shape[0]
    check_extent("integrand", integrand, n)
    if v is None:
        return jnp.sum(integrand * wgts)
    check_extent("v", v, n)
    return jnp.sum(integrand * v**power * wgts)
