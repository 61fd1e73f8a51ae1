"""
Generic explicit advection along one coordinate.

Every physical advection term (z, r, vpa, vperp, neutral velocities) is built
from the same recipe applied to one grid line at a time, i.e. at fixed values
of the orthogonal ("other") indices:

1. adv_fac = -dt·speed
2. df = upwind derivative of f, shared element boundaries resolved with adv_fac
3. rhs = adv_fac·df
4. f_new = f_new + rhs

so that a positive speed moves features towards larger coordinate. The caller
seeds f_new with the pre-advection value (typically the previous Runge-Kutta
stage) and is responsible for calling update_speed before the recipe.

Arrays are immutable JAX arrays: every operation returns the updated
AdvectionInfo (and distribution function) rather than writing in place. Lines
are addressed by a tuple of orthogonal indices of any length, so the same
functions serve 1D, 2D, ... problems.
"""

import warnings
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from moment_kinetics.calculus import (
    Discretization,
    derivative_elements_to_full_grid,
    elementwise_derivative,
)
from moment_kinetics.coordinates import Coordinate
from moment_kinetics.errors import check_bounds, check_extent


class AdvectionInfo(NamedTuple):
    """
    Arrays for advection along one coordinate for one species.

    A pytree, so it can be passed straight through jax.jit.

    Attributes:
        rhs: Explicit advection term adv_fac·df, shape [n, *orthogonal]
        df: Elementwise (two-valued) derivative of the last advected line(s),
            shape [ngrid, nelement_local, *orthogonal]
        speed: Advection speed along the coordinate, shape [n, *orthogonal]
        modified_speed: Speed along an approximate characteristic for a
            semi-Lagrange scheme; equal to speed for the Eulerian scheme
        adv_fac: Factor multiplying df in the advection term, -dt·speed
        upwind_idx: Grid index of the upwind boundary, shape [*orthogonal]
        downwind_idx: Grid index of the downwind boundary, shape [*orthogonal]
        upwind_increment: Index step pointing towards the upwind boundary,
            shape [*orthogonal]
    """

    rhs: Array
    df: Array
    speed: Array
    modified_speed: Array
    adv_fac: Array
    upwind_idx: Array
    downwind_idx: Array
    upwind_increment: Array


OrthogonalDim = Union[Coordinate, int]


def _extent(dim: OrthogonalDim) -> int:
    return dim.n if isinstance(dim, Coordinate) else int(dim)


def setup_advection_per_species(
    coord: Coordinate, *orthogonal: OrthogonalDim
) -> AdvectionInfo:
    """
    Allocate the advection arrays for one species.

    Args:
        coord: The advected coordinate
        *orthogonal: The other dimensions, as Coordinates or plain extents

    Returns:
        Zero-initialised AdvectionInfo
    """
    orthogonal_shape = tuple(_extent(d) for d in orthogonal)
    shape = (coord.n,) + orthogonal_shape
    # df keeps the two values at element boundaries, hence [ngrid, nelement]
    df_shape = (coord.ngrid, coord.nelement_local) + orthogonal_shape
    return AdvectionInfo(
        rhs=jnp.zeros(shape),
        df=jnp.zeros(df_shape),
        speed=jnp.zeros(shape),
        modified_speed=jnp.zeros(shape),
        adv_fac=jnp.zeros(shape),
        upwind_idx=jnp.zeros(orthogonal_shape, dtype=jnp.int32),
        downwind_idx=jnp.zeros(orthogonal_shape, dtype=jnp.int32),
        upwind_increment=jnp.zeros(orthogonal_shape, dtype=jnp.int32),
    )


def setup_advection(
    nspec: int, coord: Coordinate, *orthogonal: OrthogonalDim
) -> List[AdvectionInfo]:
    """One AdvectionInfo per species."""
    return [setup_advection_per_species(coord, *orthogonal) for _ in range(nspec)]


# =============================================================================
# Upwind / downwind boundaries
# =============================================================================


def update_boundary_indices(
    advection: AdvectionInfo, *orthogonal_ranges: Sequence[int]
) -> AdvectionInfo:
    """
    Find the upwind and downwind ends of every selected grid line.

    The sign of the speed at the first grid point decides: speed > 0 makes
    index 0 the upwind boundary (increment -1, downwind n-1); otherwise the
    upwind boundary is n-1 (increment +1, downwind 0). The speed is assumed to
    keep one sign along each line; a warning is issued when it does not.

    Args:
        advection: State with an up-to-date speed
        *orthogonal_ranges: Index range for each orthogonal dimension (e.g.
            the ranges assigned to this worker by looping.get_loop_ranges);
            omitted trailing dimensions are taken in full

    Returns:
        AdvectionInfo with upwind_idx, downwind_idx and upwind_increment updated
        on the selected lines
    """
    speed = advection.speed
    n = speed.shape[0]
    orthogonal_shape = speed.shape[1:]
    check_bounds(
        len(orthogonal_ranges) <= len(orthogonal_shape),
        f"Got {len(orthogonal_ranges)} orthogonal ranges for "
        f"{len(orthogonal_shape)} orthogonal dimensions",
    )
    ranges = [np.asarray(list(r), dtype=int) for r in orthogonal_ranges]
    ranges += [np.arange(m) for m in orthogonal_shape[len(ranges) :]]
    selection = np.ix_(*ranges) if ranges else ()

    line_speed = speed[(slice(None),) + tuple(selection)]
    if bool(jnp.any(jnp.any(line_speed > 0.0, axis=0) & jnp.any(line_speed < 0.0, axis=0))):
        warnings.warn(
            "Advection speed changes sign along a grid line; upwind boundary "
            "indices assume a single sign and use the speed at the first point",
            RuntimeWarning,
            stacklevel=2,
        )

    positive = line_speed[0] > 0.0
    upwind_idx = jnp.where(positive, 0, n - 1).astype(advection.upwind_idx.dtype)
    upwind_increment = jnp.where(positive, -1, 1).astype(advection.upwind_increment.dtype)
    downwind_idx = jnp.where(positive, n - 1, 0).astype(advection.downwind_idx.dtype)
    return advection._replace(
        upwind_idx=advection.upwind_idx.at[selection].set(upwind_idx),
        upwind_increment=advection.upwind_increment.at[selection].set(upwind_increment),
        downwind_idx=advection.downwind_idx.at[selection].set(downwind_idx),
    )


# =============================================================================
# The advection recipe
# =============================================================================


@jax.jit
def _advection_factor(speed: Array, dt: float) -> Array:
    return -dt * speed


@jax.jit
def _explicit_advection(df: Array, adv_fac: Array) -> Array:
    return adv_fac * df


@jax.jit
def _add(f_new: Array, rhs: Array) -> Array:
    return f_new + rhs


def update_advection_factor(speed: Array, n: int, dt: float) -> Array:
    """adv_fac = -dt·speed, the coefficient of df in the explicit update."""
    check_extent("speed", speed, n)
    return _advection_factor(speed, dt)


def calculate_explicit_advection(df: Array, adv_fac: Array, n: int) -> Array:
    """rhs = adv_fac·df, i.e. -Δt·v·∂f/∂x."""
    check_extent("df", df, n)
    check_extent("adv_fac", adv_fac, n)
    check_bounds(df.shape == adv_fac.shape, f"df {df.shape} and adv_fac {adv_fac.shape} differ")
    return _explicit_advection(df, adv_fac)


def update_f(f_new: Array, rhs: Array, n: int) -> Array:
    """f_new + rhs."""
    check_extent("f_new", f_new, n)
    check_extent("rhs", rhs, n)
    return _add(f_new, rhs)


def _line(orthogonal_indices: Tuple[int, ...]) -> Tuple:
    return (slice(None),) + tuple(orthogonal_indices)


def _element_line(orthogonal_indices: Tuple[int, ...]) -> Tuple:
    return (slice(None), slice(None)) + tuple(orthogonal_indices)


def _check_line(advection: AdvectionInfo, orthogonal_indices: Tuple[int, ...]) -> None:
    check_bounds(
        len(orthogonal_indices) == advection.speed.ndim - 1,
        f"Got {len(orthogonal_indices)} orthogonal indices for "
        f"{advection.speed.ndim - 1} orthogonal dimensions",
    )


def update_rhs(
    advection: AdvectionInfo,
    orthogonal_indices: Tuple[int, ...],
    f_current: Array,
    coord: Coordinate,
    dt: float,
    spectral: Discretization,
) -> AdvectionInfo:
    """
    Steps 1-3 of the recipe on one grid line.

    Args:
        advection: State with speed already set
        orthogonal_indices: Indices of the line in the orthogonal dimensions
        f_current: Advected quantity on the line, shape [n]
        coord: Advected coordinate
        dt: Timestep
        spectral: Discretization of coord

    Returns:
        AdvectionInfo with adv_fac, df and rhs updated on the line
    """
    _check_line(advection, orthogonal_indices)
    line = _line(orthogonal_indices)
    adv_fac = update_advection_factor(advection.speed[line], coord.n, dt)
    df2d = elementwise_derivative(f_current, coord, spectral, adv_fac)
    df = derivative_elements_to_full_grid(df2d, coord, adv_fac)
    rhs = calculate_explicit_advection(df, adv_fac, coord.n)
    return advection._replace(
        adv_fac=advection.adv_fac.at[line].set(adv_fac),
        df=advection.df.at[_element_line(orthogonal_indices)].set(df2d),
        rhs=advection.rhs.at[line].set(rhs),
    )


def advance_f_local(
    f_new: Array,
    f_current: Array,
    advection: AdvectionInfo,
    orthogonal_indices: Tuple[int, ...],
    coord: Coordinate,
    dt: float,
    spectral: Discretization,
) -> Tuple[Array, AdvectionInfo]:
    """
    Full explicit advection update of one grid line.

    Args:
        f_new: Line seeded with the pre-advection value, shape [n]
        f_current: Line the derivative is taken of, shape [n]
        advection: State with speed already set
        orthogonal_indices: Indices of the line in the orthogonal dimensions
        coord: Advected coordinate
        dt: Timestep
        spectral: Discretization of coord

    Returns:
        (f_new + rhs, updated AdvectionInfo)

    Example:
        >>> advect = update_speed(advect, z, default_speed=parallel_streaming_speed(vpa, 2))
        >>> for ivpa in range(vpa.n):
        ...     line, advect = advance_f_local(f[:, ivpa], f[:, ivpa], advect, (ivpa,), z, dt, spectral)
        ...     f_out = f_out.at[:, ivpa].set(line)
    """
    advection = update_rhs(advection, orthogonal_indices, f_current, coord, dt, spectral)
    return update_f(f_new, advection.rhs[_line(orthogonal_indices)], coord.n), advection


def advance_f_df_precomputed(
    f_new: Array,
    df_current: Array,
    advection: AdvectionInfo,
    orthogonal_indices: Tuple[int, ...],
    coord: Coordinate,
) -> Tuple[Array, AdvectionInfo]:
    """
    Steps 3-4 of the recipe with df already known.

    Uses the adv_fac stored on the line, so update_rhs or advance_f_local (or
    an explicit update_advection_factor) must have run for the current timestep.
    """
    _check_line(advection, orthogonal_indices)
    line = _line(orthogonal_indices)
    rhs = calculate_explicit_advection(df_current, advection.adv_fac[line], coord.n)
    advection = advection._replace(rhs=advection.rhs.at[line].set(rhs))
    return update_f(f_new, rhs, coord.n), advection


def advance_f(
    f_new: Array,
    f_current: Array,
    advection: AdvectionInfo,
    coord: Coordinate,
    dt: float,
    spectral: Discretization,
) -> Tuple[Array, AdvectionInfo]:
    """
    The advection recipe on every grid line at once.

    Lines are independent, so the elementwise derivative and the boundary
    reconciliation simply broadcast over the orthogonal axes.

    Args:
        f_new: Seeded field, shape [n, *orthogonal]
        f_current: Field the derivative is taken of, shape [n, *orthogonal]
        advection: State with speed already set
        coord: Advected coordinate (axis 0)
        dt: Timestep
        spectral: Discretization of coord

    Returns:
        (f_new + rhs, updated AdvectionInfo)
    """
    check_bounds(
        f_current.shape == advection.speed.shape,
        f"f_current shape {tuple(f_current.shape)} does not match speed "
        f"shape {tuple(advection.speed.shape)}",
    )
    adv_fac = update_advection_factor(advection.speed, coord.n, dt)
    df2d = elementwise_derivative(f_current, coord, spectral, adv_fac)
    df = derivative_elements_to_full_grid(df2d, coord, adv_fac)
    rhs = calculate_explicit_advection(df, adv_fac, coord.n)
    advection = advection._replace(adv_fac=adv_fac, df=df2d, rhs=rhs)
    return update_f(f_new, rhs, coord.n), advection


def enforce_boundary_condition(
    f: Array,
    advection: AdvectionInfo,
    coord: Coordinate,
    inflow_value: Optional[Union[float, Array]] = None,
) -> Array:
    """
    Impose the inflow value at the upwind boundary of every line.

    Periodic coordinates are returned unchanged apart from making the two
    copies of the periodic point equal. Non-periodic coordinates take
    `inflow_value` (0 by default, or one value per line with shape
    [*orthogonal]) at upwind_idx.
    """
    check_extent("f", f, coord.n)
    if coord.periodic:
        return f.at[-1].set(f[0])
    value = jnp.asarray(0.0 if inflow_value is None else inflow_value)[jnp.newaxis]
    index = jnp.arange(coord.n).reshape((-1,) + (1,) * advection.upwind_idx.ndim)
    return jnp.where(index == advection.upwind_idx[jnp.newaxis], value, f)
