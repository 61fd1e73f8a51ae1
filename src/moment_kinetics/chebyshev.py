"""
Chebyshev pseudospectral transforms on multi-element Chebyshev-Gauss-Lobatto grids.

Each element carries ngrid points z_j = cos(π·j/(ngrid-1)) mapped onto its
physical sub-interval. On one element a function is expanded as

    f(z) = Σ_k c_k T_k(z),   T_k(cos θ) = cos(kθ)

so the Chebyshev transform is a discrete cosine transform in θ = arccos(z).
Rather than calling a DCT, f(θ) is extended evenly about θ = π onto [0, 2π)
and a standard complex FFT of length 2·(ngrid-1) is applied. The same trick
run backwards recovers grid values from coefficients.

This module provides:
- ChebyshevInfo: the immutable transform plan for one coordinate
- chebyshev_points / scaled_chebyshev_grid / clenshaw_curtis_weights: grid setup
- chebyshev_forward_transform / chebyshev_backward_transform: per-element transforms
- chebyshev_spectral_derivative: derivative in coefficient space
- chebyshev_derivative: elementwise derivative on the whole local grid
- update_fcheby / update_df_chebyshev: coefficients of every element, and the
  derivative recovered from them
- interpolate_to_grid_1d: evaluation of the spectral representation at arbitrary points

All transforms act along axis 0 and broadcast over any trailing axes, so a
whole (n, *orthogonal) field is differentiated in one call. Every kernel is a
pure function: no scratch buffer is shared between calls, so one ChebyshevInfo
can be used concurrently by any number of workers.
"""

from typing import TYPE_CHECKING, Tuple

import jax
import jax.numpy as jnp
from jax import Array
from pydantic import BaseModel, ConfigDict, Field

from moment_kinetics.errors import check_bounds, check_extent

if TYPE_CHECKING:
    from moment_kinetics.coordinates import Coordinate


class ChebyshevInfo(BaseModel):
    """
    Transform plan for the Chebyshev discretization of one coordinate.

    Attributes:
        ngrid: Points per element
        nelement: Number of (process-local) elements
        extension_index: Gather map of length 2·(ngrid-1) building the evenly
            extended samples f(θ), θ ∈ [0, 2π), from the ngrid element values
        extraction_index: Gather map of length ngrid picking the element values
            (ascending coordinate) out of the backward FFT of the extended spectrum
        normalisation: Scale applied to the real part of the forward FFT,
            1/(ngrid-1) for interior modes and 1/(2·(ngrid-1)) for the endpoints

    Example:
        >>> coord = Coordinate.create(name="z", ngrid=9, nelement=4, L=1.0)
        >>> chebyshev = setup_chebyshev_pseudospectral(coord)
        >>> dfdz = derivative(f, coord, chebyshev)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ngrid: int = Field(ge=2)
    nelement: int = Field(ge=1)
    extension_index: Array
    extraction_index: Array
    normalisation: Array

    @classmethod
    def create(cls, ngrid: int, nelement: int) -> "ChebyshevInfo":
        if ngrid < 2:
            raise ValueError(f"Chebyshev transform needs ngrid >= 2, got {ngrid}")
        nm = ngrid - 1
        # f on θ ∈ [0, π] is the element data in reverse order; θ ∈ (π, 2π)
        # repeats the interior points by evenness about θ = π
        extension_index = jnp.concatenate(
            [jnp.arange(ngrid)[::-1], jnp.arange(1, nm)]
        )
        # θ ∈ [π, 2π) holds z ∈ [-1, 1); θ = 2π ≡ 0 holds z = 1
        extraction_index = jnp.concatenate([jnp.arange(nm, 2 * nm), jnp.array([0])])
        normalisation = jnp.full(ngrid, 1.0 / nm).at[0].set(0.5 / nm).at[-1].set(0.5 / nm)
        return cls(
            ngrid=ngrid,
            nelement=nelement,
            extension_index=extension_index,
            extraction_index=extraction_index,
            normalisation=normalisation,
        )


def setup_chebyshev_pseudospectral(coord: "Coordinate") -> ChebyshevInfo:
    """Create the transform plan for a Chebyshev coordinate."""
    return ChebyshevInfo.create(coord.ngrid, coord.nelement_local)


# =============================================================================
# Grid and quadrature
# =============================================================================


def chebyshev_points(n: int) -> Array:
    """
    Chebyshev-Gauss-Lobatto points z_j = cos(π·j/(n-1)), j = 0..n-1, from +1 to -1.

    Evaluated as sin(π·(n-1-2j)/(2(n-1))) so that the grid is exactly
    antisymmetric and the midpoint of an odd grid is exactly zero.
    """
    if n == 1:
        return jnp.zeros(1)
    j = jnp.arange(n)
    return jnp.sin(jnp.pi * (n - 1 - 2 * j) / (2 * (n - 1)))


def chebyshev_moments(n: int) -> Array:
    """Integrals ∫ T_i(x) dx over [-1, 1] for i = 0..n-1 (zero for odd i)."""
    i = jnp.arange(n)
    return jnp.where(i % 2 == 0, 2.0 / (1.0 - i**2), 0.0)


def clenshaw_curtis_element_weights(ngrid: int) -> Array:
    """
    Clenshaw-Curtis weights for the ngrid Chebyshev-Gauss-Lobatto points on [-1, 1].

    w_k = (c_k/N)·[1 - Σ_{j=1}^{⌊N/2⌋} b_j/(4j²-1)·cos(2jθ_k)], θ_k = kπ/N,
    with N = ngrid-1, c_k = 1 at the endpoints and 2 otherwise, and b_j = 1 when
    j = N/2 and 2 otherwise. These integrate exactly every polynomial of degree ≤ N.
    """
    if ngrid == 1:
        return jnp.full(1, 2.0)
    N = ngrid - 1
    theta = jnp.pi * jnp.arange(ngrid) / N
    j = jnp.arange(1, N // 2 + 1)
    b = jnp.where(2 * j == N, 1.0, 2.0)
    series = jnp.sum(
        (b / (4.0 * j**2 - 1.0))[jnp.newaxis, :]
        * jnp.cos(2.0 * j[jnp.newaxis, :] * theta[:, jnp.newaxis]),
        axis=1,
    )
    c = jnp.full(ngrid, 2.0).at[0].set(1.0).at[-1].set(1.0)
    return c / N * (1.0 - series)


def clenshaw_curtis_weights(ngrid: int, nelement: int, scale_factor: float) -> Array:
    """
    Integration weights for every point of a multi-element Chebyshev grid.

    Points shared by two elements get the sum of the weights from both sides.

    Args:
        ngrid: Points per element
        nelement: Number of (process-local) elements
        scale_factor: Half-width of one element, 0.5·L/nelement_global

    Returns:
        Weights of shape [(ngrid-1)·nelement + 1]
    """
    element_weights = clenshaw_curtis_element_weights(ngrid) * scale_factor
    # the upper endpoint of an inner element also collects its neighbour's weight
    inner = element_weights.at[-1].multiply(2.0)
    wgts = jnp.concatenate([inner] + [inner[1:]] * (nelement - 1))
    # the outer boundary of the last element has no neighbour
    return wgts.at[-1].multiply(0.5)


def scaled_chebyshev_grid(
    ngrid: int,
    nelement_global: int,
    nelement_local: int,
    irank: int,
    L: float,
) -> Tuple[Array, Array]:
    """
    Multi-element Chebyshev grid on [-L/2, L/2] and its Clenshaw-Curtis weights.

    Each element is the CGL grid reversed (so that it increases), scaled by
    0.5·L/nelement_global and shifted to the element centre
    L·((j+0.5)/nelement_global - 0.5), where j is the global element index.
    The first element keeps both of its boundary points; every further element
    drops its lower boundary, which is the upper boundary of its neighbour.

    Args:
        ngrid: Points per element
        nelement_global: Elements over the whole domain
        nelement_local: Elements owned by this process
        irank: Rank of this process within the coordinate's decomposition
        L: Domain length

    Returns:
        (grid, wgts), each of shape [(ngrid-1)·nelement_local + 1]
    """
    reversed_grid = chebyshev_points(ngrid)[::-1]
    scale_factor = 0.5 * L / nelement_global
    pieces = []
    k = 0
    for j in range(nelement_local):
        jglobal = irank * nelement_local + j
        shift = L * ((jglobal + 0.5) / nelement_global - 0.5)
        pieces.append(reversed_grid[k:] * scale_factor + shift)
        # after the first element skip the shared boundary point
        k = 1
    grid = jnp.concatenate(pieces)
    wgts = clenshaw_curtis_weights(ngrid, nelement_local, scale_factor)
    return grid, wgts


# =============================================================================
# Transforms (JIT-compiled)
# =============================================================================


def _expand(weights: Array, ndim: int) -> Array:
    """Reshape a length-ngrid vector to broadcast against an array of `ndim` dims."""
    return weights.reshape((-1,) + (1,) * (ndim - 1))


@jax.jit
def _forward_transform(ff: Array, extension_index: Array, normalisation: Array) -> Array:
    ngrid = ff.shape[0]
    fext = ff[extension_index].astype(jnp.result_type(ff.dtype, jnp.complex64))
    fext = jnp.fft.fft(fext, axis=0)
    # f(θ) is real and even, so only the real part of the first ngrid modes matters
    return jnp.real(fext[:ngrid]) * _expand(normalisation, ff.ndim)


@jax.jit
def _backward_transform(chebyf: Array, extraction_index: Array) -> Array:
    ngrid = chebyf.shape[0]
    # interior modes are split evenly between +k and -k
    half = 0.5 * chebyf[1 : ngrid - 1]
    fext = jnp.concatenate(
        [chebyf[:1], half, chebyf[ngrid - 1 :], half[::-1]], axis=0
    ).astype(jnp.result_type(chebyf.dtype, jnp.complex64))
    fext = jnp.fft.ifft(fext, axis=0, norm="forward")
    return jnp.real(fext[extraction_index])


def chebyshev_forward_transform(ff: Array, chebyshev: ChebyshevInfo) -> Array:
    """
    Chebyshev coefficients of values sampled on one element.

    Args:
        ff: Values at the ngrid element points in increasing coordinate order
            (z from -1 to 1), shape [ngrid, ...]
        chebyshev: Transform plan

    Returns:
        Coefficients c_k, k = 0..ngrid-1, shape [ngrid, ...]

    Raises:
        BoundsError: If ff.shape[0] != chebyshev.ngrid
    """
    check_extent("ff", ff, chebyshev.ngrid)
    return _forward_transform(ff, chebyshev.extension_index, chebyshev.normalisation)


def chebyshev_backward_transform(chebyf: Array, chebyshev: ChebyshevInfo) -> Array:
    """
    Values on one element from its Chebyshev coefficients (exact inverse of
    chebyshev_forward_transform).

    Args:
        chebyf: Coefficients, shape [ngrid, ...]
        chebyshev: Transform plan

    Returns:
        Values at the element points in increasing coordinate order, shape [ngrid, ...]
    """
    check_extent("chebyf", chebyf, chebyshev.ngrid)
    return _backward_transform(chebyf, chebyshev.extraction_index)


@jax.jit
def chebyshev_spectral_derivative(f: Array) -> Array:
    """
    Coefficients of df/dz from the coefficients of f, along axis 0.

    Uses the backward recurrence
        d_{m-1} = 0
        d_{m-2} = 2(m-1)·f_{m-1}
        d_i     = 2(i+1)·f_{i+1} + d_{i+2}     for i = m-3 .. 1
        d_0     = f_1 + d_2/2
    which is exact for the truncated series and numerically stable.

    Args:
        f: Chebyshev coefficients, shape [m, ...] with m >= 2

    Returns:
        Derivative coefficients, shape [m, ...]
    """
    m = f.shape[0]
    df = jnp.zeros_like(f)
    if m == 2:
        return df.at[0].set(f[1])

    df = df.at[m - 2].set(2 * (m - 1) * f[m - 1])

    def recurrence_step(k, d):
        i = m - 3 - k
        return d.at[i].set(2 * (i + 1) * f[i + 1] + d[i + 2])

    df = jax.lax.fori_loop(0, m - 3, recurrence_step, df)
    return df.at[0].set(f[1] + 0.5 * df[2])


# =============================================================================
# Whole-grid operations
# =============================================================================


def _check_chebyshev_coordinate(chebyshev: ChebyshevInfo, coord: "Coordinate") -> None:
    check_bounds(
        chebyshev.ngrid == coord.ngrid and chebyshev.nelement == coord.nelement_local,
        f"ChebyshevInfo ({chebyshev.ngrid}, {chebyshev.nelement}) does not match "
        f"coordinate '{coord.name}' ({coord.ngrid}, {coord.nelement_local})",
    )


def update_fcheby(ff: Array, chebyshev: ChebyshevInfo, coord: "Coordinate") -> Array:
    """
    Chebyshev coefficients of every element of a field.

    Args:
        ff: Field on the local grid, shape [n, ...]
        chebyshev: Transform plan
        coord: Coordinate along axis 0

    Returns:
        Coefficients of shape [ngrid, nelement_local, ...]
    """
    _check_chebyshev_coordinate(chebyshev, coord)
    check_extent("ff", ff, coord.n)
    # gathering with element_indices re-reads the shared lower boundary of
    # every element after the first
    return chebyshev_forward_transform(ff[coord.element_indices], chebyshev)


def update_df_chebyshev(
    fcheby: Array, chebyshev: ChebyshevInfo, coord: "Coordinate"
) -> Array:
    """
    Elementwise derivative from precomputed coefficients.

    Args:
        fcheby: Coefficients from update_fcheby, shape [ngrid, nelement_local, ...]
        chebyshev: Transform plan
        coord: Coordinate the coefficients belong to

    Returns:
        d/dcoord on each element, shape [ngrid, nelement_local, ...]
    """
    _check_chebyshev_coordinate(chebyshev, coord)
    check_extent("fcheby", fcheby, coord.nelement_local, axis=1)
    dcheby = chebyshev_spectral_derivative(fcheby)
    return chebyshev_backward_transform(dcheby, chebyshev) * coord.element_scale_factor


def chebyshev_derivative(ff: Array, chebyshev: ChebyshevInfo, coord: "Coordinate") -> Array:
    """
    Derivative of ff computed independently on every element.

    forward transform → coefficient-space derivative → backward transform,
    then multiplication by 2·nelement_global/L to convert from the element
    coordinate z ∈ [-1, 1] to the physical coordinate.

    Args:
        ff: Field on the local grid, shape [n, ...]
        chebyshev: Transform plan
        coord: Coordinate along axis 0

    Returns:
        Two-valued derivative, shape [ngrid, nelement_local, ...]; the first
        and last rows of neighbouring elements refer to the same shared point
    """
    return update_df_chebyshev(update_fcheby(ff, chebyshev, coord), chebyshev, coord)


# =============================================================================
# Interpolation
# =============================================================================


@jax.jit
def _evaluate_chebyshev_series(coefs: Array, z: Array) -> Array:
    """Σ_k coefs[k]·T_k(z) for coefs of shape [ngrid, nz], z of shape [nz]."""
    ngrid = coefs.shape[0]
    result = coefs[0] * jnp.ones_like(z)
    if ngrid == 1:
        return result
    result = result + coefs[1] * z

    def recurrence_step(k, carry):
        t_prev, t_curr, acc = carry
        t_next = 2.0 * z * t_curr - t_prev
        return (t_curr, t_next, acc + coefs[k] * t_next)

    _, _, result = jax.lax.fori_loop(
        2, ngrid, recurrence_step, (jnp.ones_like(z), z, result)
    )
    return result


def interpolate_to_grid_1d(
    newgrid: Array, f: Array, coord: "Coordinate", chebyshev: ChebyshevInfo
) -> Array:
    """
    Interpolate f from the Chebyshev grid of `coord` to arbitrary points.

    Each query point is assigned to the element whose upper boundary is the
    first one not below it, mapped to z ∈ [-1, 1] with that element's
    endpoints, and the element's Chebyshev series is summed there.
    Points below grid[0] or above grid[-1] take the boundary value of f
    (constant extrapolation).

    Args:
        newgrid: Query points, shape [n_new]
        f: Field on the local grid, shape [n]
        coord: Coordinate of f
        chebyshev: Transform plan

    Returns:
        Interpolated values, shape [n_new]
    """
    check_extent("f", f, coord.n)
    newgrid = jnp.asarray(newgrid)
    fcheby = update_fcheby(f, chebyshev, coord)

    element_lower = coord.grid[coord.element_indices[0]]
    element_upper = coord.grid[coord.element_indices[-1]]
    ielement = jnp.clip(
        jnp.searchsorted(element_upper, newgrid, side="left"), 0, coord.nelement_local - 1
    )
    shift = 0.5 * (element_lower[ielement] + element_upper[ielement])
    scale = 2.0 / (element_upper[ielement] - element_lower[ielement])
    z = scale * (newgrid - shift)

    result = _evaluate_chebyshev_series(fcheby[:, ielement], z)
    result = jnp.where(newgrid < coord.grid[0], f[0], result)
    return jnp.where(newgrid > coord.grid[-1], f[-1], result)
