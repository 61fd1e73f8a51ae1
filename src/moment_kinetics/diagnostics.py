"""
Diagnostics and plots for advection runs.

- chebyshev_spectrum: mean |c_k| over elements, the resolution check of a
  spectral-element solution (coefficients should fall off towards k = ngrid-1)
- interpolate_on_fine_grid: smooth rendering of a solution between its
  grid points
- plot_line / plot_error_history / plot_chebyshev_spectrum: matplotlib figures

Example usage:
    >>> run = run_advection(config)
    >>> z = run.coords["z"]
    >>> plot_line(run.fields[0].f, z, t=run.times[-1], filename="f.png", show=False)
    >>> plot_error_history(run.times, run.max_errors, filename="error.png", show=False)
"""

from typing import Optional, Sequence, Tuple

import jax.numpy as jnp
import matplotlib.pyplot as plt
import numpy as np
from jax import Array

from moment_kinetics.chebyshev import ChebyshevInfo, interpolate_to_grid_1d, update_fcheby
from moment_kinetics.coordinates import Coordinate
from moment_kinetics.calculus import Discretization


# =============================================================================
# Spectral diagnostics
# =============================================================================


def chebyshev_spectrum(f: Array, coord: Coordinate, chebyshev: ChebyshevInfo) -> Array:
    """
    Mean magnitude of each Chebyshev mode over the elements of a line.

    Args:
        f: Field on the local grid, shape [n]
        coord: Coordinate of f
        chebyshev: Transform plan

    Returns:
        Array of shape [ngrid]; entry k is the mean over elements of |c_k|

    Note:
        A well-resolved solution has coefficients decaying by several orders
        of magnitude from k = 0 to k = ngrid-1. A flat tail means the element
        size is too large for the structures being advected.
    """
    fcheby = update_fcheby(f, chebyshev, coord)
    return jnp.mean(jnp.abs(fcheby), axis=1)


def interpolate_on_fine_grid(
    f: Array, coord: Coordinate, spectral: Discretization, n_fine: int = 512
) -> Tuple[Array, Array]:
    """
    Evaluate a line on an equally spaced grid of n_fine points.

    Chebyshev coordinates use the spectral interpolant; finite-difference
    coordinates are interpolated linearly.

    Returns:
        (fine_grid, f_fine)
    """
    fine_grid = jnp.linspace(coord.grid[0], coord.grid[-1], n_fine)
    if isinstance(spectral, ChebyshevInfo):
        return fine_grid, interpolate_to_grid_1d(fine_grid, f, coord, spectral)
    return fine_grid, jnp.interp(fine_grid, coord.grid, f)


# =============================================================================
# Plotting Functions
# =============================================================================


def plot_line(
    f: Array,
    coord: Coordinate,
    spectral: Optional[Discretization] = None,
    exact: Optional[Array] = None,
    t: Optional[float] = None,
    line: Tuple[int, ...] = (),
    figsize: Tuple[float, float] = (10, 6),
    filename: Optional[str] = None,
    show: bool = True,
) -> None:
    """
    Plot f along the advected coordinate for one grid line.

    Args:
        f: Field, shape [n, *orthogonal]
        coord: Advected coordinate
        spectral: If given, also draw the interpolant between grid points
        exact: Optional reference solution with the same shape as f
        t: Time shown in the title
        line: Orthogonal indices of the line to plot
        figsize: Figure size in inches (width, height)
        filename: If provided, save figure to this path
        show: If True, display figure interactively

    Example:
        >>> plot_line(f, z, spectral, exact=f_exact, t=1.0, filename="f.png", show=False)
    """
    index = (slice(None),) + tuple(line)
    values = np.asarray(f[index])
    grid = np.asarray(coord.grid)

    fig, ax = plt.subplots(figsize=figsize)

    if spectral is not None:
        fine_grid, f_fine = interpolate_on_fine_grid(f[index], coord, spectral)
        ax.plot(np.asarray(fine_grid), np.asarray(f_fine), 'b-', linewidth=1, alpha=0.6)
    ax.plot(grid, values, 'bo', markersize=3, label='f')
    if exact is not None:
        ax.plot(grid, np.asarray(exact[index]), 'k--', label='exact', linewidth=1.5)

    # element boundaries
    for x in grid[np.asarray(coord.element_indices[-1])]:
        ax.axvline(x, color='grey', alpha=0.2, linewidth=0.5)

    ax.set_xlabel(coord.name, fontsize=12)
    ax.set_ylabel('f', fontsize=12)
    title = f'f along {coord.name}'
    if t is not None:
        title += f' at t = {t:.3f}'
    ax.set_title(title, fontsize=14)
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=150, bbox_inches='tight')

    if show:
        plt.show()
        plt.close()  # Close figure after showing to prevent memory leak
    else:
        plt.close()


def plot_error_history(
    times: Sequence[float],
    errors: Sequence[float],
    figsize: Tuple[float, float] = (10, 6),
    filename: Optional[str] = None,
    show: bool = True,
) -> None:
    """
    Plot the maximum error against the exact solution over time (log scale).

    Args:
        times: Output times
        errors: Maximum error at each output time
        figsize: Figure size in inches (width, height)
        filename: If provided, save figure to this path
        show: If True, display figure interactively
    """
    times = np.asarray(times)
    errors = np.asarray(errors)

    fig, ax = plt.subplots(figsize=figsize)

    ax.semilogy(times, np.maximum(errors, np.finfo(float).tiny), 'r-o', linewidth=2, markersize=4)

    ax.set_xlabel('Time', fontsize=12)
    ax.set_ylabel('max |f - f_exact|', fontsize=12)
    ax.set_title('Advection Error', fontsize=14)
    ax.grid(True, alpha=0.3, which='both')

    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=150, bbox_inches='tight')

    if show:
        plt.show()
        plt.close()
    else:
        plt.close()


def plot_chebyshev_spectrum(
    f: Array,
    coord: Coordinate,
    chebyshev: ChebyshevInfo,
    figsize: Tuple[float, float] = (8, 6),
    filename: Optional[str] = None,
    show: bool = True,
) -> None:
    """
    Plot the mean Chebyshev coefficient magnitude against mode number.

    Args:
        f: Field on the local grid, shape [n]
        coord: Coordinate of f
        chebyshev: Transform plan
        figsize: Figure size in inches (width, height)
        filename: If provided, save figure to this path
        show: If True, display figure interactively
    """
    spectrum = np.asarray(chebyshev_spectrum(f, coord, chebyshev))
    modes = np.arange(spectrum.shape[0])

    fig, ax = plt.subplots(figsize=figsize)

    ax.semilogy(modes, np.maximum(spectrum, np.finfo(float).tiny), 'bo-', linewidth=2)

    ax.set_xlabel('Chebyshev mode k', fontsize=12)
    ax.set_ylabel('mean |c_k|', fontsize=12)
    ax.set_title(f'Chebyshev spectrum along {coord.name}', fontsize=14)
    ax.grid(True, alpha=0.3, which='both')

    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=150, bbox_inches='tight')

    if show:
        plt.show()
        plt.close()
    else:
        plt.close()
