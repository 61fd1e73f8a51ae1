"""
Coordinate grids split into elements.

A coordinate of length L is divided into nelement_global elements of ngrid
points each. Neighbouring elements share their boundary point, so a process
owning nelement_local elements holds

    n = (ngrid - 1)·nelement_local + 1

points. Indices are 0-based: element j spans flat indices
element_indices[:, j] = j·(ngrid-1) + [0, ..., ngrid-1], and imin[j]/imax[j]
give the range of points attributed to it without double counting
(imin[0] = 0, imin[j] = imax[j-1] + 1 for j > 0).
"""

from typing import Optional, Tuple

import jax.numpy as jnp
from jax import Array
from pydantic import BaseModel, ConfigDict, Field

from moment_kinetics.chebyshev import scaled_chebyshev_grid
from moment_kinetics.config import (
    AdvectionInput,
    BoundaryCondition,
    CoordinateInput,
    DiscretizationOption,
    FiniteDifferenceOption,
)
from moment_kinetics.errors import ConfigurationError
from moment_kinetics.finite_differences import composite_simpson_weights


class Coordinate(BaseModel):
    """
    Immutable description of one coordinate axis, shared read-only by every
    transform plan and advection state built on it.

    Attributes:
        name: Name of the coordinate ("z", "vpa", "vperp", ...)
        n_global: Points over the whole domain
        n: Points owned by this process
        ngrid: Points per element
        nelement_global: Elements over the whole domain
        nelement_local: Elements owned by this process
        nrank, irank: Decomposition of the coordinate over processes
        L: Domain length
        grid: Point locations, increasing (shape: [n])
        cell_width: grid[i+1] - grid[i], with the last entry repeating the
            first (shape: [n])
        igrid: Position of each point within its element (shape: [n])
        ielement: Element each point is attributed to (shape: [n])
        imin, imax: First/last flat index attributed to each element
        element_indices: Flat indices of all ngrid points of each element,
            shared lower boundary included (shape: [ngrid, nelement_local])
        wgts: Quadrature weights (shape: [n])
        uniform_grid: Equally spaced grid with the same number of points
        discretization: "chebyshev_pseudospectral" or "finite_difference"
        fd_option: Finite-difference scheme
        bc: Boundary condition
        advection: Advection speed prescription along this coordinate
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    n_global: int = Field(ge=1)
    n: int = Field(ge=1)
    ngrid: int = Field(ge=1)
    nelement_global: int = Field(ge=1)
    nelement_local: int = Field(ge=1)
    nrank: int = Field(default=1, ge=1)
    irank: int = Field(default=0, ge=0)
    L: float = Field(gt=0.0)
    grid: Array
    cell_width: Array
    igrid: Array
    ielement: Array
    imin: Tuple[int, ...]
    imax: Tuple[int, ...]
    element_indices: Array
    wgts: Array
    uniform_grid: Array
    discretization: DiscretizationOption
    fd_option: FiniteDifferenceOption = "second_order_centered"
    bc: BoundaryCondition = "periodic"
    advection: AdvectionInput = AdvectionInput()

    @property
    def periodic(self) -> bool:
        """
        True if the two ends of the local grid are the same physical point.

        A periodic coordinate split over several processes wraps through the
        communication layer, not locally.
        """
        return self.bc == "periodic" and self.nrank == 1

    @property
    def element_scale_factor(self) -> float:
        """d(element coordinate)/d(coordinate) = 2·nelement_global/L."""
        return 2.0 * self.nelement_global / self.L

    @classmethod
    def create(
        cls,
        name: str = "z",
        ngrid: int = 9,
        nelement: int = 4,
        L: float = 1.0,
        discretization: DiscretizationOption = "chebyshev_pseudospectral",
        bc: BoundaryCondition = "periodic",
        fd_option: FiniteDifferenceOption = "second_order_centered",
        nrank: int = 1,
        irank: int = 0,
        advection: Optional[AdvectionInput] = None,
    ) -> "Coordinate":
        """
        Factory building a Coordinate directly from keyword arguments.

        Example:
            >>> z = Coordinate.create(name="z", ngrid=5, nelement=2, L=2.0)
            >>> z.n
            9
        """
        return define_coordinate(
            CoordinateInput(
                name=name,
                ngrid=ngrid,
                nelement=nelement,
                L=L,
                discretization=discretization,
                bc=bc,
                fd_option=fd_option,
                nrank=nrank,
                irank=irank,
                advection=advection or AdvectionInput(),
            )
        )


def define_coordinate(input: CoordinateInput) -> Coordinate:
    """
    Create the grid, index maps and weights for one coordinate.

    Args:
        input: Validated coordinate input

    Returns:
        Coordinate ready to be shared by transform plans and advection states

    Raises:
        ConfigurationError: If the resolution cannot support the chosen discretization
    """
    nelement_local = input.nelement_local
    # ngrid points for the first element plus ngrid-1 new points for each
    # further element, since boundary points are shared
    n_global = (input.ngrid - 1) * input.nelement + 1
    n_local = (input.ngrid - 1) * nelement_local + 1
    if n_local == 1 and nelement_local > 1:
        raise ConfigurationError(f"Coordinate '{input.name}' needs ngrid >= 2 for multiple elements")

    igrid, ielement = full_to_elemental_grid_map(input.ngrid, nelement_local, n_local)
    imin, imax = elemental_to_full_grid_map(input.ngrid, nelement_local)
    grid, wgts, uniform_grid = init_grid(
        input.ngrid,
        input.nelement,
        nelement_local,
        n_local,
        input.irank,
        input.L,
        input.discretization,
        input.name,
    )
    element_indices = (
        jnp.arange(input.ngrid)[:, jnp.newaxis]
        + (input.ngrid - 1) * jnp.arange(nelement_local)[jnp.newaxis, :]
    )
    return Coordinate(
        name=input.name,
        n_global=n_global,
        n=n_local,
        ngrid=input.ngrid,
        nelement_global=input.nelement,
        nelement_local=nelement_local,
        nrank=input.nrank,
        irank=input.irank,
        L=input.L,
        grid=grid,
        cell_width=grid_spacing(grid),
        igrid=igrid,
        ielement=ielement,
        imin=imin,
        imax=imax,
        element_indices=element_indices,
        wgts=wgts,
        uniform_grid=uniform_grid,
        discretization=input.discretization,
        fd_option=input.fd_option,
        bc=input.bc,
        advection=input.advection,
    )


def init_grid(
    ngrid: int,
    nelement_global: int,
    nelement_local: int,
    n: int,
    irank: int,
    L: float,
    discretization: str,
    name: str,
) -> Tuple[Array, Array, Array]:
    """
    Grid points, integration weights and the equally spaced reference grid.

    Grids live on [-L/2, L/2], except "vperp" which is shifted to [0, L] and
    whose weights include the 2·vperp Jacobian of the perpendicular velocity
    integral.
    """
    uniform_grid = equally_spaced_grid(n, L)
    if n == 1:
        grid = jnp.zeros(1)
        # cancels the 1/sqrt(pi) normalisation of neutral velocity integrals
        # when the dimension is collapsed
        wgts = jnp.full(1, jnp.sqrt(jnp.pi) if name in ("vr", "vzeta") else 1.0)
        return grid, wgts, uniform_grid

    if discretization == "chebyshev_pseudospectral":
        grid, wgts = scaled_chebyshev_grid(ngrid, nelement_global, nelement_local, irank, L)
    elif discretization == "finite_difference":
        if nelement_local != nelement_global:
            raise ConfigurationError("finite_difference coordinates cannot be distributed over ranks")
        grid = uniform_grid
        wgts = composite_simpson_weights(grid)
    else:
        raise ConfigurationError(f"discretization option '{discretization}' unrecognized")

    if name == "vperp":
        grid = grid + 0.5 * L
        wgts = 2.0 * wgts * grid
    return grid, wgts, uniform_grid


def equally_spaced_grid(n: int, L: float) -> Array:
    """n equally spaced points on [-L/2, L/2] (a single point sits at 0)."""
    if n == 1:
        return jnp.zeros(1)
    return -0.5 * L + jnp.arange(n) * L / (n - 1)


def grid_spacing(grid: Array) -> Array:
    """
    Width of the cell above each grid point.

    The final entry describes the cell beyond the upper boundary and repeats
    the first width, which is what a periodic coordinate needs.
    """
    if grid.shape[0] == 1:
        return jnp.zeros(1)
    d = jnp.diff(grid)
    return jnp.concatenate([d, d[:1]])


def full_to_elemental_grid_map(ngrid: int, nelement: int, n: int) -> Tuple[Array, Array]:
    """
    Map each flat grid index to (position within element, element index).

    Shared boundary points are attributed to the lower element.
    """
    igrid = list(range(ngrid))
    ielement = [0] * ngrid
    for j in range(1, nelement):
        # skip the point shared with the previous element
        igrid.extend(range(1, ngrid))
        ielement.extend([j] * (ngrid - 1))
    return jnp.array(igrid[:n]), jnp.array(ielement[:n])


def elemental_to_full_grid_map(ngrid: int, nelement: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """First and last flat index attributed to each element."""
    imin = [0]
    imax = [ngrid - 1]
    for _ in range(1, nelement):
        imin.append(imax[-1] + 1)
        imax.append(imin[-1] + ngrid - 2)
    return tuple(imin), tuple(imax)
