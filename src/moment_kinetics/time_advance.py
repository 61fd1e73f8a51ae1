"""
Time integration of df/dt + v·df/dx = 0 along one coordinate.

Each timestep is a strong-stability-preserving Runge-Kutta (SSP-RK) scheme
built from the explicit advection recipe. Every stage

    f_k+1 = a·f_0 + b·(f_k - dt·v·df_k/dx)

reseeds `advance_f` with the previous stage, recomputes the speed at the
stage time, and reimposes the boundary condition. 1, 2 and 3 stages give the
forward Euler, Heun (SSP-RK2) and Shu-Osher (SSP-RK3) methods.

Boundary conditions:
- "periodic": the two copies of the periodic point are kept equal
- "zero", "wall": 0 flows in at the upwind boundary of each line
- "constant": the initial value at whichever end is currently upwind keeps
  flowing in

Example usage:
    >>> config = advection_test_config()
    >>> result = run_advection(config)
    >>> result.max_errors[-1]
"""

import warnings
from typing import Dict, List, NamedTuple, Optional, Tuple

import jax.numpy as jnp
from jax import Array

from moment_kinetics.advection import (
    AdvectionInfo,
    advance_f,
    enforce_boundary_condition,
    setup_advection,
    update_boundary_indices,
)
from moment_kinetics.advection_speed import parallel_streaming_speed, update_speed
from moment_kinetics.calculus import Discretization, integral, setup_discretization
from moment_kinetics.config import InitialConditionInput, SimulationConfig
from moment_kinetics.coordinates import Coordinate
from moment_kinetics.errors import ConfigurationError
from moment_kinetics.file_io import setup_dfns_io, write_dfns_data
from moment_kinetics.looping import ParallelContext


# (a, b, c) per stage: f_k+1 = a·f_0 + b·(f_k + rhs(f_k)), stage time t + c·dt
SSP_RK_STAGES: Dict[int, Tuple[Tuple[float, float, float], ...]] = {
    1: ((0.0, 1.0, 0.0),),
    2: ((0.0, 1.0, 0.0), (0.5, 0.5, 1.0)),
    3: ((0.0, 1.0, 0.0), (0.75, 0.25, 1.0), (1.0 / 3.0, 2.0 / 3.0, 0.5)),
}


class AdvectionFields(NamedTuple):
    """
    Lightweight state advanced by the timestep (hot path).

    f has shape [n, *orthogonal]; advection is the state of one species.
    """

    f: Array
    advection: AdvectionInfo
    time: float


class AdvectionRun(NamedTuple):
    """Outcome of run_advection."""

    fields: List[AdvectionFields]
    coords: Dict[str, Coordinate]
    times: List[float]
    max_errors: List[float]
    mass: List[float]


def _profile(x: Array, x_lower: float, L: float, ic: InitialConditionInput) -> Array:
    if ic.type == "gaussian":
        x_centre = x_lower + 0.5 * L
        return ic.amplitude * jnp.exp(-(((x - x_centre) / ic.width) ** 2))
    elif ic.type == "sinusoid":
        return ic.amplitude * jnp.sin(2.0 * jnp.pi * ic.wavenumber * (x - x_lower) / L)
    raise ConfigurationError(f"Initial condition '{ic.type}' unrecognized")


def _repeat_over_lines(profile: Array, orthogonal_shape: Tuple[int, ...]) -> Array:
    column = profile.reshape((-1,) + (1,) * len(orthogonal_shape))
    return jnp.broadcast_to(column, profile.shape[:1] + tuple(orthogonal_shape))


def initial_condition(
    coord: Coordinate, ic: InitialConditionInput, orthogonal_shape: Tuple[int, ...] = ()
) -> Array:
    """
    Initial profile along coord, repeated over the orthogonal dimensions.

    - "gaussian": A·exp(-((x - x_c)/w)²), centred in the domain
    - "sinusoid": A·sin(2π·k·(x - x_0)/L)
    """
    return _repeat_over_lines(_profile(coord.grid, coord.grid[0], coord.L, ic), orthogonal_shape)


def exact_periodic_solution(
    coord: Coordinate, ic: InitialConditionInput, speed: float, t: float,
    orthogonal_shape: Tuple[int, ...] = (),
) -> Array:
    """
    Initial profile translated by speed·t around a periodic coordinate.

    Only meaningful for a constant speed.
    """
    x_lower = coord.grid[0]
    shifted = x_lower + jnp.mod(coord.grid - speed * t - x_lower, coord.L)
    return _repeat_over_lines(_profile(shifted, x_lower, coord.L, ic), orthogonal_shape)


def compute_cfl_timestep(
    advection: AdvectionInfo,
    coord: Coordinate,
    cfl_safety: float = 0.5,
) -> float:
    """
    Largest stable timestep from the CFL condition

        dt ≤ C · min(Δx) / max|v|

    The minimum spacing of a Chebyshev grid sits next to the element
    boundaries, so it is much smaller than L/n.

    Returns:
        Timestep, or inf if the speed vanishes everywhere
    """
    if coord.n < 2:
        return float("inf")
    min_spacing = float(jnp.min(coord.cell_width[: coord.n - 1]))
    max_speed = float(jnp.max(jnp.abs(advection.speed)))
    if max_speed == 0.0:
        return float("inf")
    return cfl_safety * min_spacing / max_speed


def inflow_at_ends(f0: Array, coord: Coordinate) -> Optional[Tuple[Array, Array]]:
    """
    Values of f0 at the lower and upper end of every line.

    Used by bc = "constant", which keeps feeding in these values at whichever
    end is upwind at the time. None for other boundary conditions.
    """
    if coord.bc != "constant":
        return None
    return f0[0], f0[-1]


def _select_inflow(
    inflow: Optional[Tuple[Array, Array]], advection: AdvectionInfo
) -> Optional[Array]:
    if inflow is None:
        return None
    lower, upper = inflow
    return jnp.where(advection.upwind_idx == 0, lower, upper)


def ssp_rk_step(
    fields: AdvectionFields,
    coord: Coordinate,
    spectral: Discretization,
    dt: float,
    n_rk_stages: int = 3,
    default_speed: Optional[Array] = None,
    inflow: Optional[Tuple[Array, Array]] = None,
    context: Optional[ParallelContext] = None,
) -> AdvectionFields:
    """
    Advance one timestep with an SSP-RK scheme.

    Args:
        fields: State at time t
        coord: Advected coordinate (axis 0 of f)
        spectral: Discretization of coord
        dt: Timestep
        n_rk_stages: 1, 2 or 3
        default_speed: Physical speed for the "default" advection option
        inflow: Values entering at the lower and upper end of each line, as
            returned by inflow_at_ends (0 if None)
        context: Worker layout used for the boundary-index update

    Returns:
        AdvectionFields at time t + dt
    """
    if n_rk_stages not in SSP_RK_STAGES:
        raise ConfigurationError(f"n_rk_stages must be 1, 2 or 3, got {n_rk_stages}")
    context = context or ParallelContext()
    f0 = fields.f
    f = f0
    advection = fields.advection
    for a, b, c in SSP_RK_STAGES[n_rk_stages]:
        advection = update_speed(advection, coord, t=fields.time + c * dt, default_speed=default_speed)
        advection = update_boundary_indices(
            advection, *context.loop_ranges(advection.speed.shape[1:])
        )
        f_advanced, advection = advance_f(f, f, advection, coord, dt, spectral)
        f = a * f0 + b * f_advanced
        f = enforce_boundary_condition(f, advection, coord, _select_inflow(inflow, advection))
        context.barrier()
    return AdvectionFields(f=f, advection=advection, time=fields.time + dt)


def _default_speed(config: SimulationConfig, coords: Dict[str, Coordinate]) -> Optional[Array]:
    if config.advected.advection.option != "default":
        return None
    # z and r are streamed along by the parallel velocity
    if "vpa" in coords and config.advected.name in ("z", "r"):
        axis = list(coords).index("vpa")
        return parallel_streaming_speed(coords["vpa"], len(coords), axis)
    raise ConfigurationError(
        f"Advection option 'default' along '{config.advected.name}' needs a 'vpa' coordinate"
    )


def run_advection(
    config: SimulationConfig,
    verbose: bool = True,
    context: Optional[ParallelContext] = None,
    output: Optional[str] = None,
    overwrite: bool = False,
) -> AdvectionRun:
    """
    Advect the configured initial condition along the first coordinate.

    For a periodic coordinate with a constant speed the numerical solution is
    compared with the exactly translated initial profile every `nwrite` steps.

    Args:
        config: Validated run configuration
        verbose: Print progress
        context: Worker layout
        output: If given, HDF5 file receiving f of every species at each
            output time (see file_io)
        overwrite: Replace an existing output file

    Returns:
        AdvectionRun with the final state of every species and the history
        of the maximum error (NaN where no exact solution is known) and of
        the integral of f along the first line
    """
    context = context or ParallelContext()
    coords = config.create_coordinates()
    coord = coords[config.advected.name]
    orthogonal = [coords[c.name] for c in config.coordinates[1:]]
    orthogonal_shape = tuple(c.n for c in orthogonal)
    spectral = setup_discretization(coord)
    ti = config.time_integration
    ic = config.initial_condition
    adv = coord.advection
    default_speed = _default_speed(config, coords)
    has_exact = coord.periodic and adv.option == "constant"

    f0 = initial_condition(coord, ic, orthogonal_shape)
    species = []
    for advection in setup_advection(config.n_species, coord, *orthogonal):
        advection = update_speed(advection, coord, t=0.0, default_speed=default_speed)
        advection = update_boundary_indices(advection, *context.loop_ranges(orthogonal_shape))
        species.append(AdvectionFields(f=f0, advection=advection, time=0.0))
    inflow = inflow_at_ends(f0, coord)

    dt_cfl = compute_cfl_timestep(species[0].advection, coord, ti.cfl_safety)
    if ti.dt > dt_cfl:
        warnings.warn(
            f"dt = {ti.dt:.3e} exceeds the CFL timestep estimate {dt_cfl:.3e}",
            RuntimeWarning,
            stacklevel=2,
        )
    if verbose:
        print(config.summary())
        print(f"  CFL timestep estimate: {dt_cfl:.3e} (using dt={ti.dt:.3e})")

    def diagnose(fields: AdvectionFields) -> Tuple[float, float]:
        first_line = fields.f[(slice(None),) + (0,) * len(orthogonal_shape)]
        mass = float(integral(first_line, coord.wgts))
        if not has_exact:
            return float("nan"), mass
        exact = exact_periodic_solution(coord, ic, adv.constant_speed, fields.time, orthogonal_shape)
        return float(jnp.max(jnp.abs(fields.f - exact))), mass

    error, mass = diagnose(species[0])
    times, max_errors, masses = [0.0], [error], [mass]
    if output is not None:
        setup_dfns_io(output, config, coords, config.n_species, overwrite)
        write_dfns_data(output, [fields.f for fields in species], 0.0)

    for step in range(1, ti.nstep + 1):
        species = [
            ssp_rk_step(
                fields, coord, spectral, ti.dt, ti.n_rk_stages, default_speed, inflow, context
            )
            for fields in species
        ]
        if step % ti.nwrite == 0 or step == ti.nstep:
            error, mass = diagnose(species[0])
            times.append(species[0].time)
            max_errors.append(error)
            masses.append(mass)
            if output is not None:
                write_dfns_data(output, [fields.f for fields in species], species[0].time)
            if verbose:
                print(
                    f"  step {step:6d}  t = {species[0].time:.4f}  "
                    f"max error = {error:.3e}  ∫f = {mass:.6e}"
                )

    return AdvectionRun(
        fields=species, coords=coords, times=times, max_errors=max_errors, mass=masses
    )
