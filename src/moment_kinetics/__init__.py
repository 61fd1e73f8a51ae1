"""
moment_kinetics: Spectral-element advection for drift-kinetic simulations

Transforms, derivatives and the explicit advection update shared by every
phase-space advection term of a drift-kinetic code.

Each coordinate is split into elements that share their boundary points.
Within an element a function is represented either on Chebyshev-Gauss-Lobatto
points (pseudospectral) or on an equally spaced grid (finite differences).

Key features:
- Chebyshev transforms via the FFT of the even extension
- Elementwise derivatives reconciled at element boundaries by upwinding or
  averaging, with periodic wrap
- Interpolation onto arbitrary points with constant extrapolation
- A generic advection recipe for any number of orthogonal dimensions
- JAX-based implementation in double precision

Example:
    >>> from moment_kinetics import Coordinate, setup_discretization, derivative
    >>> z = Coordinate.create(name="z", ngrid=5, nelement=2, L=2.0)
    >>> spectral = setup_discretization(z)
    >>> df = derivative(z.grid**2, z, spectral)
"""

import jax

# Spectral accuracy needs float64; must run before any array is created
jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"

from moment_kinetics.errors import (
    BoundsError,
    ConfigurationError,
)

from moment_kinetics.config import (
    AdvectionInput,
    CoordinateInput,
    InitialConditionInput,
    SimulationConfig,
    TimeIntegrationInput,
    advection_test_config,
)

from moment_kinetics.coordinates import (
    Coordinate,
    define_coordinate,
)

from moment_kinetics.chebyshev import (
    ChebyshevInfo,
    chebyshev_backward_transform,
    chebyshev_forward_transform,
    interpolate_to_grid_1d,
    setup_chebyshev_pseudospectral,
)

from moment_kinetics.finite_differences import (
    FiniteDifferenceInfo,
    setup_finite_differences,
)

from moment_kinetics.calculus import (
    derivative,
    integral,
    second_derivative,
    setup_discretization,
)

from moment_kinetics.advection import (
    AdvectionInfo,
    advance_f,
    advance_f_df_precomputed,
    advance_f_local,
    enforce_boundary_condition,
    setup_advection,
    setup_advection_per_species,
    update_boundary_indices,
)

from moment_kinetics.advection_speed import update_speed

from moment_kinetics.time_advance import (
    compute_cfl_timestep,
    inflow_at_ends,
    run_advection,
    ssp_rk_step,
)

__all__ = [
    "__version__",
    # Errors
    "BoundsError",
    "ConfigurationError",
    # Configuration
    "AdvectionInput",
    "CoordinateInput",
    "InitialConditionInput",
    "SimulationConfig",
    "TimeIntegrationInput",
    "advection_test_config",
    # Coordinates
    "Coordinate",
    "define_coordinate",
    # Discretizations
    "ChebyshevInfo",
    "chebyshev_forward_transform",
    "chebyshev_backward_transform",
    "interpolate_to_grid_1d",
    "setup_chebyshev_pseudospectral",
    "FiniteDifferenceInfo",
    "setup_finite_differences",
    # Calculus
    "derivative",
    "second_derivative",
    "integral",
    "setup_discretization",
    # Advection
    "AdvectionInfo",
    "setup_advection",
    "setup_advection_per_species",
    "update_boundary_indices",
    "update_speed",
    "advance_f",
    "advance_f_local",
    "advance_f_df_precomputed",
    "enforce_boundary_condition",
    # Time integration
    "compute_cfl_timestep",
    "inflow_at_ends",
    "run_advection",
    "ssp_rk_step",
]
