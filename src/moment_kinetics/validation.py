"""
Parameter validation for advection runs.

Automated checks that catch resolutions and timesteps which would fail at
setup or blow up during the run:

- Resolution sanity (points per element, element decomposition, enough
  points for the chosen discretization)
- CFL condition on the smallest cell of the advected coordinate
- Whole config file validation

Problems that make a run impossible are errors; marginal settings are
warnings, with a suggestion of what to change.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import jax.numpy as jnp
from pydantic import ValidationError

from moment_kinetics.config import CoordinateInput, SimulationConfig


# Validation thresholds (constants)
DEFAULT_CFL_LIMIT = 1.0  # Default CFL stability limit
CFL_WARNING_RATIO = 0.8  # Warn when CFL > 80% of limit
MAX_RECOMMENDED_NGRID = 33  # Chebyshev elements beyond this lose accuracy to roundoff


@dataclass
class ValidationResult:
    """Result of parameter validation."""

    valid: bool
    warnings: List[str]
    errors: List[str]
    suggestions: List[str]

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            self.valid and other.valid,
            self.warnings + other.warnings,
            self.errors + other.errors,
            self.suggestions + other.suggestions,
        )

    def print_report(self):
        """Print human-readable validation report."""
        if self.valid and not self.warnings:
            print("✓ All parameters valid")
            return

        if self.errors:
            print("\n❌ ERRORS (must fix):")
            for err in self.errors:
                print(f"  • {err}")

        if self.warnings:
            print("\n⚠️  WARNINGS (recommended fixes):")
            for warn in self.warnings:
                print(f"  • {warn}")

        if self.suggestions:
            print("\n💡 SUGGESTIONS:")
            for sug in self.suggestions:
                print(f"  • {sug}")


def validate_resolution(coord: CoordinateInput) -> ValidationResult:
    """
    Check that a coordinate's resolution suits its discretization.

    Parameters
    ----------
    coord : CoordinateInput
        Coordinate to check

    Returns
    -------
    ValidationResult
        Errors for resolutions that setup would reject, warnings for
        resolutions that work poorly
    """
    errors = []
    warnings_list = []
    suggestions = []

    n = (coord.ngrid - 1) * coord.nelement + 1
    if coord.discretization == "chebyshev_pseudospectral":
        if coord.ngrid < 2 and coord.nelement > 1:
            errors.append(
                f"{coord.name}: ngrid = {coord.ngrid} with nelement = {coord.nelement} "
                f"(elements need at least 2 points)"
            )
        elif coord.ngrid < 2:
            warnings_list.append(
                f"{coord.name}: ngrid = 1 collapses the coordinate to a single point"
            )
        elif coord.ngrid > MAX_RECOMMENDED_NGRID:
            warnings_list.append(
                f"{coord.name}: ngrid = {coord.ngrid} > {MAX_RECOMMENDED_NGRID} "
                f"(very high order elements)"
            )
            suggestions.append(f"{coord.name}: use more elements of lower order instead")
    elif coord.discretization == "finite_difference":
        if n < 3:
            errors.append(
                f"{coord.name}: finite_difference needs at least 3 points, got {n}"
            )
        if coord.nrank > 1:
            errors.append(
                f"{coord.name}: finite_difference coordinates cannot be distributed "
                f"(nrank = {coord.nrank})"
            )

    if coord.bc == "periodic" and coord.nrank > 1:
        suggestions.append(
            f"{coord.name}: periodic wrap across {coord.nrank} ranks is left to the "
            f"communication layer"
        )

    valid = len(errors) == 0
    return ValidationResult(valid, warnings_list, errors, suggestions)


def validate_cfl_condition(
    dt: float,
    min_spacing: float,
    max_speed: float = 1.0,
    cfl_limit: float = DEFAULT_CFL_LIMIT
) -> ValidationResult:
    """
    Check CFL (Courant-Friedrichs-Lewy) condition for numerical stability.

    The CFL condition requires: dt < CFL_limit * min_spacing / max|speed|

    Parameters
    ----------
    dt : float
        Timestep
    min_spacing : float
        Smallest cell width of the advected coordinate
    max_speed : float, default=1.0
        Largest magnitude of the advection speed
    cfl_limit : float, default=1.0
        CFL stability limit

    Returns
    -------
    ValidationResult
        Validation result with any errors/warnings
    """
    errors = []
    warnings_list = []
    suggestions = []

    if min_spacing <= 0:
        errors.append(
            f"Invalid grid spacing: min_spacing = {min_spacing} (must be > 0)"
        )
        return ValidationResult(False, warnings_list, errors, suggestions)

    if max_speed == 0:
        suggestions.append("Advection speed is zero; any dt is stable")
        return ValidationResult(True, warnings_list, errors, suggestions)

    max_speed = abs(max_speed)
    courant = dt * max_speed / min_spacing
    dt_max = cfl_limit * min_spacing / max_speed

    if courant > cfl_limit:
        errors.append(
            f"CFL condition violated: Courant number {courant:.3f} exceeds {cfl_limit} "
            f"on the smallest cell ({min_spacing:.3e})"
        )
        suggestions.append(f"Reduce dt below {dt_max:.4e} or use fewer points per element")
    elif courant > CFL_WARNING_RATIO * cfl_limit:
        warnings_list.append(
            f"Courant number {courant:.3f} is within "
            f"{100 * (1 - CFL_WARNING_RATIO):.0f}% of the limit {cfl_limit}"
        )
        suggestions.append(f"A cfl_safety of 0.5 would give dt = {0.5 * dt_max:.4e}")
    else:
        suggestions.append(f"Courant number {courant:.3f} is safe (limit {cfl_limit})")

    valid = len(errors) == 0
    return ValidationResult(valid, warnings_list, errors, suggestions)


def _max_speed(config: SimulationConfig) -> Optional[float]:
    """Bound on |speed| along the advected coordinate, None if set by the physics."""
    coord = config.advected
    adv = coord.advection
    c = abs(adv.constant_speed)
    if adv.option == "constant":
        return c
    elif adv.option == "linear":
        # c·(x + L/2) peaks at the upper boundary
        return c * coord.L
    elif adv.option == "oscillating":
        return c * (1.0 + abs(adv.oscillation_amplitude))
    for other in config.coordinates[1:]:
        if other.name == "vpa":
            return 0.5 * other.L
    return None


def validate_config(config: SimulationConfig) -> ValidationResult:
    """
    Validate a parsed configuration.

    Checks the resolution of every coordinate, then the CFL condition of the
    advected one. The grid is only built when the resolution is acceptable.
    """
    result = ValidationResult(True, [], [], [])
    for coord in config.coordinates:
        result = result.merge(validate_resolution(coord))
    if not result.valid:
        return result

    max_speed = _max_speed(config)
    if max_speed is None:
        return result.merge(ValidationResult(
            False,
            [],
            [f"Advection option 'default' along '{config.advected.name}' needs a 'vpa' coordinate"],
            [],
        ))

    coord = config.create_coordinate(config.advected.name)
    if coord.n < 2:
        return result
    min_spacing = float(jnp.min(coord.cell_width[: coord.n - 1]))
    return result.merge(
        validate_cfl_condition(config.time_integration.dt, min_spacing, max_speed)
    )


def validate_config_dict(config: Dict) -> ValidationResult:
    """
    Validate parameters from a config dictionary.

    Parameters
    ----------
    config : dict
        Configuration dictionary, as loaded from a YAML file

    Returns
    -------
    ValidationResult
        Validation result; schema violations are reported as errors

    Example
    -------
    >>> config = {
    ...     "coordinates": [
    ...         {"name": "z", "ngrid": 9, "nelement": 8,
    ...          "advection": {"option": "constant", "constant_speed": 1.0}},
    ...     ],
    ...     "time_integration": {"dt": 0.001, "nstep": 1000},
    ... }
    >>> result = validate_config_dict(config)
    >>> result.print_report()
    """
    try:
        parsed = SimulationConfig.model_validate(config)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        return ValidationResult(False, [], errors, [])
    return validate_config(parsed)
