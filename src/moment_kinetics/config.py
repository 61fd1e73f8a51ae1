"""
Configuration models for moment_kinetics runs.

Inputs are pydantic models so that malformed YAML is rejected when the file is
loaded, long before any grid is built:
- AdvectionInput: how the advection speed along a coordinate is prescribed
- CoordinateInput: resolution, domain, discretization and boundary condition
- TimeIntegrationInput: timestep, number of steps, Runge-Kutta stages
- InitialConditionInput: profile used by the advection driver
- SimulationConfig: everything needed for `python -m moment_kinetics advect`

Example:
    >>> config = SimulationConfig.from_yaml("advection.yaml")
    >>> print(config.summary())
    >>> coords = config.create_coordinates()
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DiscretizationOption = Literal["chebyshev_pseudospectral", "finite_difference"]
FiniteDifferenceOption = Literal[
    "second_order_centered", "first_order_upwind", "second_order_upwind"
]
AdvectionOption = Literal["default", "constant", "linear", "oscillating"]
BoundaryCondition = Literal["periodic", "zero", "constant", "wall"]


class AdvectionInput(BaseModel):
    """
    Prescription of the advection speed along one coordinate.

    Attributes:
        option: "default" (speed supplied by the physics, e.g. z speed = vpa),
            "constant", "linear" (c*(x + L/2)) or "oscillating"
            (c*(1 + A*sin(pi*f*t)))
        constant_speed: The constant c used by the non-default options
        frequency: Oscillation frequency f
        oscillation_amplitude: Relative oscillation amplitude A
    """

    model_config = ConfigDict(frozen=True)

    option: AdvectionOption = "default"
    constant_speed: float = 0.0
    frequency: float = 1.0
    oscillation_amplitude: float = 1.0


class CoordinateInput(BaseModel):
    """
    User input describing one coordinate.

    `nelement` is the global number of elements; each of the `nrank`
    processes sharing the coordinate owns `nelement // nrank` of them.
    """

    model_config = ConfigDict(frozen=True)

    name: str = "z"
    ngrid: int = Field(default=9, ge=1, description="Grid points per element")
    nelement: int = Field(default=4, ge=1, description="Global number of elements")
    nrank: int = Field(default=1, ge=1)
    irank: int = Field(default=0, ge=0)
    L: float = Field(default=1.0, gt=0.0, description="Domain length")
    discretization: DiscretizationOption = "chebyshev_pseudospectral"
    fd_option: FiniteDifferenceOption = "second_order_centered"
    bc: BoundaryCondition = "periodic"
    advection: AdvectionInput = AdvectionInput()

    @model_validator(mode="after")
    def check_decomposition(self) -> "CoordinateInput":
        if self.nelement % self.nrank != 0:
            raise ValueError(
                f"nelement={self.nelement} must be divisible by nrank={self.nrank}"
            )
        if self.irank >= self.nrank:
            raise ValueError(f"irank={self.irank} must be < nrank={self.nrank}")
        return self

    @property
    def nelement_local(self) -> int:
        return self.nelement // self.nrank


class TimeIntegrationInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    dt: float = Field(default=1.0e-3, gt=0.0)
    nstep: int = Field(default=100, ge=1)
    nwrite: int = Field(default=10, ge=1)
    n_rk_stages: Literal[1, 2, 3] = 3
    cfl_safety: float = Field(default=0.5, gt=0.0)


class InitialConditionInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["gaussian", "sinusoid"] = "gaussian"
    amplitude: float = 1.0
    width: float = Field(default=0.1, gt=0.0)
    wavenumber: int = 1


class SimulationConfig(BaseModel):
    """
    Complete run configuration.

    The first entry of `coordinates` is the advected coordinate; any further
    entries are orthogonal dimensions carried along unchanged.
    """

    model_config = ConfigDict(frozen=True)

    name: str = "advection_test"
    n_species: int = Field(default=1, ge=1)
    coordinates: List[CoordinateInput] = Field(default_factory=lambda: [CoordinateInput()])
    time_integration: TimeIntegrationInput = TimeIntegrationInput()
    initial_condition: InitialConditionInput = InitialConditionInput()

    @field_validator("coordinates")
    @classmethod
    def validate_coordinate_names(cls, v: List[CoordinateInput]) -> List[CoordinateInput]:
        if not v:
            raise ValueError("At least one coordinate is required")
        names = [c.name for c in v]
        if len(set(names)) != len(names):
            raise ValueError(f"Coordinate names must be unique, got {names}")
        return v

    @property
    def advected(self) -> CoordinateInput:
        return self.coordinates[0]

    def create_coordinates(self) -> Dict[str, "Coordinate"]:  # noqa: F821
        """Build every Coordinate, keyed by name, in input order."""
        from moment_kinetics.coordinates import define_coordinate

        return {c.name: define_coordinate(c) for c in self.coordinates}

    def create_coordinate(self, name: str) -> "Coordinate":  # noqa: F821
        from moment_kinetics.coordinates import define_coordinate

        for c in self.coordinates:
            if c.name == name:
                return define_coordinate(c)
        raise KeyError(f"No coordinate named '{name}'")

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SimulationConfig":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    def to_yaml(self, path: Optional[Union[str, Path]] = None) -> str:
        """Serialise to YAML, writing to `path` if given, and return the text."""
        text = yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)
        if path is not None:
            Path(path).write_text(text)
        return text

    def summary(self) -> str:
        lines = [f"Simulation: {self.name}", f"  species: {self.n_species}"]
        for c in self.coordinates:
            lines.append(
                f"  {c.name}: ngrid={c.ngrid} nelement={c.nelement} L={c.L} "
                f"{c.discretization} bc={c.bc}"
            )
        adv = self.advected.advection
        lines.append(
            f"  advection along {self.advected.name}: {adv.option} "
            f"(constant_speed={adv.constant_speed})"
        )
        ti = self.time_integration
        lines.append(f"  dt={ti.dt} nstep={ti.nstep} rk_stages={ti.n_rk_stages}")
        return "\n".join(lines)


def advection_test_config(
    discretization: DiscretizationOption = "chebyshev_pseudospectral",
) -> SimulationConfig:
    """Template: a Gaussian advected once around a periodic unit box at unit speed."""
    z = CoordinateInput(
        name="z",
        ngrid=9 if discretization == "chebyshev_pseudospectral" else 129,
        nelement=8 if discretization == "chebyshev_pseudospectral" else 1,
        L=1.0,
        discretization=discretization,
        bc="periodic",
        advection=AdvectionInput(option="constant", constant_speed=1.0),
    )
    return SimulationConfig(
        name=f"advection_test_{discretization}",
        coordinates=[z],
        time_integration=TimeIntegrationInput(dt=1.0e-3, nstep=1000, nwrite=100),
        initial_condition=InitialConditionInput(type="gaussian", width=0.1),
    )
