"""
Advection speed along a coordinate.

The speed is prescribed by the coordinate's AdvectionInput:
- "default":     supplied by the physics, e.g. dz/dt = vpa for z advection;
                 passed in as `default_speed`, broadcast against [n, *orthogonal]
- "constant":    c
- "linear":      c·(x + L/2)
- "oscillating": c·(1 + A·sin(π·f·t))

modified_speed is the speed along approximate characteristics used by a
semi-Lagrange scheme; with the Eulerian scheme here it always equals speed.
"""

from typing import Optional

import jax.numpy as jnp
from jax import Array

from moment_kinetics.advection import AdvectionInfo
from moment_kinetics.config import AdvectionInput
from moment_kinetics.coordinates import Coordinate
from moment_kinetics.errors import ConfigurationError, check_extent


def _along_axis0(values: Array, ndim: int) -> Array:
    return values.reshape((-1,) + (1,) * (ndim - 1))


def update_speed(
    advection: AdvectionInfo,
    coord: Coordinate,
    t: float = 0.0,
    default_speed: Optional[Array] = None,
    advection_input: Optional[AdvectionInput] = None,
) -> AdvectionInfo:
    """
    Recompute speed (and modified_speed) for the current time.

    Args:
        advection: State to update
        coord: Advected coordinate
        t: Current time, used by the "oscillating" option
        default_speed: Speed for the "default" option, broadcastable to
            advection.speed.shape
        advection_input: Overrides coord.advection

    Returns:
        AdvectionInfo with speed and modified_speed set

    Raises:
        ConfigurationError: If "default" is selected without a default_speed
    """
    adv = advection_input or coord.advection
    shape = advection.speed.shape
    check_extent("speed", advection.speed, coord.n)

    if adv.option == "default":
        if default_speed is None:
            raise ConfigurationError(
                f"Advection option 'default' along '{coord.name}' needs the physical speed"
            )
        speed = jnp.broadcast_to(jnp.asarray(default_speed, dtype=advection.speed.dtype), shape)
    elif adv.option == "constant":
        speed = jnp.full(shape, adv.constant_speed)
    elif adv.option == "linear":
        profile = adv.constant_speed * (coord.grid + 0.5 * coord.L)
        speed = jnp.broadcast_to(_along_axis0(profile, len(shape)), shape)
    elif adv.option == "oscillating":
        value = adv.constant_speed * (
            1.0 + adv.oscillation_amplitude * jnp.sin(jnp.pi * adv.frequency * t)
        )
        speed = jnp.full(shape, value)
    else:
        raise ConfigurationError(f"Advection option '{adv.option}' unrecognized")

    return advection._replace(speed=speed, modified_speed=speed)


def parallel_streaming_speed(vpa: Coordinate, ndim: int, axis: int = 1) -> Array:
    """
    dz/dt = vpa, shaped to broadcast against a [n_z, ...] speed array with
    vpa along `axis`.
    """
    shape = [1] * ndim
    shape[axis] = vpa.n
    return vpa.grid.reshape(shape)
