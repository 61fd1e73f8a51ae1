"""
HDF5 output of advection runs.

Layout of a distribution-function output file:

    /                   attrs: file_info, version, timestamp, input (YAML)
    /coords/<name>      attrs: n_local, n_global, ngrid, nelement_global,
                               irank, nrank, L, discretization, fd_option, bc
                        datasets: grid, wgts
    /dynamic_data/time  shape [nt]
    /dynamic_data/f     shape [nt, nspecies, n, *orthogonal]

Dynamic variables are resizable along their first (time) axis and are
appended to every time the run writes output. Data are stored in float64 with
gzip compression, since spectral solutions are compared at roundoff level.

Example usage:
    >>> setup_dfns_io("run/advection.dfns.h5", config, coords, nspecies=1)
    >>> write_dfns_data("run/advection.dfns.h5", [fields.f], fields.time)
    >>> f, times, coords, metadata = load_dfns("run/advection.dfns.h5")
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple, Union

import h5py
import numpy as np
from jax import Array

from moment_kinetics.config import SimulationConfig
from moment_kinetics.coordinates import Coordinate


IO_FORMAT_VERSION = "1.0"
COMPRESSION = "gzip"
COMPRESSION_LEVEL = 4

_COORDINATE_ATTRS = (
    "n_global",
    "ngrid",
    "nelement_global",
    "irank",
    "nrank",
    "L",
    "discretization",
    "fd_option",
    "bc",
)

PathLike = Union[str, Path]


def open_output_file(filename: PathLike, overwrite: bool = False) -> h5py.File:
    """
    Create a new HDF5 file, making parent directories as needed.

    Raises:
        FileExistsError: If the file exists and overwrite is False
    """
    path = Path(filename)
    if path.exists() and not overwrite:
        raise FileExistsError(f"{path} exists (pass overwrite=True to replace it)")
    path.parent.mkdir(parents=True, exist_ok=True)
    return h5py.File(path, "w")


def define_io_coordinate(parent: h5py.Group, coord: Coordinate, description: str = "") -> h5py.Group:
    """Write one coordinate's resolution, options, grid and weights to parent/<name>."""
    group = parent.create_group(coord.name)
    group.attrs["description"] = description or f"coordinate {coord.name}"
    group.attrs["n_local"] = coord.n
    for name in _COORDINATE_ATTRS:
        group.attrs[name] = getattr(coord, name)
    group.create_dataset("grid", data=np.asarray(coord.grid))
    group.create_dataset("wgts", data=np.asarray(coord.wgts))
    return group


def setup_dfns_io(
    filename: PathLike,
    config: SimulationConfig,
    coords: Dict[str, Coordinate],
    nspecies: int = 1,
    overwrite: bool = False,
) -> Path:
    """
    Create the output file with the run input, the coordinates and empty
    dynamic variables.

    Args:
        filename: Output path
        config: Run configuration, stored as YAML text
        coords: Coordinates in array-axis order (advected coordinate first)
        nspecies: Number of species
        overwrite: Replace an existing file

    Returns:
        Path of the created file
    """
    shape = tuple(c.n for c in coords.values())
    with open_output_file(filename, overwrite) as f:
        f.attrs["file_info"] = "Output distribution function data from moment_kinetics"
        f.attrs["version"] = IO_FORMAT_VERSION
        f.attrs["timestamp"] = datetime.now(timezone.utc).isoformat()
        f.attrs["input"] = config.to_yaml()

        coords_group = f.create_group("coords")
        coords_group.attrs["order"] = np.array(list(coords), dtype=h5py.string_dtype())
        for coord in coords.values():
            define_io_coordinate(coords_group, coord)

        dynamic = f.create_group("dynamic_data")
        dynamic.create_dataset("time", shape=(0,), maxshape=(None,), dtype=np.float64)
        dynamic.create_dataset(
            "f",
            shape=(0, nspecies) + shape,
            maxshape=(None, nspecies) + shape,
            chunks=(1, nspecies) + shape,
            dtype=np.float64,
            compression=COMPRESSION,
            compression_opts=COMPRESSION_LEVEL,
        )
    return Path(filename)


def append_to_dynamic_var(dataset: h5py.Dataset, data: Any) -> int:
    """Append one time slice to a dataset resizable along axis 0; return its index."""
    t_idx = dataset.shape[0]
    dataset.resize(t_idx + 1, axis=0)
    dataset[t_idx] = data
    return t_idx


def write_dfns_data(filename: PathLike, f_species: Sequence[Array], t: float) -> int:
    """
    Append the distribution function of every species at time t.

    Returns:
        Time index written

    Raises:
        ValueError: If the number of species or the array shape does not
            match the file
    """
    with h5py.File(filename, "a") as f:
        dynamic = f["dynamic_data"]
        expected = dynamic["f"].shape[1:]
        data = np.stack([np.asarray(fs) for fs in f_species])
        if data.shape != expected:
            raise ValueError(f"f shape {data.shape} does not match output shape {expected}")
        append_to_dynamic_var(dynamic["f"], data)
        return append_to_dynamic_var(dynamic["time"], t)


def load_dfns(
    filename: PathLike,
) -> Tuple[np.ndarray, np.ndarray, Dict[str, Dict[str, Any]], Dict[str, Any]]:
    """
    Read an output file.

    Returns:
        (f [nt, nspecies, n, *orthogonal], time [nt], coords, metadata), where
        coords maps each coordinate name to its attributes plus "grid" and
        "wgts", in array-axis order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If f does not match the stored coordinate sizes
    """
    path = Path(filename)
    if not path.exists():
        raise FileNotFoundError(f"Output file {path} not found")

    with h5py.File(path, "r") as f:
        metadata = {key: _to_python(value) for key, value in f.attrs.items()}
        coords = {}
        for name in f["coords"].attrs["order"]:
            name = _to_python(name)
            group = f["coords"][name]
            entry = {key: _to_python(value) for key, value in group.attrs.items()}
            entry["grid"] = group["grid"][()]
            entry["wgts"] = group["wgts"][()]
            coords[name] = entry
        dfns = f["dynamic_data"]["f"][()]
        times = f["dynamic_data"]["time"][()]

    shape = tuple(c["n_local"] for c in coords.values())
    if dfns.shape[2:] != shape:
        raise ValueError(f"f shape {dfns.shape[2:]} does not match coordinate sizes {shape}")
    return dfns, times, coords, metadata


def _to_python(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, np.generic):
        return value.item()
    return value
