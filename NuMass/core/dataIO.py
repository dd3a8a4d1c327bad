import json
import zipfile
from pathlib import Path
from typing import Union, Optional, Iterable, Mapping

import numpy as np # type: ignore

from .datatypes import Histogram, FitResult

PathLike = Union[str, Path]

CONTAINER_SUFFIX = ".npz"
_NAMES_KEY = "__names__"
_METADATA_KEY = "__metadata__"


class PersistenceError(OSError):
    """Spectrum container missing, unreadable, or without the requested histogram."""


def container_path(base: PathLike) -> Path:
    """<base>.npz for a user-supplied base name (suffix added only once)."""
    base = Path(base)
    return base if base.suffix == CONTAINER_SUFFIX else base.with_name(base.name + CONTAINER_SUFFIX)


# ----------------------------------------
# --- Histogram container storage  -------
# ----------------------------------------

def save_spectra(base: PathLike,
                 histograms: Mapping[str, Histogram],
                 metadata: Optional[dict] = None) -> Path:
    """
    Write named histograms into a single container file.

    The container is created (or replaced) in one go. Per histogram it holds
    <name>__counts, <name>__range, <name>__flow and <name>__title; a JSON
    metadata string is stored alongside.

    Args:
        base: Base file name; ".npz" is appended
        histograms: {name: Histogram}
        metadata: Optional JSON-serializable run information

    Returns:
        Path of the written container
    """
    path = container_path(base)
    arrays = {_NAMES_KEY: np.array(list(histograms.keys()), dtype=str),
              _METADATA_KEY: np.array(json.dumps(metadata or {}))}

    for name, hist in histograms.items():
        if "__" in name:
            raise ValueError(f"Histogram name '{name}' may not contain '__'")
        arrays[f"{name}__counts"] = hist.counts
        arrays[f"{name}__range"] = np.array([hist.lower, hist.upper], dtype=np.float64)
        arrays[f"{name}__flow"] = np.array([hist.underflow, hist.overflow], dtype=np.float64)
        arrays[f"{name}__title"] = np.array(hist.title)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez(path, **arrays)
    except OSError as e:
        raise PersistenceError(f"Cannot write spectrum container {path}: {e}") from e

    return path


def _open_container(base: PathLike):
    path = container_path(base)
    if not path.exists():
        raise PersistenceError(f"Spectrum container not found: {path}")
    try:
        return np.load(path, allow_pickle=False)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise PersistenceError(f"Cannot read spectrum container {path}: {e}") from e


def list_spectra(base: PathLike) -> list[str]:
    """Names of the histograms stored in a container."""
    with _open_container(base) as data:
        if _NAMES_KEY not in data:
            raise PersistenceError(f"{container_path(base)} is not a spectrum container")
        return [str(n) for n in data[_NAMES_KEY]]


def load_spectra_metadata(base: PathLike) -> dict:
    with _open_container(base) as data:
        if _METADATA_KEY not in data:
            return {}
        return json.loads(str(data[_METADATA_KEY]))


def load_spectrum(base: PathLike, name: str) -> Histogram:
    """
    Retrieve one histogram by name.

    Raises:
        PersistenceError: if the container or the name is missing
    """
    with _open_container(base) as data:
        if f"{name}__counts" not in data:
            raise PersistenceError(f"Histogram '{name}' not found in {container_path(base)}")
        lower, upper = data[f"{name}__range"]
        underflow, overflow = data[f"{name}__flow"]
        return Histogram(name=name,
                         lower=float(lower),
                         upper=float(upper),
                         counts=np.array(data[f"{name}__counts"], dtype=np.float64),
                         title=str(data[f"{name}__title"]),
                         underflow=float(underflow),
                         overflow=float(overflow))


def load_spectra(base: PathLike, names: Optional[Iterable[str]] = None) -> dict[str, Histogram]:
    """Load several histograms (all of them if names is None)."""
    if names is None:
        names = list_spectra(base)
    return {name: load_spectrum(base, name) for name in names}


# ----------------------------------------
# --- Fit results storage  ---------------
# ----------------------------------------

def store_fit_results(results: Mapping[str, FitResult],
                      path: PathLike,
                      metadata: Optional[dict] = None) -> Path:
    """
    Store fit results as JSON.

    File layout: {"metadata": {...}, "fits": {name: FitResult.to_dict()}}
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": metadata or {},
        "fits": {name: res.to_dict() for name, res in results.items()},
    }

    with open(path, "w") as f:
        json.dump(payload, f, indent=2)
    return path


def load_fit_results(path: PathLike) -> dict[str, dict]:
    """Read back the JSON written by store_fit_results (plain dicts)."""
    path = Path(path)
    if not path.exists():
        raise PersistenceError(f"Fit results not found: {path}")
    with open(path, "r") as f:
        return json.load(f)["fits"]


# ----------------------------------------
# --- Figure saving utility  ------------
# ----------------------------------------

def save_figure(fig, filename: PathLike, dpi: int = 150) -> None:
    """
    Save matplotlib figure to disk.

    Args:
        fig: Matplotlib figure
        filename: Output path
        dpi: Resolution for raster formats
    """
    import matplotlib.pyplot as plt

    filename = Path(filename)
    filename.parent.mkdir(parents=True, exist_ok=True)

    fig.savefig(filename, dpi=dpi, bbox_inches='tight')
    plt.close(fig)
    print(f"  → Saved: {filename}")
