"""
Paired datasets for the intersubject correlation analysis.

A dataset is a ``dat`` matrix (samples x replications) with its ``design``
(row 1: condition labels 1/2, row 2: unit ids) and optionally the grid shape
``dim`` of the samples. Stored datasets are .npz files; when none is
available a dataset with a known effect region can be simulated.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import nibabel as nib

logger = logging.getLogger(__name__)


def simulate_paired_dataset(
    n_units: int,
    dim: Tuple[int, ...],
    effect: float = 0.8,
    effect_slices: Optional[Tuple[slice, ...]] = None,
    seed: Optional[int] = None,
    shuffle_columns: bool = True,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Simulate two paired variables per unit on a grid of observations.

    Inside the effect region the condition-2 value of each unit is
    ``effect * x + sqrt(1 - effect**2) * noise`` where ``x`` is the unit's
    condition-1 value, so the population correlation there equals ``effect``.
    Elsewhere the two conditions are independent.

    Parameters
    ----------
    n_units : int
        Number of units (subjects)
    dim : tuple of int
        Grid shape of the observations
    effect : float, default=0.8
        Population correlation inside the effect region, in [-1, 1]
    effect_slices : tuple of slice, optional
        Effect region; defaults to a cube in the middle third of the grid
    seed : int, optional
        Seed for ``np.random.default_rng``
    shuffle_columns : bool, default=True
        Shuffle the replication columns (the design keeps track of them)

    Returns
    -------
    dat : np.ndarray, shape (prod(dim), 2 * n_units)
    design : np.ndarray of int, shape (2, 2 * n_units)
    truth : np.ndarray of bool, shape ``dim``
        True inside the effect region
    """
    if not -1 <= effect <= 1:
        raise ValueError(f"effect must be in [-1, 1], got {effect}")
    rng = np.random.default_rng(seed)
    dim = tuple(int(d) for d in dim)

    truth = np.zeros(dim, dtype=bool)
    if effect_slices is None:
        effect_slices = tuple(slice(d // 3, d // 3 + max(1, d // 3)) for d in dim)
    truth[effect_slices] = True
    in_effect = truth.ravel()

    n_obs = int(np.prod(dim))
    cond1 = rng.standard_normal((n_obs, n_units))
    cond2 = rng.standard_normal((n_obs, n_units))
    cond2[in_effect] = effect * cond1[in_effect] + np.sqrt(1 - effect ** 2) * cond2[in_effect]

    dat = np.hstack([cond1, cond2])
    design = np.vstack([
        np.repeat([1, 2], n_units),
        np.tile(np.arange(1, n_units + 1), 2),
    ])
    if shuffle_columns:
        order = rng.permutation(2 * n_units)
        dat = dat[:, order]
        design = design[:, order]

    logger.info(
        f"Simulated {n_units} units on a {dim} grid; effect r={effect} in {int(in_effect.sum())} observations"
    )
    return dat, design, truth


def load_paired_dataset(path) -> Tuple[np.ndarray, np.ndarray, Optional[Tuple[int, ...]]]:
    """
    Load ``dat``, ``design`` and optional ``dim`` from an .npz file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    KeyError
        If 'dat' or 'design' is missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    with np.load(path) as archive:
        missing = {'dat', 'design'} - set(archive.files)
        if missing:
            raise KeyError(f"Dataset {path.name} is missing arrays: {sorted(missing)}")
        dat = archive['dat']
        design = archive['design']
        dim = tuple(int(d) for d in archive['dim']) if 'dim' in archive.files else None

    logger.info(f"Loaded dataset {path.name}: dat {dat.shape}, design {design.shape}, dim {dim}")
    return dat, design, dim


def save_paired_dataset(path, dat, design, dim=None) -> Path:
    """Write a dataset in the format read by ``load_paired_dataset``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    arrays = {'dat': np.asarray(dat), 'design': np.asarray(design)}
    if dim is not None:
        arrays['dim'] = np.asarray(dim, dtype=int)
    np.savez(path, **arrays)
    return path


def grid_reference_image(dim: Tuple[int, int, int], voxel_size_mm: float = 4.0):
    """
    Empty image defining a grid centred on the origin, for saving grid maps.
    """
    dim = tuple(int(d) for d in dim)
    if len(dim) != 3:
        raise ValueError(f"A 3D grid is required, got dim={dim}")
    affine = np.diag([voxel_size_mm, voxel_size_mm, voxel_size_mm, 1.0])
    affine[:3, 3] = -voxel_size_mm * (np.asarray(dim) - 1) / 2
    return nib.Nifti1Image(np.zeros(dim, dtype=np.float32), affine)


__all__ = [
    'simulate_paired_dataset',
    'load_paired_dataset',
    'save_paired_dataset',
    'grid_reference_image',
]
