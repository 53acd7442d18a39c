"""
Neuroimaging utilities for loading, realigning and resampling volumes.

This module provides the NIfTI plumbing around the intersubject correlation
statistic: loading images, expressing an anatomical template in a
fiducial-based head coordinate system, interpolating source reconstructions
onto an anatomy, and mapping between 3D/4D volumes and the
(samples x replications) matrices the statistic works on.

Dependencies
------------
- nibabel: For NIfTI file I/O and affine arithmetic
- nilearn: For resampling images onto another grid
- numpy: For array operations
"""

import logging
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np
import nibabel as nib
from nibabel.affines import apply_affine

logger = logging.getLogger(__name__)


def load_nifti(file_path):
    """
    Load a NIfTI file.

    Parameters
    ----------
    file_path : str or Path
        Path to NIfTI file (.nii or .nii.gz)

    Returns
    -------
    nibabel.nifti1.Nifti1Image
        Loaded NIfTI image object

    Raises
    ------
    FileNotFoundError
        If file does not exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"NIfTI file not found: {file_path}")

    return nib.load(str(file_path))


def fiducial_head_transform(nas, lpa, rpa) -> np.ndarray:
    """
    Rigid transform from scanner (mm) coordinates to a CTF-style head frame.

    The head frame is defined by three anatomical landmarks:
    - origin midway between the left and right pre-auricular points
    - +x axis towards the nasion
    - +z axis orthogonal to the plane through the three landmarks, pointing up
    - +y axis completing a right-handed system (towards the left ear)

    Parameters
    ----------
    nas, lpa, rpa : array-like, shape (3,)
        Nasion, left and right pre-auricular points in mm

    Returns
    -------
    np.ndarray, shape (4, 4)
        Homogeneous transform mapping mm coordinates to head coordinates

    Raises
    ------
    ValueError
        If the landmarks are collinear (the frame is undefined)

    Example
    -------
    >>> H = fiducial_head_transform([10, 0, 0], [0, 8, 0], [0, -8, 0])
    >>> apply_affine(H, [10, 0, 0])
    array([10.,  0.,  0.])
    """
    nas = np.asarray(nas, dtype=float)
    lpa = np.asarray(lpa, dtype=float)
    rpa = np.asarray(rpa, dtype=float)

    origin = (lpa + rpa) / 2
    dirx = nas - origin
    dirz = np.cross(dirx, lpa - rpa)
    if np.linalg.norm(dirx) < 1e-9 or np.linalg.norm(dirz) < 1e-9:
        raise ValueError(
            f"Fiducials are collinear, head frame undefined (nas={nas}, lpa={lpa}, rpa={rpa})"
        )
    dirx = dirx / np.linalg.norm(dirx)
    dirz = dirz / np.linalg.norm(dirz)
    diry = np.cross(dirz, dirx)

    rotation = np.vstack([dirx, diry, dirz])
    transform = np.eye(4)
    transform[:3, :3] = rotation
    transform[:3, 3] = -rotation @ origin
    return transform


def realign_with_fiducials(img, nas, lpa, rpa):
    """
    Express an anatomical image in the head frame defined by its fiducials.

    Parameters
    ----------
    img : nibabel.Nifti1Image
        Anatomical image
    nas, lpa, rpa : sequence of int
        Landmark positions as 0-based voxel indices into ``img``

    Returns
    -------
    nibabel.Nifti1Image
        Same voxel data, with affine ``head_transform @ img.affine``
    """
    voxels = np.asarray([nas, lpa, rpa], dtype=float)
    nas_mm, lpa_mm, rpa_mm = apply_affine(img.affine, voxels)
    head_transform = fiducial_head_transform(nas_mm, lpa_mm, rpa_mm)

    logger.info(
        f"Realigning with fiducials (mm): nas={np.round(nas_mm, 1)}, "
        f"lpa={np.round(lpa_mm, 1)}, rpa={np.round(rpa_mm, 1)}"
    )
    return transform_image(img, head_transform)


def transform_image(img, transform: np.ndarray):
    """Return ``img`` with its world coordinates mapped through ``transform`` (4x4)."""
    return nib.Nifti1Image(np.asanyarray(img.dataobj), transform @ img.affine, img.header)


def downsampled_grid(img, downsample: int) -> Tuple[np.ndarray, Tuple[int, int, int]]:
    """
    Affine and shape of ``img``'s grid with every ``downsample``-th voxel kept.

    Returns
    -------
    target_affine : np.ndarray, shape (4, 4)
    target_shape : tuple of int
    """
    downsample = int(downsample)
    if downsample < 1:
        raise ValueError(f"downsample must be >= 1, got {downsample}")
    target_affine = img.affine @ np.diag([downsample, downsample, downsample, 1])
    target_shape = tuple(int(np.ceil(s / downsample)) for s in img.shape[:3])
    return target_affine, target_shape


def resample_source_to_anatomy(source_img, anatomy_img, downsample: int = 1,
                               interpolation: str = "continuous"):
    """
    Interpolate a source-level map onto an (optionally downsampled) anatomy grid.

    Parameters
    ----------
    source_img : nibabel.Nifti1Image
        Source reconstruction (e.g. power of a contrast)
    anatomy_img : nibabel.Nifti1Image
        Anatomy providing the target grid
    downsample : int, default=1
        Keep every n-th anatomical voxel along each axis
    interpolation : str, default='continuous'
        Passed to nilearn ('continuous', 'linear' or 'nearest')

    Returns
    -------
    source_on_anatomy : nibabel.Nifti1Image
    anatomy_on_grid : nibabel.Nifti1Image
        The anatomy on the same grid, for overlays
    """
    from nilearn import image

    if int(downsample) == 1:
        resampled = image.resample_to_img(source_img, anatomy_img, interpolation=interpolation)
        return resampled, anatomy_img

    target_affine, target_shape = downsampled_grid(anatomy_img, downsample)
    logger.info(f"Interpolating source onto anatomy downsampled by {downsample}: grid {target_shape}")
    resampled = image.resample_img(
        source_img, target_affine=target_affine, target_shape=target_shape,
        interpolation=interpolation,
    )
    anatomy = image.resample_img(
        anatomy_img, target_affine=target_affine, target_shape=target_shape,
        interpolation="continuous",
    )
    return resampled, anatomy


def volume_to_samples(data: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Extract in-mask voxels as statistic rows.

    Parameters
    ----------
    data : np.ndarray
        3D volume or 4D stack (x, y, z, replications)
    mask : np.ndarray
        Binary mask (3D boolean array)

    Returns
    -------
    np.ndarray
        (n_voxels,) for 3D input, (n_voxels, n_replications) for 4D input
    """
    mask = np.asarray(mask, dtype=bool)
    if data.shape[:3] != mask.shape:
        raise ValueError(f"Data shape {data.shape} does not match mask shape {mask.shape}")
    if data.ndim in (3, 4):
        return data[mask]
    raise ValueError(f"Data must be 3D or 4D, got shape {data.shape}")


def samples_to_volume(values: np.ndarray, mask: np.ndarray, fill_value=np.nan) -> np.ndarray:
    """
    Reconstruct a 3D volume from one value per in-mask voxel.

    Example
    -------
    >>> mask = np.zeros((4, 4, 4), dtype=bool); mask[1:3, 1:3, 1:3] = True
    >>> vol = samples_to_volume(np.arange(8.0), mask, fill_value=0)
    """
    mask = np.asarray(mask, dtype=bool)
    values = np.asarray(values, dtype=float)
    if values.shape != (int(mask.sum()),):
        raise ValueError(f"Expected {int(mask.sum())} values for the mask, got shape {values.shape}")
    full_volume = np.full(mask.shape, fill_value, dtype=float)
    full_volume[mask] = values
    return full_volume


def save_brain_map(data, output_path, reference_img):
    """
    Save brain data as NIfTI file using reference image for header.

    Parameters
    ----------
    data : np.ndarray
        Brain data to save (must match reference image dimensions)
    output_path : str or Path
        Output file path
    reference_img : nibabel.nifti1.Nifti1Image
        Reference image for header information (affine, etc.)
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    new_img = nib.Nifti1Image(np.asarray(data, dtype=np.float32), reference_img.affine, reference_img.header)
    new_img.header.set_data_dtype(np.float32)
    nib.save(new_img, str(output_path))
    logger.info(f"Saved brain map: {output_path}")
    return output_path


def fiducials_from_config(fiducials: dict) -> Sequence[Tuple[int, int, int]]:
    """Return (nas, lpa, rpa) from a {'nas':..., 'lpa':..., 'rpa':...} mapping."""
    missing = {'nas', 'lpa', 'rpa'} - set(fiducials)
    if missing:
        raise KeyError(f"Missing fiducials: {sorted(missing)}")
    return tuple(tuple(int(v) for v in fiducials[k]) for k in ('nas', 'lpa', 'rpa'))


__all__ = [
    'load_nifti',
    'fiducial_head_transform',
    'realign_with_fiducials',
    'transform_image',
    'downsampled_grid',
    'resample_source_to_anatomy',
    'volume_to_samples',
    'samples_to_volume',
    'save_brain_map',
    'fiducials_from_config',
]
