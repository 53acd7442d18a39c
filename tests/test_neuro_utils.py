"""
Tests for NIfTI helpers: fiducial head frame, realignment, resampling and
volume/sample mapping.
"""

from __future__ import annotations

import numpy as np
import nibabel as nib
import pytest
from nibabel.affines import apply_affine

from intersubcorr.neuro_utils import (
    downsampled_grid,
    fiducial_head_transform,
    fiducials_from_config,
    load_nifti,
    realign_with_fiducials,
    resample_source_to_anatomy,
    samples_to_volume,
    save_brain_map,
    volume_to_samples,
)


def _image(shape=(20, 24, 16), voxel=2.0, seed=0):
    affine = np.diag([voxel, voxel, voxel, 1.0])
    affine[:3, 3] = [-20.0, -24.0, -16.0]
    data = np.random.default_rng(seed).random(shape).astype(np.float32)
    return nib.Nifti1Image(data, affine)


def test_head_transform_axes_and_origin():
    nas = np.array([0.0, 90.0, 0.0])     # nasion in front (scanner +y)
    lpa = np.array([-70.0, 0.0, 0.0])
    rpa = np.array([70.0, 0.0, 0.0])
    H = fiducial_head_transform(nas, lpa, rpa)

    np.testing.assert_allclose(H[:3, :3] @ H[:3, :3].T, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(np.linalg.det(H[:3, :3]), 1.0)

    head = apply_affine(H, np.vstack([nas, lpa, rpa]))
    np.testing.assert_allclose(head[0], [90.0, 0.0, 0.0], atol=1e-9)   # +x to nasion
    np.testing.assert_allclose(head[1], [0.0, 70.0, 0.0], atol=1e-9)   # +y to lpa
    np.testing.assert_allclose(head[2], [0.0, -70.0, 0.0], atol=1e-9)
    # Up in scanner space stays up
    np.testing.assert_allclose(apply_affine(H, [0.0, 0.0, 10.0]), [0.0, 0.0, 10.0], atol=1e-9)


def test_head_transform_collinear_fiducials():
    with pytest.raises(ValueError, match="collinear"):
        fiducial_head_transform([0, 0, 0], [1, 0, 0], [-1, 0, 0])
    with pytest.raises(ValueError, match="collinear"):
        fiducial_head_transform([5, 0, 0], [1, 0, 0], [3, 0, 0])


def test_realign_keeps_data_and_moves_fiducials_to_axes():
    img = _image()
    nas, lpa, rpa = (10, 20, 8), (18, 10, 6), (2, 10, 6)
    realigned = realign_with_fiducials(img, nas, lpa, rpa)

    np.testing.assert_array_equal(np.asanyarray(realigned.dataobj), np.asanyarray(img.dataobj))
    head = apply_affine(realigned.affine, np.asarray([nas, lpa, rpa], dtype=float))
    # Nasion on +x, pre-auricular points on the y axis, symmetric around the origin
    assert head[0, 0] > 0
    np.testing.assert_allclose(head[0, 1:], 0.0, atol=1e-9)
    np.testing.assert_allclose(head[1, [0, 2]], 0.0, atol=1e-9)
    np.testing.assert_allclose(head[1], -head[2], atol=1e-9)
    assert head[1, 1] > 0


def test_downsampled_grid():
    img = _image(shape=(21, 24, 16))
    affine, shape = downsampled_grid(img, 10)
    assert shape == (3, 3, 2)
    np.testing.assert_allclose(np.diag(affine)[:3], [20.0, 20.0, 20.0])
    np.testing.assert_allclose(affine[:3, 3], img.affine[:3, 3])

    with pytest.raises(ValueError):
        downsampled_grid(img, 0)


def test_resample_source_to_anatomy_grid():
    anatomy = _image(shape=(20, 24, 16))
    source = _image(shape=(10, 12, 8), voxel=4.0, seed=1)

    on_anat, anat = resample_source_to_anatomy(source, anatomy)
    assert on_anat.shape == anatomy.shape
    assert anat is anatomy

    coarse, anat_coarse = resample_source_to_anatomy(source, anatomy, downsample=4, interpolation='nearest')
    assert coarse.shape == (5, 6, 4)
    assert anat_coarse.shape == (5, 6, 4)
    np.testing.assert_allclose(coarse.affine, anat_coarse.affine)


def test_volume_sample_roundtrip_with_mask():
    mask = np.zeros((4, 4, 4), dtype=bool)
    mask[1:3, 1:3, 1:3] = True
    stack = np.random.default_rng(0).random((4, 4, 4, 6))

    samples = volume_to_samples(stack, mask)
    assert samples.shape == (8, 6)

    vol = samples_to_volume(samples[:, 0], mask)
    np.testing.assert_allclose(vol[mask], stack[..., 0][mask])
    assert np.isnan(vol[0, 0, 0])

    with pytest.raises(ValueError):
        samples_to_volume(np.zeros(7), mask)
    with pytest.raises(ValueError):
        volume_to_samples(np.zeros((3, 3, 3)), mask)


def test_save_and_load_brain_map(tmp_path):
    ref = _image(shape=(4, 5, 6))
    data = np.arange(120, dtype=float).reshape(4, 5, 6)
    out = save_brain_map(data, tmp_path / "maps" / "stat.nii.gz", ref)

    loaded = load_nifti(out)
    np.testing.assert_allclose(loaded.get_fdata(), data)
    np.testing.assert_allclose(loaded.affine, ref.affine)

    with pytest.raises(FileNotFoundError):
        load_nifti(tmp_path / "missing.nii.gz")


def test_fiducials_from_config():
    fid = {'nas': [44, 105, 16], 'lpa': (87, 48, 10), 'rpa': (2, 48, 10)}
    assert fiducials_from_config(fid) == ((44, 105, 16), (87, 48, 10), (2, 48, 10))
    with pytest.raises(KeyError):
        fiducials_from_config({'nas': (0, 0, 0)})
