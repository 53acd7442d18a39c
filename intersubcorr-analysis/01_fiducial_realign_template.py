#!/usr/bin/env python3
"""
Fiducial-based Realignment of the Anatomical Template

METHODS
=======

Rationale
---------
Source reconstructions of MEG data live in a head coordinate system defined
by three anatomical landmarks (fiducials). Before a source-level statistic can
be shown on an anatomical template, the template has to be expressed in the
same head frame.

Data
----
Structural template: single-subject T1 (SPM canonical, 2 mm). When the
configured template is not available, nilearn's MNI152 template is used.

Source map: grand-average source-level contrast (power), stored as NIfTI.

Head Frame
----------
The fiducials (nasion, left and right pre-auricular points) are given as voxel
indices of the template. They are mapped to mm with the template affine and
define a CTF-style head frame: origin midway between the pre-auricular
points, +x towards the nasion, +z perpendicular to the fiducial plane
(upwards), +y completing a right-handed system (towards the left ear). The
realigned template keeps its voxel data; only its affine changes.

Source Interpolation
--------------------
With RUN_INTERPOLATION enabled, the source map is interpolated onto the
realigned template downsampled by SOURCE_DOWNSAMPLE (every n-th voxel) and
shown in an orthogonal slice view. The step is disabled by default: the
realignment is the part of the procedure that is routinely checked.

Outputs
-------
All results are saved to results/fiducial_realign/:
- template_headframe.nii.gz: Realigned template
- head_transform.csv: 4x4 transform from template mm to head coordinates
- source_on_template.nii.gz, source_ortho.png: Interpolated source (optional)
- 01_fiducial_realign_template.py: Copy of this script
"""

import os
import sys
from pathlib import Path

# Add parent (repo root) to sys.path for 'intersubcorr'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
script_dir = Path(__file__).parent

import numpy as np
import pandas as pd
from nibabel.affines import apply_affine
from nilearn import datasets

from intersubcorr import CONFIG
from intersubcorr.logging_utils import setup_analysis, log_script_end
from intersubcorr.neuro_utils import (
    load_nifti,
    fiducial_head_transform,
    fiducials_from_config,
    realign_with_fiducials,
    resample_source_to_anatomy,
    transform_image,
)
from intersubcorr.plotting import plot_ortho_stat_map


# =====================
# Configuration (local)
# =====================
RUN_INTERPOLATION = False  # Interpolate and plot the source map after realignment


config, output_dir, logger = setup_analysis(
    analysis_name="fiducial_realign",
    results_base=script_dir / 'results',
    script_file=__file__,
    extra_config={'RUN_INTERPOLATION': RUN_INTERPOLATION},
)

# Load the anatomical template
template_path = CONFIG['TEMPLATE_T1']
if template_path.exists():
    template = load_nifti(template_path)
    logger.info(f"Loaded template: {template_path}")
else:
    template = datasets.load_mni152_template()
    logger.warning(f"Template not found at {template_path}; using nilearn's MNI152 template")
logger.info(f"Template shape: {template.shape}, voxel size: {template.header.get_zooms()[:3]}")

# Realign the template to the head frame defined by its fiducials
nas, lpa, rpa = fiducials_from_config(CONFIG['TEMPLATE_FIDUCIALS'])
for name, vox in zip(('nas', 'lpa', 'rpa'), (nas, lpa, rpa)):
    if any(v < 0 or v >= s for v, s in zip(vox, template.shape[:3])):
        raise ValueError(f"Fiducial {name}={vox} lies outside the template grid {template.shape[:3]}")

realigned = realign_with_fiducials(template, nas, lpa, rpa)
realigned.to_filename(str(output_dir / "template_headframe.nii.gz"))

fid_mm = apply_affine(template.affine, np.asarray([nas, lpa, rpa], dtype=float))
head_transform = fiducial_head_transform(*fid_mm)
pd.DataFrame(head_transform).to_csv(output_dir / "head_transform.csv", index=False, header=False)

# In the head frame the fiducials lie on the x/y axes
fid_head = apply_affine(realigned.affine, np.asarray([nas, lpa, rpa], dtype=float))
for name, coords in zip(('nas', 'lpa', 'rpa'), fid_head):
    logger.info(f"{name} in head coordinates (mm): {np.round(coords, 2)}")

# Source map: interpolate onto the downsampled, realigned template
source_path = CONFIG['SOURCE_DIFF_MAP']
if RUN_INTERPOLATION or source_path.exists():
    source = load_nifti(source_path)
    logger.info(f"Loaded source map: {source_path} (shape {source.shape})")
else:
    logger.warning(f"Source map not found at {source_path}")

if not RUN_INTERPOLATION:
    logger.info("RUN_INTERPOLATION disabled; stopping before source interpolation")
else:
    # The source map shares the template mm space; move it to the head frame too
    source_head = transform_image(source, head_transform)
    source_on_template, anatomy = resample_source_to_anatomy(
        source_head, realigned, downsample=CONFIG['SOURCE_DOWNSAMPLE'],
    )
    source_on_template.to_filename(str(output_dir / "source_on_template.nii.gz"))

    plot_ortho_stat_map(
        source_on_template,
        anat_img=anatomy,
        title="Source power (difference)",
        outpath=output_dir / "source_ortho.png",
    )
    logger.info(f"Saved orthogonal view to {output_dir / 'source_ortho.png'}")

log_script_end(logger)
