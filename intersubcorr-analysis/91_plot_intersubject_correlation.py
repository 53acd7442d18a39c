#!/usr/bin/env python3
"""
Intersubject Correlation Figures

Figures
-------
- isc_stat_ortho: orthogonal slices of the t-map, masked to significant voxels
- isc_rho_ortho: orthogonal slices of the unthresholded rho map
- isc_null_distribution: permutation distributions of the maximum cluster
  statistic with the observed cluster statistics marked
- isc_profile: t-values along the flattened observations with significant
  clusters shaded

Inputs
------
results/isc_cluster/ as written by 02_intersubject_correlation.py. Missing
inputs raise; no silent fallbacks.

Usage
-----
python intersubcorr-analysis/91_plot_intersubject_correlation.py
"""

import os
import sys
from pathlib import Path

# Add parent (repo root) to sys.path for 'intersubcorr'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from nilearn import image

from intersubcorr.logging_utils import log_script_end
from intersubcorr.io_utils import find_nifti_files
from intersubcorr.neuro_utils import load_nifti
from intersubcorr.script_utils import setup_script
from intersubcorr.plotting import (
    COLOR_NEGATIVE,
    COLOR_POSITIVE,
    figure_size,
    plot_null_distribution,
    plot_ortho_stat_map,
    plot_statistic_profile,
    save_figure,
)

results_dir, logger, dirs = setup_script(
    __file__,
    results_pattern='isc_cluster',
    output_subdirs=['figures'],
)
figures_dir = dirs['figures']

obs_df = pd.read_csv(results_dir / "isc_observations.csv")
clusters_df = pd.read_csv(results_dir / "isc_clusters.csv")
null_df = pd.read_csv(results_dir / "isc_null_distribution.csv")

# Brain maps (only written for 3D grids)
maps = {p.name: p for p in find_nifti_files(results_dir, pattern='isc_')}
logger.info(f"Found {len(maps)} map(s): {sorted(maps)}")
if 'isc_stat.nii.gz' in maps:
    stat_img = load_nifti(maps['isc_stat.nii.gz'])
    mask_img = load_nifti(maps['isc_mask.nii.gz'])
    masked = image.new_img_like(stat_img, np.where(mask_img.get_fdata() > 0, stat_img.get_fdata(), 0.0))
    plot_ortho_stat_map(masked, title="t (significant clusters)", outpath=figures_dir / "isc_stat_ortho.png")
    plot_ortho_stat_map(
        load_nifti(maps['isc_rho.nii.gz']),
        title="Spearman rho",
        outpath=figures_dir / "isc_rho_ortho.png",
    )
    logger.info("Saved orthogonal slice figures")
else:
    logger.info("isc_stat.nii.gz not found (non-3D data); skipping brain maps")

# Null distributions with observed cluster statistics
fig, axes = plt.subplots(1, 2, figsize=figure_size(2, aspect=0.4))
for ax, sign, color in zip(axes, ('positive', 'negative'), (COLOR_POSITIVE, COLOR_NEGATIVE)):
    dist = null_df[sign].dropna().to_numpy()
    observed = clusters_df.loc[clusters_df['sign'] == sign, 'clusterstat'].to_numpy()
    if dist.size == 0:
        ax.set_axis_off()
        continue
    plot_null_distribution(dist, observed, ax=ax, color=color,
                           xlabel=f"Max {sign} cluster statistic")
save_figure(fig, figures_dir / "isc_null_distribution", include_png=True)
plt.close(fig)

# Statistic profile along the flattened observations
fig, ax = plt.subplots(figsize=figure_size(2, aspect=0.35))
significant = clusters_df[clusters_df['significant']]
sig_pos = significant.loc[significant['sign'] == 'positive', 'cluster'].tolist()
sig_neg = significant.loc[significant['sign'] == 'negative', 'cluster'].tolist()
stat = obs_df['stat'].to_numpy()
finite = np.isfinite(stat)
stat_plot = np.where(finite, stat, np.nan)
ax.plot(np.flatnonzero(obs_df['mask'].to_numpy() & finite),
        stat_plot[obs_df['mask'].to_numpy() & finite], '.', color='black', markersize=2)
plot_statistic_profile(stat_plot, ax=ax, xlabel='Observation (flattened grid)',
                       title=f"{len(sig_pos)} positive / {len(sig_neg)} negative significant clusters")
save_figure(fig, figures_dir / "isc_profile", include_png=True)
plt.close(fig)

logger.info(f"Figures saved to {figures_dir}")
log_script_end(logger)
