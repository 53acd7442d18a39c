#!/usr/bin/env python3
"""
Intersubject Correlation with Cluster-based Permutation Testing

METHODS
=======

Rationale
---------
We test where two paired measurements (e.g. a brain measure in two sessions,
or a brain measure and a behavioural score) covary across participants. For
every observation (voxel) the two variables are correlated across
participants; a cluster-based permutation test controls the family-wise
error rate across observations.

Data
----
A paired dataset: a samples x replications matrix with one condition-1 and
one condition-2 replication per participant, and a design matrix holding the
condition labels (row 1) and participant ids (row 2). When no dataset is
configured (CONFIG['ISC_DATASET']), a dataset with a known effect region is
simulated (CONFIG['SIM_*']).

Statistic
---------
Spearman's rho across participants per voxel, transformed to
t = rho * sqrt(n - 2) / sqrt(1 - rho^2). Perfect correlations give infinite
t-values, which are kept as such.

Permutation Test
----------------
Under the null hypothesis the assignment of condition-2 measurements to
participants is exchangeable. In each of MC_NUMRANDOMIZATION randomizations
the participant ids of the condition-2 replications were shuffled and the
statistic recomputed. Clusters were formed from face-connected voxels
exceeding the parametric critical t at MC_CLUSTERALPHA (two-sided), and the
cluster statistic was the sum of t-values. Cluster p-values compare each
observed cluster with the distribution of the maximum (minimum for negative
clusters) cluster statistic, counting the observed labelling once, and are
doubled for the two-sided test.

Outputs
-------
All results are saved to results/isc_cluster/:
- isc_observations.csv: rho, t, p and significance per observation
- isc_clusters.csv: cluster statistics and p-values
- isc_cluster_peaks.csv: correlation with 95% CI at significant cluster peaks
- isc_stat.nii.gz, isc_rho.nii.gz, isc_mask.nii.gz: maps (3D grids only)
- isc_null_distribution.csv: permutation distributions
- analysis_metadata.txt
- 02_intersubject_correlation.py: Copy of this script
"""

import os
import sys
from pathlib import Path

# Add parent (repo root) to sys.path for 'intersubcorr'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
script_dir = Path(__file__).parent

import numpy as np
import pandas as pd

from intersubcorr import CONFIG
from intersubcorr.logging_utils import setup_analysis, log_script_end
from intersubcorr.datasets import (
    simulate_paired_dataset,
    load_paired_dataset,
    grid_reference_image,
)
from intersubcorr.montecarlo import montecarlo_intersubcorr
from intersubcorr.neuro_utils import save_brain_map
from intersubcorr.report_utils import (
    cluster_table,
    observation_table,
    cluster_peak_summary,
    save_results_metadata,
)
from intersubcorr.formatters import format_pvalue_plain


# =====================
# Configuration (local)
# =====================
TAIL = 0  # Two-sided: positive and negative correlations

STAT_CFG = {
    'type': CONFIG['STATFUN_TYPE'],
    'ivar': 1,
    'uvar': 2,
    'tail': TAIL,
}

config, output_dir, logger = setup_analysis(
    analysis_name="isc_cluster",
    results_base=script_dir / 'results',
    script_file=__file__,
    extra_config={'STAT_CFG': STAT_CFG},
)

# 1) Load or simulate the paired dataset
dataset_path = CONFIG['ISC_DATASET']
if dataset_path.exists():
    dat, design, dim = load_paired_dataset(dataset_path)
    truth = None
else:
    logger.info(f"No dataset at {dataset_path}; simulating one")
    dim = CONFIG['SIM_GRID']
    dat, design, truth = simulate_paired_dataset(
        n_units=CONFIG['SIM_N_UNITS'],
        dim=dim,
        effect=CONFIG['SIM_EFFECT'],
        seed=CONFIG['RANDOM_SEED'],
    )
logger.info(f"dat: {dat.shape}, design: {design.shape}")

# 2) Monte-Carlo cluster test
mc_cfg = {
    'numrandomization': CONFIG['MC_NUMRANDOMIZATION'],
    'correctm': CONFIG['MC_CORRECTM'],
    'alpha': CONFIG['ALPHA'],
    'clusteralpha': CONFIG['MC_CLUSTERALPHA'],
    'clusterstatistic': CONFIG['MC_CLUSTERSTATISTIC'],
    'dim': dim,
    'seed': CONFIG['RANDOM_SEED'],
}
result = montecarlo_intersubcorr(STAT_CFG, dat, design, mc_cfg)

# 3) Tables
obs_df = observation_table(result)
obs_df.to_csv(output_dir / "isc_observations.csv", index=False)

clusters_df = cluster_table(result, alpha=CONFIG['ALPHA'])
clusters_df.to_csv(output_dir / "isc_clusters.csv", index=False)
for _, row in clusters_df[clusters_df['significant']].iterrows():
    logger.info(
        f"{row['sign']} cluster {row['cluster']}: size={row['size']}, "
        f"stat={row['clusterstat']:.2f}, p={format_pvalue_plain(row['prob'])}"
    )

peaks_df = cluster_peak_summary(result, dat, design, STAT_CFG, alpha=CONFIG['ALPHA'])
peaks_df.to_csv(output_dir / "isc_cluster_peaks.csv", index=False)

null_df = pd.DataFrame({
    'positive': result.posdistribution if result.posdistribution is not None else np.nan,
    'negative': result.negdistribution if result.negdistribution is not None else np.nan,
}, index=pd.RangeIndex(result.numrandomization, name='randomization'))
null_df.to_csv(output_dir / "isc_null_distribution.csv")

# 4) Maps (3D grids only)
if dim is not None and len(dim) == 3:
    ref_img = grid_reference_image(dim, CONFIG['SIM_VOXEL_SIZE_MM'])
    save_brain_map(result.stat.reshape(dim), output_dir / "isc_stat.nii.gz", ref_img)
    save_brain_map(result.rho.reshape(dim), output_dir / "isc_rho.nii.gz", ref_img)
    save_brain_map(result.mask.reshape(dim).astype(float), output_dir / "isc_mask.nii.gz", ref_img)
    if truth is not None:
        save_brain_map(truth.astype(float), output_dir / "isc_truth.nii.gz", ref_img)

if truth is not None:
    hits = int(np.sum(result.mask & truth.ravel()))
    false_pos = int(np.sum(result.mask & ~truth.ravel()))
    logger.info(f"Simulation: {hits}/{int(truth.sum())} effect voxels detected, {false_pos} false positives")

save_results_metadata(
    output_dir,
    "Intersubject correlation (cluster-based permutation)",
    {
        'n_observations': result.stat.size,
        'df': result.df,
        'critval': result.critval,
        'n_significant_observations': int(result.mask.sum()),
        **{f"MC_{k}": v for k, v in mc_cfg.items()},
        **{f"STAT_{k}": v for k, v in STAT_CFG.items()},
    },
    logger,
)

log_script_end(logger)
