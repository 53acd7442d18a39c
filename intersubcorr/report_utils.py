"""
Reporting utilities: result tables, cluster peak summaries and metadata files.

Tables are pandas DataFrames written to CSV by the analysis scripts.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .formatters import format_ci, format_p_cell, significance_stars
from .statfun import StatfunConfig, unit_label_positions
from .stats_utils import correlate_pair_with_ci


def cluster_table(result, alpha: float = 0.05) -> pd.DataFrame:
    """
    One row per cluster of a Monte-Carlo cluster test.

    Parameters
    ----------
    result : MontecarloResult
    alpha : float, default=0.05
        Significance threshold for the 'significant' column

    Returns
    -------
    pd.DataFrame
        Columns: sign, cluster, clusterstat, size, prob, significant, p_str, stars.
        Empty (with these columns) when no cluster was found.
    """
    rows = []
    for sign, clusters in (('positive', result.posclusters), ('negative', result.negclusters)):
        for k, cluster in enumerate(clusters, start=1):
            rows.append({
                'sign': sign,
                'cluster': k,
                'clusterstat': cluster['clusterstat'],
                'size': cluster['size'],
                'prob': cluster['prob'],
                'significant': bool(cluster['prob'] <= alpha),
                'p_str': format_p_cell(cluster['prob']),
                'stars': significance_stars(cluster['prob']),
            })
    columns = ['sign', 'cluster', 'clusterstat', 'size', 'prob', 'significant', 'p_str', 'stars']
    return pd.DataFrame(rows, columns=columns)


def observation_table(result) -> pd.DataFrame:
    """Per-observation rho, t-value, p-value and mask of a test result."""
    return pd.DataFrame({
        'observation': np.arange(result.stat.size),
        'rho': result.rho,
        'stat': result.stat,
        'prob': result.prob,
        'mask': result.mask,
    })


def cluster_peak_summary(
    result,
    dat: np.ndarray,
    design: np.ndarray,
    cfg,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """
    Correlation at the peak observation of every significant cluster.

    The peak is the observation with the largest |t| inside the cluster (with
    a 1D grid, ``dim`` None). The two paired variables at the peak are
    correlated across units with pingouin, which adds a 95% CI.

    Returns
    -------
    pd.DataFrame
        Columns: sign, cluster, peak, n, r, ci, p
    """
    cfg = StatfunConfig.from_mapping(cfg)
    positions, _ = unit_label_positions(cfg, design)
    dat = np.atleast_2d(np.asarray(dat, dtype=float))
    abs_stat = np.where(np.isnan(result.stat), -np.inf, np.abs(result.stat))

    rows = []
    for sign, clusters, labelmat in (
        ('positive', result.posclusters, result.posclusterslabelmat),
        ('negative', result.negclusters, result.negclusterslabelmat),
    ):
        if labelmat is None:
            continue
        labels = np.asarray(labelmat).ravel()
        for k, cluster in enumerate(clusters, start=1):
            if cluster['prob'] > alpha:
                continue
            members = np.flatnonzero(labels == k)
            peak = int(members[np.argmax(abs_stat[members])])
            summary = correlate_pair_with_ci(
                dat[peak, positions[:, 0]], dat[peak, positions[:, 1]], method=cfg.type,
            )
            rows.append({
                'sign': sign,
                'cluster': k,
                'peak': peak,
                'n': summary['n'],
                'r': round(summary['r'], 3),
                'ci': format_ci(summary['ci_low'], summary['ci_high']),
                'p': format_p_cell(summary['p']),
            })
    return pd.DataFrame(rows, columns=['sign', 'cluster', 'peak', 'n', 'r', 'ci', 'p'])


def save_results_metadata(
    results_dir: Path,
    analysis_name: str,
    parameters: Dict,
    logger: Optional[logging.Logger] = None
) -> Path:
    """
    Save analysis metadata (parameters, timestamp, etc.) to results directory.

    Parameters
    ----------
    results_dir : Path
        Results directory
    analysis_name : str
        Name of the analysis
    parameters : dict
        Dictionary of analysis parameters (e.g., random seed, paths, etc.)
    logger : logging.Logger, optional
        Logger instance

    Returns
    -------
    Path
        Path to the saved metadata file (results_dir/analysis_metadata.txt)
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    metadata_path = results_dir / "analysis_metadata.txt"

    metadata_text = f"""
{analysis_name.upper()} - ANALYSIS METADATA
{'=' * 80}

Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
Results directory: {results_dir.name}

Parameters:
"""
    for key, value in parameters.items():
        metadata_text += f"  {key}: {value}\n"
    metadata_text += "\n" + "=" * 80 + "\n"

    with open(metadata_path, 'w') as f:
        f.write(metadata_text)

    if logger:
        logger.info(f"Metadata saved to: {metadata_path}")

    return metadata_path


__all__ = [
    'cluster_table',
    'observation_table',
    'cluster_peak_summary',
    'save_results_metadata',
]
