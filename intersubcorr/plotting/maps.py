"""
Plots of intersubject correlation results: orthogonal brain slices,
statistic profiles with cluster highlights, and permutation null distributions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from nilearn import image, plotting

from .colors import CMAP_BRAIN, COLOR_NEGATIVE, COLOR_POSITIVE
from .helpers import compute_symmetric_range, style_spines
from .style import PLOT_PARAMS, apply_nature_rc


def plot_ortho_stat_map(
    stat_img,
    anat_img=None,
    title: str = "",
    threshold: Optional[float] = None,
    cut_coords: Optional[Sequence[float]] = None,
    outpath: Path | str | None = None,
    params: dict = None,
):
    """
    Orthogonal (sagittal/coronal/axial) view of a statistic over an anatomy.

    Parameters
    ----------
    stat_img : nibabel.Nifti1Image
        Statistic or source map; non-finite values are clipped to the
        finite colour range (+/-inf) or set to 0 (NaN)
    anat_img : nibabel.Nifti1Image, optional
        Background image (nilearn's MNI template when None)
    title : str
    threshold : float, optional
        Hide |values| below threshold
    cut_coords : sequence of 3 floats, optional
        Slice position in world coordinates
    outpath : str or Path, optional
        If given, the figure is saved there and closed

    Returns
    -------
    nilearn display object (None when saved and closed)
    """
    if params is None:
        params = PLOT_PARAMS
    apply_nature_rc(params)

    data = np.asarray(stat_img.get_fdata(), dtype=float)
    vmin, vmax = compute_symmetric_range(data)
    data = np.nan_to_num(data, nan=0.0, posinf=vmax, neginf=vmin)
    clean_img = image.new_img_like(stat_img, data)

    kwargs = {}
    if anat_img is not None:
        kwargs['bg_img'] = anat_img
    display = plotting.plot_stat_map(
        clean_img,
        display_mode='ortho',
        cut_coords=cut_coords if cut_coords is not None else params['cut_coords'],
        threshold=threshold if threshold is not None else params['stat_threshold'],
        cmap=CMAP_BRAIN,
        vmax=vmax,
        colorbar=True,
        draw_cross=params['draw_cross'],
        **kwargs,
    )
    if title:
        display.title(title, size=params['font_size_title'] * 1.5, color='black', bgcolor='white')

    if outpath is not None:
        outpath = Path(outpath)
        outpath.parent.mkdir(parents=True, exist_ok=True)
        display.savefig(str(outpath), dpi=params['dpi'])
        display.close()
        plt.close('all')
        return None
    return display


def plot_statistic_profile(
    stat: np.ndarray,
    x: Optional[np.ndarray] = None,
    pos_labels: Optional[np.ndarray] = None,
    neg_labels: Optional[np.ndarray] = None,
    significant_pos: Sequence[int] = (),
    significant_neg: Sequence[int] = (),
    critval=None,
    ax=None,
    xlabel: str = 'Observation',
    ylabel: str = None,
    title: str = "",
    params: dict = None,
):
    """
    Line plot of a 1D statistic with significant clusters shaded.

    Parameters
    ----------
    stat : np.ndarray, shape (n_observations,)
    x : np.ndarray, optional
        Positions of the observations (e.g. time in s); defaults to indices
    pos_labels, neg_labels : np.ndarray of int, optional
        Cluster label per observation (0 outside clusters)
    significant_pos, significant_neg : sequence of int
        Labels of the clusters to shade
    critval : float or array-like, optional
        Cluster-forming threshold(s), drawn as dashed lines
    ax : plt.Axes, optional

    Returns
    -------
    plt.Axes
    """
    if params is None:
        params = PLOT_PARAMS
    apply_nature_rc(params)

    stat = np.asarray(stat, dtype=float)
    if x is None:
        x = np.arange(stat.size)
    if ax is None:
        _, ax = plt.subplots(figsize=(4, 2.5))

    ax.plot(x, stat, color='black', linewidth=params['plot_linewidth'])
    ax.axhline(0, color='grey', linewidth=params['reference_line_width'],
               alpha=params['reference_line_alpha'])
    if critval is not None:
        for cv in np.atleast_1d(critval):
            ax.axhline(cv, color='grey', linestyle='--', linewidth=params['reference_line_width'])

    for labels, selected, color in (
        (pos_labels, significant_pos, COLOR_POSITIVE),
        (neg_labels, significant_neg, COLOR_NEGATIVE),
    ):
        if labels is None:
            continue
        labels = np.asarray(labels).ravel()
        for k in selected:
            members = np.flatnonzero(labels == k)
            if members.size:
                ax.axvspan(x[members[0]], x[members[-1]], color=color,
                           alpha=params['cluster_band_alpha'], linewidth=0)

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel if ylabel is not None else params['ylabel_t'])
    if title:
        ax.set_title(title)
    style_spines(ax, params=params)
    return ax


def plot_null_distribution(
    distribution: np.ndarray,
    observed: Sequence[float] = (),
    ax=None,
    xlabel: str = 'Maximum cluster statistic',
    color: str = COLOR_POSITIVE,
    params: dict = None,
):
    """
    Histogram of a permutation distribution with observed statistics marked.
    """
    if params is None:
        params = PLOT_PARAMS
    apply_nature_rc(params)

    if ax is None:
        _, ax = plt.subplots(figsize=(3, 2.5))

    sns.histplot(np.asarray(distribution, dtype=float), ax=ax, color=color,
                 alpha=params['hist_alpha'], edgecolor='white', linewidth=params['base_linewidth'])
    for value in observed:
        ax.axvline(value, color='black', linestyle='--', linewidth=params['reference_line_width'])

    ax.set_xlabel(xlabel)
    ax.set_ylabel('Randomizations')
    style_spines(ax, params=params)
    return ax


__all__ = [
    'plot_ortho_stat_map',
    'plot_statistic_profile',
    'plot_null_distribution',
]
