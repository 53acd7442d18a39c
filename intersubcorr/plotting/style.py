#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Publication plotting style configuration.

Provides:
- PLOT_PARAMS: Centralized parameter dictionary
- apply_nature_rc(): Apply rcParams to matplotlib/seaborn
- figure_size(): Figure dimensions for single/double column layouts
"""

from typing import Tuple, Optional, Literal
import matplotlib
import seaborn as sns

MM_TO_INCHES = 1 / 25.4
_MM = MM_TO_INCHES
_SINGLE_COL_MM = 89.0
_DOUBLE_COL_MM = 183.0
_MAX_HEIGHT_MM = 170.0

_BASE_LINEWIDTH = 0.5

PLOT_PARAMS = {
    # Font sizes
    'font_size_title': 8.0,
    'font_size_label': 7.0,
    'font_size_tick': 6.0,
    'font_size_legend': 6.0,

    # Line widths
    'base_linewidth': _BASE_LINEWIDTH,
    'spine_linewidth': _BASE_LINEWIDTH,
    'axes_linewidth': _BASE_LINEWIDTH,
    'plot_linewidth': _BASE_LINEWIDTH * 2,
    'reference_line_width': _BASE_LINEWIDTH * 1.5,

    # Ticks
    'tick_major_size': 3.0,
    'tick_major_width': _BASE_LINEWIDTH,

    # Transparency presets
    'reference_line_alpha': 0.6,
    'cluster_band_alpha': 0.2,
    'hist_alpha': 0.7,

    # Brain maps
    'stat_threshold': None,     # None: show all non-zero voxels
    'cut_coords': None,         # None: let nilearn pick the slices
    'draw_cross': True,

    # Export settings
    'dpi': 300,
    'format': 'pdf',
    'facecolor': 'white',
    'transparent': False,

    # Canonical labels
    'ylabel_t': 't-value',
    'ylabel_rho': "Correlation (ρ)",
}


def apply_nature_rc(params: dict = None) -> None:
    """
    Apply publication rcParams to matplotlib/seaborn.

    Parameters
    ----------
    params : dict, optional
        PLOT_PARAMS override. If None, uses global PLOT_PARAMS.
    """
    if params is None:
        params = PLOT_PARAMS

    matplotlib.rcParams['font.family'] = 'sans-serif'
    matplotlib.rcParams['font.sans-serif'] = ['Arial', 'Helvetica', 'DejaVu Sans']

    matplotlib.rcParams['font.size'] = params['font_size_label']
    matplotlib.rcParams['axes.titlesize'] = params['font_size_title']
    matplotlib.rcParams['axes.labelsize'] = params['font_size_label']
    matplotlib.rcParams['xtick.labelsize'] = params['font_size_tick']
    matplotlib.rcParams['ytick.labelsize'] = params['font_size_tick']
    matplotlib.rcParams['legend.fontsize'] = params['font_size_legend']

    matplotlib.rcParams['axes.linewidth'] = params['axes_linewidth']
    matplotlib.rcParams['xtick.major.width'] = params['tick_major_width']
    matplotlib.rcParams['ytick.major.width'] = params['tick_major_width']
    matplotlib.rcParams['xtick.major.size'] = params['tick_major_size']
    matplotlib.rcParams['ytick.major.size'] = params['tick_major_size']
    matplotlib.rcParams['lines.linewidth'] = params['plot_linewidth']

    matplotlib.rcParams['savefig.transparent'] = params['transparent']
    matplotlib.rcParams['figure.facecolor'] = params['facecolor']

    # Editable text in vector output
    matplotlib.rcParams['pdf.fonttype'] = 42
    matplotlib.rcParams['svg.fonttype'] = 'none'

    matplotlib.rcParams['savefig.dpi'] = params['dpi']
    matplotlib.rcParams['savefig.format'] = params['format']

    sns.set_style('ticks', {
        'axes.grid': False,
        'axes.linewidth': params['axes_linewidth'],
    })


def figure_size(
    columns: Literal[1, 2],
    height_mm: Optional[float] = None,
    aspect: Optional[float] = None
) -> Tuple[float, float]:
    """
    Figure size in inches for a one- or two-column layout.

    Give either ``height_mm`` or ``aspect`` (height / width); the default
    aspect is 0.6. Heights are capped at 170 mm.
    """
    if columns not in (1, 2):
        raise ValueError(f"columns must be 1 or 2, got {columns}")
    width_mm = _SINGLE_COL_MM if columns == 1 else _DOUBLE_COL_MM
    if height_mm is None:
        height_mm = width_mm * (0.6 if aspect is None else aspect)
    height_mm = min(height_mm, _MAX_HEIGHT_MM)
    return width_mm * _MM, height_mm * _MM


__all__ = [
    'PLOT_PARAMS',
    'apply_nature_rc',
    'figure_size',
]
