"""
Plotting helpers: value ranges, axis styling and figure export.
"""

from pathlib import Path
from typing import List, Tuple, Union
import warnings

import numpy as np
import matplotlib.pyplot as plt


def compute_symmetric_range(*arrays, padding_pct: float = 0.0) -> Tuple[float, float]:
    """
    Symmetric (-v, v) range covering the finite values of all arrays.

    Infinite and NaN values are ignored; returns (-1, 1) when nothing is finite.
    """
    finite = [np.asarray(a, dtype=float).ravel() for a in arrays]
    finite = np.concatenate(finite) if finite else np.empty(0)
    finite = finite[np.isfinite(finite)]
    if finite.size == 0:
        return -1.0, 1.0
    vmax = float(np.max(np.abs(finite))) * (1 + padding_pct)
    if vmax == 0:
        vmax = 1.0
    return -vmax, vmax


def style_spines(ax, visible_spines: List[str] = ['left', 'bottom'], params: dict = None):
    """Show only ``visible_spines`` with the configured spine width."""
    from .style import PLOT_PARAMS
    if params is None:
        params = PLOT_PARAMS

    for spine_loc in ['left', 'right', 'top', 'bottom']:
        ax.spines[spine_loc].set_visible(spine_loc in visible_spines)
        if spine_loc in visible_spines:
            ax.spines[spine_loc].set_linewidth(params['spine_linewidth'])


def save_figure(
    fig: plt.Figure,
    path_stem: Union[str, Path],
    dpi: int = None,
    formats: Tuple[str, ...] = ('pdf', 'svg'),
    include_png: bool = False,
    params: dict = None
) -> List[Path]:
    """
    Save figure in vector (and optionally raster) formats.

    Parameters
    ----------
    fig : plt.Figure
        Figure to save
    path_stem : str or Path
        Output path without extension (e.g., 'output_dir/figure1')
    dpi : int, optional
        DPI for raster elements (default from PLOT_PARAMS)
    formats : tuple, default=('pdf', 'svg')
        Output formats
    include_png : bool, default=False
        Also save PNG for previews
    params : dict, optional
        PLOT_PARAMS override

    Returns
    -------
    list of Path
        Saved file paths

    Examples
    --------
    >>> save_figure(fig, output_dir / 'isc_ortho')
    [PosixPath('output_dir/isc_ortho.pdf'), PosixPath('output_dir/isc_ortho.svg')]
    """
    from .style import PLOT_PARAMS, _MM, _MAX_HEIGHT_MM
    if params is None:
        params = PLOT_PARAMS
    if dpi is None:
        dpi = params['dpi']

    path_stem = Path(path_stem)
    path_stem.parent.mkdir(parents=True, exist_ok=True)

    height = fig.get_size_inches()[1] / _MM
    if height > _MAX_HEIGHT_MM:
        warnings.warn(f"Figure height {height:.1f}mm exceeds {_MAX_HEIGHT_MM:.0f}mm")

    save_kwargs = {
        'bbox_inches': 'tight',
        'pad_inches': 0.1,
        'facecolor': params['facecolor'],
        'dpi': dpi,
    }

    saved_files = []
    for fmt in formats:
        if fmt == 'png':
            continue
        out = path_stem.with_suffix(f'.{fmt}')
        fig.savefig(out, format=fmt, **save_kwargs)
        saved_files.append(out)

    if include_png or 'png' in formats:
        png_path = path_stem.with_suffix('.png')
        fig.savefig(png_path, format='png', **save_kwargs)
        saved_files.append(png_path)

    return saved_files


__all__ = [
    'compute_symmetric_range',
    'style_spines',
    'save_figure',
]
