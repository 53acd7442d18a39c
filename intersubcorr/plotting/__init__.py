"""
Plotting utilities for intersubject correlation results.

Organization:
- style.py: PLOT_PARAMS, rcParams, figure sizing
- colors.py: CMAP_BRAIN and cluster colors
- helpers.py: Range computation, axis styling, figure export
- maps.py: Orthogonal brain slices, statistic profiles, null distributions
"""

from .style import (
    PLOT_PARAMS,
    apply_nature_rc,
    figure_size,
)

from .colors import (
    CMAP_BRAIN,
    COLOR_POSITIVE,
    COLOR_NEGATIVE,
)

from .helpers import (
    compute_symmetric_range,
    style_spines,
    save_figure,
)

from .maps import (
    plot_ortho_stat_map,
    plot_statistic_profile,
    plot_null_distribution,
)

__all__ = [
    'PLOT_PARAMS',
    'apply_nature_rc',
    'figure_size',
    'CMAP_BRAIN',
    'COLOR_POSITIVE',
    'COLOR_NEGATIVE',
    'compute_symmetric_range',
    'style_spines',
    'save_figure',
    'plot_ortho_stat_map',
    'plot_statistic_profile',
    'plot_null_distribution',
]
