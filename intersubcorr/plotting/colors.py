"""
Colormaps and colors for statistic maps.

Provides:
- CMAP_BRAIN: Diverging colormap for t/rho maps (cyan-purple, center=0)
- COLOR_POSITIVE / COLOR_NEGATIVE: Cluster highlight colors (colorblind safe)
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap


def _make_brain_cmap():
    """
    Diverging colormap for signed statistic maps.

    Negative values run from cyan/teal to the center color RdPu(0); positive
    values follow the RdPu gradient. Use with vmin/vmax symmetric around 0.
    """
    center = plt.cm.RdPu(0)[:3]
    neg = np.linspace([0.0, 0.5, 0.7], center, 256)
    pos = plt.cm.RdPu(np.linspace(0, 1, 256))[:, :3]
    return LinearSegmentedColormap.from_list("brain_stat", np.vstack((neg, pos)))


CMAP_BRAIN = _make_brain_cmap()

# Wong palette: vermillion for positive, blue for negative effects
COLOR_POSITIVE = '#D55E00'
COLOR_NEGATIVE = '#0072B2'

__all__ = [
    'CMAP_BRAIN',
    'COLOR_POSITIVE',
    'COLOR_NEGATIVE',
]
