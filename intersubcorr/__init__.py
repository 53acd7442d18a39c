"""
Intersubject correlation statistics for cluster-based permutation testing.

This package provides:
- constants: CONFIG dictionary with paths and default parameters
- statfun: the intersubject correlation statistic (rho -> t per observation)
- montecarlo: permutation inference with max/cluster/FDR correction
- stats_utils: correlation, t-distribution and FDR building blocks
- neuro_utils: NIfTI loading, fiducial realignment, source interpolation
- plotting: orthogonal brain slices, statistic profiles, null distributions
- logging_utils: Logging and analysis setup functions

Example Usage
-------------
>>> from intersubcorr import statfun_intersubcorr, montecarlo_intersubcorr
>>> s = statfun_intersubcorr({'uvar': 2}, dat, design)
>>> res = montecarlo_intersubcorr({'uvar': 2, 'tail': 0}, dat, design)
"""

__version__ = "0.1.0"

# Configuration
from .constants import CONFIG

# Statistic and inference
from .statfun import (
    ConfigurationError,
    StatfunConfig,
    StatfunResult,
    statfun_intersubcorr,
    unit_label_positions,
)
from .montecarlo import (
    MontecarloConfig,
    MontecarloResult,
    montecarlo_intersubcorr,
    permute_unit_pairing,
)

# Logging and setup
from .logging_utils import setup_analysis, setup_analysis_in_dir, log_script_end

# Neuroimaging
from .neuro_utils import load_nifti, realign_with_fiducials, resample_source_to_anatomy

__all__ = [
    'CONFIG',
    'ConfigurationError',
    'StatfunConfig',
    'StatfunResult',
    'statfun_intersubcorr',
    'unit_label_positions',
    'MontecarloConfig',
    'MontecarloResult',
    'montecarlo_intersubcorr',
    'permute_unit_pairing',
    'setup_analysis',
    'setup_analysis_in_dir',
    'log_script_end',
    'load_nifti',
    'realign_with_fiducials',
    'resample_source_to_anatomy',
]
