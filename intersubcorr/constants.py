"""
Central repository for shared constants, default statistic settings and paths.

All constants are exported via the CONFIG dictionary, which is the single source
of truth for configuration values used across the library and analysis scripts.

Usage
-----
>>> from intersubcorr import CONFIG
>>> print(CONFIG['RANDOM_SEED'])
42
>>> print(CONFIG['STATFUN_TYPE'])
spearman

Note: dataset paths are set here and should be configured explicitly.
Environment overrides are only used for the log level (see logging_utils).
"""

from pathlib import Path

# ============================================================================
# Repository Paths (computed first for use in CONFIG)
# ============================================================================
_REPO_ROOT = Path(__file__).parent.parent  # Root of this repository
_DATA_DIR = _REPO_ROOT / "data"  # Local data assets (repo-internal)

# ============================================================================
# External Data Root
# ============================================================================
# Users must point this at their local copy of the template and source maps
_EXTERNAL_DATA_ROOT = Path("/home/common/intersubcorr-data")

_TEMPLATE_DIR = _EXTERNAL_DATA_ROOT / "canonical"
_SOURCE_DIR = _EXTERNAL_DATA_ROOT / "sourcenorm"

# ============================================================================
# CONFIG Dictionary - All Constants in One Place
# ============================================================================

CONFIG = {
    # ========================================================================
    # Repository Structure
    # ========================================================================
    'REPO_ROOT': _REPO_ROOT,
    'DATA_DIR': _DATA_DIR,

    # ========================================================================
    # External Data (Inputs)
    # ========================================================================
    'EXTERNAL_DATA_ROOT': _EXTERNAL_DATA_ROOT,
    'TEMPLATE_T1': _TEMPLATE_DIR / "single_subj_T1.nii",          # Structural template
    'SOURCE_DIFF_MAP': _SOURCE_DIR / "grandavg_source_diff_beta.nii.gz",  # Grand-average source contrast

    # --- Template fiducials (0-based voxel indices into TEMPLATE_T1) ---
    'TEMPLATE_FIDUCIALS': {
        'nas': (44, 105, 16),   # Nasion
        'lpa': (87, 48, 10),    # Left pre-auricular point
        'rpa': (2, 48, 10),     # Right pre-auricular point
    },
    'SOURCE_DOWNSAMPLE': 10,    # Anatomy downsampling before source interpolation

    # ========================================================================
    # Analysis Parameters
    # ========================================================================
    'RANDOM_SEED': 42,          # Reproducibility seed

    # --- Paired dataset for the intersubject correlation analysis ---
    # npz with 'dat' (samples x replications), 'design' (factors x replications)
    # and optionally 'dim' (grid shape); simulated when the file is absent
    'ISC_DATASET': _DATA_DIR / "isc_dataset.npz",
    'SIM_N_UNITS': 20,          # Simulated subjects
    'SIM_GRID': (12, 12, 12),   # Simulated voxel grid
    'SIM_VOXEL_SIZE_MM': 4.0,
    'SIM_EFFECT': 0.8,          # Shared-signal weight inside the simulated effect region

    # ========================================================================
    # Statistical Parameters
    # ========================================================================
    'ALPHA': 0.05,              # Significance threshold
    'ALPHA_FDR': 0.05,          # FDR-corrected threshold

    # --- Intersubject correlation statistic defaults ---
    'STATFUN_COMPUTESTAT': True,
    'STATFUN_COMPUTECRITVAL': False,
    'STATFUN_COMPUTEPROB': False,
    'STATFUN_TAIL': 1,          # -1 left, 0 two-sided, 1 right
    'STATFUN_TYPE': 'spearman',  # Correlation across units
    'STATFUN_IVAR': 1,          # Design row (1-based) with condition labels 1/2

    # --- Monte-Carlo (permutation) inference defaults ---
    'MC_NUMRANDOMIZATION': 1000,
    'MC_CORRECTM': 'cluster',
    'MC_CLUSTERALPHA': 0.05,    # Cluster-forming threshold (parametric)
    'MC_CLUSTERSTATISTIC': 'maxsum',
}

__all__ = [
    'CONFIG',
]
