"""
Intersubject correlation statistic for cluster-based permutation testing.

Correlations (Spearman's rho by default) between two paired variables are
computed across units of observation (usually subjects), separately for every
observation (channel, voxel, time point). The rho values are then transformed
to t-values,

    t = rho * sqrt(nunits - 2) / sqrt(1 - rho**2),

so that a cluster-based permutation procedure can correct for multiple
comparisons. The correlation coefficients themselves are kept in the ``rho``
field of the result.

For brain-behaviour correlations, match the behavioural data to the brain data
in size first (e.g. repeat the behavioural score for every observation).

Data layout
-----------
dat    : (n_samples, n_replications) biological data
design : (n_factors, n_replications) design matrix containing the condition
         labels (row ``ivar``, labels 1 and 2) and the unit-of-observation ids
         (row ``uvar``, integers 1..n_units). Row numbers are 1-based.

Configuration options (``StatfunConfig`` or a plain dict)
-------------------------------------------------------
computestat    : calculate the statistic (default True)
computecritval : calculate the critical values (default False)
computeprob    : calculate the p-values (default False)
alpha          : critical alpha level (default 0.05)
tail           : -1, 0 or 1 for left, two-sided or right (default 1). With
                 computecritval the critical value is taken at quantile alpha
                 (tail=-1), at alpha/2 and 1-alpha/2 (tail=0), or at 1-alpha
                 (tail=1)
type           : 'spearman' (default), 'pearson' or 'kendall'
ivar           : design row with the condition labels (default 1)
uvar           : design row with the unit-of-observation ids (required)

Example
-------
>>> dat = np.random.randn(100, 40)                       # 100 voxels, 20 subjects x 2
>>> design = np.vstack([np.repeat([1, 2], 20), np.tile(np.arange(1, 21), 2)])
>>> s = statfun_intersubcorr({'uvar': 2, 'computeprob': 'yes'}, dat, design)
>>> s.stat.shape, s.df
((100,), 19)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple, Union

import numpy as np

from .constants import CONFIG
from .stats_utils import (
    CORRELATION_TYPES,
    TAILS,
    correlate_rows,
    rho_to_t,
    t_critical_values,
    t_pvalues,
)

logger = logging.getLogger(__name__)

_INVALID_DESIGN = 'Invalid specification of the design array.'


class ConfigurationError(ValueError):
    """Invalid, missing or inconsistent statistic configuration or design."""


def _as_flag(value: Any, name: str) -> bool:
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ('yes', 'true', 'on'):
            return True
        if v in ('no', 'false', 'off'):
            return False
        raise ConfigurationError(f"{name} must be 'yes' or 'no', got {value!r}")
    return bool(value)


@dataclass(frozen=True)
class StatfunConfig:
    """Resolved configuration of the intersubject correlation statistic."""

    computestat: bool = CONFIG['STATFUN_COMPUTESTAT']
    computecritval: bool = CONFIG['STATFUN_COMPUTECRITVAL']
    computeprob: bool = CONFIG['STATFUN_COMPUTEPROB']
    alpha: float = CONFIG['ALPHA']
    tail: int = CONFIG['STATFUN_TAIL']
    type: str = CONFIG['STATFUN_TYPE']
    ivar: int = CONFIG['STATFUN_IVAR']
    uvar: Optional[int] = None

    @classmethod
    def from_mapping(cls, cfg: Union[None, 'StatfunConfig', Mapping[str, Any]]) -> 'StatfunConfig':
        """
        Resolve a user configuration into a StatfunConfig.

        Missing keys take the defaults above; 'yes'/'no' strings are accepted
        for the compute flags. Unknown keys are ignored (they typically belong
        to the calling framework).
        """
        if cfg is None:
            return cls()
        if isinstance(cfg, cls):
            return cfg
        if not isinstance(cfg, Mapping):
            raise ConfigurationError(
                f"Configuration must be a mapping or StatfunConfig, got {type(cfg).__name__}"
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            logger.debug(f"Ignoring configuration keys not used by the statistic: {unknown}")

        values = {k: cfg[k] for k in known if k in cfg}
        for flag in ('computestat', 'computecritval', 'computeprob'):
            if flag in values:
                values[flag] = _as_flag(values[flag], flag)
        if 'type' in values and isinstance(values['type'], str):
            values['type'] = values['type'].lower()
        # Empty values count as "not specified"
        uvar = values.get('uvar')
        if isinstance(uvar, str) and not uvar.strip():
            values['uvar'] = None
        elif isinstance(uvar, (list, tuple, np.ndarray)) and np.size(uvar) == 0:
            values['uvar'] = None
        return cls(**values)


@dataclass
class StatfunResult:
    """
    Output of the intersubject correlation statistic.

    Attributes
    ----------
    df : int
        Degrees of freedom (n_units - 1)
    stat : np.ndarray or None
        t-value per observation (for use by the permutation framework)
    rho : np.ndarray or None
        Correlation coefficient per observation
    critval : float, np.ndarray or None
        Critical value (one-sided) or (lower, upper) pair (two-sided)
    prob : np.ndarray or None
        p-value per observation
    """

    df: int
    stat: Optional[np.ndarray] = None
    rho: Optional[np.ndarray] = None
    critval: Optional[Union[float, np.ndarray]] = None
    prob: Optional[np.ndarray] = None

    def as_dict(self) -> dict:
        """Return the computed fields only, as a plain dictionary."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _check_config(cfg: StatfunConfig) -> None:
    if cfg.computeprob and not cfg.computestat:
        raise ConfigurationError(
            'P-values can only be calculated if the test statistics are calculated.'
        )
    if cfg.uvar is None:
        raise ConfigurationError('uvar must be specified for dependent samples statistics')
    if cfg.tail not in TAILS:
        raise ConfigurationError(f"unsupported tail value: {cfg.tail!r} (expected -1, 0 or 1)")
    if cfg.type not in CORRELATION_TYPES:
        raise ConfigurationError(
            f"unsupported correlation type: {cfg.type!r} (expected one of {CORRELATION_TYPES})"
        )
    if (cfg.computecritval or cfg.computeprob) and not (0 < cfg.alpha < 1):
        raise ConfigurationError(f"alpha must be in (0, 1), got {cfg.alpha}")


def _design_row(design: np.ndarray, row: int, name: str) -> np.ndarray:
    try:
        row = int(row)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a design row number, got {row!r}") from e
    if not 1 <= row <= design.shape[0]:
        raise ConfigurationError(
            f"{name}={row} is outside the design array ({design.shape[0]} rows)"
        )
    return design[row - 1]


def unit_label_positions(cfg: StatfunConfig, design: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    Locate the condition-1 and condition-2 columns of every unit.

    Parameters
    ----------
    cfg : StatfunConfig
        Resolved configuration (``ivar`` and ``uvar`` are used)
    design : np.ndarray, shape (n_factors, n_replications)
        Design matrix

    Returns
    -------
    positions : np.ndarray of int, shape (n_units, 2)
        Column indices (0-based) of the condition-1 and condition-2
        replications, sorted by ascending unit id
    nunits : int
        Number of units of observation

    Raises
    ------
    ConfigurationError
        If the design does not contain exactly one condition-1 and one
        condition-2 replication per unit, or fewer than two units
    """
    design = np.atleast_2d(np.asarray(design))
    labels = _design_row(design, cfg.ivar, 'ivar')
    units = _design_row(design, cfg.uvar, 'uvar')

    sel1 = np.flatnonzero(labels == 1)
    sel2 = np.flatnonzero(labels == 2)
    n1, n2 = sel1.size, sel2.size
    if (n1 + n2) < design.shape[1] or n1 != n2:
        raise ConfigurationError(_INVALID_DESIGN)

    units1 = units[sel1]
    units2 = units[sel2]
    nunits = int(np.unique(units1).size)
    if nunits < 2:
        raise ConfigurationError('The data must contain at least two units (usually subjects).')
    # Implied by the checks above unless unit ids repeat within a condition
    if (nunits * 2) != (n1 + n2):
        raise ConfigurationError(_INVALID_DESIGN)
    if not np.array_equal(np.sort(units1), np.sort(units2)):
        raise ConfigurationError(_INVALID_DESIGN)

    positions = np.column_stack([
        sel1[np.argsort(units1, kind='stable')],
        sel2[np.argsort(units2, kind='stable')],
    ])
    return positions, nunits


def statfun_intersubcorr(
    cfg: Union[None, StatfunConfig, Mapping[str, Any]],
    dat: np.ndarray,
    design: np.ndarray,
) -> StatfunResult:
    """
    Compute intersubject correlations and their t-transform per observation.

    Parameters
    ----------
    cfg : StatfunConfig or dict
        Configuration (see module docstring); ``uvar`` is required
    dat : np.ndarray, shape (n_samples, n_replications)
        Data; a 1D array is treated as a single observation
    design : np.ndarray, shape (n_factors, n_replications)
        Design matrix

    Returns
    -------
    StatfunResult
        ``stat``/``rho`` when computestat, ``critval`` when computecritval,
        ``prob`` when computeprob; ``df`` always

    Raises
    ------
    ConfigurationError
        For any invalid configuration or design, before computing anything

    Notes
    -----
    Perfectly (anti)correlated observations (``|rho| == 1``) yield +/-inf
    t-values, or NaN with only two units. These are passed on unchanged.
    """
    cfg = StatfunConfig.from_mapping(cfg)
    _check_config(cfg)

    dat = np.asarray(dat, dtype=float)
    if dat.ndim == 1:
        dat = dat[np.newaxis, :]
    design = np.atleast_2d(np.asarray(design))
    if dat.ndim != 2:
        raise ConfigurationError(f"dat must be a 2D array (samples x replications), got {dat.ndim}D")
    if dat.shape[1] != design.shape[1]:
        raise ConfigurationError(
            f"dat has {dat.shape[1]} replications but design has {design.shape[1]} columns"
        )

    positions, nunits = unit_label_positions(cfg, design)
    df = nunits - 1
    result = StatfunResult(df=df)

    if cfg.computestat:
        rho = correlate_rows(dat[:, positions[:, 0]], dat[:, positions[:, 1]], method=cfg.type)
        result.rho = rho
        result.stat = rho_to_t(rho, nunits)

        n_nonfinite = int(np.sum(~np.isfinite(result.stat)))
        if n_nonfinite:
            logger.debug(
                f"{n_nonfinite}/{result.stat.size} observations have a non-finite t-value "
                f"(|rho| = 1 or undefined correlation)"
            )

    if cfg.computecritval:
        result.critval = t_critical_values(cfg.alpha, df, cfg.tail)

    if cfg.computeprob:
        result.prob = t_pvalues(result.stat, df, cfg.tail)

    return result


def with_overrides(cfg: Union[None, StatfunConfig, Mapping[str, Any]], **overrides) -> StatfunConfig:
    """Return a resolved copy of ``cfg`` with some fields replaced."""
    return replace(StatfunConfig.from_mapping(cfg), **overrides)


__all__ = [
    'ConfigurationError',
    'StatfunConfig',
    'StatfunResult',
    'unit_label_positions',
    'statfun_intersubcorr',
    'with_overrides',
]
