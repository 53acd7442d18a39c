"""
Statistical utilities for correlation statistics and multiple testing correction.

This module provides the numerical building blocks of the intersubject
correlation statistic: row-wise correlation across units, the rho-to-t
transform, critical values and p-values of Student's t distribution, FDR
correction, and single-pair correlation summaries with confidence intervals.
"""

import numpy as np
from typing import Tuple, Union
from scipy.stats import rankdata, kendalltau
from scipy.stats import t as t_dist
from statsmodels.stats.multitest import multipletests
import pingouin as pg

CORRELATION_TYPES = ('pearson', 'spearman', 'kendall')
TAILS = (-1, 0, 1)


def _pearson_rows(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    # Identical rows give exactly 1.0: num == sum(xc**2) and sqrt(s*s) == s
    xc = x - x.mean(axis=1, keepdims=True)
    yc = y - y.mean(axis=1, keepdims=True)
    num = np.sum(xc * yc, axis=1)
    den = np.sqrt(np.sum(xc * xc, axis=1) * np.sum(yc * yc, axis=1))
    with np.errstate(divide='ignore', invalid='ignore'):
        r = num / den
    return np.clip(r, -1.0, 1.0)


def correlate_rows(
    x: np.ndarray,
    y: np.ndarray,
    method: str = 'spearman'
) -> np.ndarray:
    """
    Correlate paired rows of two matrices across their columns.

    Parameters
    ----------
    x, y : np.ndarray, shape (n_observations, n_units)
        Paired variables; column j of ``x`` and ``y`` belong to the same unit
    method : {'pearson', 'spearman', 'kendall'}, default='spearman'
        Correlation coefficient. Spearman ranks each row (average ranks for
        ties) and applies Pearson to the ranks.

    Returns
    -------
    np.ndarray, shape (n_observations,)
        One coefficient per row. Rows with zero variance or NaNs give NaN.

    Example
    -------
    >>> x = np.array([[1., 2., 3.], [1., 2., 3.]])
    >>> y = np.array([[2., 4., 9.], [3., 2., 1.]])
    >>> correlate_rows(x, y, 'spearman')
    array([ 1., -1.])
    """
    x = np.atleast_2d(np.asarray(x, dtype=float))
    y = np.atleast_2d(np.asarray(y, dtype=float))
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same shape, got {x.shape} and {y.shape}")

    method = str(method).lower()
    if method == 'pearson':
        return _pearson_rows(x, y)
    if method == 'spearman':
        return _pearson_rows(rankdata(x, axis=1), rankdata(y, axis=1))
    if method == 'kendall':
        rho = np.empty(x.shape[0], dtype=float)
        for i, (xi, yi) in enumerate(zip(x, y)):
            rho[i] = kendalltau(xi, yi)[0]
        return rho
    raise ValueError(f"Method must be one of {CORRELATION_TYPES}, got: {method}")


def rho_to_t(rho: Union[float, np.ndarray], n_units: int) -> np.ndarray:
    """
    Transform correlation coefficients to t-values.

    ``t = rho * sqrt(n_units - 2) / sqrt(1 - rho**2)``

    The transform is applied as is: ``|rho| == 1`` yields +/-inf (or NaN when
    ``n_units == 2``) and floating point warnings are silenced.
    """
    rho = np.asarray(rho, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        return rho * np.sqrt(n_units - 2) / np.sqrt(1 - rho ** 2)


def t_critical_values(
    alpha: float,
    df: int,
    tail: int = 1
) -> Union[float, np.ndarray]:
    """
    Critical value(s) of Student's t distribution.

    Parameters
    ----------
    alpha : float
        Critical alpha level
    df : int
        Degrees of freedom
    tail : {-1, 0, 1}
        -1: quantile ``alpha``; 0: quantiles ``alpha/2`` and ``1 - alpha/2``;
        1: quantile ``1 - alpha``

    Returns
    -------
    float or np.ndarray
        A scalar for one-sided tests, a length-2 array (lower, upper) for
        two-sided tests

    Example
    -------
    >>> round(t_critical_values(0.05, 10, tail=1), 3)
    1.812
    """
    if tail == -1:
        return float(t_dist.ppf(alpha, df))
    if tail == 0:
        return np.array([t_dist.ppf(alpha / 2, df), t_dist.ppf(1 - alpha / 2, df)])
    if tail == 1:
        return float(t_dist.ppf(1 - alpha, df))
    raise ValueError(f"tail must be one of {TAILS}, got: {tail}")


def t_pvalues(stat: np.ndarray, df: int, tail: int = 1) -> np.ndarray:
    """
    P-values of t-statistics under Student's t distribution.

    tail=-1: ``cdf(t)``; tail=0: ``2 * cdf(-|t|)``; tail=1: ``1 - cdf(t)``.
    NaN statistics give NaN p-values.
    """
    stat = np.asarray(stat, dtype=float)
    if tail == -1:
        return t_dist.cdf(stat, df)
    if tail == 0:
        return 2 * t_dist.cdf(-np.abs(stat), df)
    if tail == 1:
        return 1 - t_dist.cdf(stat, df)
    raise ValueError(f"tail must be one of {TAILS}, got: {tail}")


def apply_fdr_correction(
    pvalues: np.ndarray,
    alpha: float = 0.05,
    method: str = 'fdr_bh'
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply FDR correction to p-values.

    Uses Benjamini-Hochberg procedure by default.

    Parameters
    ----------
    pvalues : np.ndarray
        Array of p-values
    alpha : float, default=0.05
        Family-wise error rate
    method : str, default='fdr_bh'
        Method for multiple testing correction, as accepted by
        statsmodels' ``multipletests``

    Returns
    -------
    reject : np.ndarray (bool)
        Boolean array indicating which hypotheses are rejected
    pvalues_corrected : np.ndarray
        FDR-corrected p-values (NaN where the input was NaN)

    Example
    -------
    >>> pvals = np.array([0.001, 0.04, 0.03, 0.5, 0.08])
    >>> reject, pvals_fdr = apply_fdr_correction(pvals, alpha=0.05)
    """
    # Handle NaNs by replacing with 1.0 (non-significant)
    pvals = np.asarray(pvalues, dtype=float).copy()
    nan_mask = np.isnan(pvals)
    pvals[nan_mask] = 1.0

    reject, pvals_corrected, _, _ = multipletests(
        pvals,
        alpha=alpha,
        method=method
    )

    # Restore NaNs
    pvals_corrected[nan_mask] = np.nan
    reject[nan_mask] = False

    return reject, pvals_corrected


def correlate_pair_with_ci(
    x: np.ndarray,
    y: np.ndarray,
    method: str = 'spearman',
) -> dict:
    """
    Correlate two 1D vectors and report r, p-value and confidence interval.

    Used to summarise a single observation (e.g. a cluster peak) across
    units. Relies on pingouin, which drops NaN pairs and reports a parametric
    95% confidence interval.

    Returns
    -------
    dict
        'n', 'r', 'p', 'ci_low', 'ci_high'
    """
    method = str(method).lower()
    if method not in CORRELATION_TYPES:
        raise ValueError(f"Method must be one of {CORRELATION_TYPES}, got: {method}")

    corr_result = pg.corr(x=np.asarray(x, dtype=float), y=np.asarray(y, dtype=float), method=method)

    # pingouin >= 0.7 spells the columns 'p_val' and 'CI95'
    p_col = _pick_column(corr_result, ('p-val', 'p_val'))
    ci_col = _pick_column(corr_result, ('CI95%', 'CI95'))
    # Validate expected columns strictly (no silent fallbacks)
    missing = {'n', 'r'} - set(corr_result.columns)
    if missing or p_col is None or ci_col is None:
        raise RuntimeError(
            f"pingouin.corr missing expected columns; got columns={list(corr_result.columns)}"
        )
    ci = corr_result[ci_col].iloc[0]
    if not (hasattr(ci, '__len__') and len(ci) == 2):
        raise RuntimeError(f"pingouin.corr returned {ci_col} not parseable as (low, high): {ci}")
    return {
        'n': int(corr_result['n'].iloc[0]),
        'r': float(corr_result['r'].iloc[0]),
        'p': float(corr_result[p_col].iloc[0]),
        'ci_low': float(ci[0]),
        'ci_high': float(ci[1]),
    }


def _pick_column(df, candidates):
    for name in candidates:
        if name in df.columns:
            return name
    return None


__all__ = [
    'CORRELATION_TYPES',
    'TAILS',
    'correlate_rows',
    'rho_to_t',
    't_critical_values',
    't_pvalues',
    'apply_fdr_correction',
    'correlate_pair_with_ci',
]
