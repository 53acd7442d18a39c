"""
Monte-Carlo (permutation) inference for the intersubject correlation statistic.

Under the null hypothesis of no association between the two paired variables,
the assignment of condition-2 measurements to units is exchangeable. Each
randomization shuffles the unit ids of the condition-2 replications in the
design, recomputes the statistic with ``statfun_intersubcorr`` and records a
summary of the randomized t-values. Supported corrections:

- 'no'      : per-observation permutation p-values
- 'fdr'     : per-observation permutation p-values, Benjamini-Hochberg corrected
- 'max'     : maximum-statistic correction (family-wise)
- 'cluster' : cluster-based correction (Maris & Oostenveld, 2007). Clusters are
              connected supra-threshold observations; the threshold is the
              parametric critical value of the statistic at ``clusteralpha``.
              Cluster statistics are the summed t-values ('maxsum') or the
              cluster size ('maxsize').

p-values count the observed labelling as one member of the null distribution:
``p = (1 + #{null >= observed}) / (1 + numrandomization)``. For two-sided
'max' and 'cluster' tests, positive and negative effects are compared against
their own tail distribution and the p-value is doubled (capped at 1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
from scipy import ndimage

from .constants import CONFIG
from .statfun import (
    ConfigurationError,
    StatfunConfig,
    statfun_intersubcorr,
    with_overrides,
)
from .stats_utils import apply_fdr_correction

logger = logging.getLogger(__name__)

CORRECTION_METHODS = ('no', 'max', 'cluster', 'fdr')
CLUSTER_STATISTICS = ('maxsum', 'maxsize')


@dataclass(frozen=True)
class MontecarloConfig:
    """
    Settings of the permutation procedure.

    The test direction is taken from the statistic's ``tail``.
    ``dim`` is the grid shape of the observations (e.g. a 3D voxel grid
    flattened in C order); None means a 1D chain of neighbouring rows.
    """

    numrandomization: int = CONFIG['MC_NUMRANDOMIZATION']
    correctm: str = CONFIG['MC_CORRECTM']
    alpha: float = CONFIG['ALPHA']
    clusteralpha: float = CONFIG['MC_CLUSTERALPHA']
    clusterstatistic: str = CONFIG['MC_CLUSTERSTATISTIC']
    dim: Optional[Tuple[int, ...]] = None
    seed: Optional[int] = CONFIG['RANDOM_SEED']

    @classmethod
    def from_mapping(cls, cfg: Union[None, 'MontecarloConfig', Mapping[str, Any]]) -> 'MontecarloConfig':
        if cfg is None:
            return cls()
        if isinstance(cfg, cls):
            return cfg
        if not isinstance(cfg, Mapping):
            raise ConfigurationError(
                f"Configuration must be a mapping or MontecarloConfig, got {type(cfg).__name__}"
            )
        known = {f.name for f in fields(cls)}
        values = {k: cfg[k] for k in known if k in cfg}
        for key in ('correctm', 'clusterstatistic'):
            if key in values and isinstance(values[key], str):
                values[key] = values[key].lower()
        if values.get('dim') is not None:
            values['dim'] = tuple(int(d) for d in np.atleast_1d(values['dim']))
        return cls(**values)


@dataclass
class MontecarloResult:
    """
    Output of ``montecarlo_intersubcorr``.

    ``stat``, ``rho``, ``prob`` and ``mask`` have one entry per observation.
    Cluster label matrices have the shape of ``dim`` (label 1 is the cluster
    with the largest absolute cluster statistic).
    """

    stat: np.ndarray
    rho: np.ndarray
    prob: np.ndarray
    mask: np.ndarray
    df: int
    numrandomization: int
    correctm: str
    critval: Optional[Union[float, np.ndarray]] = None
    posclusters: List[Dict[str, float]] = field(default_factory=list)
    negclusters: List[Dict[str, float]] = field(default_factory=list)
    posclusterslabelmat: Optional[np.ndarray] = None
    negclusterslabelmat: Optional[np.ndarray] = None
    posdistribution: Optional[np.ndarray] = None
    negdistribution: Optional[np.ndarray] = None

    def as_dict(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def permute_unit_pairing(
    design: np.ndarray,
    ivar: int,
    uvar: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Return a copy of ``design`` with the condition-2 unit ids shuffled.

    Parameters
    ----------
    design : np.ndarray, shape (n_factors, n_replications)
    ivar, uvar : int
        1-based design rows with the condition labels and unit ids
    rng : np.random.Generator

    Returns
    -------
    np.ndarray
        Permuted design; condition-1 replications keep their unit ids
    """
    design = np.array(design, copy=True)
    sel2 = np.flatnonzero(design[int(ivar) - 1] == 2)
    design[int(uvar) - 1, sel2] = rng.permutation(design[int(uvar) - 1, sel2])
    return design


def find_clusters(
    stat: np.ndarray,
    threshold: float,
    dim: Optional[Tuple[int, ...]] = None,
    clusterstatistic: str = 'maxsum',
    sign: int = 1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Label supra-threshold clusters of one sign and compute their statistics.

    Parameters
    ----------
    stat : np.ndarray
        Statistic per observation
    threshold : float
        Cluster-forming threshold; observations with ``stat >= threshold``
        (sign=1) or ``stat <= threshold`` (sign=-1) are supra-threshold.
        NaN observations never are.
    dim : tuple of int, optional
        Grid shape; neighbours share a face (``scipy.ndimage.label`` default)
    clusterstatistic : {'maxsum', 'maxsize'}
        Summed statistic, or number of observations (negated for sign=-1)
    sign : {1, -1}

    Returns
    -------
    labelmat : np.ndarray of int, shape ``dim``
        0 outside clusters, k for the k-th cluster
    clusterstats : np.ndarray, shape (n_clusters,)
        Statistic of cluster k at index k-1
    """
    stat = np.asarray(stat, dtype=float)
    grid = stat.reshape(dim) if dim is not None else stat
    supra = grid >= threshold if sign > 0 else grid <= threshold

    labelmat, n_clusters = ndimage.label(supra)
    if n_clusters == 0:
        return labelmat, np.empty(0, dtype=float)

    index = np.arange(1, n_clusters + 1)
    if clusterstatistic == 'maxsum':
        clusterstats = ndimage.sum_labels(grid, labelmat, index)
    elif clusterstatistic == 'maxsize':
        clusterstats = ndimage.sum_labels(np.ones(grid.shape), labelmat, index) * np.sign(sign)
    else:
        raise ValueError(f"clusterstatistic must be one of {CLUSTER_STATISTICS}, got: {clusterstatistic}")
    return labelmat, np.asarray(clusterstats, dtype=float)


def _check_montecarlo_config(mccfg: MontecarloConfig) -> None:
    if mccfg.correctm not in CORRECTION_METHODS:
        raise ConfigurationError(
            f"unsupported correctm: {mccfg.correctm!r} (expected one of {CORRECTION_METHODS})"
        )
    if mccfg.clusterstatistic not in CLUSTER_STATISTICS:
        raise ConfigurationError(
            f"unsupported clusterstatistic: {mccfg.clusterstatistic!r} "
            f"(expected one of {CLUSTER_STATISTICS})"
        )
    if int(mccfg.numrandomization) < 1:
        raise ConfigurationError(f"numrandomization must be >= 1, got {mccfg.numrandomization}")
    for name in ('alpha', 'clusteralpha'):
        value = getattr(mccfg, name)
        if not 0 < value < 1:
            raise ConfigurationError(f"{name} must be in (0, 1), got {value}")


def _resolve_dim(dim: Optional[Tuple[int, ...]], n_obs: int) -> Tuple[int, ...]:
    if dim is None:
        return (n_obs,)
    if int(np.prod(dim)) != n_obs:
        raise ConfigurationError(
            f"dim={dim} describes {int(np.prod(dim))} observations, but the data has {n_obs}"
        )
    return tuple(dim)


def _cluster_thresholds(critval, tail: int) -> Dict[int, float]:
    if tail == 1:
        return {1: float(critval)}
    if tail == -1:
        return {-1: float(critval)}
    return {1: float(critval[1]), -1: float(critval[0])}


def _null_extreme(values: np.ndarray, sign: int) -> float:
    # Randomizations without any finite value or cluster contribute 0
    finite = values[~np.isnan(values)]
    if finite.size == 0:
        return 0.0
    return float(finite.max() if sign > 0 else finite.min())


def _tail_pvalues(observed: np.ndarray, null: np.ndarray, sign: int) -> np.ndarray:
    """(1 + #{null at least as extreme}) / (1 + n) for each observed value."""
    observed = np.asarray(observed, dtype=float)
    sorted_null = np.sort(null)
    n = sorted_null.size
    if sign > 0:
        count = n - np.searchsorted(sorted_null, observed, side='left')
    else:
        count = np.searchsorted(sorted_null, observed, side='right')
    prob = (count + 1) / (n + 1)
    return np.where(np.isnan(observed), np.nan, prob)


def _sort_clusters(labelmat: np.ndarray, clusterstats: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    order = np.argsort(-np.abs(clusterstats), kind='stable')
    relabel = np.zeros(clusterstats.size + 1, dtype=labelmat.dtype)
    relabel[order + 1] = np.arange(1, clusterstats.size + 1)
    return relabel[labelmat], clusterstats[order]


def montecarlo_intersubcorr(
    cfg: Union[None, StatfunConfig, Mapping[str, Any]],
    dat: np.ndarray,
    design: np.ndarray,
    mc_cfg: Union[None, MontecarloConfig, Mapping[str, Any]] = None,
) -> MontecarloResult:
    """
    Permutation test of the intersubject correlation statistic.

    Parameters
    ----------
    cfg : StatfunConfig or dict
        Statistic configuration (``uvar`` required; ``tail`` sets the test
        direction)
    dat : np.ndarray, shape (n_samples, n_replications)
    design : np.ndarray, shape (n_factors, n_replications)
    mc_cfg : MontecarloConfig or dict, optional
        Permutation settings (see MontecarloConfig)

    Returns
    -------
    MontecarloResult

    Raises
    ------
    ConfigurationError
        For invalid statistic or permutation settings

    Example
    -------
    >>> res = montecarlo_intersubcorr({'uvar': 2, 'tail': 0}, dat, design,
    ...                               {'numrandomization': 500, 'dim': (10, 10, 10)})
    >>> [c['prob'] for c in res.posclusters]
    """
    statcfg = StatfunConfig.from_mapping(cfg)
    mccfg = MontecarloConfig.from_mapping(mc_cfg)
    _check_montecarlo_config(mccfg)

    dat = np.asarray(dat, dtype=float)
    if dat.ndim == 1:
        dat = dat[np.newaxis, :]
    design = np.atleast_2d(np.asarray(design))
    tail = statcfg.tail

    # The observed statistic also validates the statistic configuration and design
    observed = statfun_intersubcorr(
        with_overrides(statcfg, computestat=True, computecritval=True,
                       computeprob=False, alpha=mccfg.clusteralpha),
        dat, design,
    )
    dim = _resolve_dim(mccfg.dim, observed.stat.size)
    randcfg = with_overrides(statcfg, computestat=True, computecritval=False, computeprob=False)

    n_rand = int(mccfg.numrandomization)
    signs = [s for s in (1, -1) if tail == 0 or tail == s]
    logger.info(
        f"Monte-Carlo test: {n_rand} randomizations, correctm='{mccfg.correctm}', "
        f"tail={tail}, {observed.stat.size} observations, df={observed.df}"
    )

    thresholds = _cluster_thresholds(observed.critval, tail)
    null = {s: np.zeros(n_rand) for s in signs}
    counts = np.zeros(observed.stat.size)
    obs_stat = observed.stat
    rng = np.random.default_rng(mccfg.seed)

    for i in range(n_rand):
        perm_design = permute_unit_pairing(design, statcfg.ivar, statcfg.uvar, rng)
        randstat = statfun_intersubcorr(randcfg, dat, perm_design).stat

        if mccfg.correctm in ('no', 'fdr'):
            if tail == 1:
                counts += randstat >= obs_stat
            elif tail == -1:
                counts += randstat <= obs_stat
            else:
                counts += np.abs(randstat) >= np.abs(obs_stat)
        elif mccfg.correctm == 'max':
            for s in signs:
                null[s][i] = _null_extreme(randstat, s)
        else:
            for s in signs:
                _, cs = find_clusters(randstat, thresholds[s], dim, mccfg.clusterstatistic, s)
                null[s][i] = _null_extreme(cs, s)

    result = MontecarloResult(
        stat=obs_stat,
        rho=observed.rho,
        prob=np.ones(obs_stat.size),
        mask=np.zeros(obs_stat.size, dtype=bool),
        df=observed.df,
        numrandomization=n_rand,
        correctm=mccfg.correctm,
    )

    if mccfg.correctm in ('no', 'fdr'):
        prob = (counts + 1) / (n_rand + 1)
        prob[np.isnan(obs_stat)] = np.nan
        if mccfg.correctm == 'fdr':
            _, prob = apply_fdr_correction(prob, alpha=mccfg.alpha)
        result.prob = prob

    elif mccfg.correctm == 'max':
        prob = np.ones(obs_stat.size)
        for s in signs:
            p = _tail_pvalues(obs_stat, null[s], s)
            sel = obs_stat >= 0 if s > 0 else obs_stat < 0
            if tail != 0:
                sel = np.ones(obs_stat.size, dtype=bool)
            prob[sel] = p[sel]
        prob[np.isnan(obs_stat)] = np.nan
        if tail == 0:
            prob = np.minimum(2 * prob, 1.0)
        result.prob = prob

    else:
        result.critval = observed.critval
        prob = np.ones(dim)
        for s in signs:
            labelmat, cs = find_clusters(obs_stat, thresholds[s], dim, mccfg.clusterstatistic, s)
            labelmat, cs = _sort_clusters(labelmat, cs)
            cluster_p = _tail_pvalues(cs, null[s], s)
            if tail == 0:
                cluster_p = np.minimum(2 * cluster_p, 1.0)

            clusters = []
            for k, (stat_k, p_k) in enumerate(zip(cs, cluster_p), start=1):
                in_cluster = labelmat == k
                prob[in_cluster] = np.minimum(prob[in_cluster], p_k)
                clusters.append({
                    'clusterstat': float(stat_k),
                    'prob': float(p_k),
                    'size': int(in_cluster.sum()),
                })

            if s > 0:
                result.posclusters = clusters
                result.posclusterslabelmat = labelmat
                result.posdistribution = null[s]
            else:
                result.negclusters = clusters
                result.negclusterslabelmat = labelmat
                result.negdistribution = null[s]

        result.prob = prob.ravel()
        n_sig = sum(c['prob'] <= mccfg.alpha for c in result.posclusters + result.negclusters)
        logger.info(
            f"Found {len(result.posclusters)} positive and {len(result.negclusters)} negative "
            f"cluster(s); {n_sig} significant at alpha={mccfg.alpha}"
        )

    if mccfg.correctm == 'max':
        result.posdistribution = null.get(1)
        result.negdistribution = null.get(-1)

    with np.errstate(invalid='ignore'):
        result.mask = np.asarray(result.prob <= mccfg.alpha)
    return result


__all__ = [
    'CORRECTION_METHODS',
    'CLUSTER_STATISTICS',
    'MontecarloConfig',
    'MontecarloResult',
    'permute_unit_pairing',
    'find_clusters',
    'montecarlo_intersubcorr',
]
