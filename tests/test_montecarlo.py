"""
Tests for the permutation (Monte-Carlo) inference on the intersubject
correlation statistic.
"""

from __future__ import annotations

import numpy as np
import pytest

from intersubcorr.montecarlo import (
    MontecarloConfig,
    find_clusters,
    montecarlo_intersubcorr,
    permute_unit_pairing,
)
from intersubcorr.statfun import ConfigurationError

from conftest import paired_data, paired_design


def _effect_dataset(n_units=15, n_obs=30, effect_rows=slice(10, 16), seed=0):
    """1D chain of observations with a strong positive effect in ``effect_rows``."""
    rng = np.random.default_rng(seed)
    x = rng.standard_normal((n_obs, n_units))
    y = rng.standard_normal((n_obs, n_units))
    y[effect_rows] = x[effect_rows] + 0.1 * y[effect_rows]
    return paired_data(x, y), paired_design(n_units)


def test_permute_unit_pairing_only_shuffles_condition_two():
    design = paired_design(6)
    rng = np.random.default_rng(0)
    permuted = permute_unit_pairing(design, ivar=1, uvar=2, rng=rng)

    np.testing.assert_array_equal(permuted[0], design[0])
    np.testing.assert_array_equal(permuted[1, :6], design[1, :6])
    np.testing.assert_array_equal(np.sort(permuted[1, 6:]), np.arange(1, 7))
    # Input untouched
    np.testing.assert_array_equal(design, paired_design(6))


def test_find_clusters_1d_sum_and_size():
    stat = np.array([0.0, 3.0, 4.0, 0.0, 5.0, -3.0, -3.5, np.nan, 2.5])

    labels, sums = find_clusters(stat, threshold=2.0, clusterstatistic='maxsum', sign=1)
    np.testing.assert_array_equal(labels, [0, 1, 1, 0, 2, 0, 0, 0, 3])
    np.testing.assert_allclose(sums, [7.0, 5.0, 2.5])

    labels, sizes = find_clusters(stat, threshold=-2.0, clusterstatistic='maxsize', sign=-1)
    np.testing.assert_array_equal(labels, [0, 0, 0, 0, 0, 1, 1, 0, 0])
    np.testing.assert_allclose(sizes, [-2.0])


def test_find_clusters_on_grid_uses_face_connectivity():
    stat = np.zeros(9)
    stat[[0, 4, 8]] = 5.0      # diagonal in a 3x3 grid: three separate clusters
    labels, sums = find_clusters(stat, 1.0, dim=(3, 3))
    assert labels.shape == (3, 3)
    assert sums.size == 3

    stat[[1, 2]] = 5.0         # top row, and 1 touches the centre: {0, 1, 2, 4} and {8}
    labels, sums = find_clusters(stat, 1.0, dim=(3, 3))
    assert sums.size == 2
    assert max(sums) == 20.0
    assert labels[0, 0] == labels[1, 1] != labels[2, 2]


def test_no_clusters():
    labels, stats_ = find_clusters(np.zeros(5), 1.0)
    assert not labels.any()
    assert stats_.size == 0


def test_cluster_test_finds_planted_effect():
    dat, design = _effect_dataset()
    res = montecarlo_intersubcorr(
        {'uvar': 2, 'tail': 1},
        dat, design,
        {'numrandomization': 200, 'correctm': 'cluster', 'seed': 1},
    )

    assert res.df == 14
    assert res.negclusters == []
    assert res.posclusters[0]['prob'] == pytest.approx(1 / 201)
    assert res.posclusters[0]['size'] >= 5
    assert res.mask[10:16].all()
    assert res.posdistribution.shape == (200,)
    assert res.posclusterslabelmat.shape == (30,)
    # Clusters ordered by cluster statistic
    stats_ = [c['clusterstat'] for c in res.posclusters]
    assert stats_ == sorted(stats_, reverse=True)


def test_two_sided_cluster_test_doubles_pvalues():
    dat, design = _effect_dataset()
    dat[:5, 15:] = -dat[:5, :15]  # planted negative effect (unit-wise anti-correlation)
    res = montecarlo_intersubcorr(
        {'uvar': 2, 'tail': 0},
        dat, design,
        {'numrandomization': 100, 'correctm': 'cluster', 'seed': 2},
    )

    assert res.posclusters[0]['prob'] == pytest.approx(2 / 101)
    assert res.negclusters[0]['prob'] == pytest.approx(2 / 101)
    assert res.mask[:5].all()
    assert res.mask[10:16].all()
    assert len(res.critval) == 2
    assert res.negdistribution.shape == (100,)
    assert all(c['prob'] <= 1.0 for c in res.posclusters + res.negclusters)


def test_left_tailed_test_finds_negative_effect_only():
    dat, design = _effect_dataset()
    dat[10:16, 15:] = -dat[10:16, :15] + 0.1 * dat[10:16, 15:]
    cfg = {'uvar': 2, 'tail': -1}

    res = montecarlo_intersubcorr(cfg, dat, design,
                                  {'numrandomization': 100, 'correctm': 'cluster', 'seed': 5})
    assert res.posclusters == []
    assert res.posdistribution is None
    assert res.critval < 0
    assert res.negclusters[0]['prob'] == pytest.approx(1 / 101)
    assert res.negclusters[0]['clusterstat'] < 0
    assert res.negclusterslabelmat[10:16].all()
    assert res.mask[10:16].all()

    res_no = montecarlo_intersubcorr(cfg, dat, design,
                                     {'numrandomization': 100, 'correctm': 'no', 'seed': 5})
    np.testing.assert_allclose(res_no.prob[10:16], 1 / 101)
    # Positive correlations are never significant in a left-tailed test
    assert not res_no.mask[res_no.stat > 0].any()


def test_max_and_uncorrected_pvalues():
    dat, design = _effect_dataset()
    cfg = {'uvar': 2, 'tail': 1}

    res_max = montecarlo_intersubcorr(cfg, dat, design, {'numrandomization': 200, 'correctm': 'max', 'seed': 3})
    res_no = montecarlo_intersubcorr(cfg, dat, design, {'numrandomization': 200, 'correctm': 'no', 'seed': 3})
    res_fdr = montecarlo_intersubcorr(cfg, dat, design, {'numrandomization': 200, 'correctm': 'fdr', 'seed': 3})

    for res in (res_max, res_no, res_fdr):
        assert res.prob.shape == (30,)
        assert np.all((res.prob > 0) & (res.prob <= 1))
        assert res.mask[10:16].all()

    # Max-statistic correction is never less conservative than uncorrected
    assert np.all(res_max.prob >= res_no.prob - 1e-12)
    assert np.all(res_fdr.prob >= res_no.prob - 1e-12)
    assert res_max.posdistribution.shape == (200,)


def test_seed_makes_results_reproducible():
    dat, design = _effect_dataset()
    kwargs = {'numrandomization': 50, 'correctm': 'max', 'seed': 11}
    r1 = montecarlo_intersubcorr({'uvar': 2}, dat, design, kwargs)
    r2 = montecarlo_intersubcorr({'uvar': 2}, dat, design, kwargs)
    np.testing.assert_array_equal(r1.prob, r2.prob)


def test_grid_dim_and_label_matrix_shape():
    dat, design = _effect_dataset(n_obs=27, effect_rows=slice(0, 9))
    res = montecarlo_intersubcorr(
        {'uvar': 2}, dat, design,
        {'numrandomization': 20, 'dim': [3, 3, 3], 'seed': 0},
    )
    assert res.posclusterslabelmat.shape == (3, 3, 3)
    assert res.prob.shape == (27,)


def test_invalid_montecarlo_configuration():
    dat, design = _effect_dataset()
    with pytest.raises(ConfigurationError, match="correctm"):
        montecarlo_intersubcorr({'uvar': 2}, dat, design, {'correctm': 'holm'})
    with pytest.raises(ConfigurationError, match="clusterstatistic"):
        montecarlo_intersubcorr({'uvar': 2}, dat, design, {'clusterstatistic': 'wcm'})
    with pytest.raises(ConfigurationError, match="numrandomization"):
        montecarlo_intersubcorr({'uvar': 2}, dat, design, {'numrandomization': 0})
    with pytest.raises(ConfigurationError, match="dim"):
        montecarlo_intersubcorr({'uvar': 2}, dat, design, {'dim': (4, 4)})
    with pytest.raises(ConfigurationError, match="uvar"):
        montecarlo_intersubcorr({}, dat, design, {'numrandomization': 5})


def test_montecarlo_config_from_mapping():
    cfg = MontecarloConfig.from_mapping({'correctm': 'MAX', 'dim': [2, 3], 'unused': 1})
    assert cfg.correctm == 'max'
    assert cfg.dim == (2, 3)
    assert MontecarloConfig.from_mapping(None).numrandomization == 1000
