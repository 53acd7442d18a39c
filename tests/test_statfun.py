"""
Tests for the intersubject correlation statistic.

Small deterministic inputs; the statistic is checked against scipy
reference computations.
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy import stats

from intersubcorr.statfun import (
    ConfigurationError,
    StatfunConfig,
    statfun_intersubcorr,
    unit_label_positions,
    with_overrides,
)

from conftest import paired_data, paired_design


def test_stat_is_t_transform_of_rho(random_pair):
    dat, design, _, _ = random_pair
    s = statfun_intersubcorr({'uvar': 2}, dat, design)

    n = 10
    expected = s.rho * np.sqrt(n - 2) / np.sqrt(1 - s.rho ** 2)
    np.testing.assert_allclose(s.stat, expected)
    assert s.stat.shape == (20,)


def test_spearman_matches_scipy_per_row(random_pair):
    dat, design, x, y = random_pair
    # Introduce ties to exercise average ranks
    dat = dat.copy()
    dat[0, :3] = 1.0
    x = dat[:, :10]

    s = statfun_intersubcorr({'uvar': 2, 'type': 'spearman'}, dat, design)
    expected = [stats.spearmanr(x[i], y[i])[0] for i in range(x.shape[0])]
    np.testing.assert_allclose(s.rho, expected, atol=1e-12)


def test_pearson_and_kendall(random_pair):
    dat, design, x, y = random_pair
    pearson = statfun_intersubcorr({'uvar': 2, 'type': 'pearson'}, dat, design)
    kendall = statfun_intersubcorr({'uvar': 2, 'type': 'Kendall'}, dat, design)

    np.testing.assert_allclose(pearson.rho, [np.corrcoef(x[i], y[i])[0, 1] for i in range(20)], atol=1e-12)
    np.testing.assert_allclose(kendall.rho, [stats.kendalltau(x[i], y[i])[0] for i in range(20)], atol=1e-12)


def test_df_is_units_minus_one_and_always_reported(random_pair):
    dat, design, _, _ = random_pair
    s = statfun_intersubcorr({'uvar': 2, 'computestat': 'no'}, dat, design)
    assert s.df == 9
    assert s.stat is None and s.rho is None
    assert s.as_dict() == {'df': 9}


def test_column_order_does_not_matter(random_pair):
    dat, design, _, _ = random_pair
    order = np.random.default_rng(5).permutation(dat.shape[1])

    s1 = statfun_intersubcorr({'uvar': 2}, dat, design)
    s2 = statfun_intersubcorr({'uvar': 2}, dat[:, order], design[:, order])
    np.testing.assert_allclose(s1.stat, s2.stat)


def test_design_rows_can_be_swapped(random_pair):
    dat, design, _, _ = random_pair
    s1 = statfun_intersubcorr({'uvar': 2}, dat, design)
    s2 = statfun_intersubcorr({'ivar': 2, 'uvar': 1}, dat, design[::-1])
    np.testing.assert_allclose(s1.stat, s2.stat)


def test_two_tailed_critical_values_are_symmetric(random_pair):
    dat, design, _, _ = random_pair
    s = statfun_intersubcorr({'uvar': 2, 'tail': 0, 'computecritval': 'yes'}, dat, design)
    assert s.critval.shape == (2,)
    np.testing.assert_allclose(s.critval[0], -s.critval[1])
    np.testing.assert_allclose(s.critval[1], stats.t.ppf(0.975, 9))


def test_one_tailed_pvalues_are_complementary(random_pair):
    dat, design, _, _ = random_pair
    right = statfun_intersubcorr({'uvar': 2, 'tail': 1, 'computeprob': True}, dat, design)
    left = statfun_intersubcorr({'uvar': 2, 'tail': -1, 'computeprob': True}, dat, design)
    both = statfun_intersubcorr({'uvar': 2, 'tail': 0, 'computeprob': True}, dat, design)

    np.testing.assert_allclose(right.prob + left.prob, 1.0)
    np.testing.assert_allclose(both.prob, 2 * np.minimum(right.prob, left.prob))


def test_critical_value_reference():
    n_units = 11
    rng = np.random.default_rng(0)
    dat = rng.standard_normal((3, 2 * n_units))
    s = statfun_intersubcorr(
        {'uvar': 2, 'tail': 1, 'alpha': 0.05, 'computecritval': True},
        dat, paired_design(n_units),
    )
    assert s.df == 10
    assert round(s.critval, 3) == 1.812

    left = statfun_intersubcorr(
        {'uvar': 2, 'tail': -1, 'computecritval': True}, dat, paired_design(n_units),
    )
    assert round(left.critval, 3) == -1.812


def test_perfect_correlation_gives_infinite_t():
    x = np.array([[1.0, 2.0, 3.0, 4.0, 5.0]])
    dat = np.vstack([
        paired_data(x, 2 * x),
        paired_data(x, -x),
    ])
    s = statfun_intersubcorr({'uvar': 2, 'computeprob': True}, dat, paired_design(5))

    np.testing.assert_array_equal(s.rho, [1.0, -1.0])
    assert s.stat[0] == np.inf
    assert s.stat[1] == -np.inf
    np.testing.assert_allclose(s.prob, [0.0, 1.0])


def test_two_units_perfect_correlation_does_not_crash():
    dat = paired_data(np.array([[1.0, 2.0]]), np.array([[3.0, 5.0]]))
    s = statfun_intersubcorr({'uvar': 2, 'computeprob': True, 'computecritval': True}, dat, paired_design(2))

    assert s.df == 1
    assert s.rho[0] == 1.0
    assert not np.isfinite(s.stat[0])


def test_one_dimensional_data_is_a_single_observation():
    x = np.array([1.0, 3.0, 2.0, 5.0])
    y = np.array([2.0, 1.0, 4.0, 3.0])
    s = statfun_intersubcorr({'uvar': 2}, np.concatenate([x, y]), paired_design(4))
    assert s.stat.shape == (1,)
    np.testing.assert_allclose(s.rho[0], stats.spearmanr(x, y)[0])


# =============================================================================
# Configuration and design errors
# =============================================================================

def test_computeprob_without_computestat_is_rejected(random_pair):
    dat, design, _, _ = random_pair
    with pytest.raises(ConfigurationError, match="P-values can only be calculated"):
        statfun_intersubcorr({'uvar': 2, 'computestat': False, 'computeprob': True}, dat, design)


def test_missing_uvar_is_rejected(random_pair):
    dat, design, _, _ = random_pair
    with pytest.raises(ConfigurationError, match="uvar must be specified"):
        statfun_intersubcorr({}, dat, design)
    with pytest.raises(ConfigurationError, match="uvar must be specified"):
        statfun_intersubcorr({'uvar': []}, dat, design)
    with pytest.raises(ConfigurationError, match="uvar must be specified"):
        statfun_intersubcorr({'uvar': ' '}, dat, design)


def test_numpy_integer_design_rows_are_accepted(random_pair):
    dat, design, _, _ = random_pair
    expected = statfun_intersubcorr({'uvar': 2}, dat, design)
    s = statfun_intersubcorr({'ivar': np.int64(1), 'uvar': np.int64(2)}, dat, design)
    np.testing.assert_allclose(s.stat, expected.stat)
    assert s.df == 9


def test_validation_order_checks_computeprob_first(random_pair):
    dat, design, _, _ = random_pair
    with pytest.raises(ConfigurationError, match="P-values"):
        statfun_intersubcorr({'computestat': False, 'computeprob': True, 'tail': 3}, dat, design)


def test_unsupported_tail_and_type_are_rejected(random_pair):
    dat, design, _, _ = random_pair
    with pytest.raises(ConfigurationError, match="unsupported tail"):
        statfun_intersubcorr({'uvar': 2, 'tail': 2}, dat, design)
    with pytest.raises(ConfigurationError, match="unsupported correlation type"):
        statfun_intersubcorr({'uvar': 2, 'type': 'distance'}, dat, design)


def test_unequal_label_counts_are_rejected():
    design = np.array([
        [1, 1, 1, 2, 2],
        [1, 2, 3, 1, 2],
    ])
    dat = np.zeros((2, 5))
    with pytest.raises(ConfigurationError, match="Invalid specification of the design array"):
        statfun_intersubcorr({'uvar': 2}, dat, design)


def test_labels_other_than_one_and_two_are_rejected():
    design = np.array([
        [1, 1, 2, 2, 3, 3],
        [1, 2, 1, 2, 1, 2],
    ])
    with pytest.raises(ConfigurationError, match="Invalid specification"):
        statfun_intersubcorr({'uvar': 2}, np.zeros((1, 6)), design)


def test_single_unit_is_rejected():
    with pytest.raises(ConfigurationError, match="at least two units"):
        statfun_intersubcorr({'uvar': 2}, np.zeros((1, 2)), paired_design(1))


def test_repeated_unit_ids_are_rejected():
    design = np.array([
        [1, 1, 1, 2, 2, 2],
        [1, 1, 2, 1, 2, 3],
    ])
    with pytest.raises(ConfigurationError, match="Invalid specification"):
        statfun_intersubcorr({'uvar': 2}, np.zeros((1, 6)), design)


def test_mismatched_unit_sets_are_rejected():
    design = np.array([
        [1, 1, 2, 2],
        [1, 2, 1, 3],
    ])
    with pytest.raises(ConfigurationError, match="Invalid specification"):
        statfun_intersubcorr({'uvar': 2}, np.zeros((1, 4)), design)


def test_data_design_mismatch_and_bad_rows(random_pair):
    dat, design, _, _ = random_pair
    with pytest.raises(ConfigurationError, match="replications"):
        statfun_intersubcorr({'uvar': 2}, dat[:, :-1], design)
    with pytest.raises(ConfigurationError, match="outside the design"):
        statfun_intersubcorr({'uvar': 3}, dat, design)


def test_invalid_flag_string_is_rejected():
    with pytest.raises(ConfigurationError):
        StatfunConfig.from_mapping({'uvar': 2, 'computeprob': 'maybe'})


# =============================================================================
# Configuration resolution and unit pairing
# =============================================================================

def test_config_defaults_and_overrides():
    cfg = StatfunConfig.from_mapping({'uvar': 2, 'type': 'PEARSON', 'method': 'montecarlo'})
    assert cfg.type == 'pearson'
    assert cfg.computestat is True
    assert cfg.computecritval is False
    assert cfg.tail == 1
    assert cfg.ivar == 1

    changed = with_overrides(cfg, tail=0)
    assert changed.tail == 0 and cfg.tail == 1
    assert StatfunConfig.from_mapping(cfg) is cfg


def test_unit_label_positions_sorted_by_unit():
    design = np.array([
        [2, 1, 1, 2],
        [1, 2, 1, 2],
    ])
    positions, nunits = unit_label_positions(StatfunConfig(uvar=2), design)
    assert nunits == 2
    np.testing.assert_array_equal(positions, [[2, 0], [1, 3]])


def test_as_dict_contains_computed_fields(random_pair):
    dat, design, _, _ = random_pair
    s = statfun_intersubcorr({'uvar': 2, 'computeprob': True, 'computecritval': True}, dat, design)
    assert set(s.as_dict()) == {'df', 'stat', 'rho', 'critval', 'prob'}
