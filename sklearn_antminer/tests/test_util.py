"""Tests for `sklearn_antminer.util`."""
import functools
import math

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from sklearn_antminer import util


def test_log2():
    assert util.log2(8) == 3
    assert util.log2(1) == 0
    assert util.log2(0) == 0
    assert util.log2(-1) == 0


@pytest.mark.parametrize('counts, expected', [
    pytest.param([5, 5], 1.0, id="uniform_binary"),
    pytest.param([4, 0], 0.0, id="pure"),
    pytest.param([1, 1, 1, 1], 2.0, id="uniform_4"),
    pytest.param([], 0.0, id="empty"),
    pytest.param([0, 0], 0.0, id="zero"),
])
def test_entropy(counts, expected):
    assert util.entropy(counts) == pytest.approx(expected)


def test_categorical_mask():
    build_mask = functools.partial(util.build_categorical_mask, n_features=3)
    assert_array_equal(build_mask(None), [False, False, False])
    assert_array_equal(build_mask([]), [False, False, False])
    assert_array_equal(build_mask('all'), [True, True, True])
    assert_array_equal(build_mask(np.array([True, False, False])),
                       [True, False, False])
    assert_array_equal(build_mask([0, 2]), [True, False, True])
    assert build_mask('some') is None
    assert build_mask(np.array([True, False])) is None
    assert build_mask([0.5]) is None


def test_pessimistic_errors():
    assert util.pessimistic_errors(0, 0) == 0
    # no errors: the upper confidence limit of 0 observed errors
    assert util.pessimistic_errors(1, 0) == pytest.approx(0.75)
    assert util.pessimistic_errors(10, 10) == 0
    more_data = [util.pessimistic_errors(n, n / 10) for n in (10, 100, 1000)]
    # relative to the covered instances, the estimate shrinks with more data
    assert more_data[0] / 10 > more_data[1] / 100 > more_data[2] / 1000 > 0
    # continuous between 0 and 1 errors
    assert util.pessimistic_errors(20, 0) \
        < util.pessimistic_errors(20, 0.5) \
        < util.pessimistic_errors(20, 1) + 1


def test_roulette_degenerate(rng):
    assert util.roulette(np.zeros(4), rng) is None
    assert util.roulette(np.array([-1.0, 0.0]), rng) is None
    assert util.roulette(np.array([0.0, math.inf]), rng) is None
    assert util.roulette(np.array([0.0, 0.0, 3.0]), rng) == 2


def test_roulette_never_selects_zero(rng):
    scores = np.array([0.0, 1.0, 0.0, 2.0, -1.0])
    draws = np.array([util.roulette(scores, rng) for _ in range(3000)])
    assert set(draws) == {1, 3}
    assert np.mean(draws == 3) == pytest.approx(2 / 3, abs=0.05)
