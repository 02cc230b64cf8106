"""
Miscellaneous things not depending on anything else from sklearn_antminer.
"""

import math

import numpy as np
from scipy.special import xlogy


def log2(x: float) -> float:
    """`log2(x) if x > 0 else 0`"""
    return math.log2(x) if x > 0 else 0


def entropy(counts) -> float:
    """:return: The base-2 entropy of the (weighted) class distribution
        `counts`, 0 if it is empty.
    """
    counts = np.asarray(counts, dtype=float)
    total = counts.sum()
    if total <= 0:
        return 0.0
    p = counts / total
    return float(-xlogy(p, p).sum() / math.log(2))


def build_categorical_mask(which_features, n_features: int
                           ) -> np.ndarray or None:
    """:return: A mask array of length `n_features` based on `which_features`.
        For its contents, see `_BaseAntMinerEstimator` docs.
        Returns None if `which_features` cannot be recognized.
    """
    # which_features modeled like sklearn.preprocessing.OneHotEncoder
    categorical_mask_ = np.zeros(n_features, dtype=bool)  # default "all False"
    if which_features is None:
        pass  # keep default
    elif isinstance(which_features, str):
        if which_features != 'all':
            return None
        return np.ones(n_features, dtype=bool)
    else:
        which_features = np.asarray(which_features)
        if not len(which_features):
            pass
        elif which_features.dtype == bool:
            if len(which_features) != n_features:
                return None
            categorical_mask_[:] = which_features
        elif np.issubdtype(which_features.dtype, np.integer):
            categorical_mask_[which_features] = True
        else:
            return None
    return categorical_mask_


# Confidence limits for the pessimistic error estimate, taken from Quinlan's
# C4.5 `stats.c`.
_CF_VALUES = [0, 0.001, 0.005, 0.01, 0.05, 0.10, 0.20, 0.40, 1.00]
_CF_DEVIATION = [4.0, 3.09, 2.58, 2.33, 1.65, 1.28, 0.84, 0.25, 0.00]


def _coefficient(confidence: float) -> float:
    i = 0
    while confidence > _CF_VALUES[i]:
        i += 1
    fraction = (confidence - _CF_VALUES[i - 1]) \
        / (_CF_VALUES[i] - _CF_VALUES[i - 1])
    coefficient = _CF_DEVIATION[i - 1] \
        + (_CF_DEVIATION[i] - _CF_DEVIATION[i - 1]) * fraction
    return coefficient * coefficient


def pessimistic_errors(total: float, errors: float,
                       confidence: float = 0.25) -> float:
    """Additional errors to add to `errors` to get the upper limit of the
    binomial confidence interval, as computed by C4.5 (`AddErrs`).

    :param total: The number of (weighted) instances covered.
    :param errors: The number of (weighted) misclassified instances.
    :param confidence: The confidence factor, C4.5 default is 0.25.
    """
    if total <= 0:
        return 0.0
    if errors < 1e-6:
        return total * (1 - math.exp(math.log(confidence) / total))
    elif errors < 0.9999:
        v = total * (1 - math.exp(math.log(confidence) / total))
        return v + errors * (pessimistic_errors(total, 1.0, confidence) - v)
    elif errors + 0.5 >= total:
        return 0.67 * (total - errors)
    coefficient = _coefficient(confidence)
    pr = (errors + 0.5 + coefficient / 2
          + math.sqrt(coefficient * ((errors + 0.5)
                                     * (1 - (errors + 0.5) / total)
                                     + coefficient / 4))) \
        / (total + coefficient)
    return total * pr - errors


def roulette(scores: np.ndarray, rng: np.random.RandomState) -> int or None:
    """Roulette wheel selection over `scores`.

    Only strictly positive scores carry probability mass. The cumulative
    probability is built over them in index order and the first index whose
    cumulative probability exceeds a uniform draw is selected.

    :return: The selected index into `scores`, or None if the scores sum up
        to zero (or are not finite).
    """
    positive = np.flatnonzero(scores > 0)
    if not len(positive):
        return None
    total = scores[positive].sum()
    if not np.isfinite(total) or total <= 0:
        return None
    cumulative = np.cumsum(scores[positive]) / total
    slot = rng.random_sample()
    selected = int(np.searchsorted(cumulative, slot, side='right'))
    if selected >= len(positive):
        # rounding left cumulative[-1] slightly below 1.0
        selected = len(positive) - 1
    return int(positive[selected])
