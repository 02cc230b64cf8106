"""Artificial dataset (generator functions) for the sklearn_antminer unittests.
"""

import itertools
from typing import Union

import numpy as np
from sklearn.datasets import make_classification, make_moons
from sklearn.utils import check_random_state, Bunch

from sklearn_antminer.common import ClassTarget, Dataset, RealTarget
from sklearn_antminer.util import build_categorical_mask


class SampleData(Bunch):
    def __init__(self,
                 x_train: np.ndarray,
                 y_train: np.ndarray,
                 x_test: np.ndarray = None,
                 y_test: np.ndarray = None,
                 categorical_features: Union[None, str, np.ndarray] = None,
                 **kwargs):
        if x_test is not None:
            kwargs["x_test"] = x_test
        if y_test is not None:
            kwargs["y_test"] = y_test
        super().__init__(x_train=x_train, y_train=y_train,
                         categorical_features=categorical_features,
                         **kwargs)

    def get_opt(self, key):
        """:return: `self.get(key, default=None)`"""
        return self.get(key, None)

    def to_dataset(self, regression: bool = False) -> Dataset:
        """:return: The training data as seen by the ant colony. Class labels
            have to be an integer range `[0..n_classes)`.
        """
        X = np.asarray(self.x_train, dtype=float)
        mask = build_categorical_mask(self.categorical_features, X.shape[1])
        if regression:
            return Dataset(X, np.asarray(self.y_train, dtype=float), mask,
                           RealTarget())
        y = np.asarray(self.y_train, dtype=int)
        return Dataset(X, y, mask, ClassTarget(len(np.unique(y))))


# datasets


def two_by_two_categorical(n_per_cell=10):
    """Two binary categorical features, the class equals the first one, the
    second one is noise: every combination occurs `n_per_cell` times.
    """
    x = np.array([cell for cell in itertools.product([0, 1], [0, 1])
                  for _ in range(n_per_cell)], dtype=float)
    y = x[:, 0].astype(int)
    return SampleData(x, y, categorical_features='all',
                      feature_names=['signal', 'noise'])


def perfectly_correlated_multiclass(n_features=4, n_copies=12):
    """Generate multiclass problem with n features each matching one class."""
    y = np.repeat(np.arange(n_features), n_copies)
    x = np.eye(n_features)[y]
    return SampleData(x, y, categorical_features='all')


def threshold_1d(n_samples=40):
    """A single numerical feature `0..n_samples-1`, class 1 for the upper
    half.
    """
    x = np.arange(n_samples, dtype=float).reshape(-1, 1)
    y = (x[:, 0] >= n_samples // 2).astype(int)
    return SampleData(x, y)


def xor_2d(n_samples=200, random=None):
    """Generate numeric low-noise 2D binary XOR problem"""
    if random is None:
        random = check_random_state(11)
    n = n_samples // 4
    centers = itertools.product([0, 4], [0, 4])
    t = np.vstack([np.hstack((random.normal(loc=(x, y), size=(n, 2)),
                              [[int(x == y)]] * n))
                   for x, y in centers])
    random.shuffle(t)
    split = len(t) // 3 * 2
    return SampleData(t[:split, :-1], t[:split, -1],
                      t[split:, :-1], t[split:, -1])


def binary_mixed(n_samples=120, random=None):
    """One categorical and one numerical feature, the class depends on both.
    """
    if random is None:
        random = check_random_state(7)
    categorical = random.randint(3, size=n_samples)
    numerical = random.uniform(0, 10, size=n_samples)
    y = ((categorical == 1) | (numerical > 7)).astype(int)
    x = np.column_stack((categorical, numerical)).astype(float)
    return SampleData(x, y, categorical_features=[0])


def sklearn_make_classification(n_samples=200, n_features=4, n_classes=3,
                                random=1):
    x, y = make_classification(n_samples, n_features,
                               n_informative=n_features // 2 + 1,
                               n_redundant=0,
                               n_classes=n_classes,
                               n_clusters_per_class=1,
                               class_sep=2,
                               random_state=random)
    return SampleData(x, y)


def sklearn_make_moons(n_samples=150, random=42):
    x, y = make_moons(n_samples, random_state=random)
    return SampleData(x, y)


def with_missing_values(ratio=0.1, random=None):
    """`binary_mixed` with a fraction `ratio` of the values replaced by NaN.
    """
    if random is None:
        random = check_random_state(3)
    data = binary_mixed()
    x = data.x_train.copy()
    x[random.random_sample(x.shape) < ratio] = np.nan
    return SampleData(x, data.y_train, categorical_features=[0])


def regression_steps(n_samples=40):
    """A single numerical feature `0..n_samples-1`, the target is 0 on the
    lower and 10 on the upper half.
    """
    x = np.arange(n_samples, dtype=float).reshape(-1, 1)
    y = np.where(x[:, 0] < n_samples // 2, 0.0, 10.0)
    return SampleData(x, y)
