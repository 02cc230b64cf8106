"""pytest fixtures for the test cases in this directory."""
from typing import Type

import numpy as np
import pytest
from sklearn.utils import check_random_state

from sklearn_antminer.common import SearchConfiguration
from sklearn_antminer.concrete import \
    AntMinerClassifier, AntMinerMAClassifier, PittsburghAntMinerClassifier, \
    ArchiveAntMinerClassifier
from sklearn_antminer.abstract import _BaseAntMinerEstimator

from .datasets import SampleData, \
    two_by_two_categorical, perfectly_correlated_multiclass, threshold_1d, \
    xor_2d, binary_mixed, sklearn_make_classification, sklearn_make_moons, \
    with_missing_values

# keep the searches of the tests short
FAST_PARAMS = dict(colony_size=5, max_iterations=30, random_state=7)


# pytest plugin, to print the rule list on test failure
@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    default = yield
    report = default.get_result()
    if report.failed and report.user_properties:
        for name, prop in report.user_properties:
            if name == 'rule_list':
                report.longrepr.addsection(name, str(prop))
                break
    return default


@pytest.fixture
def record_rule_list(record_property):
    def _record(estimator: _BaseAntMinerEstimator):
        record_property("rule_list", estimator.export_text())
    return _record


@pytest.fixture
def rng():
    return check_random_state(42)


@pytest.fixture
def config() -> SearchConfiguration:
    """A configuration of short searches on the small test datasets."""
    return SearchConfiguration(colony_size=5, max_iterations=30,
                               stagnation=5, convergence=3, minimum_cases=5,
                               maximum_limit=10).validate()


@pytest.fixture
def two_by_two() -> SampleData:
    return two_by_two_categorical()


@pytest.fixture(params=[AntMinerClassifier,
                        AntMinerMAClassifier,
                        PittsburghAntMinerClassifier,
                        ArchiveAntMinerClassifier])
def antminer_class(request) -> Type[_BaseAntMinerEstimator]:
    """Fixture running for each of the pre-defined classifier classes from
    `sklearn_antminer.concrete`.
    """
    return request.param


@pytest.fixture
def antminer_classifier(antminer_class):
    """Fixture running for each of the pre-defined classifiers, with a fixed
    random state and short searches.
    """
    return antminer_class(**FAST_PARAMS)


@pytest.fixture(params=[perfectly_correlated_multiclass,
                        threshold_1d,
                        xor_2d,
                        binary_mixed,
                        sklearn_make_classification,
                        sklearn_make_moons,
                        with_missing_values,
                        ])
def blackbox_test(request) -> SampleData:
    return request.param()


def accuracy(estimator, data: SampleData) -> float:
    """:return: The accuracy of `estimator` on the training data."""
    return float(np.mean(estimator.predict(data.x_train) == data.y_train))
