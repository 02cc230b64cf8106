"""
Implementation of ACO rule discovery: Abstract base estimator.
"""

from abc import ABC, abstractmethod
from typing import List, Union

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.utils.validation import check_is_fitted, validate_data

from sklearn_antminer.common import BuildingBlock, ClassTarget, Dataset, \
    RealTarget, SearchConfiguration
from sklearn_antminer.covering import Strategies, cover
from sklearn_antminer.util import build_categorical_mask


# noinspection PyAttributeOutsideInit
class _BaseAntMinerEstimator(BaseEstimator, ABC):
    """Rule learning by Ant Colony Optimization, deferring to `cover` for the
    search and to the concrete subclass for the target type and the building
    blocks.

    Parameters
    -----
    categorical_features : None or "all" or array of indices or mask.

        Specify what features are treated as categorical, i.e. equality
        tests are used for these features, based on the set of values
        present in the training data. Numerical features are tested with
        inequalities against thresholds found during the search.

        - None (default): All features are treated as numerical & ordinal.
        - 'all': All features are treated as categorical.
        - array of indices: Array of categorical feature indices.
        - mask: Array of length n_features and with dtype=bool.

    heuristic, rule_function, pruner : str or instance
        The building blocks of the search, either an instance implementing
        the respective interface from `sklearn_antminer.common` or the name
        of a predefined one (see the registries in
        `sklearn_antminer.concrete`). Each must support the target type of
        the estimator.

    colony_size, max_iterations, minimum_cases, uncovered, n_jobs :
        See `SearchConfiguration`. Subclasses add the hyper-parameters
        specific to their search, named like the fields of
        `SearchConfiguration` they set.

    random_state : None | int | instance of np.random.RandomState
        RNG of the search. Value passed through
        `sklearn.utils.check_random_state`. With `n_jobs` other than None or
        1, runs are not exactly reproducible even with a fixed seed.

    Attributes
    -----
    config_ : SearchConfiguration
        The validated configuration of the last `fit`.

    n_features_, n_features_in_ : int
        The number of features in (training) data `X`.

    categorical_mask_ : np.ndarray of shape (n_features_,) and dtype bool
        A mask array calculated from `categorical_features`. True entries
        denote categorical features, False entries numeric ones.

    target_ : ClassTarget or RealTarget
        The target seen in `fit`: the number of classes for classification,
        used to print the rule heads.

    rule_list_ : RuleList
        The learned rules, ending with a default rule.

    n_iterations_ : int
        Total number of search iterations run by `fit`.
    """

    variant = 'rule'
    numeric_target = False
    # name of the fitted model, see `cover`
    model_attribute = 'rule_list_'

    def __init__(self,
                 categorical_features: Union[None, str, np.ndarray] = None,
                 heuristic='entropy',
                 rule_function='sensitivity_specificity',
                 pruner='greedy',
                 colony_size: int = 60,
                 max_iterations: int = 1500,
                 minimum_cases: int = 10,
                 uncovered: float = 10,
                 n_jobs: int = None,
                 random_state=None):
        super().__init__()
        self.categorical_features = categorical_features
        self.heuristic = heuristic
        self.rule_function = rule_function
        self.pruner = pruner
        self.colony_size = colony_size
        self.max_iterations = max_iterations
        self.minimum_cases = minimum_cases
        self.uncovered = uncovered
        self.n_jobs = n_jobs
        self.random_state = random_state

    def _config_fields(self) -> dict:
        """:return: The hyper-parameters of `self` that are fields of
            `SearchConfiguration`, the others keep their default.
        """
        return {name: getattr(self, name)
                for name in SearchConfiguration._fields if hasattr(self, name)}

    def _make_config(self) -> SearchConfiguration:
        return SearchConfiguration(**self._config_fields()).validate()

    @abstractmethod
    def _prepare_target(self, y: np.ndarray):
        """:return: `(y, target)`, the targets as seen by the search and their
            `ClassTarget` or `RealTarget`.
        """

    @abstractmethod
    def _make_strategies(self) -> Strategies:
        pass

    @abstractmethod
    def _decode(self, prediction: np.ndarray) -> np.ndarray:
        """:return: The rule heads in `prediction` as output by `predict`."""

    def _cover_options(self) -> dict:
        """:return: Variant specific keyword arguments of `cover`."""
        return {}

    def _check_strategies(self, strategies: Strategies) -> None:
        kind = RealTarget.kind if self.numeric_target else ClassTarget.kind
        for field, block in zip(strategies._fields, strategies):
            if isinstance(block, BuildingBlock) and not block.supports(kind):
                raise ValueError("%s %s does not support %s targets"
                                 % (field, type(block).__name__, kind))

    def fit(self, X, y):
        """Fit to data, i.e. learn a rule list (or a tree).

        :raise ValueError: On invalid hyper-parameters, or building blocks
            not supporting the target type, before the search starts.
        """
        X, y = validate_data(self, X, y, dtype=np.float64,
                             ensure_all_finite='allow-nan',
                             y_numeric=self.numeric_target)
        self.config_ = self._make_config()
        strategies = self._make_strategies()
        self._check_strategies(strategies)

        # prepare  attributes / features / X
        self.n_features_ = self.n_features_in_
        self.categorical_mask_ = \
            build_categorical_mask(self.categorical_features, self.n_features_)
        if self.categorical_mask_ is None:
            raise ValueError("categorical_features must be one of: None,"
                             " 'all', np.ndarray of dtype bool or integer,"
                             " but got %r." % (self.categorical_features,))

        y, target = self._prepare_target(y)
        dataset = Dataset(X, y, self.categorical_mask_, target)
        self.target_ = target
        model = cover(dataset, self.config_, strategies, self.variant,
                      random_state=self.random_state, **self._cover_options())
        setattr(self, self.model_attribute, model)
        self.n_iterations_ = model.iteration
        return self

    def predict(self, X) -> np.ndarray:
        """Predict with the first (ordered) resp. the best (unordered)
        matching rule of `rule_list_`, or with the learned tree.
        """
        check_is_fitted(self, self.model_attribute)
        X = validate_data(self, X, reset=False, dtype=np.float64,
                          ensure_all_finite='allow-nan')
        return self._decode(getattr(self, self.model_attribute).predict(X))

    def __sklearn_tags__(self):
        tags = super().__sklearn_tags__()
        tags.input_tags.allow_nan = True
        return tags

    def export_text(self, feature_names: List[str] = None,
                    class_names: List[str] = None) -> str:
        """Build a text report showing the rules in the learned rule list,
        resp. the branches of the learned tree.

        See Also `sklearn.tree.export_text`

        Parameters
        -----
        feature_names : list, optional
            A list of length n_features containing the feature names.
            If None, generic names will be generated.

        class_names: list, optional
            A list containing the class names, ordered like `self.classes_`.
            If None, the class labels are used. Ignored for regression.
        """
        check_is_fitted(self, self.model_attribute)
        if feature_names:
            if len(feature_names) != self.n_features_:
                raise ValueError(
                    "feature_names must contain %d elements, got %d"
                    % (self.n_features_, len(feature_names)))
        else:
            feature_names = ["feature_{}".format(i + 1)
                             for i in range(self.n_features_)]
        if class_names is None and hasattr(self, 'classes_'):
            class_names = [str(c) for c in self.classes_]
        return getattr(self, self.model_attribute).to_string(
            self.target_, feature_names, class_names)
