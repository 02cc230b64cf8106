"""
Implementation of ACO rule discovery:
Usual building blocks (heuristics, rule and list quality functions,
assignators, rule and tree pruners, interval builders) and known
instantiations of the algorithm as estimators.

Building blocks are plain objects implementing the interfaces from
`sklearn_antminer.common`; estimators accept either an instance or the name
of one of the registered building blocks.
"""

import math
from typing import List, Optional

import numpy as np
from scipy.special import xlogy
from sklearn.base import ClassifierMixin, RegressorMixin
from sklearn.preprocessing import LabelEncoder
from sklearn.utils.multiclass import check_classification_targets

from sklearn_antminer.abstract import _BaseAntMinerEstimator
from sklearn_antminer.common import \
    Assignator, ClassTarget, Condition, COVERED, Coverage, Dataset, \
    Heuristic, IntervalBuilder, ListMeasure, Pruner, RealTarget, Rule, \
    RULE_COVERED, RuleEvaluator, RuleFunction, SearchConfiguration, TreePruner
from sklearn_antminer.covering import Strategies
from sklearn_antminer.tree import DecisionTree, TreeGraph, pessimistic_prune
from sklearn_antminer.util import entropy, log2, pessimistic_errors


# heuristics


def _used_vertices(graph, used: Optional[np.ndarray]) -> np.ndarray:
    """:return: A mask of the vertices testing an attribute marked in `used`.
    """
    if used is None:
        return np.zeros(graph.size, dtype=bool)
    return np.array([not v.is_virtual and used[v.attribute]
                     for v in graph.vertices])


class NoHeuristic(Heuristic):
    """All term vertices (resp. attributes of a `TreeGraph`) are equally
    desirable, pheromone alone guides the ants.
    """

    def compute(self, graph, dataset: Dataset, coverage: Coverage,
                used: np.ndarray = None) -> np.ndarray:
        if isinstance(graph, TreeGraph):
            values = np.ones(graph.size)
            if used is not None:
                values[used] = 0
            return values
        values = np.array([0.0 if v.is_virtual else 1.0
                           for v in graph.vertices])
        values[_used_vertices(graph, used)] = 0
        return values


class EntropyHeuristic(Heuristic):
    """Ant-Miner's information theoretic heuristic: `log2(k) - H`, where `H` is
    the class entropy of the RULE_COVERED instances satisfying the vertex's
    condition and `k` the number of classes.

    Continuous vertices use the entropy of the best interval found by
    `interval_builder`, and get 0 if there is none. Archive backed vertices
    have no fixed condition and get `log2(k)`.
    """

    targets = (ClassTarget.kind,)

    def __init__(self, interval_builder: IntervalBuilder = None):
        self.interval_builder = interval_builder

    def compute(self, graph, dataset: Dataset, coverage: Coverage,
                used: np.ndarray = None) -> np.ndarray:
        maximum = log2(dataset.n_classes)
        rule_covered = coverage.mask(RULE_COVERED)
        values = np.zeros(graph.size)
        for i, vertex in enumerate(graph.vertices):
            if vertex.is_virtual:
                continue
            if vertex.variable is not None:
                values[i] = maximum
            elif vertex.condition is not None:
                column = dataset.X[:, vertex.attribute]
                counts = dataset.class_counts(
                    rule_covered & vertex.condition.satisfies(column))
                if counts.sum() > 0:
                    values[i] = maximum - entropy(counts)
            elif self.interval_builder is not None:
                condition = self.interval_builder.single(dataset, coverage,
                                                         vertex.attribute)
                if condition is not None:
                    values[i] = maximum - condition.entropy
        # rounding may leave tiny negative values
        values[values < 1e-15] = 0
        values[_used_vertices(graph, used)] = 0
        return values


class GainRatioHeuristic(Heuristic):
    """C4.5's gain ratio of every attribute on the RULE_COVERED instances,
    the heuristic of Ant-Tree-Miner. It rates attributes, not vertices: the
    returned array has one value per attribute.

    Categorical attributes need at least two values with `minimum_cases`
    instances, continuous ones are split by `interval_builder` and have
    their gain penalized by `log2(thresholds tried) / instances` like C4.5.
    Instances with a missing value count as an extra branch of the split
    information. Unusable attributes get 0.
    """

    targets = (ClassTarget.kind,)

    def __init__(self, interval_builder: IntervalBuilder = None,
                 minimum_cases: int = 3):
        self.interval_builder = interval_builder
        self.minimum_cases = minimum_cases

    def compute(self, graph, dataset: Dataset, coverage: Coverage,
                used: np.ndarray = None) -> np.ndarray:
        covered = coverage.mask(RULE_COVERED)
        values = np.zeros(dataset.n_features)
        for attribute in range(dataset.n_features):
            if used is None or not used[attribute]:
                values[attribute] = max(
                    self.gain_ratio(dataset, coverage, covered, attribute), 0)
        return values

    def gain_ratio(self, dataset: Dataset, coverage: Coverage,
                   covered: np.ndarray, attribute: int) -> float:
        column = dataset.X[:, attribute]
        weights = coverage.weights
        known = covered & ~np.isnan(column)
        length = weights[covered].sum()
        size = weights[known].sum()
        if size <= 0:
            return 0.0
        if dataset.categorical_mask[attribute]:
            branches = []
            for value in dataset.values(attribute):
                counts = dataset.class_counts(known & (column == value),
                                              weights)
                branches.append((counts.sum(), entropy(counts)))
            if sum(n >= self.minimum_cases for n, _ in branches) < 2:
                return 0.0
            penalty = 0.0
        else:
            if self.interval_builder is None:
                return 0.0
            conditions = self.interval_builder.multiple(dataset, coverage,
                                                        attribute)
            if not conditions:
                return 0.0
            branches = [(c.covered, c.entropy) for c in conditions]
            tries = len(np.unique(column[known])) - 1
            penalty = log2(tries) / length

        info = entropy(dataset.class_counts(known, weights))
        info_x = sum(n / size * h for n, h in branches)
        split = entropy([n for n, _ in branches] + [length - size])
        gain = size / length * (info - info_x) - penalty
        return gain / split if split > 0 else 0.0


# rule functions


def confusion_matrix(dataset: Dataset, rule: Rule, coverage: Coverage):
    """:return: `(tp, fp, fn, tn)` of `rule` on the available instances of
        `coverage`, as left by `rule.apply`.
    """
    available = coverage.flags != COVERED
    covered = coverage.flags == RULE_COVERED
    positive = dataset.y == rule.head
    uncovered = available & ~covered
    return (np.count_nonzero(covered & positive),
            np.count_nonzero(covered & ~positive),
            np.count_nonzero(uncovered & positive),
            np.count_nonzero(uncovered & ~positive))


class SensitivitySpecificity(RuleFunction):
    """`TP / (TP + FN) * TN / (TN + FP)`, the rule quality of Ant-Miner."""

    targets = (ClassTarget.kind,)

    def evaluate(self, dataset: Dataset, rule: Rule,
                 coverage: Coverage) -> float:
        tp, fp, fn, tn = confusion_matrix(dataset, rule, coverage)
        sensitivity = tp / (tp + fn) if tp + fn else 0.0
        specificity = tn / (tn + fp) if tn + fp else 0.0
        return sensitivity * specificity


class Laplace(RuleFunction):
    """The Laplace estimate `(TP + 1) / (TP + FP + k)` for `k` classes."""

    targets = (ClassTarget.kind,)

    def evaluate(self, dataset: Dataset, rule: Rule,
                 coverage: Coverage) -> float:
        tp, fp, _, _ = confusion_matrix(dataset, rule, coverage)
        return (tp + 1) / (tp + fp + dataset.n_classes)


class RRMSECoverage(RuleFunction):
    """Regression rule quality trading off the relative root mean squared
    error against the coverage::

        alpha * (1 - RRMSE ** 2) + (1 - alpha) * covered / available

    The default `alpha` follows (Janssen and Fürnkranz 2010).
    Undefined (NaN) if the rule covers nothing.
    """

    targets = (RealTarget.kind,)

    def __init__(self, alpha: float = 0.59):
        self.alpha = alpha

    def evaluate(self, dataset: Dataset, rule: Rule,
                 coverage: Coverage) -> float:
        covered = coverage.flags == RULE_COVERED
        n_covered = np.count_nonzero(covered)
        if not n_covered:
            return math.nan
        actual = dataset.y[covered]
        squared_error = np.sum((actual - rule.head) ** 2)
        default_error = np.sum((actual - dataset.y.mean()) ** 2)
        if default_error > 0:
            rrmse_2 = squared_error / default_error
        else:
            rrmse_2 = 0.0 if squared_error == 0 else math.inf
        return (self.alpha * (1 - rrmse_2)
                + (1 - self.alpha) * n_covered / coverage.available)


# list measures


class ListAccuracy(ListMeasure):
    """The fraction of training instances predicted correctly."""

    targets = (ClassTarget.kind,)

    def evaluate(self, dataset: Dataset, model) -> float:
        prediction = model.predict(dataset.X)
        return float(np.mean(prediction == dataset.y))


class PessimisticAccuracy(ListMeasure):
    """Accuracy of an ordered rule list, using C4.5's pessimistic estimate of
    the errors of each rule on the instances reaching it::

        1 - sum(errors_r + pessimistic_errors(covered_r, errors_r)) / n
    """

    targets = (ClassTarget.kind,)

    def evaluate(self, dataset: Dataset, rule_list) -> float:
        remaining = np.ones(dataset.n_samples, dtype=bool)
        total_errors = 0.0
        for rule in rule_list:
            covered = rule.covers(dataset.X) & remaining
            n_covered = np.count_nonzero(covered)
            if n_covered:
                errors = np.count_nonzero(covered & (dataset.y != rule.head))
                total_errors += errors + pessimistic_errors(n_covered, errors)
            remaining &= ~covered
        # instances no rule covers are errors
        total_errors += np.count_nonzero(remaining)
        return 1.0 - total_errors / dataset.n_samples


class PessimisticTreeAccuracy(ListMeasure):
    """Accuracy of a `DecisionTree` using C4.5's pessimistic estimate of the
    errors of its leaves.
    """

    targets = (ClassTarget.kind,)

    def evaluate(self, dataset: Dataset, tree: DecisionTree) -> float:
        return 1.0 - tree.root.estimated_errors() / dataset.n_samples


class RRMSEListMeasure(ListMeasure):
    """`1 - RRMSE` of a regression rule list on the training instances, where
    RRMSE is the root mean squared error relative to the one of predicting
    the mean. A constant target rates 1 if predicted exactly, 0 otherwise.
    """

    targets = (RealTarget.kind,)

    def evaluate(self, dataset: Dataset, model) -> float:
        predicted = model.predict(dataset.X).astype(np.float64)
        error = np.sum((dataset.y - predicted) ** 2)
        default_error = np.sum((dataset.y - dataset.y.mean()) ** 2)
        if default_error > 0:
            return 1.0 - math.sqrt(error / default_error)
        return 1.0 if error == 0 else 0.0


# assignators


class MajorityAssignator(Assignator):
    """Predict the most frequent class among the covered instances, ties are
    broken randomly.
    """

    targets = (ClassTarget.kind,)

    def assign(self, dataset: Dataset, rule: Rule, coverage: Coverage,
               rng: np.random.RandomState) -> int:
        covered = coverage.flags == RULE_COVERED
        counts = dataset.class_counts(covered)
        majority = np.flatnonzero(counts == counts.max())
        rule.head = int(majority[rng.randint(len(majority))]
                        if len(majority) > 1 else majority[0])
        return coverage.available - int(np.count_nonzero(covered))


class MeanAssignator(Assignator):
    """Predict the mean target value of the covered instances (NaN if there
    are none).
    """

    targets = (RealTarget.kind,)

    def assign(self, dataset: Dataset, rule: Rule, coverage: Coverage,
               rng: np.random.RandomState) -> int:
        covered = coverage.flags == RULE_COVERED
        n_covered = int(np.count_nonzero(covered))
        rule.head = float(dataset.y[covered].mean()) if n_covered \
            else math.nan
        return coverage.available - n_covered


class MedianAssignator(Assignator):
    """Predict the median target value of the covered instances."""

    targets = (RealTarget.kind,)

    def assign(self, dataset: Dataset, rule: Rule, coverage: Coverage,
               rng: np.random.RandomState) -> int:
        covered = coverage.flags == RULE_COVERED
        n_covered = int(np.count_nonzero(covered))
        rule.head = float(np.median(dataset.y[covered])) if n_covered \
            else math.nan
        return coverage.available - n_covered


# pruners


class NoPruner(Pruner):
    """Keep all terms."""

    def prune(self, dataset: Dataset, rule: Rule, coverage: Coverage,
              evaluator: RuleEvaluator) -> int:
        return evaluator(dataset, rule, coverage)


class GreedyPruner(Pruner):
    """Ant-Miner's pruning: repeatedly remove the term whose removal gives the
    best quality, as long as it does not get worse than the current one.
    """

    def prune(self, dataset: Dataset, rule: Rule, coverage: Coverage,
              evaluator: RuleEvaluator) -> int:
        evaluator(dataset, rule, coverage)
        best = rule.quality
        while rule.size > 1:
            candidate = None
            for term in rule.enabled_terms():
                term.enabled = False
                evaluator(dataset, rule, coverage)
                if rule.quality >= best:
                    best = rule.quality
                    candidate = term
                term.enabled = True
            if candidate is None:
                break
            candidate.enabled = False
        rule.compact()
        return evaluator(dataset, rule, coverage)


class BacktrackPruner(Pruner):
    """Remove terms from the end of the rule as long as the quality strictly
    improves.
    """

    def prune(self, dataset: Dataset, rule: Rule, coverage: Coverage,
              evaluator: RuleEvaluator) -> int:
        evaluator(dataset, rule, coverage)
        best = rule.quality
        while rule.size > 1:
            last = [term for term in rule.terms if term.enabled][-1]
            last.enabled = False
            evaluator(dataset, rule, coverage)
            improved = rule.quality > best \
                or math.isnan(best) and not math.isnan(rule.quality)
            if not improved:
                last.enabled = True
                break
            best = rule.quality
        rule.compact()
        return evaluator(dataset, rule, coverage)


class NoTreePruner(TreePruner):
    """Keep the tree as built."""

    def prune(self, dataset: Dataset, tree: DecisionTree) -> DecisionTree:
        return tree


class PessimisticTreePruner(TreePruner):
    """C4.5's pessimistic pruning, see `sklearn_antminer.tree`."""

    targets = (ClassTarget.kind,)

    def __init__(self, margin: float = 0.1):
        self.margin = margin

    def prune(self, dataset: Dataset, tree: DecisionTree) -> DecisionTree:
        tree.root = pessimistic_prune(tree.root, dataset, self.margin)
        return tree


# interval builders


def _row_entropy(counts: np.ndarray) -> np.ndarray:
    """:return: The base-2 entropy of each row of `counts`."""
    totals = counts.sum(axis=1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        p = np.where(totals > 0, counts / totals, 0)
    return -xlogy(p, p).sum(axis=1) / math.log(2)


class C45Split(IntervalBuilder):
    """Binary split of a continuous attribute with the highest information
    gain on the RULE_COVERED instances, like C4.5.

    Returns the two intervals `<= t` and `> t`, with `t` the midpoint between
    two adjacent distinct values; each must cover at least
    `clamp(0.1 * covered / k, minimum_cases, maximum_limit)` instances.
    """

    targets = (ClassTarget.kind,)

    # constants of Quinlan's C4.5
    DELTA = 1e-5
    PRECISION_10 = 1e-10
    PRECISION_15 = 1e-15

    def __init__(self, minimum_cases: int = 10, maximum_limit: int = 25):
        self.minimum_cases = minimum_cases
        self.maximum_limit = maximum_limit

    def minimum(self, dataset: Dataset, size: float) -> float:
        """:return: The minimum (weighted) number of instances per interval.
        """
        return min(max(0.1 * size / dataset.n_classes, self.minimum_cases),
                   self.maximum_limit)

    def candidates(self, dataset: Dataset, coverage: Coverage,
                   attribute: int):
        """:return: `(values, targets, weights)` of the RULE_COVERED instances
            with a value for `attribute`, sorted by value.
        """
        column = dataset.X[:, attribute]
        mask = coverage.mask(RULE_COVERED) & ~np.isnan(column)
        order = np.argsort(column[mask], kind='mergesort')
        return (column[mask][order], dataset.y[mask][order],
                coverage.weights[mask][order])

    def impurity(self, dataset: Dataset, targets: np.ndarray,
                 weights: np.ndarray):
        """:return: `(lower, upper, total, lower_counts, upper_counts)`: the
            impurities of both intervals of every split point `i` (lower
            interval `[0..i]`) and of the whole set, and the (class) counts
            of both intervals.
        """
        onehot = np.zeros((len(targets), dataset.n_classes))
        onehot[np.arange(len(targets)), targets] = weights
        lower = np.cumsum(onehot, axis=0)[:-1]
        frequency = onehot.sum(axis=0)
        upper = frequency - lower
        return (_row_entropy(lower), _row_entropy(upper),
                entropy(frequency), lower, upper)

    def accept(self, gain: float, size: float, lower_counts, upper_counts,
               frequency) -> bool:
        return gain > self.PRECISION_15

    def multiple(self, dataset: Dataset, coverage: Coverage,
                 attribute: int) -> Optional[List[Condition]]:
        values, targets, weights = self.candidates(dataset, coverage,
                                                   attribute)
        if len(values) < 2:
            return None
        size = weights.sum()
        minimum = self.minimum(dataset, size)
        lower_size = np.cumsum(weights)[:-1]
        upper_size = size - lower_size
        valid = ((values[:-1] + self.DELTA < values[1:])
                 & (lower_size + self.PRECISION_10 >= minimum)
                 & (upper_size + self.PRECISION_10 >= minimum))
        if not valid.any():
            return None
        lower, upper, total, lower_counts, upper_counts = \
            self.impurity(dataset, targets, weights)
        gain = total - lower_size / size * lower - upper_size / size * upper
        gain[~valid] = -np.inf
        i = int(np.argmax(gain))
        if not self.accept(gain[i], size, lower_counts[i], upper_counts[i],
                           lower_counts[i] + upper_counts[i]):
            return None
        threshold = (values[i] + values[i + 1]) / 2
        return [Condition(attribute, '<=', threshold, lower[i], lower_size[i]),
                Condition(attribute, '>', threshold, upper[i], upper_size[i])]


class MDLSplit(C45Split):
    """`C45Split` accepting a split only if it passes the minimum description
    length criterion of (Fayyad and Irani 1993).
    """

    def accept(self, gain: float, size: float, lower_counts, upper_counts,
               frequency) -> bool:
        if not super().accept(gain, size, lower_counts, upper_counts,
                              frequency):
            return False
        k = np.count_nonzero(frequency)
        k1 = np.count_nonzero(lower_counts)
        k2 = np.count_nonzero(upper_counts)
        delta = log2(3 ** k - 2) - (k * entropy(frequency)
                                    - k1 * entropy(lower_counts)
                                    - k2 * entropy(upper_counts))
        return gain > (log2(size - 1) + delta) / size


class StandardDeviationSplit(C45Split):
    """Binary split of a continuous attribute of a regression problem
    maximizing the reduction of the standard deviation of the target. The
    `entropy` of the returned conditions is the standard deviation of their
    interval.
    """

    targets = (RealTarget.kind,)

    def impurity(self, dataset: Dataset, targets: np.ndarray,
                 weights: np.ndarray):
        def deviation(total_w, total_wy, total_wy2):
            with np.errstate(divide='ignore', invalid='ignore'):
                mean = total_wy / total_w
                variance = total_wy2 / total_w - mean ** 2
            return np.sqrt(np.clip(np.nan_to_num(variance), 0, None))

        w = np.cumsum(weights)
        wy = np.cumsum(weights * targets)
        wy2 = np.cumsum(weights * targets ** 2)
        lower = deviation(w[:-1], wy[:-1], wy2[:-1])
        upper = deviation(w[-1] - w[:-1], wy[-1] - wy[:-1],
                          wy2[-1] - wy2[:-1])
        total = float(deviation(w[-1], wy[-1], wy2[-1]))
        return lower, upper, total, w[:-1], w[-1] - w[:-1]


# registries of the building blocks, by name


HEURISTICS = {'entropy': EntropyHeuristic,
              'gain_ratio': GainRatioHeuristic,
              'none': NoHeuristic}
RULE_FUNCTIONS = {'sensitivity_specificity': SensitivitySpecificity,
                  'laplace': Laplace,
                  'rrmse_coverage': RRMSECoverage}
LIST_MEASURES = {'accuracy': ListAccuracy,
                 'pessimistic': PessimisticAccuracy,
                 'rrmse': RRMSEListMeasure}
TREE_MEASURES = {'accuracy': ListAccuracy,
                 'pessimistic': PessimisticTreeAccuracy}
ASSIGNATORS = {'majority': MajorityAssignator,
               'mean': MeanAssignator,
               'median': MedianAssignator}
PRUNERS = {'none': NoPruner,
           'greedy': GreedyPruner,
           'backtrack': BacktrackPruner}
TREE_PRUNERS = {'none': NoTreePruner,
                'pessimistic': PessimisticTreePruner}
INTERVAL_BUILDERS = {'c45': C45Split,
                     'mdl': MDLSplit,
                     'sd': StandardDeviationSplit}


def resolve(registry: dict, value, name: str, **kwargs):
    """:return: `value` if it is a building block instance, otherwise a new
        instance of the building block registered as `value`.
    :raise ValueError: if `value` is an unknown name.
    """
    if not isinstance(value, str):
        return value
    if value not in registry:
        raise ValueError("Unknown %s %r, expected one of: %s"
                         % (name, value, ', '.join(sorted(registry))))
    return registry[value](**kwargs)


# estimators


def _resolve_interval_builder(estimator: _BaseAntMinerEstimator):
    interval_builder = getattr(estimator, 'interval_builder', None)
    if interval_builder is None:
        return None
    return resolve(INTERVAL_BUILDERS, interval_builder, 'interval_builder',
                   minimum_cases=estimator.minimum_cases,
                   maximum_limit=estimator.maximum_limit)


def _resolve_heuristic(estimator: _BaseAntMinerEstimator,
                       interval_builder: Optional[IntervalBuilder],
                       tree: bool = False):
    """:raise ValueError: if the heuristic rates vertices where attributes
        are rated (`tree`) or vice versa.
    """
    kwargs = {}
    if estimator.heuristic in ('entropy', 'gain_ratio'):
        kwargs['interval_builder'] = interval_builder
    if estimator.heuristic == 'gain_ratio':
        kwargs['minimum_cases'] = estimator.minimum_cases
    heuristic = resolve(HEURISTICS, estimator.heuristic, 'heuristic',
                        **kwargs)
    if not isinstance(heuristic, NoHeuristic) \
            and isinstance(heuristic, GainRatioHeuristic) != tree:
        raise ValueError("heuristic %s cannot be used to build %s"
                         % (type(heuristic).__name__,
                            'trees' if tree else 'rules'))
    return heuristic


def _resolve_strategies(estimator: _BaseAntMinerEstimator,
                        assignator) -> Strategies:
    """:return: The building blocks of a rule list named by the
        hyper-parameters of `estimator`.
    :raise ValueError: if any of them is unknown.
    """
    interval_builder = _resolve_interval_builder(estimator)
    measure = getattr(estimator, 'list_measure', None)
    if measure is not None:
        measure = resolve(LIST_MEASURES, measure, 'list_measure')
    return Strategies(
        heuristic=_resolve_heuristic(estimator, interval_builder),
        function=resolve(RULE_FUNCTIONS, estimator.rule_function,
                         'rule_function'),
        assignator=resolve(ASSIGNATORS, assignator, 'assignator'),
        pruner=resolve(PRUNERS, estimator.pruner, 'pruner'),
        interval_builder=interval_builder,
        measure=measure)


class _ClassifierMixin(ClassifierMixin):
    """Encodes the class labels for the search and decodes the predicted
    class indices.

    Attributes
    -----
    classes_ : np.ndarray
        The class labels seen in `fit`.
    """

    def _prepare_target(self, y: np.ndarray):
        check_classification_targets(y)
        encoder = LabelEncoder()
        y = encoder.fit_transform(y)
        self.classes_ = encoder.classes_
        return y, ClassTarget(len(self.classes_))

    def _decode(self, prediction: np.ndarray) -> np.ndarray:
        return self.classes_[prediction.astype(int)]


class _ArchiveMixin:
    """For estimators sampling the conditions from archives, i.e. building
    no intervals: `maximum_limit` is no hyper-parameter of theirs.
    """

    def _config_fields(self) -> dict:
        fields = super()._config_fields()
        fields['maximum_limit'] = max(self.minimum_cases,
                                      SearchConfiguration().maximum_limit)
        return fields


# noinspection PyAttributeOutsideInit
class AntMinerClassifier(_ClassifierMixin, _BaseAntMinerEstimator):
    """Ant-Miner: a rule list classifier learned rule by rule, every rule the
    best one found by its own ant colony on the instances not covered yet.

    Parameters
    -----
    interval_builder : str or IntervalBuilder
        Discretizes the numerical features while a rule is constructed.

    edge_pheromone : bool
        Keep the pheromone on the edges between terms instead of on the
        terms.

    convergence, maximum_limit, dynamic_heuristic :
        See `SearchConfiguration`.

    See `_BaseAntMinerEstimator` for the others.

    Attributes
    -----
    classes_ : np.ndarray
        The class labels seen in `fit`.
    """

    def __init__(self,
                 categorical_features=None,
                 heuristic='entropy',
                 rule_function='sensitivity_specificity',
                 pruner='greedy',
                 interval_builder='c45',
                 edge_pheromone: bool = False,
                 colony_size: int = 60,
                 max_iterations: int = 1500,
                 convergence: int = 10,
                 minimum_cases: int = 10,
                 maximum_limit: int = 25,
                 uncovered: float = 10,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        super().__init__(categorical_features=categorical_features,
                         heuristic=heuristic,
                         rule_function=rule_function,
                         pruner=pruner,
                         colony_size=colony_size,
                         max_iterations=max_iterations,
                         minimum_cases=minimum_cases,
                         uncovered=uncovered,
                         n_jobs=n_jobs,
                         random_state=random_state)
        self.interval_builder = interval_builder
        self.edge_pheromone = edge_pheromone
        self.convergence = convergence
        self.maximum_limit = maximum_limit
        self.dynamic_heuristic = dynamic_heuristic

    def _make_strategies(self) -> Strategies:
        return _resolve_strategies(self, 'majority')

    def _cover_options(self) -> dict:
        return {'edge_pheromone': self.edge_pheromone}


class AntMinerMAClassifier(_ArchiveMixin, AntMinerClassifier):
    """Ant-MinerMA: Ant-Miner whose numerical features need no interval
    builder, the threshold of a numerical term is sampled from an archive of
    the thresholds of the best rules found by the colony so far.

    Parameters
    -----
    archive_size, archive_q, convergence_speed, precision :
        See `SearchConfiguration`.

    See `AntMinerClassifier` for the others.
    """

    def __init__(self,
                 categorical_features=None,
                 heuristic='entropy',
                 rule_function='sensitivity_specificity',
                 pruner='backtrack',
                 edge_pheromone: bool = False,
                 colony_size: int = 60,
                 max_iterations: int = 1500,
                 convergence: int = 10,
                 minimum_cases: int = 10,
                 uncovered: float = 10,
                 archive_size: int = 10,
                 archive_q: float = 0.05099,
                 convergence_speed: float = 0.6795,
                 precision: int = 2,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        _BaseAntMinerEstimator.__init__(
            self,
            categorical_features=categorical_features,
            heuristic=heuristic,
            rule_function=rule_function,
            pruner=pruner,
            colony_size=colony_size,
            max_iterations=max_iterations,
            minimum_cases=minimum_cases,
            uncovered=uncovered,
            n_jobs=n_jobs,
            random_state=random_state)
        self.edge_pheromone = edge_pheromone
        self.convergence = convergence
        self.archive_size = archive_size
        self.archive_q = archive_q
        self.convergence_speed = convergence_speed
        self.precision = precision
        self.dynamic_heuristic = dynamic_heuristic

    def _cover_options(self) -> dict:
        return {'edge_pheromone': self.edge_pheromone, 'archive': True}


class PittsburghAntMinerClassifier(AntMinerClassifier):
    """cAnt-MinerPB: the ants of a single colony construct whole rule lists,
    the best list according to `list_measure` is learned.

    The pheromone of each position in the list is kept separately and bounded
    following the MAX-MIN Ant System.

    Parameters
    -----
    list_measure : str or ListMeasure
        Rates the rule lists.

    ordered : bool
        If True (the default), learn & use an ordered rule list. If False,
        learn an unordered rule set, where a rule only removes the training
        instances it predicts correctly and the rule with the highest quality
        among the ones covering a sample predicts.

    stagnation, maximum_limit, evaporation, p_best, dynamic_heuristic :
        See `SearchConfiguration`.
    """

    variant = 'list'

    def __init__(self,
                 categorical_features=None,
                 heuristic='entropy',
                 rule_function='sensitivity_specificity',
                 pruner='backtrack',
                 interval_builder='mdl',
                 list_measure='pessimistic',
                 ordered: bool = True,
                 colony_size: int = 5,
                 max_iterations: int = 500,
                 stagnation: int = 40,
                 minimum_cases: int = 10,
                 maximum_limit: int = 25,
                 uncovered: float = 0.01,
                 evaporation: float = 0.9,
                 p_best: float = 0.05,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        _BaseAntMinerEstimator.__init__(
            self,
            categorical_features=categorical_features,
            heuristic=heuristic,
            rule_function=rule_function,
            pruner=pruner,
            colony_size=colony_size,
            max_iterations=max_iterations,
            minimum_cases=minimum_cases,
            uncovered=uncovered,
            n_jobs=n_jobs,
            random_state=random_state)
        self.interval_builder = interval_builder
        self.list_measure = list_measure
        self.ordered = ordered
        self.stagnation = stagnation
        self.maximum_limit = maximum_limit
        self.evaporation = evaporation
        self.p_best = p_best
        self.dynamic_heuristic = dynamic_heuristic

    def _cover_options(self) -> dict:
        return {'ordered': self.ordered}


class ArchiveAntMinerClassifier(_ArchiveMixin, PittsburghAntMinerClassifier):
    """cAnt-MinerPB on an archive graph: one vertex per attribute, whose
    condition (a value, or an operator and threshold) is drawn from an
    archive of the conditions of the best lists found so far, separately for
    each position in the list. Numerical features need no interval builder.

    Parameters
    -----
    archive_size, archive_q, convergence_speed, precision :
        See `SearchConfiguration`.

    See `PittsburghAntMinerClassifier` for the others.
    """

    def __init__(self,
                 categorical_features=None,
                 heuristic='none',
                 rule_function='sensitivity_specificity',
                 pruner='backtrack',
                 list_measure='pessimistic',
                 ordered: bool = True,
                 colony_size: int = 5,
                 max_iterations: int = 500,
                 stagnation: int = 40,
                 minimum_cases: int = 10,
                 uncovered: float = 0.01,
                 evaporation: float = 0.9,
                 p_best: float = 0.05,
                 archive_size: int = 10,
                 archive_q: float = 0.05099,
                 convergence_speed: float = 0.6795,
                 precision: int = 2,
                 n_jobs: int = None,
                 random_state=None):
        _BaseAntMinerEstimator.__init__(
            self,
            categorical_features=categorical_features,
            heuristic=heuristic,
            rule_function=rule_function,
            pruner=pruner,
            colony_size=colony_size,
            max_iterations=max_iterations,
            minimum_cases=minimum_cases,
            uncovered=uncovered,
            n_jobs=n_jobs,
            random_state=random_state)
        self.list_measure = list_measure
        self.ordered = ordered
        self.stagnation = stagnation
        self.evaporation = evaporation
        self.p_best = p_best
        self.archive_size = archive_size
        self.archive_q = archive_q
        self.convergence_speed = convergence_speed
        self.precision = precision

    def _cover_options(self) -> dict:
        return {'ordered': self.ordered, 'archive': True}


# noinspection PyAttributeOutsideInit
class AntTreeMinerClassifier(_ClassifierMixin, _BaseAntMinerEstimator):
    """Ant-Tree-Miner: a decision tree classifier, the best of the trees
    built by the ants of a single colony. Every ant grows its tree top-down
    like C4.5, choosing the attribute of each node by the pheromone of the
    branch leading to it and the `heuristic`.

    Parameters
    -----
    categorical_features :
        See `_BaseAntMinerEstimator`.

    heuristic : str or Heuristic
        Rates the attributes, 'gain_ratio' or 'none'.

    pruner : str or TreePruner
        'pessimistic' or 'none'.

    measure : str or ListMeasure
        Rates the trees, 'pessimistic' or 'accuracy'.

    interval_builder : str or IntervalBuilder
        Splits the numerical features.

    colony_size, max_iterations, stagnation, minimum_cases, maximum_limit,
    evaporation, p_best, dynamic_heuristic, n_jobs :
        See `SearchConfiguration`.

    random_state :
        See `_BaseAntMinerEstimator`.

    Attributes
    -----
    tree_ : DecisionTree
        The learned tree.

    See `_BaseAntMinerEstimator` for the others, except `rule_list_`.
    """

    variant = 'tree'
    model_attribute = 'tree_'

    def __init__(self,
                 categorical_features=None,
                 heuristic='gain_ratio',
                 pruner='pessimistic',
                 measure='pessimistic',
                 interval_builder='c45',
                 colony_size: int = 5,
                 max_iterations: int = 500,
                 stagnation: int = 40,
                 minimum_cases: int = 3,
                 maximum_limit: int = 25,
                 evaporation: float = 0.9,
                 p_best: float = 0.05,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        # no rule_function and no uncovered budget, so the base class
        # initializer is bypassed
        self.categorical_features = categorical_features
        self.heuristic = heuristic
        self.pruner = pruner
        self.measure = measure
        self.interval_builder = interval_builder
        self.colony_size = colony_size
        self.max_iterations = max_iterations
        self.stagnation = stagnation
        self.minimum_cases = minimum_cases
        self.maximum_limit = maximum_limit
        self.evaporation = evaporation
        self.p_best = p_best
        self.dynamic_heuristic = dynamic_heuristic
        self.n_jobs = n_jobs
        self.random_state = random_state

    def _make_strategies(self) -> Strategies:
        interval_builder = _resolve_interval_builder(self)
        return Strategies(
            heuristic=_resolve_heuristic(self, interval_builder, tree=True),
            function=None,
            assignator=None,
            pruner=resolve(TREE_PRUNERS, self.pruner, 'pruner'),
            interval_builder=interval_builder,
            measure=resolve(TREE_MEASURES, self.measure, 'measure'))


# noinspection PyAttributeOutsideInit
class AntMinerRegressor(RegressorMixin, _BaseAntMinerEstimator):
    """Ant-Miner for regression: a rule list learned rule by rule, each rule
    predicting the mean (or median) target value of the instances it covers.

    By default rules are rated by `RRMSECoverage` and numerical features are
    split to reduce the standard deviation of the target.

    Parameters
    -----
    interval_builder : str or IntervalBuilder

    assignator : str or Assignator
        'mean' or 'median'.

    convergence, maximum_limit, dynamic_heuristic :
        See `SearchConfiguration`.
    """

    numeric_target = True

    def __init__(self,
                 categorical_features=None,
                 heuristic='none',
                 rule_function='rrmse_coverage',
                 pruner='greedy',
                 interval_builder='sd',
                 assignator='mean',
                 colony_size: int = 60,
                 max_iterations: int = 1500,
                 convergence: int = 10,
                 minimum_cases: int = 10,
                 maximum_limit: int = 25,
                 uncovered: float = 10,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        super().__init__(categorical_features=categorical_features,
                         heuristic=heuristic,
                         rule_function=rule_function,
                         pruner=pruner,
                         colony_size=colony_size,
                         max_iterations=max_iterations,
                         minimum_cases=minimum_cases,
                         uncovered=uncovered,
                         n_jobs=n_jobs,
                         random_state=random_state)
        self.interval_builder = interval_builder
        self.assignator = assignator
        self.convergence = convergence
        self.maximum_limit = maximum_limit
        self.dynamic_heuristic = dynamic_heuristic

    def _prepare_target(self, y: np.ndarray):
        return y.astype(np.float64), RealTarget()

    def _make_strategies(self) -> Strategies:
        return _resolve_strategies(self, self.assignator)

    def _decode(self, prediction: np.ndarray) -> np.ndarray:
        return prediction.astype(np.float64)

    def __sklearn_tags__(self):
        tags = super().__sklearn_tags__()
        # piecewise constant predictions
        tags.regressor_tags.poor_score = True
        return tags


class PittsburghAntMinerRegressor(AntMinerRegressor):
    """cAnt-MinerPB for regression: the ants construct whole ordered rule
    lists, rated by `list_measure` ('rrmse' by default).

    Parameters
    -----
    list_measure : str or ListMeasure

    stagnation, evaporation, p_best :
        See `SearchConfiguration`.

    See `AntMinerRegressor` for the others.
    """

    variant = 'list'

    def __init__(self,
                 categorical_features=None,
                 heuristic='none',
                 rule_function='rrmse_coverage',
                 pruner='backtrack',
                 interval_builder='sd',
                 assignator='mean',
                 list_measure='rrmse',
                 colony_size: int = 10,
                 max_iterations: int = 500,
                 stagnation: int = 10,
                 minimum_cases: int = 10,
                 maximum_limit: int = 25,
                 uncovered: float = 0.01,
                 evaporation: float = 0.9,
                 p_best: float = 0.05,
                 dynamic_heuristic: bool = False,
                 n_jobs: int = None,
                 random_state=None):
        _BaseAntMinerEstimator.__init__(
            self,
            categorical_features=categorical_features,
            heuristic=heuristic,
            rule_function=rule_function,
            pruner=pruner,
            colony_size=colony_size,
            max_iterations=max_iterations,
            minimum_cases=minimum_cases,
            uncovered=uncovered,
            n_jobs=n_jobs,
            random_state=random_state)
        self.interval_builder = interval_builder
        self.assignator = assignator
        self.list_measure = list_measure
        self.stagnation = stagnation
        self.maximum_limit = maximum_limit
        self.evaporation = evaporation
        self.p_best = p_best
        self.dynamic_heuristic = dynamic_heuristic
