"""
Implementation of ACO rule discovery:
Common data model (coverage, dataset, `Rule` and `RuleList`), the interfaces of
the pluggable collaborators and the search configuration.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

# coverage flags of an instance
NOT_COVERED = 0
RULE_COVERED = 1
COVERED = 3


class Coverage:
    """Per-instance coverage state of a covering pass.

    A `Coverage` is a value: every ant works on its own `copy()`, so that
    concurrently constructed rules never see each others' tentative
    RULE_COVERED marks.

    Attributes
    -----
    flags : np.ndarray of shape (n_samples,) and dtype int8
        One of `NOT_COVERED`, `RULE_COVERED` or `COVERED` per instance.

    weights : np.ndarray of shape (n_samples,)
        Instance weights, used by the entropy based interval builders.
    """

    def __init__(self, flags: np.ndarray, weights: np.ndarray = None):
        self.flags = np.asarray(flags, dtype=np.int8)
        if weights is None:
            weights = np.ones(len(self.flags))
        self.weights = weights

    @classmethod
    def fresh(cls, n_samples: int) -> 'Coverage':
        """:return: A coverage of `n_samples` instances, none of them covered.
        """
        return cls(np.full(n_samples, NOT_COVERED, dtype=np.int8))

    def copy(self) -> 'Coverage':
        # weights are never modified, share them
        return Coverage(self.flags.copy(), self.weights)

    def __len__(self):
        return len(self.flags)

    def count(self, flag: int) -> int:
        """:return: The number of instances flagged `flag`."""
        return int(np.count_nonzero(self.flags == flag))

    @property
    def available(self) -> int:
        """The number of instances not yet permanently covered."""
        return int(np.count_nonzero(self.flags != COVERED))

    def mask(self, flag: int) -> np.ndarray:
        return self.flags == flag

    def mark(self, old: int, new: int) -> 'Coverage':
        """Replace every `old` flag with `new`, in place."""
        self.flags[self.flags == old] = new
        return self

    def mark_covered(self) -> int:
        """Permanently cover the instances of the current rule.

        :return: The number of instances still available.
        """
        self.mark(RULE_COVERED, COVERED)
        return self.available

    def mark_correct(self, correct: np.ndarray) -> int:
        """Permanently cover only the correctly predicted instances of the
        current rule; the other RULE_COVERED ones become available again.

        :param correct: An array of dtype bool and length `n_samples`.
        :return: The number of instances still available.
        """
        rule_covered = self.flags == RULE_COVERED
        self.flags[rule_covered & correct] = COVERED
        self.flags[rule_covered & ~correct] = NOT_COVERED
        return self.available

    def rule_view(self) -> 'Coverage':
        """:return: A copy where every available instance is RULE_COVERED,
            i.e. what an empty rule covers.
        """
        return self.copy().mark(NOT_COVERED, RULE_COVERED)

    def __repr__(self):
        return 'Coverage(not_covered=%d, rule_covered=%d, covered=%d)' % (
            self.count(NOT_COVERED), self.count(RULE_COVERED),
            self.count(COVERED))


class Condition(NamedTuple):
    """A test on a single attribute.

    `entropy` and `covered` are only set by the interval builders, as a
    by-product of their search for the best threshold; the `EntropyHeuristic`
    uses them.
    """
    attribute: int
    relation: str  # one of '==', '<=', '>'
    value: float
    entropy: float = 0.0
    covered: float = 0.0

    def satisfies(self, column: np.ndarray) -> np.ndarray:
        """:return: A mask of the values in `column` satisfying this
            condition. Missing values (NaN) never satisfy a condition.
        """
        if self.relation == '==':
            return np.equal(column, self.value)
        elif self.relation == '<=':
            return np.less_equal(column, self.value)
        elif self.relation == '>':
            return np.greater(column, self.value)
        raise ValueError("Unknown relation %r" % (self.relation,))

    def to_string(self, feature_names: Sequence[str] = None) -> str:
        name = (feature_names[self.attribute] if feature_names
                else 'feature_{}'.format(self.attribute + 1))
        return '({ft} {op} {value:.3})'.format(ft=name, op=self.relation,
                                               value=float(self.value))


class Term:
    """A vertex of the construction graph together with the condition it was
    resolved to. Pruners switch terms off using `enabled`.
    """

    __slots__ = ('vertex', 'condition', 'enabled')

    def __init__(self, vertex: int, condition: Condition, enabled=True):
        self.vertex = vertex
        self.condition = condition
        self.enabled = enabled

    def copy(self) -> 'Term':
        return Term(self.vertex, self.condition, self.enabled)

    def __eq__(self, other):
        return (isinstance(other, Term)
                and self.vertex == other.vertex
                and self.condition == other.condition
                and self.enabled == other.enabled)

    def __repr__(self):
        return 'Term(%d, %r%s)' % (self.vertex, self.condition,
                                   '' if self.enabled else ', disabled')


# consequents


class ClassTarget:
    """Consequent capability of classification rules: the head is a class
    index from `[0..n_classes)`.
    """
    kind = 'classification'

    def __init__(self, n_classes: int):
        self.n_classes = n_classes

    def is_diverse(self, y_covered: np.ndarray) -> bool:
        """:return: True iff more than one class is present in `y_covered`."""
        return len(np.unique(y_covered)) > 1

    def to_string(self, head, names: Sequence[str] = None) -> str:
        return str(names[head] if names is not None else head)


class RealTarget:
    """Consequent capability of regression rules: the head is a real value.

    Regression rules are always considered diverse, construction only stops
    on the minimum coverage.
    """
    kind = 'regression'
    n_classes = 1

    def is_diverse(self, y_covered: np.ndarray) -> bool:
        return True

    def to_string(self, head, names: Sequence[str] = None) -> str:
        return '%.2f' % head


class Dataset:
    """Training data as seen by the ant colony.

    Categorical attributes keep their (float) values; each distinct value
    becomes one vertex of the construction graph.

    Attributes
    -----
    X : np.ndarray of shape (n_samples, n_features) and dtype float
        The attribute values, NaN marks a missing value.

    y : np.ndarray of shape (n_samples,)
        Class indices for a `ClassTarget`, real values for a `RealTarget`.

    categorical_mask : np.ndarray of shape (n_features,) and dtype bool

    target : ClassTarget or RealTarget
    """

    def __init__(self, X: np.ndarray, y: np.ndarray,
                 categorical_mask: np.ndarray, target,
                 weights: np.ndarray = None):
        self.X = X
        self.y = y
        self.categorical_mask = categorical_mask
        self.target = target
        self.weights = weights
        self._values = {}

    @property
    def n_samples(self) -> int:
        return self.X.shape[0]

    @property
    def n_features(self) -> int:
        return self.X.shape[1]

    @property
    def n_classes(self) -> int:
        return self.target.n_classes

    def values(self, attribute: int) -> np.ndarray:
        """:return: The sorted distinct non-missing values of a categorical
            `attribute`.
        """
        if attribute not in self._values:
            column = self.X[:, attribute]
            self._values[attribute] = np.unique(column[~np.isnan(column)])
        return self._values[attribute]

    def bounds(self, attribute: int) -> Tuple[float, float]:
        """:return: `(lower, upper)`, the range of the non-missing values of a
            continuous `attribute`, or `(nan, nan)` if all are missing.
        """
        column = self.X[:, attribute]
        if np.all(np.isnan(column)):
            return math.nan, math.nan
        return float(np.nanmin(column)), float(np.nanmax(column))

    def new_coverage(self) -> Coverage:
        coverage = Coverage.fresh(self.n_samples)
        if self.weights is not None:
            coverage.weights = self.weights
        return coverage

    def class_counts(self, mask: np.ndarray,
                     weights: np.ndarray = None) -> np.ndarray:
        """:return: The number of instances per class among those
            selected by `mask`, summing up `weights` if given.
        """
        return np.bincount(self.y[mask],
                           None if weights is None else weights[mask],
                           minlength=self.n_classes)


def _quality_key(quality: float) -> float:
    # undefined qualities never win a comparison
    return quality if not math.isnan(quality) else -math.inf


class Rule:
    """A rule built by an ant: an ordered conjunction of terms and a head.

    `Rule` serves classification and regression alike, the meaning of `head`
    is given by the `target` of the dataset the rule is learned on (see
    `ClassTarget` and `RealTarget`).

    Attributes
    -----
    terms : list of Term
        The antecedent, in construction order.

    head : Any
        The consequent, set by an `Assignator`. None until assigned.

    quality : float
        Set by a `RuleFunction`. NaN until evaluated.
    """

    def __init__(self, terms: List[Term] = None, head: Any = None):
        self.terms = terms if terms is not None else []
        self.head = head
        self.quality = math.nan

    def copy(self) -> 'Rule':
        copy = Rule([term.copy() for term in self.terms], self.head)
        copy.quality = self.quality
        return copy

    @property
    def size(self) -> int:
        """The number of enabled terms."""
        return sum(1 for term in self.terms if term.enabled)

    def is_empty(self) -> bool:
        return self.size == 0

    def push(self, term: Term) -> None:
        self.terms.append(term)

    def pop(self) -> Term:
        return self.terms.pop()

    def compact(self) -> None:
        """Remove the disabled terms."""
        self.terms = [term for term in self.terms if term.enabled]

    def enabled_terms(self) -> Iterable[Term]:
        return (term for term in self.terms if term.enabled)

    def covers(self, X: np.ndarray) -> np.ndarray:
        """:return: An array of dtype bool and length `len(X)`, telling for
            each sample whether all enabled terms are satisfied.
        """
        matches = np.ones(len(X), dtype=bool)
        for term in self.enabled_terms():
            condition = term.condition
            matches &= condition.satisfies(X[:, condition.attribute])
        return matches

    def apply(self, dataset: Dataset, coverage: Coverage) -> int:
        """Flag the available instances of `coverage` RULE_COVERED if this
        rule covers them, NOT_COVERED otherwise.

        :return: The number of instances covered.
        """
        available = coverage.flags != COVERED
        matches = self.covers(dataset.X) & available
        coverage.flags[available] = NOT_COVERED
        coverage.flags[matches] = RULE_COVERED
        return int(np.count_nonzero(matches))

    def is_diverse(self, dataset: Dataset, coverage: Coverage) -> bool:
        """:return: Whether the instances covered by this rule still have
            distinct targets, i.e. adding terms could improve it.
        """
        return dataset.target.is_diverse(
            dataset.y[coverage.flags == RULE_COVERED])

    def sort_key(self):
        """
        :return: an object used for ordering rules: higher quality first,
            ties broken by fewer terms. Undefined (NaN) qualities compare
            lowest.
        """
        return _quality_key(self.quality), -self.size

    def to_string(self, target=None,
                  feature_names: Sequence[str] = None,
                  class_names: Sequence[str] = None) -> str:
        """:return: a string representation of `self`."""
        body = ' and '.join(term.condition.to_string(feature_names)
                            for term in self.enabled_terms()) or '(true)'
        head = (target.to_string(self.head, class_names) if target is not None
                else str(self.head))
        return body + ' => ' + head

    def __repr__(self):
        return 'Rule(%r, head=%r, quality=%r)' % (self.terms, self.head,
                                                  self.quality)


class RuleList:
    """A list of rules, the last one usually being an empty default rule.

    Attributes
    -----
    ordered : bool
        If True, the first matching rule predicts. If False the rules form an
        unordered set and the matching rule with the highest quality predicts.

    quality : float
        Set by a `ListMeasure`.

    iteration : int
        The iteration of the search the list was created in.

    available_counts : list of int
        The number of instances still available before the first and after
        each appended rule, as recorded by the covering procedure.
    """

    def __init__(self, rules: List[Rule] = None, ordered: bool = True):
        self.rules = rules if rules is not None else []
        self.ordered = ordered
        self.quality = math.nan
        self.iteration = 0
        self.available_counts: List[int] = []

    def append(self, rule: Rule) -> None:
        self.rules.append(rule)

    def __len__(self):
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def __getitem__(self, index) -> Rule:
        return self.rules[index]

    def has_default(self) -> bool:
        return any(rule.is_empty() for rule in self.rules)

    @property
    def size(self) -> int:
        """The number of terms of all rules."""
        return sum(rule.size for rule in self.rules)

    def sort_key(self):
        """Higher quality first, ties broken by fewer rules, then fewer terms.
        """
        return _quality_key(self.quality), -len(self.rules), -self.size

    def predict(self, X: np.ndarray) -> np.ndarray:
        """:return: The head of the rule responsible for each sample in `X`.
        """
        n_samples = len(X)
        if self.ordered:
            prediction = np.empty(n_samples, dtype=object)
            # backwards so earlier rules overwrite later ones
            for rule in reversed(self.rules):
                prediction[rule.covers(X)] = rule.head
        else:
            prediction = np.empty(n_samples, dtype=object)
            best = np.full(n_samples, -math.inf)
            default = None
            for rule in self.rules:
                if rule.is_empty():
                    default = rule
                    continue
                quality = _quality_key(rule.quality)
                better = rule.covers(X) & (quality > best)
                prediction[better] = rule.head
                best[better] = quality
            if default is not None:
                prediction[best == -math.inf] = default.head
        return prediction

    def to_string(self, target=None,
                  feature_names: Sequence[str] = None,
                  class_names: Sequence[str] = None) -> str:
        return '\n'.join(rule.to_string(target, feature_names, class_names)
                         for rule in self.rules)

    def __repr__(self):
        return 'RuleList(%r, quality=%r)' % (self.rules, self.quality)


# interfaces of the pluggable collaborators


class BuildingBlock(ABC):
    """Base of the pluggable collaborators.

    `targets` names the target kinds (see `ClassTarget.kind` and
    `RealTarget.kind`) an implementation can handle.
    """
    targets = (ClassTarget.kind, RealTarget.kind)

    def supports(self, kind: str) -> bool:
        return kind in self.targets


class Heuristic(BuildingBlock):
    """Problem specific desirability of the vertices of a construction graph
    (or of the attributes, for decision trees).
    """

    @abstractmethod
    def compute(self, graph, dataset: Dataset, coverage: Coverage,
                used: np.ndarray = None) -> np.ndarray:
        """
        :param coverage: The heuristic only considers RULE_COVERED instances.
        :param used: Optional mask of length `n_features`, attributes already
            part of the rule get a zero value.
        :return: An array of length `graph.size` with non-negative values.
            The virtual start/end vertices get zero.
        """
        raise NotImplementedError


class RuleFunction(BuildingBlock):
    """Rates a single rule, higher values signify better rules."""

    @abstractmethod
    def evaluate(self, dataset: Dataset, rule: Rule,
                 coverage: Coverage) -> float:
        """:param coverage: As left by `rule.apply`."""
        raise NotImplementedError


class ListMeasure(BuildingBlock):
    """Rates a whole model (a rule list or a decision tree), higher values
    signify better models.
    """

    @abstractmethod
    def evaluate(self, dataset: Dataset, model) -> float:
        raise NotImplementedError


class Assignator(BuildingBlock):
    """Sets the consequent of a rule."""

    @abstractmethod
    def assign(self, dataset: Dataset, rule: Rule, coverage: Coverage,
               rng: np.random.RandomState) -> int:
        """:return: The number of available instances not covered by `rule`.
        """
        raise NotImplementedError


class Pruner(BuildingBlock):
    """Removes terms of a freshly constructed rule."""

    @abstractmethod
    def prune(self, dataset: Dataset, rule: Rule, coverage: Coverage,
              evaluator: 'RuleEvaluator') -> int:
        """Prune `rule` in place, leaving it evaluated, compacted and applied
        to `coverage`.

        :return: The number of available instances not covered by `rule`.
        """
        raise NotImplementedError


class TreePruner(BuildingBlock):
    """Simplifies a freshly built decision tree."""

    @abstractmethod
    def prune(self, dataset: Dataset, tree):
        """:return: The pruned tree, possibly `tree` modified in place."""
        raise NotImplementedError


class IntervalBuilder(BuildingBlock):
    """Discretizes a continuous attribute on the instances covered by the
    rule under construction.
    """

    @abstractmethod
    def multiple(self, dataset: Dataset, coverage: Coverage,
                 attribute: int) -> Optional[List[Condition]]:
        """:return: The candidate conditions for `attribute`, None if no
            threshold can be found.
        """
        raise NotImplementedError

    def single(self, dataset: Dataset, coverage: Coverage,
               attribute: int) -> Optional[Condition]:
        """:return: The condition with the lowest entropy among `multiple`,
            ties broken by higher coverage. None if there is none.
        """
        conditions = self.multiple(dataset, coverage, attribute)
        if not conditions:
            return None
        return min(conditions, key=lambda c: (c.entropy, -c.covered))


class RuleEvaluator:
    """Applies a rule to a coverage, lets `assignator` set its head and
    `function` rate it.
    """

    def __init__(self, function: RuleFunction, assignator: Assignator,
                 rng: np.random.RandomState):
        self.function = function
        self.assignator = assignator
        self.rng = rng

    def __call__(self, dataset: Dataset, rule: Rule,
                 coverage: Coverage) -> int:
        """:return: The number of available instances not covered by `rule`.
        """
        rule.apply(dataset, coverage)
        available = self.assignator.assign(dataset, rule, coverage, self.rng)
        rule.quality = self.function.evaluate(dataset, rule, coverage)
        return available


class SearchConfiguration(NamedTuple):
    """Immutable parameters of an ACO search, shared by all its components.

    Fields
    -----
    colony_size : int
        Number of candidates created per iteration.

    max_iterations : int
        Hard limit of iterations of a search.

    stagnation : int
        Iterations without improvement tolerated by the Pittsburgh searches.
        The first time it is exceeded the pheromone is reset, the second time
        the search stops.

    convergence : int
        Repetitions of the same best rule tolerated by the rule-by-rule
        (`FindRuleActivity`) search.

    minimum_cases : int
        Minimum number of covered instances of a rule (and interval).

    maximum_limit : int
        Upper limit of the minimum number of instances of an interval.

    uncovered : float
        The uncovered-instance budget ending sequential covering. Values below
        1 are a fraction of the training set, others an absolute count.

    evaporation : float
        Fraction of pheromone kept by the MAX-MIN evaporation.

    p_best : float
        Probability of constructing the best solution once converged, used to
        derive the MAX-MIN bounds.

    archive_size, archive_q, convergence_speed, precision :
        Capacity and prior weight of the archives of archive backed vertices,
        kernel width factor and decimals of their continuous thresholds.

    dynamic_heuristic : bool
        Recompute the heuristic after each accepted term.

    n_jobs : int or None
        Worker threads used to create a colony, None for the sequential
        scheduler and -1 for all cores.
    """
    colony_size: int = 60
    max_iterations: int = 1500
    stagnation: int = 40
    convergence: int = 10
    minimum_cases: int = 10
    maximum_limit: int = 25
    uncovered: float = 10
    evaporation: float = 0.9
    p_best: float = 0.05
    archive_size: int = 10
    archive_q: float = 0.05099
    convergence_speed: float = 0.6795
    precision: int = 2
    dynamic_heuristic: bool = False
    n_jobs: Optional[int] = None

    def validate(self) -> 'SearchConfiguration':
        """:return: self
        :raise ValueError: on any invalid value.
        """
        def positive_int(name):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or value <= 0:
                raise ValueError("%s must be a positive integer, got %r"
                                 % (name, value))

        for name in ('colony_size', 'max_iterations', 'stagnation',
                     'convergence', 'minimum_cases', 'maximum_limit',
                     'archive_size'):
            positive_int(name)
        if self.maximum_limit < self.minimum_cases:
            raise ValueError("maximum_limit (%d) must not be smaller than "
                             "minimum_cases (%d)"
                             % (self.maximum_limit, self.minimum_cases))
        if not self.uncovered >= 0:
            raise ValueError("uncovered must be >= 0, got %r"
                             % (self.uncovered,))
        for name in ('evaporation', 'p_best'):
            value = getattr(self, name)
            if not 0 < value < 1:
                raise ValueError("%s must be in (0, 1), got %r"
                                 % (name, value))
        if not self.archive_q > 0 or not self.convergence_speed > 0:
            raise ValueError("archive_q and convergence_speed must be > 0")
        if self.precision < 0:
            raise ValueError("precision must be >= 0, got %r"
                             % (self.precision,))
        if self.n_jobs is not None and (self.n_jobs == 0 or self.n_jobs < -1):
            raise ValueError("n_jobs must be None, -1 or a positive integer, "
                             "got %r" % (self.n_jobs,))
        return self

    def uncovered_budget(self, n_samples: int) -> int:
        """:return: The number of instances allowed to stay uncovered."""
        if self.uncovered < 1:
            return int(n_samples * self.uncovered + 0.5)
        return int(self.uncovered)
