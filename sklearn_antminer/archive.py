"""
Implementation of ACO rule discovery:
Archives, i.e. the bounded best-first container of the solutions of a colony
and the per-vertex sample populations used to pick conditions of archive
backed vertices.
"""

import copy
import math
from abc import ABC, abstractmethod
from typing import Generic, Iterator, List, Optional, TypeVar

import numpy as np

from sklearn_antminer.common import Condition, Dataset, SearchConfiguration

S = TypeVar('S')  # Rule or RuleList


class SolutionArchive(Generic[S]):
    """A capacity-bounded archive of solutions, sorted best-first by their
    `sort_key()`.

    Solutions of equal rank keep their insertion order.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive, got %r" % capacity)
        self.capacity = capacity
        self._solutions: List[S] = []

    def __len__(self):
        return len(self._solutions)

    def __iter__(self) -> Iterator[S]:
        return iter(self._solutions)

    def is_full(self) -> bool:
        return len(self._solutions) >= self.capacity

    def add(self, solution: S) -> bool:
        """Insert `solution` at its rank, dropping the lowest one if the
        archive overflows.

        :return: False if `solution` was rejected, i.e. the archive is full
            and `solution` is not better than its lowest solution.
        """
        key = solution.sort_key()
        if self.is_full() and not key > self._solutions[-1].sort_key():
            return False
        index = len(self._solutions)
        while index > 0 and key > self._solutions[index - 1].sort_key():
            index -= 1
        self._solutions.insert(index, solution)
        del self._solutions[self.capacity:]
        return True

    def extend(self, solutions) -> None:
        for solution in solutions:
            self.add(solution)

    def sort(self) -> None:
        """Restore the order after solutions were modified in place."""
        self._solutions.sort(key=lambda s: s.sort_key(), reverse=True)

    def highest(self) -> Optional[S]:
        return self._solutions[0] if self._solutions else None

    def clear(self) -> None:
        self._solutions = []


class VariableArchive:
    """A weighted population of observations of one variable.

    Each distinct observation accumulates the qualities it was reported with,
    weights never decrease. An uninformed prior competes with the
    observations with the fixed pseudo-weight `q`, so the more often the same
    observation is rewarded, the closer the probability to draw it gets to 1.

    At most `capacity` distinct observations are kept, on overflow the one
    with the lowest weight is forgotten.
    """

    def __init__(self, capacity: int = 10, q: float = 0.05099):
        self.capacity = capacity
        self.q = q
        self.observations: List = []
        self.weights = np.zeros(0)

    def __len__(self):
        return len(self.observations)

    def add(self, observation, quality: float) -> None:
        if not quality > 0:
            # nothing to accumulate (this includes NaN)
            return
        try:
            index = self.observations.index(observation)
        except ValueError:
            self.observations.append(observation)
            self.weights = np.append(self.weights, quality)
        else:
            self.weights[index] += quality
        if len(self.observations) > self.capacity:
            lightest = int(np.argmin(self.weights))
            del self.observations[lightest]
            self.weights = np.delete(self.weights, lightest)

    def probability(self, observation) -> float:
        """:return: The probability that `choose` returns `observation`."""
        try:
            index = self.observations.index(observation)
        except ValueError:
            return 0.0
        return float(self.weights[index] / (self.weights.sum() + self.q))

    def choose(self, rng: np.random.RandomState):
        """:return: An observation drawn proportionally to its weight, or None
            when the prior was drawn.
        """
        total = self.weights.sum() + self.q
        slot = rng.random_sample() * total
        cumulative = np.cumsum(self.weights)
        index = int(np.searchsorted(cumulative, slot, side='right'))
        if index >= len(self.observations):
            return None
        return self.observations[index]


class Variable(ABC):
    """The sampling distribution of the condition of an archive backed
    vertex: an uninformed prior over the attribute domain plus a
    `VariableArchive` of rewarded conditions.
    """

    def __init__(self, attribute: int, capacity: int = 10,
                 q: float = 0.05099):
        self.attribute = attribute
        self.archive = VariableArchive(capacity, q)

    def copy(self) -> 'Variable':
        """:return: A copy sharing nothing mutable with `self`."""
        clone = copy.copy(self)
        clone.archive = copy.deepcopy(self.archive)
        return clone

    @abstractmethod
    def _key(self, condition: Condition):
        """:return: The archive observation representing `condition`."""
        raise NotImplementedError

    def add(self, condition: Condition, quality: float) -> None:
        self.archive.add(self._key(condition), quality)

    @abstractmethod
    def sample(self, rng: np.random.RandomState) -> Optional[Condition]:
        """:return: A condition, None if the domain is degenerate."""
        raise NotImplementedError


class NominalVariable(Variable):
    """Equality tests on a categorical attribute with domain `values`."""

    def __init__(self, attribute: int, values: np.ndarray, **kwargs):
        super().__init__(attribute, **kwargs)
        self.values = values

    def _key(self, condition: Condition):
        return condition.value

    def sample(self, rng: np.random.RandomState) -> Optional[Condition]:
        if not len(self.values):
            return None
        value = self.archive.choose(rng)
        if value is None:
            value = self.values[rng.randint(len(self.values))]
        return Condition(self.attribute, '==', value)

    def __repr__(self):
        return 'NominalVariable(%d, %r)' % (self.attribute, self.values)


class ContinuousVariable(Variable):
    """Threshold tests (`<=` or `>`) on a continuous attribute with domain
    `[lower, upper]`.

    A threshold drawn from the archive is perturbed with a Gaussian kernel of
    deviation `convergence_speed` times the mean distance to the other archived
    thresholds, so it collapses to the archived value once all agree.
    Thresholds are truncated to `precision` decimals.
    """

    OPERATORS = ('<=', '>')

    def __init__(self, attribute: int, lower: float, upper: float,
                 convergence_speed: float = 0.6795, precision: int = 2,
                 **kwargs):
        super().__init__(attribute, **kwargs)
        self.lower = lower
        self.upper = upper
        self.convergence_speed = convergence_speed
        self.precision = precision

    def _key(self, condition: Condition):
        return condition.relation, condition.value

    def _truncate(self, value: float) -> float:
        factor = 10 ** self.precision
        return math.trunc(value * factor) / factor

    def sample(self, rng: np.random.RandomState) -> Optional[Condition]:
        if not self.lower < self.upper:
            # constant or missing attribute
            return None
        observation = self.archive.choose(rng)
        if observation is None:
            relation = self.OPERATORS[rng.randint(len(self.OPERATORS))]
            value = self._truncate(rng.uniform(self.lower, self.upper))
        else:
            relation, value = observation
            others = np.array([v for _, v in self.archive.observations])
            if len(others) > 1:
                deviation = self.convergence_speed * \
                    np.abs(others - value).sum() / (len(others) - 1)
                if deviation > 0:
                    value = self._truncate(float(np.clip(
                        rng.normal(value, deviation), self.lower, self.upper)))
        return Condition(self.attribute, relation, value)

    def __repr__(self):
        return 'ContinuousVariable(%d, [%s, %s])' % (self.attribute,
                                                      self.lower, self.upper)


def make_variables(dataset: Dataset, config: SearchConfiguration
                   ) -> List[Variable]:
    """:return: The uninformed variable of each attribute of `dataset`, with
        the archive parameters of `config`.
    """
    kwargs = dict(capacity=config.archive_size, q=config.archive_q)
    variables = []
    for attribute in range(dataset.n_features):
        if dataset.categorical_mask[attribute]:
            variables.append(NominalVariable(
                attribute, dataset.values(attribute), **kwargs))
        else:
            lower, upper = dataset.bounds(attribute)
            variables.append(ContinuousVariable(
                attribute, lower, upper, config.convergence_speed,
                config.precision, **kwargs))
    return variables
