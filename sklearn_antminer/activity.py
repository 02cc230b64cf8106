"""
Implementation of ACO rule discovery:
Activities, i.e. what a colony does in one iteration of the search, and when
the search stops.

A `Scheduler` drives an activity::

    activity.initialise()
    while not activity.terminate():
        colony = [activity.create(rng) for each ant]
        activity.search(colony)
        activity.update(colony)
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from sklearn_antminer.archive import SolutionArchive
from sklearn_antminer.common import \
    Assignator, COVERED, Coverage, Dataset, Heuristic, ListMeasure, \
    NOT_COVERED, Pruner, Rule, RuleEvaluator, RuleFunction, RuleList, \
    SearchConfiguration, TreePruner
from sklearn_antminer.construction import RuleFactory, TreeBuilder
from sklearn_antminer.graph import ConstructionGraph
from sklearn_antminer.pheromone import PheromonePolicy
from sklearn_antminer.tree import DecisionTree, TreeGraph

logger = logging.getLogger(__name__)


def _is_defined(solution) -> bool:
    return solution is not None and not np.isnan(solution.quality)


class IterativeActivity(ABC):
    """The generic ACO loop: keeps track of the iterations, the best solution
    found so far and the stagnation of the search.

    A solution strictly better than the best so far (see `Rule.sort_key`,
    `RuleList.sort_key` and `DecisionTree.sort_key`) resets the stagnation
    counter, an equally good one increments it. Solutions with an undefined
    quality are never best.

    The search stops after `config.max_iterations`, or once the stagnation
    counter exceeds `stagnation_limit`. If `restart_on_stagnation`, the
    first stagnation episode instead resets the pheromone (see `reset`) and
    the counter, only the second one stops the search.

    Attributes
    -----
    iteration : int
        Number of completed iterations.

    stagnation : int
        Number of iterations in a row that did not improve `best`.

    restarts : int
        Number of pheromone resets due to stagnation.

    best : Rule or RuleList or DecisionTree or None
        The best solution found so far.
    """

    restart_on_stagnation = True

    def __init__(self, config: SearchConfiguration,
                 graph: ConstructionGraph,
                 policy: PheromonePolicy):
        self.config = config
        self.graph = graph
        self.policy = policy
        self.iteration = 0
        self.stagnation = 0
        self.restarts = 0
        self.best = None

    @property
    def stagnation_limit(self) -> int:
        return self.config.stagnation

    def initialise(self) -> None:
        """Prepare a new search."""
        self.iteration = 0
        self.stagnation = 0
        self.restarts = 0
        self.best = None
        self.reset()

    def reset(self) -> None:
        """(Re-)initialise the pheromone."""
        self.policy.initialise(self.graph)

    @abstractmethod
    def create(self, rng: np.random.RandomState):
        """Let a single ant create a solution. Called concurrently by the
        `ParallelScheduler`, so it must only read shared state.
        """
        raise NotImplementedError

    def search(self, colony: SolutionArchive) -> bool:
        """Daemon hook, may improve the solutions of `colony` in place.

        :return: True iff any solution was modified, so that the colony has
            to be sorted again.
        """
        return False

    def update(self, colony: SolutionArchive) -> None:
        """Track the best solution and update the pheromone with the best
        solution of this iteration.
        """
        self.iteration += 1
        candidate = colony.highest()
        if not _is_defined(candidate):
            logger.debug("iteration %d: no solution with defined quality",
                         self.iteration)
            return
        if self.best is None or candidate.sort_key() > self.best.sort_key():
            self.best = candidate
            self.stagnation = 0
            logger.debug("iteration %d: new best %s",
                         self.iteration, candidate.quality)
        elif candidate.sort_key() == self.best.sort_key():
            self.stagnation += 1
        self.policy.update(self.graph, candidate)

    def terminate(self) -> bool:
        if self.iteration >= self.config.max_iterations:
            return True
        if self.stagnation > self.stagnation_limit:
            if self.restart_on_stagnation and not self.restarts:
                logger.debug("iteration %d: stagnation, resetting pheromone",
                             self.iteration)
                self.restarts += 1
                self.stagnation = 0
                self.reset()
                return False
            return True
        return False


def default_rule(dataset: Dataset, coverage: Coverage,
                 assignator: Assignator, rng: np.random.RandomState) -> Rule:
    """:return: An empty rule predicting for the available instances of
        `coverage`, or for all instances if none is left.
    """
    coverage = coverage.copy()
    if coverage.available == 0:
        coverage.mark(COVERED, NOT_COVERED)
    rule = Rule()
    rule.apply(dataset, coverage)
    assignator.assign(dataset, rule, coverage, rng)
    return rule


class FindRuleActivity(IterativeActivity):
    """Ant-Miner: every ant creates a single rule for the instances still
    available in `coverage`, which is pruned and rated by `function`.

    Converges when the best rule was created again more than
    `config.convergence` times, without a pheromone reset.
    """

    restart_on_stagnation = False

    def __init__(self, config: SearchConfiguration,
                 graph: ConstructionGraph,
                 policy: PheromonePolicy,
                 dataset: Dataset,
                 coverage: Coverage,
                 factory: RuleFactory,
                 heuristic: Heuristic,
                 function: RuleFunction,
                 assignator: Assignator,
                 pruner: Pruner):
        super().__init__(config, graph, policy)
        self.dataset = dataset
        self.coverage = coverage
        self.factory = factory
        self.heuristic = heuristic
        self.function = function
        self.assignator = assignator
        self.pruner = pruner
        self.heuristic_values: Optional[np.ndarray] = None

    @property
    def stagnation_limit(self) -> int:
        return self.config.convergence

    def initialise(self) -> None:
        super().initialise()
        # the heuristic looks at the instances an empty rule covers
        self.heuristic_values = self.heuristic.compute(
            self.graph, self.dataset, self.coverage.rule_view())

    def create(self, rng: np.random.RandomState) -> Rule:
        rule, rule_coverage = self.factory.create(
            self.graph, self.heuristic_values, self.dataset, self.coverage,
            0, rng)
        evaluator = RuleEvaluator(self.function, self.assignator, rng)
        self.pruner.prune(self.dataset, rule, rule_coverage, evaluator)
        return rule


class FindRuleListActivity(IterativeActivity):
    """cAnt-MinerPB: every ant creates a whole rule list by sequential
    covering, using the pheromone level of each rule's position in the list.
    Lists are rated by `measure`.

    The list is extended while at least `config.uncovered_budget(n_samples)`
    instances are available. If `ordered` is False, a rule only covers the
    instances it predicts correctly, the others remain available for the
    following rules (unordered rule sets).

    Used with `ArchiveRuleFactory`, `ArchivePheromonePolicy` and a graph
    from `ConstructionGraph.from_archive` this is the archive based variant
    sampling the conditions of continuous attributes.
    """

    def __init__(self, config: SearchConfiguration,
                 graph: ConstructionGraph,
                 policy: PheromonePolicy,
                 dataset: Dataset,
                 factory: RuleFactory,
                 heuristic: Heuristic,
                 function: RuleFunction,
                 assignator: Assignator,
                 pruner: Pruner,
                 measure: ListMeasure,
                 ordered: bool = True):
        super().__init__(config, graph, policy)
        self.dataset = dataset
        self.factory = factory
        self.heuristic = heuristic
        self.function = function
        self.assignator = assignator
        self.pruner = pruner
        self.measure = measure
        self.ordered = ordered
        self.heuristic_values: Optional[np.ndarray] = None

    def initialise(self) -> None:
        super().initialise()
        self.heuristic_values = self.heuristic.compute(
            self.graph, self.dataset, self.dataset.new_coverage().rule_view())

    def _is_correct(self, rule: Rule) -> np.ndarray:
        return self.dataset.y == rule.head

    def create(self, rng: np.random.RandomState) -> RuleList:
        dataset = self.dataset
        coverage = dataset.new_coverage()
        budget = self.config.uncovered_budget(dataset.n_samples)
        evaluator = RuleEvaluator(self.function, self.assignator, rng)
        heuristic = self.heuristic_values
        rule_list = RuleList(ordered=self.ordered)
        available = coverage.available
        rule_list.available_counts.append(available)

        while available >= budget:
            if len(rule_list):
                heuristic = self.heuristic.compute(
                    self.graph, dataset, coverage.rule_view())
            rule, rule_coverage = self.factory.create(
                self.graph, heuristic, dataset, coverage, len(rule_list), rng)
            self.pruner.prune(dataset, rule, rule_coverage, evaluator)
            if rule.is_empty():
                break
            if self.ordered:
                remaining = rule_coverage.mark_covered()
            else:
                remaining = rule_coverage.mark_correct(self._is_correct(rule))
            if remaining >= available:
                # the rule did not take any instance away
                break
            rule_list.append(rule)
            coverage = rule_coverage
            available = remaining
            rule_list.available_counts.append(available)

        rule_list.append(default_rule(dataset, coverage, self.assignator, rng))
        rule_list.quality = self.measure.evaluate(dataset, rule_list)
        rule_list.iteration = self.iteration
        return rule_list


class FindTreeActivity(IterativeActivity):
    """Ant-Tree-Miner: every ant builds a decision tree on all instances,
    which is pruned by `pruner` and rated by `measure`.
    """

    def __init__(self, config: SearchConfiguration,
                 graph: TreeGraph,
                 policy: PheromonePolicy,
                 dataset: Dataset,
                 builder: TreeBuilder,
                 heuristic: Heuristic,
                 pruner: TreePruner,
                 measure: ListMeasure):
        super().__init__(config, graph, policy)
        self.dataset = dataset
        self.builder = builder
        self.heuristic = heuristic
        self.pruner = pruner
        self.measure = measure
        self.heuristic_values: Optional[np.ndarray] = None

    def initialise(self) -> None:
        super().initialise()
        self.heuristic_values = self.heuristic.compute(
            self.graph, self.dataset, self.dataset.new_coverage().rule_view())

    def create(self, rng: np.random.RandomState) -> DecisionTree:
        tree = self.builder.build(self.graph, self.heuristic_values,
                                  self.dataset, rng)
        tree = self.pruner.prune(self.dataset, tree)
        tree.quality = self.measure.evaluate(self.dataset, tree)
        tree.iteration = self.iteration
        return tree
