"""
Implementation of ACO rule discovery:
The construction procedure, i.e. the probabilistic walk of a single ant over
the construction graph, and the stochastic top-down induction of a decision
tree.

All factories are stateless with respect to the coverage they are given (they
work on a copy), and only read the graph. They can therefore be run
concurrently by several ants of a colony.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
from sklearn.utils import check_random_state

from sklearn_antminer.common import \
    Condition, Coverage, Dataset, Heuristic, IntervalBuilder, Rule, Term
from sklearn_antminer.graph import ConstructionGraph, END, START
from sklearn_antminer.tree import \
    DecisionTree, ROOT, TreeGraph, TreeNode, branch_key, class_distribution, \
    coverage_of, split_weights
from sklearn_antminer.util import roulette

logger = logging.getLogger(__name__)


class RuleFactory:
    """Creates a rule term by term (Ant-Miner).

    The pheromone is vertex based: the probability of a term does not depend
    on the previously chosen one, all choices read the pheromone of the edges
    leaving `START` on level 0.

    A term is accepted if it is the first one, or if it changes the number of
    covered instances while keeping it at least `minimum_cases`. Otherwise it
    is removed again and its attribute excluded. The walk ends when no
    compatible vertex has a positive score, when at most `minimum_cases`
    instances are covered, or when the covered instances are not diverse
    anymore (e.g. all of the same class).

    Parameters
    -----
    minimum_cases : int
        Minimum number of instances a rule has to cover.

    interval_builder : IntervalBuilder or None
        Resolves the conditions of continuous vertices. Needed iff the graph
        has continuous vertices without an archive.

    dynamic_heuristic : Heuristic or None
        If given, it is recomputed on the instances covered by the partial
        rule after every accepted term.
    """

    def __init__(self, minimum_cases: int = 10,
                 interval_builder: IntervalBuilder = None,
                 dynamic_heuristic: Heuristic = None):
        self.minimum_cases = minimum_cases
        self.interval_builder = interval_builder
        self.dynamic_heuristic = dynamic_heuristic

    def previous(self, rule: Rule) -> int:
        """:return: The vertex the ant currently is at."""
        return START

    def pheromone_level(self, level: int) -> int:
        return 0

    def scores(self, graph: ConstructionGraph, heuristic: np.ndarray,
               previous: int, level: int,
               incompatible: np.ndarray) -> np.ndarray:
        """:return: `pheromone(previous -> i) * heuristic[i]` for every
            compatible vertex `i`, zero for the others.
        """
        scores = graph.level(self.pheromone_level(level))[previous] * heuristic
        scores[incompatible] = 0
        return scores

    def resolve(self, graph: ConstructionGraph, selected: int,
                dataset: Dataset, coverage: Coverage, level: int,
                rng: np.random.RandomState) -> Optional[Condition]:
        """:return: The condition of vertex `selected`, None if none can be
            created for the instances currently covered.
        """
        vertex = graph.vertex(selected)
        if vertex.variable is not None:
            return vertex.sample(level, rng)
        if vertex.condition is not None:
            return vertex.condition
        if self.interval_builder is None:
            raise ValueError("Continuous vertex %d needs an interval builder"
                             % selected)
        return self.interval_builder.single(dataset, coverage,
                                            vertex.attribute)

    def create(self, graph: ConstructionGraph, heuristic: np.ndarray,
               dataset: Dataset, coverage: Coverage, level: int = 0,
               rng=None) -> Tuple[Rule, Coverage]:
        """Let one ant walk the graph.

        :param heuristic: Per-vertex heuristic values, see `Heuristic`.
        :param coverage: Not modified.
        :param level: Position of the rule in the rule list under
            construction, selects the pheromone level.
        :param rng: None | int | instance of np.random.RandomState
        :return: `(rule, rule_coverage)`: The compacted rule and a copy of
            `coverage` with the instances covered by it flagged RULE_COVERED.
            The rule may be empty if no term could be added.
        """
        rng = check_random_state(rng)
        coverage = coverage.copy()
        rule = Rule()
        covered = rule.apply(dataset, coverage)

        incompatible = np.zeros(graph.size, dtype=bool)
        incompatible[START] = True
        incompatible[END] = not self.walks_to_end()
        used = np.zeros(dataset.n_features, dtype=bool)

        while covered > self.minimum_cases \
                and rule.is_diverse(dataset, coverage):
            scores = self.scores(graph, heuristic, self.previous(rule),
                                 level, incompatible)
            selected = roulette(scores, rng)
            if selected is None or selected == END:
                break
            attribute = graph.vertex(selected).attribute
            condition = self.resolve(graph, selected, dataset, coverage,
                                     level, rng)
            if condition is None:
                incompatible[selected] = True
                continue

            attempt = coverage.copy()
            rule.push(Term(selected, condition))
            count = rule.apply(dataset, attempt)
            if rule.size == 1 \
                    or (count != covered and count >= self.minimum_cases):
                incompatible |= graph.attribute_mask(attribute)
                used[attribute] = True
                coverage = attempt
                covered = count
                if self.dynamic_heuristic is not None:
                    heuristic = self.dynamic_heuristic.compute(
                        graph, dataset, coverage, used)
            else:
                rule.pop()
                incompatible |= graph.attribute_mask(attribute)

        rule.compact()
        return rule, coverage

    def walks_to_end(self) -> bool:
        """:return: True iff the ant may stop by selecting the `END` vertex."""
        return False


class LevelRuleFactory(RuleFactory):
    """Creates a rule by walking along the edges of the graph: the pheromone
    read depends on the previously chosen vertex and on the position (level)
    of the rule in the list (cAnt-MinerPB).
    """

    def previous(self, rule: Rule) -> int:
        return rule.terms[-1].vertex if rule.terms else START

    def pheromone_level(self, level: int) -> int:
        return level


class ArchiveRuleFactory(LevelRuleFactory):
    """Walks an archive graph (see `ConstructionGraph.from_archive`): the
    conditions are sampled from the archive of the chosen vertex, and the ant
    stops when it selects `END`.

    The `END` vertex is scored by its pheromone alone, it has no heuristic
    value.
    """

    def scores(self, graph: ConstructionGraph, heuristic: np.ndarray,
               previous: int, level: int,
               incompatible: np.ndarray) -> np.ndarray:
        scores = super().scores(graph, heuristic, previous, level,
                                incompatible)
        scores[END] = graph.level(level)[previous, END]
        return scores

    def walks_to_end(self) -> bool:
        return True


class TreeBuilder:
    """Builds a decision tree top-down like C4.5, but choosing the attribute
    of every node by roulette over `pheromone(branch) * heuristic` instead of
    by the highest gain ratio (Ant-Tree-Miner).

    A node becomes a leaf when its instances are of a single class, when no
    attribute can be selected, or when the chosen attribute cannot be
    split. An attribute splitting off fewer than two branches of at least
    `minimum_cases` instances is excluded and another one is chosen.
    Categorical attributes are used at most once on a path, continuous ones
    may be split again.

    Parameters
    -----
    minimum_cases : int

    interval_builder : IntervalBuilder or None
        Splits the continuous attributes. Needed iff there are any.

    dynamic_heuristic : Heuristic or None
        If given, it is recomputed on the instances of every node.
    """

    EPSILON = 1e-3

    def __init__(self, minimum_cases: int = 3,
                 interval_builder: IntervalBuilder = None,
                 dynamic_heuristic: Heuristic = None):
        self.minimum_cases = minimum_cases
        self.interval_builder = interval_builder
        self.dynamic_heuristic = dynamic_heuristic

    def build(self, graph: TreeGraph, heuristic: np.ndarray,
              dataset: Dataset, rng=None) -> DecisionTree:
        """Let one ant build a tree on all instances of `dataset`.

        :param heuristic: Per-attribute heuristic values.
        :param rng: None | int | instance of np.random.RandomState
        """
        rng = check_random_state(rng)
        weights = dataset.new_coverage().weights.astype(float)
        used = np.zeros(dataset.n_features, dtype=bool)
        return DecisionTree(self._follow(graph, heuristic, dataset, weights,
                                         used, 0, ROOT, rng))

    def select(self, graph: TreeGraph, heuristic: np.ndarray,
               dataset: Dataset, weights: np.ndarray, used: np.ndarray,
               key, rng: np.random.RandomState) -> Optional[int]:
        """:return: The attribute to test after branch `key`, None if no
            attribute has a positive score.
        """
        if self.dynamic_heuristic is not None:
            heuristic = self.dynamic_heuristic.compute(
                graph, dataset, coverage_of(weights), used)
        scores = graph.pheromone(key) * heuristic
        scores[used] = 0
        return roulette(scores, rng)

    def branch(self, dataset: Dataset, weights: np.ndarray,
               attribute: int) -> Optional[List[Condition]]:
        """:return: The conditions of the branches of a node testing
            `attribute`, None if there are none.
        """
        if dataset.categorical_mask[attribute]:
            return [Condition(attribute, '==', value)
                    for value in dataset.values(attribute)] or None
        if self.interval_builder is None:
            raise ValueError("Continuous attribute %d needs an interval "
                             "builder" % attribute)
        return self.interval_builder.multiple(dataset, coverage_of(weights),
                                              attribute)

    def _follow(self, graph: TreeGraph, heuristic: np.ndarray,
                dataset: Dataset, weights: np.ndarray, used: np.ndarray,
                level: int, key, rng: np.random.RandomState) -> TreeNode:
        distribution = class_distribution(dataset, weights)
        if np.count_nonzero(distribution) <= 1:
            return TreeNode(level, distribution)
        attribute = self.select(graph, heuristic, dataset, weights, used,
                                key, rng)
        if attribute is None:
            return TreeNode(level, distribution)
        conditions = self.branch(dataset, weights, attribute)
        if conditions is None:
            return TreeNode(level, distribution)

        branches = split_weights(conditions, dataset.X[:, attribute],
                                 weights)
        counts = [branch.sum() for branch in branches]
        if sum(count >= self.minimum_cases for count in counts) < 2:
            used = used.copy()
            used[attribute] = True
            return self._follow(graph, heuristic, dataset, weights, used,
                                level, key, rng)

        node = TreeNode(level, distribution, attribute=attribute,
                        conditions=conditions, weights=weights)
        for condition, branch, count in zip(conditions, branches, counts):
            child_distribution = class_distribution(dataset, branch)
            if count == 0:
                child = TreeNode(level + 1, child_distribution,
                                 head=node.head)
            elif count < 2 * self.minimum_cases:
                child = TreeNode(level + 1, child_distribution)
            else:
                expanded = used.copy()
                if dataset.categorical_mask[attribute]:
                    expanded[attribute] = True
                child = self._follow(graph, heuristic, dataset, branch,
                                     expanded, level + 1,
                                     branch_key(node, condition), rng)
                leaf_errors = count - child_distribution.max()
                if not child.is_leaf \
                        and child.errors() >= leaf_errors - self.EPSILON:
                    child = TreeNode(level + 1, child_distribution)
            node.children.append(child)
        return node
