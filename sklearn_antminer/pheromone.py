"""
Implementation of ACO rule discovery:
Pheromone policies, initialising and updating the pheromone of a
construction graph from the best solutions found.

Policies write to the graph only in `initialise` and `update`, which the
activities call between iterations, never while a colony is created.
"""

import logging
import math
import warnings
from abc import ABC, abstractmethod
from typing import Iterable, List, Tuple

import numpy as np

from sklearn_antminer.common import Rule, RuleList
from sklearn_antminer.graph import ConstructionGraph, END, START
from sklearn_antminer.tree import DecisionTree, TreeGraph

logger = logging.getLogger(__name__)


def rule_path(rule: Rule) -> List[Tuple[int, int]]:
    """:return: The edges `(i, j)` walked to construct `rule`, starting at
        `START`.
    """
    vertices = [START] + [term.vertex for term in rule.enabled_terms()]
    return list(zip(vertices[:-1], vertices[1:]))


def _usable_quality(quality: float, policy) -> bool:
    if math.isfinite(quality):
        return True
    warnings.warn("%s: ignoring solution with undefined quality %s"
                  % (type(policy).__name__, quality))
    return False


class PheromonePolicy(ABC):
    """Initialises and updates the pheromone of a `ConstructionGraph`."""

    def initialise(self, graph: ConstructionGraph) -> None:
        """Set the pheromone of every edge to `1 / out-degree`."""
        graph.initialise()

    @abstractmethod
    def update(self, graph: ConstructionGraph, solution) -> None:
        """Reinforce the pheromone along `solution` proportionally to its
        quality and evaporate.

        Solutions with an undefined (NaN) quality leave the graph untouched.
        """
        raise NotImplementedError


def _normalize(values: np.ndarray, edges: np.ndarray) -> None:
    """Normalize each row of `values` over its edges to sum up to 1."""
    totals = np.where(edges, values, 0).sum(axis=1, keepdims=True)
    rows = totals[:, 0] > 0
    values[rows] = np.where(edges[rows], values[rows] / totals[rows], 0)


class VertexPheromonePolicy(PheromonePolicy):
    """Ant-Miner's pheromone: one value per vertex, stored on the edges
    leaving `START` on level 0. The vertices of the rule are reinforced by
    `tau += tau * quality`, evaporation happens through normalization.
    """

    def update(self, graph: ConstructionGraph, solution: Rule) -> None:
        if not _usable_quality(solution.quality, self):
            return
        values = graph.pheromone[0]
        used = [term.vertex for term in solution.enabled_terms()]
        values[START, used] += values[START, used] * max(solution.quality, 0)
        _normalize(values[START:START + 1], graph.edges[START:START + 1])


class EdgePheromonePolicy(PheromonePolicy):
    """Reinforces the edges walked by the rule (`tau += tau * quality`),
    then normalizes every outgoing set of edges (level 0).
    """

    def update(self, graph: ConstructionGraph, solution: Rule) -> None:
        if not _usable_quality(solution.quality, self):
            return
        values = graph.pheromone[0]
        for i, j in rule_path(solution):
            values[i, j] += values[i, j] * max(solution.quality, 0)
        _normalize(values, graph.edges)


class LevelPheromonePolicy(PheromonePolicy):
    """MAX-MIN Ant System pheromone of cAnt-MinerPB, one pheromone matrix per
    position (level) of a rule in a list.

    Whenever a better list than seen before is reported, the bounds are
    recomputed from its quality::

        n = graph.size, avg = n / 2, p_dec = p_best ** (1 / n)
        tau_max = quality / (5 * (1 - evaporation))
        tau_min = min(tau_max, tau_max * (1 - p_dec) / ((avg - 1) * p_dec))

    Each update evaporates every edge of every level (`tau *= evaporation`),
    then deposits `quality / 5` on the edges walked by each rule of the list
    at the level of the rule (except the default rule); all values are
    clamped to `[tau_min, tau_max]`.

    Attributes
    -----
    tau_max, tau_min : float
        The current bounds, NaN until the first update.
    """

    deposit_rate = 0.2

    def __init__(self, evaporation: float = 0.9, p_best: float = 0.05):
        self.evaporation = evaporation
        self.p_best = p_best
        self._reset_bounds()

    def _reset_bounds(self):
        self.best_quality = -math.inf
        self.tau_max = math.nan
        self.tau_min = math.nan

    def initialise(self, graph: ConstructionGraph) -> None:
        super().initialise(graph)
        self._reset_bounds()

    def bounds(self, graph: ConstructionGraph,
               quality: float) -> Tuple[float, float]:
        """:return: `(tau_min, tau_max)` for a best solution of `quality`."""
        n = graph.size
        average = n / 2
        p_dec = self.p_best ** (1 / n)
        tau_max = quality * self.deposit_rate / (1 - self.evaporation)
        if average - 1 <= 0:
            return tau_max, tau_max
        tau_min = tau_max * (1 - p_dec) / ((average - 1) * p_dec)
        return min(tau_min, tau_max), tau_max

    def path(self, rule: Rule) -> List[Tuple[int, int]]:
        return rule_path(rule)

    def levels(self, solution: RuleList) -> Iterable[Tuple[int, Rule]]:
        """:return: The rules to reinforce, with the level of each."""
        return ((level, rule) for level, rule in enumerate(solution)
                if not rule.is_empty())

    def update(self, graph: ConstructionGraph, solution: RuleList) -> None:
        if not _usable_quality(solution.quality, self):
            return
        if solution.quality > max(self.best_quality, 0):
            self.best_quality = solution.quality
            self.tau_min, self.tau_max = self.bounds(graph, solution.quality)
            logger.debug("new pheromone bounds [%g, %g]",
                         self.tau_min, self.tau_max)

        graph.ensure_levels(len(solution))
        edges = graph.edges
        values = graph.pheromone
        bounded = not math.isnan(self.tau_max)
        values[:, edges] *= self.evaporation
        if bounded:
            values[:, edges] = np.clip(values[:, edges],
                                       self.tau_min, self.tau_max)
        delta = max(solution.quality, 0) * self.deposit_rate
        for level, rule in self.levels(solution):
            for i, j in self.path(rule):
                value = values[level, i, j] + delta
                values[level, i, j] = min(value, self.tau_max) if bounded \
                    else value


class ArchivePheromonePolicy(LevelPheromonePolicy):
    """`LevelPheromonePolicy` for archive graphs: additionally pushes the
    condition of every term, rewarded with the quality of the list, into the
    archive of its vertex at the level of its rule.
    """

    def path(self, rule: Rule) -> List[Tuple[int, int]]:
        # the ant left the last term towards END
        path = rule_path(rule)
        return path + [(path[-1][1], END)] if path else path

    def update(self, graph: ConstructionGraph, solution: RuleList) -> None:
        if not _usable_quality(solution.quality, self):
            return
        super().update(graph, solution)
        for level, rule in self.levels(solution):
            _reward_archives(graph, rule, level, solution.quality)


def _reward_archives(graph: ConstructionGraph, rule: Rule, level: int,
                     quality: float) -> None:
    """Push the conditions of the archive backed vertices of `rule` into
    their archive of `level`, rewarded with `quality`.
    """
    for term in rule.enabled_terms():
        vertex = graph.vertex(term.vertex)
        if vertex.variable is not None:
            vertex.update(level, term.condition, quality)


class VertexArchivePheromonePolicy(VertexPheromonePolicy):
    """`VertexPheromonePolicy` for a term graph whose continuous vertices
    sample their thresholds from an archive (Ant-MinerMA): additionally
    rewards the conditions of the rule in the archives of level 0.
    """

    def update(self, graph: ConstructionGraph, solution: Rule) -> None:
        if not _usable_quality(solution.quality, self):
            return
        super().update(graph, solution)
        _reward_archives(graph, solution, 0, solution.quality)


class EdgeArchivePheromonePolicy(EdgePheromonePolicy):
    """`EdgePheromonePolicy` counterpart of `VertexArchivePheromonePolicy`.
    """

    def update(self, graph: ConstructionGraph, solution: Rule) -> None:
        if not _usable_quality(solution.quality, self):
            return
        super().update(graph, solution)
        _reward_archives(graph, solution, 0, solution.quality)


class TreePheromonePolicy(PheromonePolicy):
    """MAX-MIN pheromone of Ant-Tree-Miner on a `TreeGraph`.

    The bounds are recomputed whenever a better tree than seen before is
    reported, like in `LevelPheromonePolicy` but with `avg = n / 2 *
    tree.size` and a deposit of `quality / 10`.

    Each update evaporates (`tau *= evaporation`) the values of every branch
    seen so far, deposits on the attribute chosen after each branch of the
    tree and clamps to `[tau_min, tau_max]`. The values of a branch start at
    `tau_max` when it is first reinforced.
    """

    deposit_rate = 0.1

    def __init__(self, evaporation: float = 0.9, p_best: float = 0.05):
        self.evaporation = evaporation
        self.p_best = p_best
        self._reset_bounds()

    def _reset_bounds(self):
        self.best_quality = -math.inf
        self.tau_max = math.nan
        self.tau_min = math.nan

    def initialise(self, graph: TreeGraph) -> None:
        graph.initialise()
        self._reset_bounds()

    def bounds(self, graph: TreeGraph, tree: DecisionTree
               ) -> Tuple[float, float]:
        """:return: `(tau_min, tau_max)` for a best solution `tree`."""
        n = graph.size
        average = n / 2 * tree.size
        p_dec = self.p_best ** (1 / n)
        tau_max = tree.quality * self.deposit_rate / (1 - self.evaporation)
        if average - 1 <= 0:
            return tau_max, tau_max
        tau_min = tau_max * (1 - p_dec) / ((average - 1) * p_dec)
        return min(tau_min, tau_max), tau_max

    def _update(self, values: np.ndarray, attribute: int,
                delta: float) -> None:
        values *= self.evaporation
        if attribute >= 0:
            values[attribute] += delta
        if not math.isnan(self.tau_max):
            np.clip(values, self.tau_min, self.tau_max, out=values)

    def update(self, graph: TreeGraph, solution: DecisionTree) -> None:
        if not _usable_quality(solution.quality, self):
            return
        if solution.quality > max(self.best_quality, 0):
            self.best_quality = solution.quality
            self.tau_min, self.tau_max = self.bounds(graph, solution)
            logger.debug("new pheromone bounds [%g, %g]",
                         self.tau_min, self.tau_max)

        fill = graph.INITIAL if math.isnan(self.tau_max) else self.tau_max
        delta = max(solution.quality, 0) * self.deposit_rate
        updated = set()
        for key, attribute in solution.branches():
            self._update(graph.entry(key, fill), attribute, delta)
            updated.add(key)
        for key, values in graph.entries.items():
            if key not in updated:
                self._update(values, -1, 0.0)
