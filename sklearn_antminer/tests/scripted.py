"""An activity with scripted solution qualities, to test the search loop
independently of the rule construction.
"""
import threading
from typing import Callable

from sklearn_antminer.activity import IterativeActivity
from sklearn_antminer.common import Rule, SearchConfiguration
from sklearn_antminer.pheromone import PheromonePolicy


class CountingPolicy(PheromonePolicy):
    """Records the calls instead of touching a graph."""

    def __init__(self):
        self.initialised = 0
        self.updates = []

    def initialise(self, graph) -> None:
        self.initialised += 1

    def update(self, graph, solution) -> None:
        self.updates.append(solution.quality)


class ScriptedActivity(IterativeActivity):
    """Creates empty rules whose quality is `quality(iteration)`."""

    def __init__(self, config: SearchConfiguration,
                 quality: Callable[[int], float],
                 restart_on_stagnation: bool = True):
        super().__init__(config, None, CountingPolicy())
        self.quality = quality
        self.restart_on_stagnation = restart_on_stagnation
        self.created = 0
        self.colony_sizes = []
        self._lock = threading.Lock()

    def create(self, rng) -> Rule:
        with self._lock:
            self.created += 1
        rule = Rule()
        rule.quality = self.quality(self.iteration)
        return rule

    def update(self, colony) -> None:
        self.colony_sizes.append(len(colony))
        super().update(colony)
