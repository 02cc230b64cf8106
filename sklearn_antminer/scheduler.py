"""
Implementation of ACO rule discovery:
Schedulers, running an activity iteration by iteration and creating the
colony of each iteration sequentially or on a pool of worker threads.

Only `activity.create` runs concurrently. It reads the pheromone and the
archives, which are written by `activity.update` alone, after all ants of an
iteration have finished.
"""

import logging
from typing import List

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs
from sklearn.utils import check_random_state

from sklearn_antminer.activity import IterativeActivity
from sklearn_antminer.archive import SolutionArchive

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs an activity, creating the solutions of a colony one after the
    other in the calling thread.

    With a fixed `random_state`, runs are reproducible.
    """

    def __init__(self, colony_size: int):
        if colony_size <= 0:
            raise ValueError("colony_size must be positive, got %r"
                             % (colony_size,))
        self.colony_size = colony_size

    def create_colony(self, activity: IterativeActivity,
                      rng: np.random.RandomState) -> List:
        return [activity.create(rng) for _ in range(self.colony_size)]

    def run(self, activity: IterativeActivity, random_state=None):
        """Run `activity` until it terminates.

        :param random_state: None | int | instance of np.random.RandomState
        :return: The best solution found, see `IterativeActivity.best`.
        """
        rng = check_random_state(random_state)
        activity.initialise()
        while not activity.terminate():
            colony = SolutionArchive(self.colony_size)
            colony.extend(self.create_colony(activity, rng))
            if activity.search(colony):
                colony.sort()
            activity.update(colony)
        logger.debug("%s finished after %d iterations",
                     type(activity).__name__, activity.iteration)
        return activity.best


def _create_chunk(activity: IterativeActivity, size: int,
                  rng: np.random.RandomState) -> List:
    return [activity.create(rng) for _ in range(size)]


class ParallelScheduler(Scheduler):
    """Creates the colony on `n_jobs` worker threads (-1: all cores), using
    `joblib.Parallel`. The pool lives as long as one `run`.

    Each worker gets its own `np.random.RandomState`, seeded with a seed drawn
    from the run's random state once per iteration plus the worker index, and
    creates an equal share of the colony.

    NOTE: Exact reproducibility is *not* guaranteed under parallel execution.
    """

    def __init__(self, colony_size: int, n_jobs: int = -1):
        super().__init__(colony_size)
        self.n_jobs = n_jobs
        self._parallel = None

    @property
    def n_workers(self) -> int:
        return max(1, min(effective_n_jobs(self.n_jobs), self.colony_size))

    def create_colony(self, activity: IterativeActivity,
                      rng: np.random.RandomState) -> List:
        n_workers = self.n_workers
        shares = np.full(n_workers, self.colony_size // n_workers)
        shares[:self.colony_size % n_workers] += 1
        seed = rng.randint(np.iinfo(np.int32).max)
        chunks = self._parallel(
            delayed(_create_chunk)(activity, int(share),
                                   np.random.RandomState(seed + worker))
            for worker, share in enumerate(shares))
        return [solution for chunk in chunks for solution in chunk]

    def run(self, activity: IterativeActivity, random_state=None):
        with Parallel(n_jobs=self.n_workers, prefer='threads') as parallel:
            self._parallel = parallel
            try:
                return super().run(activity, random_state)
            finally:
                self._parallel = None


def make_scheduler(colony_size: int, n_jobs: int = None) -> Scheduler:
    """:return: A `Scheduler` if `n_jobs` is None or 1, a `ParallelScheduler`
        otherwise.
    """
    if n_jobs is None or n_jobs == 1:
        return Scheduler(colony_size)
    return ParallelScheduler(colony_size, n_jobs)
