"""Tests for `sklearn_antminer.activity`."""
import math

import numpy as np
import pytest

from sklearn_antminer.activity import \
    FindRuleActivity, FindRuleListActivity, FindTreeActivity, default_rule
from sklearn_antminer.common import COVERED
from sklearn_antminer.concrete import \
    BacktrackPruner, EntropyHeuristic, GainRatioHeuristic, GreedyPruner, \
    ListAccuracy, MajorityAssignator, NoTreePruner, PessimisticAccuracy, \
    PessimisticTreeAccuracy, PessimisticTreePruner, SensitivitySpecificity
from sklearn_antminer.construction import \
    LevelRuleFactory, RuleFactory, TreeBuilder
from sklearn_antminer.graph import ConstructionGraph
from sklearn_antminer.pheromone import \
    LevelPheromonePolicy, TreePheromonePolicy, VertexPheromonePolicy
from sklearn_antminer.scheduler import Scheduler
from sklearn_antminer.tree import TreeGraph
from sklearn_antminer.util import pessimistic_errors

from .datasets import SampleData
from .scripted import ScriptedActivity


def test_stagnation_restarts_once(config):
    config = config._replace(stagnation=3, max_iterations=100)
    activity = ScriptedActivity(config, lambda iteration: 0.5)
    best = Scheduler(config.colony_size).run(activity, 1)
    # 1 improving + 4 stagnating iterations, reset, 4 more stagnating ones
    assert activity.iteration == 9
    assert activity.restarts == 1
    assert activity.policy.initialised == 2
    assert best.quality == 0.5


def test_stagnation_without_restart(config):
    config = config._replace(stagnation=3, max_iterations=100)
    activity = ScriptedActivity(config, lambda iteration: 0.5,
                                restart_on_stagnation=False)
    Scheduler(config.colony_size).run(activity, 1)
    assert activity.iteration == 5
    assert activity.restarts == 0


def test_max_iterations(config):
    activity = ScriptedActivity(config, float)
    best = Scheduler(config.colony_size).run(activity, 1)
    assert activity.iteration == config.max_iterations
    assert activity.stagnation == 0
    assert best.quality == config.max_iterations - 1
    assert activity.colony_sizes == [config.colony_size] * activity.iteration


def test_undefined_quality_never_best(config):
    activity = ScriptedActivity(config, lambda iteration: math.nan)
    assert Scheduler(config.colony_size).run(activity, 1) is None
    assert activity.iteration == config.max_iterations
    assert activity.policy.updates == []

    activity = ScriptedActivity(
        config, lambda iteration: 0.3 if iteration == 2 else math.nan)
    best = Scheduler(config.colony_size).run(activity, 1)
    assert best.quality == 0.3
    assert activity.policy.updates == [0.3]


def test_initialise_resets(config):
    activity = ScriptedActivity(config, lambda iteration: 0.5)
    scheduler = Scheduler(config.colony_size)
    scheduler.run(activity, 1)
    scheduler.run(activity, 1)
    assert activity.iteration == 2 * (config.stagnation + 1) + 1
    assert activity.restarts == 1
    assert activity.policy.initialised == 4


def test_default_rule(two_by_two, rng):
    dataset = two_by_two.to_dataset()
    coverage = dataset.new_coverage()
    coverage.flags[:] = COVERED
    # only the instances of class 0 are left
    coverage.flags[:20] = 0
    rule = default_rule(dataset, coverage, MajorityAssignator(), rng)
    assert rule.is_empty()
    assert rule.head == 0
    # the given coverage is not modified
    assert coverage.count(COVERED) == 20


def test_default_rule_nothing_left(rng):
    dataset = SampleData(np.zeros((3, 1)), np.array([0, 1, 1])).to_dataset()
    coverage = dataset.new_coverage()
    coverage.flags[:] = COVERED
    rule = default_rule(dataset, coverage, MajorityAssignator(), rng)
    assert rule.head == 1


def find_rule_activity(config, dataset):
    return FindRuleActivity(config, ConstructionGraph.from_dataset(dataset),
                            VertexPheromonePolicy(), dataset,
                            dataset.new_coverage(),
                            RuleFactory(config.minimum_cases),
                            EntropyHeuristic(), SensitivitySpecificity(),
                            MajorityAssignator(), GreedyPruner())


def test_find_rule_converges(config, two_by_two):
    dataset = two_by_two.to_dataset()
    activity = find_rule_activity(config, dataset)
    best = Scheduler(config.colony_size).run(activity, 3)
    # every ant finds a perfect rule, which is never improved upon
    assert best.quality == 1.0
    assert [term.condition.attribute for term in best.terms] == [0]
    assert activity.iteration == config.convergence + 2
    assert activity.restarts == 0


def test_find_rule_create_reads_only(config, two_by_two, rng):
    dataset = two_by_two.to_dataset()
    activity = find_rule_activity(config, dataset)
    activity.initialise()
    pheromone = activity.graph.pheromone.copy()
    flags = activity.coverage.flags.copy()
    for _ in range(5):
        rule = activity.create(rng)
        assert not math.isnan(rule.quality)
    np.testing.assert_array_equal(activity.graph.pheromone, pheromone)
    np.testing.assert_array_equal(activity.coverage.flags, flags)


def find_rule_list_activity(config, dataset, ordered=True, measure=None):
    return FindRuleListActivity(
        config, ConstructionGraph.from_dataset(dataset),
        LevelPheromonePolicy(config.evaporation, config.p_best), dataset,
        LevelRuleFactory(config.minimum_cases), EntropyHeuristic(),
        SensitivitySpecificity(), MajorityAssignator(), BacktrackPruner(),
        measure or PessimisticAccuracy(), ordered)


@pytest.mark.parametrize('ordered', [True, False])
def test_find_rule_list_create(config, two_by_two, ordered):
    dataset = two_by_two.to_dataset()
    activity = find_rule_list_activity(config, dataset, ordered,
                                       ListAccuracy())
    activity.initialise()
    for seed in range(10):
        rule_list = activity.create(np.random.RandomState(seed))
        assert rule_list.ordered == ordered
        assert rule_list[-1].is_empty()
        assert all(not rule.is_empty() for rule in rule_list[:-1])
        counts = rule_list.available_counts
        assert counts[0] == dataset.n_samples
        assert len(counts) == len(rule_list)
        assert all(a > b for a, b in zip(counts[:-1], counts[1:]))
        assert rule_list.quality == 1.0


def test_find_rule_list_search(config, two_by_two):
    dataset = two_by_two.to_dataset()
    activity = find_rule_list_activity(config, dataset)
    best = Scheduler(config.colony_size).run(activity, 5)
    assert best[-1].is_empty()
    assert best.quality > 0.5
    assert 0 < activity.iteration <= config.max_iterations
    prediction = best.predict(dataset.X).astype(int)
    np.testing.assert_array_equal(prediction, dataset.y)


def find_tree_activity(config, dataset, pruner=None):
    return FindTreeActivity(
        config, TreeGraph(dataset.n_features),
        TreePheromonePolicy(config.evaporation, config.p_best), dataset,
        TreeBuilder(3), GainRatioHeuristic(minimum_cases=3),
        pruner or PessimisticTreePruner(), PessimisticTreeAccuracy())


def test_find_tree_create(config, two_by_two, rng):
    dataset = two_by_two.to_dataset()
    activity = find_tree_activity(config, dataset, NoTreePruner())
    activity.initialise()
    np.testing.assert_allclose(activity.heuristic_values, [1, 0])
    tree = activity.create(rng)
    assert tree.root.attribute == 0
    assert tree.iteration == activity.iteration
    assert tree.quality == pytest.approx(
        1 - 2 * pessimistic_errors(20, 0) / 40)
    # creating reads the pheromone only
    assert activity.graph.entries == {}


def test_find_tree_search(config, two_by_two):
    dataset = two_by_two.to_dataset()
    activity = find_tree_activity(config, dataset)
    best = Scheduler(config.colony_size).run(activity, 2)
    assert best.size == 3
    assert 0 < activity.iteration <= config.max_iterations
    assert activity.graph.entries
    np.testing.assert_array_equal(best.predict(dataset.X), dataset.y)
