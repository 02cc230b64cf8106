"""Tests for the building blocks in `sklearn_antminer.concrete`."""
import math

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from sklearn_antminer.archive import make_variables
from sklearn_antminer.common import \
    COVERED, Condition, Rule, RuleEvaluator, RuleList, SearchConfiguration, \
    Term
from sklearn_antminer.concrete import \
    BacktrackPruner, C45Split, EntropyHeuristic, GainRatioHeuristic, \
    GreedyPruner, Laplace, ListAccuracy, MajorityAssignator, MDLSplit, \
    MeanAssignator, MedianAssignator, NoHeuristic, NoPruner, NoTreePruner, \
    PessimisticAccuracy, PessimisticTreeAccuracy, PessimisticTreePruner, \
    PRUNERS, RRMSECoverage, RRMSEListMeasure, SensitivitySpecificity, \
    StandardDeviationSplit, TREE_PRUNERS, confusion_matrix, resolve
from sklearn_antminer.graph import ConstructionGraph
from sklearn_antminer.tree import DecisionTree, TreeGraph, TreeNode
from sklearn_antminer.util import pessimistic_errors

from .datasets import SampleData, regression_steps, threshold_1d


def term(attribute, value):
    """:return: A term of the two_by_two graph (vertex `2 + 2 * attribute +
        value` tests `attribute == value`).
    """
    return Term(2 + 2 * attribute + int(value),
                Condition(attribute, '==', float(value)))


def rule(*terms, head=None):
    return Rule(list(terms), head)


def applied(dataset, r, coverage=None):
    if coverage is None:
        coverage = dataset.new_coverage()
    r.apply(dataset, coverage)
    return coverage


# heuristics


def test_no_heuristic(two_by_two):
    dataset = two_by_two.to_dataset()
    graph = ConstructionGraph.from_dataset(dataset)
    coverage = dataset.new_coverage().rule_view()
    assert_array_equal(NoHeuristic().compute(graph, dataset, coverage),
                       [0, 0, 1, 1, 1, 1])
    used = np.array([True, False])
    assert_array_equal(NoHeuristic().compute(graph, dataset, coverage, used),
                       [0, 0, 0, 0, 1, 1])


def test_entropy_heuristic(two_by_two):
    dataset = two_by_two.to_dataset()
    graph = ConstructionGraph.from_dataset(dataset)
    coverage = dataset.new_coverage().rule_view()
    values = EntropyHeuristic().compute(graph, dataset, coverage)
    # the noise attribute does not reduce the class entropy at all
    np.testing.assert_allclose(values, [0, 0, 1, 1, 0, 0])
    assert np.all(values >= 0)
    values = EntropyHeuristic().compute(graph, dataset, coverage,
                                        np.array([True, False]))
    assert_array_equal(values, np.zeros(graph.size))


def test_entropy_heuristic_continuous():
    dataset = threshold_1d().to_dataset()
    graph = ConstructionGraph.from_dataset(dataset)
    coverage = dataset.new_coverage().rule_view()
    values = EntropyHeuristic(C45Split(5, 25)).compute(graph, dataset,
                                                       coverage)
    assert values[2] == pytest.approx(1.0)
    # without interval builder, continuous vertices have no condition
    values = EntropyHeuristic().compute(graph, dataset, coverage)
    assert values[2] == 0


def test_entropy_heuristic_archive(two_by_two):
    dataset = two_by_two.to_dataset()
    config = SearchConfiguration()
    graph = ConstructionGraph.from_archive(dataset,
                                           make_variables(dataset, config))
    values = EntropyHeuristic().compute(graph, dataset,
                                        dataset.new_coverage().rule_view())
    assert_array_equal(values, [0, 0, 1, 1])


# rule functions


def test_confusion_matrix(two_by_two):
    dataset = two_by_two.to_dataset()
    perfect = rule(term(0, 1), head=1)
    assert confusion_matrix(dataset, perfect, applied(dataset, perfect)) \
        == (20, 0, 0, 20)
    noise = rule(term(1, 0), head=0)
    assert confusion_matrix(dataset, noise, applied(dataset, noise)) \
        == (10, 10, 10, 10)
    # permanently covered instances are not counted
    coverage = dataset.new_coverage()
    coverage.flags[:10] = COVERED
    assert confusion_matrix(dataset, noise,
                            applied(dataset, noise, coverage)) \
        == (0, 10, 10, 10)


def test_sensitivity_specificity(two_by_two):
    dataset = two_by_two.to_dataset()
    function = SensitivitySpecificity()
    perfect = rule(term(0, 1), head=1)
    assert function.evaluate(dataset, perfect, applied(dataset, perfect)) \
        == 1.0
    noise = rule(term(1, 0), head=0)
    assert function.evaluate(dataset, noise, applied(dataset, noise)) \
        == pytest.approx(0.25)
    wrong = rule(term(0, 1), head=0)
    assert function.evaluate(dataset, wrong, applied(dataset, wrong)) == 0


def test_laplace(two_by_two):
    dataset = two_by_two.to_dataset()
    perfect = rule(term(0, 1), head=1)
    assert Laplace().evaluate(dataset, perfect, applied(dataset, perfect)) \
        == pytest.approx(21 / 22)
    noise = rule(term(1, 0), head=0)
    assert Laplace().evaluate(dataset, noise, applied(dataset, noise)) \
        == pytest.approx(0.5)


def test_rrmse_coverage():
    dataset = regression_steps().to_dataset(regression=True)
    upper = Rule([Term(2, Condition(0, '>', 19.5))], head=10.0)
    quality = RRMSECoverage().evaluate(dataset, upper,
                                       applied(dataset, upper))
    assert quality == pytest.approx(0.59 + 0.41 * 0.5)
    # predicting the overall mean is no better than the default
    mean = Rule([Term(2, Condition(0, '>', 19.5))], head=5.0)
    assert RRMSECoverage(alpha=1).evaluate(dataset, mean,
                                           applied(dataset, mean)) \
        == pytest.approx(0)
    nothing = Rule([Term(2, Condition(0, '>', 100))], head=math.nan)
    assert math.isnan(RRMSECoverage().evaluate(dataset, nothing,
                                               applied(dataset, nothing)))


# list measures


def test_list_accuracy(two_by_two):
    dataset = two_by_two.to_dataset()
    perfect = RuleList([rule(term(0, 1), head=1), rule(head=0)])
    assert ListAccuracy().evaluate(dataset, perfect) == 1.0
    default_only = RuleList([rule(head=0)])
    assert ListAccuracy().evaluate(dataset, default_only) == 0.5


def test_pessimistic_accuracy(two_by_two):
    dataset = two_by_two.to_dataset()
    perfect = RuleList([rule(term(0, 1), head=1), rule(head=0)])
    accuracy = PessimisticAccuracy().evaluate(dataset, perfect)
    assert accuracy == pytest.approx(1 - 2 * pessimistic_errors(20, 0) / 40)
    assert accuracy < 1
    # without a default rule, the uncovered instances are errors
    partial = RuleList([rule(term(0, 1), head=1)])
    assert PessimisticAccuracy().evaluate(dataset, partial) \
        == pytest.approx(1 - (pessimistic_errors(20, 0) + 20) / 40)
    worse = RuleList([rule(term(1, 0), head=0), rule(head=1)])
    assert PessimisticAccuracy().evaluate(dataset, worse) < accuracy


# assignators


def test_majority_assignator(two_by_two, rng):
    dataset = two_by_two.to_dataset()
    perfect = rule(term(0, 1))
    assert MajorityAssignator().assign(dataset, perfect,
                                       applied(dataset, perfect), rng) == 20
    assert perfect.head == 1


def test_majority_assignator_ties(two_by_two):
    dataset = two_by_two.to_dataset()
    heads = set()
    for seed in range(20):
        noise = rule(term(1, 0))
        MajorityAssignator().assign(dataset, noise, applied(dataset, noise),
                                    np.random.RandomState(seed))
        heads.add(noise.head)
    assert heads == {0, 1}


def test_mean_assignator(rng):
    dataset = regression_steps().to_dataset(regression=True)
    upper = Rule([Term(2, Condition(0, '>', 19.5))])
    assert MeanAssignator().assign(dataset, upper, applied(dataset, upper),
                                   rng) == 20
    assert upper.head == 10.0
    nothing = Rule([Term(2, Condition(0, '>', 100))])
    MeanAssignator().assign(dataset, nothing, applied(dataset, nothing), rng)
    assert math.isnan(nothing.head)


# pruners


@pytest.fixture
def evaluator(rng):
    return RuleEvaluator(SensitivitySpecificity(), MajorityAssignator(), rng)


def test_no_pruner(two_by_two, evaluator):
    dataset = two_by_two.to_dataset()
    r = rule(term(0, 1), term(1, 0))
    NoPruner().prune(dataset, r, dataset.new_coverage(), evaluator)
    assert r.size == 2
    assert r.quality == pytest.approx(0.5)


def test_greedy_pruner(two_by_two, evaluator):
    dataset = two_by_two.to_dataset()
    r = rule(term(0, 1), term(1, 0))
    coverage = dataset.new_coverage()
    uncovered = GreedyPruner().prune(dataset, r, coverage, evaluator)
    assert r.terms == [term(0, 1)]
    assert r.quality == 1.0
    assert r.head == 1
    assert uncovered == 20
    assert coverage.count(1) == 20


@pytest.mark.parametrize('pruner', [GreedyPruner(), BacktrackPruner()])
def test_pruner_keeps_single_term(two_by_two, evaluator, pruner):
    dataset = two_by_two.to_dataset()
    r = rule(term(1, 0))
    pruner.prune(dataset, r, dataset.new_coverage(), evaluator)
    assert r.size == 1


def test_backtrack_pruner(two_by_two, evaluator):
    dataset = two_by_two.to_dataset()
    r = rule(term(0, 1), term(1, 0))
    BacktrackPruner().prune(dataset, r, dataset.new_coverage(), evaluator)
    assert r.terms == [term(0, 1)]
    assert r.quality == 1.0
    # only the last term is considered for removal
    r = rule(term(1, 0), term(0, 1))
    BacktrackPruner().prune(dataset, r, dataset.new_coverage(), evaluator)
    assert r.terms == [term(1, 0), term(0, 1)]
    assert r.quality == pytest.approx(0.5)


# interval builders


def test_c45_split():
    dataset = threshold_1d().to_dataset()
    coverage = dataset.new_coverage().rule_view()
    lower, upper = C45Split(5, 25).multiple(dataset, coverage, 0)
    assert lower.relation == '<=' and upper.relation == '>'
    assert lower.value == upper.value == 19.5
    assert lower.entropy == upper.entropy == 0
    assert lower.covered == upper.covered == 20
    assert C45Split(5, 25).single(dataset, coverage, 0) == lower


def test_c45_split_only_covered():
    dataset = threshold_1d().to_dataset()
    coverage = dataset.new_coverage()
    assert C45Split(5, 25).multiple(dataset, coverage, 0) is None
    # only the RULE_COVERED instances 10..29 are considered
    coverage.flags[10:30] = 1
    lower, _ = C45Split(5, 25).multiple(dataset, coverage, 0)
    assert lower.value == 19.5
    assert lower.covered == 10


def test_c45_split_minimum_cases():
    dataset = threshold_1d().to_dataset()
    coverage = dataset.new_coverage().rule_view()
    assert C45Split(25, 25).multiple(dataset, coverage, 0) is None
    assert C45Split(5, 25).minimum(dataset, 40) == 5
    assert C45Split(1, 25).minimum(dataset, 40) == 2
    assert C45Split(1, 3).minimum(dataset, 1000) == 3


def test_c45_split_constant():
    data = SampleData(np.ones((20, 1)), np.arange(20) % 2)
    dataset = data.to_dataset()
    coverage = dataset.new_coverage().rule_view()
    assert C45Split(2, 10).multiple(dataset, coverage, 0) is None


def test_mdl_split():
    dataset = threshold_1d().to_dataset()
    coverage = dataset.new_coverage().rule_view()
    assert MDLSplit(5, 25).single(dataset, coverage, 0).value == 19.5
    # alternating classes: no split is worth its description length
    data = SampleData(np.arange(40, dtype=float).reshape(-1, 1),
                      np.arange(40) % 2)
    dataset = data.to_dataset()
    coverage = dataset.new_coverage().rule_view()
    assert MDLSplit(5, 25).multiple(dataset, coverage, 0) is None


def test_standard_deviation_split():
    dataset = regression_steps().to_dataset(regression=True)
    coverage = dataset.new_coverage().rule_view()
    lower, upper = StandardDeviationSplit(5, 10).multiple(dataset, coverage,
                                                          0)
    assert lower.value == upper.value == 19.5
    assert lower.entropy == pytest.approx(0)
    assert upper.entropy == pytest.approx(0)


# registries


def test_resolve():
    assert isinstance(resolve(PRUNERS, 'greedy', 'pruner'), GreedyPruner)
    pruner = BacktrackPruner()
    assert resolve(PRUNERS, pruner, 'pruner') is pruner
    with pytest.raises(ValueError, match="Unknown pruner 'foo'"):
        resolve(PRUNERS, 'foo', 'pruner')
    assert isinstance(resolve(TREE_PRUNERS, 'pessimistic', 'pruner'),
                      PessimisticTreePruner)


def test_supported_targets():
    assert EntropyHeuristic().supports('classification')
    assert not EntropyHeuristic().supports('regression')
    assert NoHeuristic().supports('regression')
    assert not MeanAssignator().supports('classification')
    assert not StandardDeviationSplit().supports('classification')
    assert not PessimisticTreePruner().supports('regression')


# decision trees


def signal_tree(attribute=0, left=(20.0, 0.0), right=(0.0, 20.0)):
    """:return: A tree testing `attribute` of the two_by_two data once, with
        leaves of the given class distributions.
    """
    distribution = np.add(left, right)
    return DecisionTree(TreeNode(
        0, distribution, attribute=attribute,
        conditions=[Condition(attribute, '==', 0.0),
                    Condition(attribute, '==', 1.0)],
        children=[TreeNode(1, np.array(left)), TreeNode(1, np.array(right))]))


def test_gain_ratio_heuristic(two_by_two):
    dataset = two_by_two.to_dataset()
    coverage = dataset.new_coverage().rule_view()
    heuristic = GainRatioHeuristic(minimum_cases=5)
    values = heuristic.compute(TreeGraph(2), dataset, coverage)
    assert values.shape == (2,)
    assert values[0] == pytest.approx(1.0)
    assert values[1] == pytest.approx(0.0)
    used = np.array([True, False])
    assert_array_equal(heuristic.compute(TreeGraph(2), dataset, coverage,
                                         used), [0, 0])


def test_gain_ratio_heuristic_continuous():
    dataset = threshold_1d().to_dataset()
    coverage = dataset.new_coverage().rule_view()
    values = GainRatioHeuristic(C45Split(5, 25), 5).compute(
        TreeGraph(1), dataset, coverage)
    assert values[0] == pytest.approx(1 - math.log2(39) / 40)
    # no interval builder, continuous attributes are unusable
    assert_array_equal(GainRatioHeuristic().compute(
        TreeGraph(1), dataset, coverage), [0])


def test_no_heuristic_tree_graph():
    values = NoHeuristic().compute(TreeGraph(3), None, None,
                                   np.array([False, True, False]))
    assert_array_equal(values, [1, 0, 1])


def test_tree_measures(two_by_two):
    dataset = two_by_two.to_dataset()
    tree = signal_tree()
    assert ListAccuracy().evaluate(dataset, tree) == 1.0
    accuracy = PessimisticTreeAccuracy().evaluate(dataset, tree)
    assert accuracy == pytest.approx(1 - 2 * pessimistic_errors(20, 0) / 40)
    noise = signal_tree(1, (10.0, 10.0), (10.0, 10.0))
    assert PessimisticTreeAccuracy().evaluate(dataset, noise) < 0.5


def test_tree_pruners(two_by_two):
    dataset = two_by_two.to_dataset()
    tree = signal_tree(1, (10.0, 10.0), (10.0, 10.0))
    assert NoTreePruner().prune(dataset, tree) is tree
    assert not tree.root.is_leaf
    pruned = PessimisticTreePruner().prune(dataset, tree)
    assert pruned.root.is_leaf
    assert pruned.size == 1
    # a useful split is kept
    assert PessimisticTreePruner().prune(dataset, signal_tree()).size == 3


# regression


def test_median_assignator(rng):
    dataset = regression_steps().to_dataset(regression=True)
    upper = Rule([Term(2, Condition(0, '>', 15.5))])
    assert MedianAssignator().assign(dataset, upper, applied(dataset, upper),
                                     rng) == 16
    assert upper.head == 10.0
    MeanAssignator().assign(dataset, upper, applied(dataset, upper), rng)
    assert upper.head == pytest.approx(200 / 24)
    nothing = Rule([Term(2, Condition(0, '>', 100))])
    MedianAssignator().assign(dataset, nothing, applied(dataset, nothing),
                              rng)
    assert math.isnan(nothing.head)


def test_rrmse_list_measure():
    dataset = regression_steps().to_dataset(regression=True)
    lower = Rule([Term(2, Condition(0, '<=', 19.5))], 0.0)
    perfect = RuleList([lower, rule(head=10.0)])
    assert RRMSEListMeasure().evaluate(dataset, perfect) == 1.0
    mean_only = RuleList([rule(head=5.0)])
    assert RRMSEListMeasure().evaluate(dataset, mean_only) \
        == pytest.approx(0.0)
    worse = RuleList([rule(head=0.0)])
    assert RRMSEListMeasure().evaluate(dataset, worse) < 0


def test_rrmse_list_measure_constant():
    data = SampleData(np.arange(10, dtype=float).reshape(-1, 1),
                      np.full(10, 3.0))
    dataset = data.to_dataset(regression=True)
    assert RRMSEListMeasure().evaluate(dataset,
                                       RuleList([rule(head=3.0)])) == 1.0
    assert RRMSEListMeasure().evaluate(dataset,
                                       RuleList([rule(head=2.0)])) == 0.0
