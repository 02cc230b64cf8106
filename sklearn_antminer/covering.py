"""
Implementation of ACO rule discovery:
Sequential covering, i.e. the outer loops assembling rule lists (and trees)
from the activities, and the entry point `cover` used by the estimators.
"""

import logging
from typing import NamedTuple, Optional, Union

from sklearn.utils import check_random_state

from sklearn_antminer.activity import \
    FindRuleActivity, FindRuleListActivity, FindTreeActivity, \
    IterativeActivity, default_rule
from sklearn_antminer.archive import make_variables
from sklearn_antminer.common import \
    Assignator, Coverage, Dataset, Heuristic, IntervalBuilder, ListMeasure, \
    Pruner, Rule, RuleFunction, RuleList, SearchConfiguration, TreePruner
from sklearn_antminer.construction import \
    ArchiveRuleFactory, LevelRuleFactory, RuleFactory, TreeBuilder
from sklearn_antminer.graph import ConstructionGraph
from sklearn_antminer.pheromone import \
    ArchivePheromonePolicy, EdgeArchivePheromonePolicy, EdgePheromonePolicy, \
    LevelPheromonePolicy, TreePheromonePolicy, VertexArchivePheromonePolicy, \
    VertexPheromonePolicy
from sklearn_antminer.scheduler import Scheduler, make_scheduler
from sklearn_antminer.tree import DecisionTree, TreeGraph, TreeNode, \
    class_distribution

logger = logging.getLogger(__name__)

VARIANTS = ('rule', 'list', 'tree')


class Strategies(NamedTuple):
    """The collaborators plugged into a covering run.

    Decision trees need no `function` and no `assignator`, their `pruner` is
    a `TreePruner`.
    """
    heuristic: Heuristic
    function: RuleFunction
    assignator: Assignator
    pruner: Union[Pruner, TreePruner]
    interval_builder: Optional[IntervalBuilder] = None
    measure: Optional[ListMeasure] = None


def _dynamic_heuristic(config: SearchConfiguration, heuristic: Heuristic):
    return heuristic if config.dynamic_heuristic else None


def build_one(dataset: Dataset,
              config: SearchConfiguration,
              heuristic: Heuristic,
              interval_builder: IntervalBuilder = None,
              graph: ConstructionGraph = None,
              coverage: Coverage = None,
              level: int = 0,
              random_state=None) -> Rule:
    """Let a single ant construct a rule, without any pheromone update.

    :param graph: Defaults to a fresh term graph of `dataset`.
    :param coverage: Defaults to nothing covered yet.
    :return: The unevaluated, unpruned rule.
    """
    if graph is None:
        graph = ConstructionGraph.from_dataset(dataset)
    if coverage is None:
        coverage = dataset.new_coverage()
    factory = RuleFactory(config.minimum_cases, interval_builder,
                          _dynamic_heuristic(config, heuristic))
    values = heuristic.compute(graph, dataset, coverage.rule_view())
    rule, _ = factory.create(graph, values, dataset, coverage, level,
                             check_random_state(random_state))
    return rule


def search(activity: IterativeActivity, scheduler: Scheduler,
           random_state=None):
    """Run the whole iterative search of `activity`.

    :return: `(best, iterations)`, the best solution found (None if no
        solution with a defined quality was found) and the number of
        iterations run.
    """
    best = scheduler.run(activity, random_state)
    return best, activity.iteration


def sequential_covering(dataset: Dataset, config: SearchConfiguration,
                        strategies: Strategies, edge_pheromone: bool = False,
                        archive: bool = False,
                        random_state=None) -> RuleList:
    """Ant-Miner: learn an ordered rule list one rule at a time, each rule the
    best of its own `FindRuleActivity` search on the instances not covered by
    the previous rules.

    The list ends with a default rule. The `available_counts` of the
    returned list never increase.

    :param edge_pheromone: Keep the pheromone on the edges between terms
        (`EdgePheromonePolicy`) instead of on the vertices.
    :param archive: Ant-MinerMA: sample the thresholds of the continuous
        attributes from per-vertex archives of the best rules, instead of
        asking `strategies.interval_builder`.
    """
    rng = check_random_state(random_state)
    variables = make_variables(dataset, config) if archive else None
    graph = ConstructionGraph.from_dataset(dataset, variables)
    factory_class = LevelRuleFactory if edge_pheromone else RuleFactory
    factory = factory_class(config.minimum_cases,
                            None if archive else strategies.interval_builder,
                            _dynamic_heuristic(config, strategies.heuristic))
    if archive:
        policy = EdgeArchivePheromonePolicy() if edge_pheromone \
            else VertexArchivePheromonePolicy()
    else:
        policy = EdgePheromonePolicy() if edge_pheromone \
            else VertexPheromonePolicy()
    scheduler = make_scheduler(config.colony_size, config.n_jobs)
    budget = config.uncovered_budget(dataset.n_samples)

    coverage = dataset.new_coverage()
    available = coverage.available
    rule_list = RuleList(ordered=True)
    rule_list.available_counts.append(available)
    while available >= budget:
        activity = FindRuleActivity(config, graph, policy, dataset, coverage,
                                    factory, strategies.heuristic,
                                    strategies.function,
                                    strategies.assignator, strategies.pruner)
        best, iterations = search(activity, scheduler, rng)
        rule_list.iteration += iterations
        if best is None or best.is_empty():
            logger.debug("no further rule found, %d instances left",
                         available)
            break
        covered = coverage.copy()
        best.apply(dataset, covered)
        remaining = covered.mark_covered()
        if remaining >= available:
            break
        rule_list.append(best)
        coverage = covered
        available = remaining
        rule_list.available_counts.append(available)
        logger.debug("rule %d after %d iterations: %s (%d available)",
                     len(rule_list), iterations,
                     best.to_string(dataset.target), available)

    rule_list.append(default_rule(dataset, coverage, strategies.assignator,
                                  rng))
    return rule_list


def pittsburgh_covering(dataset: Dataset, config: SearchConfiguration,
                        strategies: Strategies, ordered: bool = True,
                        archive: bool = False,
                        random_state=None) -> RuleList:
    """cAnt-MinerPB: a single search whose ants construct whole rule lists,
    rated by `strategies.measure`.

    :param ordered: Learn an ordered list or an unordered rule set.
    :param archive: Use the archive graph, sampling the conditions of all
        attributes from per-vertex archives, instead of the term graph.
    """
    if strategies.measure is None:
        raise ValueError("pittsburgh_covering needs a list measure")
    dynamic = _dynamic_heuristic(config, strategies.heuristic)
    if archive:
        graph = ConstructionGraph.from_archive(
            dataset, make_variables(dataset, config))
        factory = ArchiveRuleFactory(config.minimum_cases, None, dynamic)
        policy = ArchivePheromonePolicy(config.evaporation, config.p_best)
    else:
        graph = ConstructionGraph.from_dataset(dataset)
        factory = LevelRuleFactory(config.minimum_cases,
                                   strategies.interval_builder, dynamic)
        policy = LevelPheromonePolicy(config.evaporation, config.p_best)
    activity = FindRuleListActivity(config, graph, policy, dataset, factory,
                                    strategies.heuristic, strategies.function,
                                    strategies.assignator, strategies.pruner,
                                    strategies.measure, ordered)
    scheduler = make_scheduler(config.colony_size, config.n_jobs)
    best, iterations = search(activity, scheduler, random_state)
    if best is None:
        # no list with a defined quality, fall back to the default rule
        best = RuleList(ordered=ordered)
        best.append(default_rule(dataset, dataset.new_coverage(),
                                 strategies.assignator,
                                 check_random_state(random_state)))
    logger.debug("best list of iteration %d with quality %s after %d "
                 "iterations (%d restarts)", best.iteration, best.quality,
                 iterations, activity.restarts)
    best.iteration = iterations
    return best


def tree_covering(dataset: Dataset, config: SearchConfiguration,
                  strategies: Strategies,
                  random_state=None) -> DecisionTree:
    """Ant-Tree-Miner: a single search whose ants build whole decision trees,
    rated by `strategies.measure`.
    """
    if strategies.measure is None:
        raise ValueError("tree_covering needs a tree measure")
    graph = TreeGraph(dataset.n_features)
    builder = TreeBuilder(config.minimum_cases, strategies.interval_builder,
                          _dynamic_heuristic(config, strategies.heuristic))
    policy = TreePheromonePolicy(config.evaporation, config.p_best)
    activity = FindTreeActivity(config, graph, policy, dataset, builder,
                                strategies.heuristic, strategies.pruner,
                                strategies.measure)
    scheduler = make_scheduler(config.colony_size, config.n_jobs)
    best, iterations = search(activity, scheduler, random_state)
    if best is None:
        # no tree with a defined quality, predict the majority class
        weights = dataset.new_coverage().weights.astype(float)
        best = DecisionTree(TreeNode(0, class_distribution(dataset, weights)))
    logger.debug("best tree of iteration %d with %d nodes and quality %s "
                 "after %d iterations (%d restarts)", best.iteration,
                 best.size, best.quality, iterations, activity.restarts)
    best.iteration = iterations
    return best


def cover(dataset: Dataset, config: SearchConfiguration,
          strategies: Strategies, variant: str = 'rule',
          ordered: bool = True, edge_pheromone: bool = False,
          archive: bool = False, random_state=None):
    """Learn a model from `dataset`.

    :param variant: 'rule' for `sequential_covering`, 'list' for
        `pittsburgh_covering` and 'tree' for `tree_covering`.
    :param archive: Sample the conditions from archives, see
        `sequential_covering` and `pittsburgh_covering`. Ignored for trees.
    :return: The learned `RuleList` (or `DecisionTree`); its `iteration` is
        the total number of search iterations run.
    """
    if variant == 'rule':
        return sequential_covering(dataset, config, strategies,
                                   edge_pheromone, archive, random_state)
    elif variant == 'list':
        return pittsburgh_covering(dataset, config, strategies, ordered,
                                   archive, random_state)
    elif variant == 'tree':
        return tree_covering(dataset, config, strategies, random_state)
    raise ValueError("Unknown covering variant %r, expected one of %s"
                     % (variant, ', '.join(VARIANTS)))
