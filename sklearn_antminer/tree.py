"""
Implementation of ACO rule discovery:
Decision trees (Ant-Tree-Miner), i.e. the tree model, the pheromone graph
its ants walk on, and C4.5's pessimistic pruning.

Missing values are handled like C4.5 does: an instance with a missing value
goes down every branch of a node, with its weight split in proportion to the
(weighted) number of known instances of each branch.
"""

import copy
import math
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from sklearn_antminer.common import \
    Condition, Coverage, Dataset, NOT_COVERED, RULE_COVERED, _quality_key
from sklearn_antminer.util import pessimistic_errors

# pheromone key of the choice of the root attribute
ROOT = ()


def coverage_of(weights: np.ndarray) -> Coverage:
    """:return: A coverage flagging the instances of positive weight
        RULE_COVERED, as seen by heuristics and interval builders.
    """
    return Coverage(np.where(weights > 0, RULE_COVERED, NOT_COVERED), weights)


def split_weights(conditions: Sequence[Condition], column: np.ndarray,
                  weights: np.ndarray) -> List[np.ndarray]:
    """:return: The instance weights of each branch of `conditions`.
        Instances with a missing value in `column` get the fraction of their
        weight matching the share of the branch among the known instances.
    """
    missing = np.isnan(column)
    known = weights[~missing].sum()
    branches = []
    for condition in conditions:
        satisfied = np.where(condition.satisfies(column), weights, 0.0)
        fraction = satisfied.sum() / known if known > 0 else 0.0
        branches.append(satisfied + np.where(missing, weights * fraction, 0.0))
    return branches


def class_distribution(dataset: Dataset, weights: np.ndarray) -> np.ndarray:
    """:return: The weighted class counts of the instances of positive
        weight.
    """
    return dataset.class_counts(weights > 0, weights).astype(float)


class TreeNode:
    """A node of a decision tree.

    Attributes
    -----
    level : int
        Depth of the node, the root is at level 0.

    distribution : np.ndarray of shape (n_classes,)
        Weighted class counts of the training instances reaching the node.

    head : int
        The class index predicted by a leaf.

    attribute : int
        The attribute tested by an internal node, -1 for leaves.

    conditions, children : list
        One condition per branch of an internal node, and the node each
        branch leads to. Both empty for leaves.

    weights : np.ndarray or None
        Instance weights reaching an internal node, used to recompute the
        distributions when pruning.
    """

    def __init__(self, level: int, distribution: np.ndarray,
                 head: int = None, attribute: int = -1,
                 conditions: List[Condition] = None,
                 children: List['TreeNode'] = None,
                 weights: np.ndarray = None):
        self.level = level
        self.distribution = distribution
        self.head = int(np.argmax(distribution)) if head is None else head
        self.attribute = attribute
        self.conditions = conditions if conditions is not None else []
        self.children = children if children is not None else []
        self.weights = weights

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def total(self) -> float:
        return float(self.distribution.sum())

    def nodes(self) -> Iterable['TreeNode']:
        """Pre-order traversal of the subtree."""
        yield self
        for child in self.children:
            yield from child.nodes()

    def errors(self) -> float:
        """:return: The (weighted) training errors of the subtree."""
        if self.is_leaf:
            return self.total - float(self.distribution[self.head])
        return sum(child.errors() for child in self.children)

    def estimated_errors(self) -> float:
        """:return: The errors of the subtree using C4.5's pessimistic
            estimate for each leaf.
        """
        if self.is_leaf:
            errors = self.errors()
            return errors + pessimistic_errors(self.total, errors)
        return sum(child.estimated_errors() for child in self.children)

    def make_leaf(self) -> 'TreeNode':
        """:return: A leaf predicting the majority class of this node."""
        return TreeNode(self.level, self.distribution)

    def frequent_branch(self) -> int:
        """:return: The index of the child reached by most instances, ties
            go to the later child.
        """
        index = 0
        for i, child in enumerate(self.children):
            if child.total >= self.children[index].total:
                index = i
        return index

    def set_level(self, level: int) -> None:
        self.level = level
        for child in self.children:
            child.set_level(level + 1)

    def accumulate(self, X: np.ndarray, weights: np.ndarray,
                   probabilities: np.ndarray) -> None:
        """Add the class probabilities of the leaves reached by the samples
        of `X`, scaled by `weights`, to `probabilities`.

        Samples with a missing value, or a value no branch accepts, go down
        every branch in proportion to the instances seen in training.
        """
        if not weights.any():
            return
        if self.is_leaf:
            if self.total > 0:
                probabilities += np.outer(weights,
                                          self.distribution / self.total)
            else:
                probabilities[:, self.head] += weights
            return
        column = X[:, self.attribute]
        satisfied = [condition.satisfies(column)
                     for condition in self.conditions]
        unrouted = ~np.logical_or.reduce(satisfied)
        for branch, child in zip(satisfied, self.children):
            share = child.total / self.total if self.total > 0 \
                else 1.0 / len(self.children)
            child.accumulate(
                X, weights * branch + weights * unrouted * share,
                probabilities)

    def __repr__(self):
        if self.is_leaf:
            return 'TreeNode(leaf, head=%d)' % self.head
        return 'TreeNode(%d, %d branches)' % (self.attribute,
                                              len(self.children))


def branch_key(node: TreeNode, condition: Condition) -> Tuple:
    """:return: The pheromone key of the choice of the attribute following
        `condition` of `node`.
    """
    return node.attribute, condition.relation, condition.value, node.level


class DecisionTree:
    """A decision tree built by an ant.

    Attributes
    -----
    root : TreeNode

    quality : float
        Set by a `ListMeasure`. NaN until evaluated.

    iteration : int
        The iteration of the search the tree was created in.
    """

    def __init__(self, root: TreeNode):
        self.root = root
        self.quality = math.nan
        self.iteration = 0

    @property
    def size(self) -> int:
        """The number of nodes."""
        return sum(1 for _ in self.root.nodes())

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in self.root.nodes() if node.is_leaf)

    def sort_key(self):
        """Higher quality first, ties broken by fewer nodes."""
        return _quality_key(self.quality), -self.size

    def branches(self) -> Iterable[Tuple[Tuple, int]]:
        """:return: `(key, attribute)` of every choice of an attribute made
            while building the tree, see `branch_key`.
        """
        if self.root.is_leaf:
            return
        yield ROOT, self.root.attribute
        for node in self.root.nodes():
            for condition, child in zip(node.conditions, node.children):
                if not child.is_leaf:
                    yield branch_key(node, condition), child.attribute

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        probabilities = np.zeros((len(X), len(self.root.distribution)))
        self.root.accumulate(X, np.ones(len(X)), probabilities)
        return probabilities

    def predict(self, X: np.ndarray) -> np.ndarray:
        """:return: The class index with the highest probability for each
            sample in `X`.
        """
        return np.argmax(self.predict_proba(X), axis=1)

    def to_string(self, target=None,
                  feature_names: Sequence[str] = None,
                  class_names: Sequence[str] = None) -> str:
        def head(node):
            return (target.to_string(node.head, class_names)
                    if target is not None else str(node.head))

        def lines(node, depth):
            for condition, child in zip(node.conditions, node.children):
                text = '|   ' * depth + condition.to_string(feature_names)
                if child.is_leaf:
                    yield text + ': ' + head(child)
                else:
                    yield text
                    yield from lines(child, depth + 1)

        if self.root.is_leaf:
            return '(true): ' + head(self.root)
        return '\n'.join(lines(self.root, 0))

    def __repr__(self):
        return 'DecisionTree(size=%d, quality=%r)' % (self.size, self.quality)


class TreeGraph:
    """The pheromone of Ant-Tree-Miner: for every branch of a tree (see
    `branch_key`) one value per attribute, telling how desirable testing the
    attribute after that branch is.

    Branches not reinforced yet read `template`, the initial values.
    """

    INITIAL = 10.0

    def __init__(self, n_features: int):
        self.template = np.full(n_features, self.INITIAL)
        self.entries = {}

    @property
    def size(self) -> int:
        return len(self.template)

    def pheromone(self, key) -> np.ndarray:
        """:return: The values after branch `key` (read only use)."""
        return self.entries.get(key, self.template)

    def entry(self, key, fill: float) -> np.ndarray:
        """:return: The writable values after branch `key`, created filled
            with `fill` if missing.
        """
        if key not in self.entries:
            self.entries[key] = np.full(self.size, fill)
        return self.entries[key]

    def initialise(self) -> None:
        self.template[:] = self.INITIAL
        self.entries = {}

    def __repr__(self):
        return 'TreeGraph(size=%d, entries=%d)' % (self.size,
                                                   len(self.entries))


def recalculate(node: TreeNode, dataset: Dataset,
                weights: np.ndarray) -> None:
    """Redistribute the instances of `weights` over the subtree of `node`,
    updating all distributions and the heads of the leaves. A leaf reached
    by no instance predicts the majority class of its parent.
    """
    node.distribution = class_distribution(dataset, weights)
    node.head = int(np.argmax(node.distribution))
    if node.is_leaf:
        return
    node.weights = weights
    branches = split_weights(node.conditions,
                             dataset.X[:, node.attribute], weights)
    for child, branch in zip(node.children, branches):
        recalculate(child, dataset, branch)
        if child.is_leaf and child.total == 0:
            child.head = node.head


def pessimistic_prune(node: TreeNode, dataset: Dataset,
                      margin: float = 0.1) -> TreeNode:
    """C4.5's pessimistic pruning, bottom-up: a subtree is replaced by a leaf
    or by its most frequent branch if that does not increase the estimated
    errors by more than `margin`.

    :return: `node` or its replacement.
    """
    if node.is_leaf:
        return node
    node.children = [pessimistic_prune(child, dataset, margin)
                     for child in node.children]

    tree_errors = node.estimated_errors()
    leaf = node.make_leaf()
    leaf_errors = leaf.estimated_errors()
    frequent = node.children[node.frequent_branch()]
    subtree: Optional[TreeNode] = None
    if frequent.is_leaf:
        branch_errors = leaf_errors
    else:
        subtree = copy.deepcopy(frequent)
        recalculate(subtree, dataset, node.weights)
        subtree.set_level(node.level)
        branch_errors = subtree.estimated_errors()

    if leaf_errors <= tree_errors + margin \
            and leaf_errors <= branch_errors + margin:
        return leaf
    if subtree is not None and branch_errors <= tree_errors + margin:
        return pessimistic_prune(subtree, dataset, margin)
    return node
