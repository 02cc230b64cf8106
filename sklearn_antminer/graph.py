"""
Implementation of ACO rule discovery:
The construction graph ants walk on, and its (multi-level) pheromone matrix.
"""

from typing import List, Optional

import numpy as np

from sklearn_antminer.common import Condition, Dataset

# indices of the virtual vertices
START = 0
END = 1


class Vertex:
    """A vertex of a construction graph.

    Attributes
    -----
    attribute : int
        The attribute index, -1 for the virtual start/end vertices.

    condition : Condition or None
        The fixed condition of a categorical term vertex. None for continuous
        vertices (resolved by an `IntervalBuilder` during construction),
        archive backed vertices and the virtual vertices.

    variable : archive.Variable or None
        The uninformed prior of an archive backed vertex.

    archives : list of archive.Variable
        The per-level archives of an archive backed vertex, created on the
        first `update` of a level.
    """

    def __init__(self, attribute: int = -1,
                 condition: Optional[Condition] = None,
                 variable=None):
        self.attribute = attribute
        self.condition = condition
        self.variable = variable
        self.archives: List = []

    @property
    def is_virtual(self) -> bool:
        return self.attribute < 0

    def variable_at(self, level: int):
        """:return: The archive of `level`, the initial variable if the level
            has not been updated yet.
        """
        if level < len(self.archives) and self.archives[level] is not None:
            return self.archives[level]
        return self.variable

    def sample(self, level: int, rng: np.random.RandomState
               ) -> Optional[Condition]:
        """Draw a condition from the archive of `level`. Vertices without an
        archive always return their fixed condition.

        :return: A `Condition`, or None if the domain is degenerate.
        """
        if self.variable is None:
            return self.condition
        return self.variable_at(level).sample(rng)

    def update(self, level: int, condition: Condition, quality: float) -> None:
        """Push an observation into the archive of `level`."""
        while len(self.archives) <= level:
            self.archives.append(None)
        if self.archives[level] is None:
            self.archives[level] = self.variable.copy()
        self.archives[level].add(condition, quality)

    def reset(self) -> None:
        """Forget all archived observations."""
        self.archives = []

    def __repr__(self):
        if self.is_virtual:
            return 'Vertex(virtual)'
        return 'Vertex(%d, %r)' % (self.attribute,
                                   self.condition or self.variable)


class ConstructionGraph:
    """Directed graph of candidate terms with a pheromone value per edge and
    level.

    Vertex `START` (0) and `END` (1) are virtual and are never adjacent to
    each other. Levels correspond to the position of a rule in a rule list;
    levels never written to return the initial (uniform) values.

    Attributes
    -----
    vertices : list of Vertex

    edges : np.ndarray of shape (size, size) and dtype bool
        `edges[i, j]` iff an ant may go from vertex `i` to vertex `j`.

    initial : np.ndarray of shape (size, size)
        The values set by `initialise`, `1 / out-degree` on every edge.

    pheromone : np.ndarray of shape (n_levels, size, size)
        The per-level pheromone values.
    """

    def __init__(self, vertices: List[Vertex], edges: np.ndarray):
        self.vertices = vertices
        self.edges = edges
        self.initialise()

    @classmethod
    def from_dataset(cls, dataset: Dataset, variables: List = None
                     ) -> 'ConstructionGraph':
        """:return: A graph with one vertex per categorical value and one per
            continuous attribute, with an edge between all vertices of
            different attributes.

        :param variables: If given, the continuous vertices are archive
            backed, sampling their thresholds from `variables[attribute]`
            instead of asking an interval builder.
        """
        vertices = [Vertex(), Vertex()]
        for attribute in range(dataset.n_features):
            if dataset.categorical_mask[attribute]:
                vertices.extend(
                    Vertex(attribute, Condition(attribute, '==', value))
                    for value in dataset.values(attribute))
            else:
                vertices.append(Vertex(
                    attribute,
                    variable=variables[attribute] if variables else None))
        attributes = np.array([v.attribute for v in vertices])
        edges = attributes[:, np.newaxis] != attributes[np.newaxis, :]
        edges[:, [START, END]] = False
        edges[END, :] = False
        return cls(vertices, edges)

    @classmethod
    def from_archive(cls, dataset: Dataset, variables: List
                     ) -> 'ConstructionGraph':
        """:return: A graph with one archive backed vertex per attribute
            (holding `variables[attribute]`), where every vertex but `END` can
            go to `END`.
        """
        vertices = [Vertex(), Vertex()]
        vertices.extend(Vertex(attribute, variable=variable)
                        for attribute, variable in enumerate(variables))
        size = len(vertices)
        edges = ~np.eye(size, dtype=bool)
        edges[:, START] = False
        edges[END, :] = False
        edges[START, END] = False
        return cls(vertices, edges)

    @property
    def size(self) -> int:
        return len(self.vertices)

    @property
    def n_levels(self) -> int:
        return self.pheromone.shape[0]

    def vertex(self, i: int) -> Vertex:
        return self.vertices[i]

    def attribute_mask(self, attribute: int) -> np.ndarray:
        """:return: A mask of the vertices testing `attribute`."""
        return np.array([v.attribute == attribute for v in self.vertices])

    def initialise(self) -> None:
        """Set every outgoing pheromone set to `1 / out-degree`, drop all
        levels and all archived observations.
        """
        out_degree = self.edges.sum(axis=1, keepdims=True)
        with np.errstate(divide='ignore', invalid='ignore'):
            self.initial = np.where(self.edges, 1.0 / out_degree, 0.0)
        self.pheromone = self.initial[np.newaxis].copy()
        for vertex in self.vertices:
            vertex.reset()

    def ensure_levels(self, n_levels: int) -> None:
        """Grow the pheromone matrix to at least `n_levels` levels, new levels
        start with the initial values.
        """
        missing = n_levels - self.n_levels
        if missing > 0:
            self.pheromone = np.concatenate(
                [self.pheromone, np.repeat(self.initial[np.newaxis], missing,
                                           axis=0)])

    def level(self, level: int) -> np.ndarray:
        """:return: The pheromone matrix of `level` (read only use)."""
        if level < self.n_levels:
            return self.pheromone[level]
        return self.initial

    def matrix(self, i: int, j: int, level: int = 0) -> float:
        """:return: The pheromone of edge `i -> j` at `level`."""
        return float(self.level(level)[i, j])

    def set(self, i: int, j: int, value: float, level: int = 0) -> None:
        if not np.isfinite(value):
            raise ValueError("Invalid pheromone value %s for edge %d -> %d"
                             % (value, i, j))
        if not self.edges[i, j]:
            raise ValueError("No edge %d -> %d" % (i, j))
        self.ensure_levels(level + 1)
        self.pheromone[level, i, j] = value

    def __repr__(self):
        return 'ConstructionGraph(size=%d, levels=%d)' % (self.size,
                                                         self.n_levels)
