"""Implementation of Ant Colony Optimization (ACO) rule discovery.

Variants: Ant-Miner (rule by rule sequential covering) and Ant-MinerMA
(the same, sampling the thresholds of numerical features from archives),
cAnt-MinerPB (whole rule lists per ant, MAX-MIN pheromone per list position)
and its archive based variant sampling the conditions from per-vertex
archives, regression rules rule by rule or as whole lists, and Ant-Tree-Miner
(decision trees).

Limitations / Assumptions
=====

- no sparse input
- missing values (NaN) are allowed, but never satisfy a rule's condition;
  a decision tree sends them down every branch
- limited operator set:
    - for categorical only ==
    - for numerical only <= and >
- numerical (i.e. non-categorical) features always assumed to be ordinal
- only float data supported
- explicit default rule, i.e. the classifier cannot abstain from making a
  prediction
- decision trees for classification only (`AntTreeMinerClassifier`)
- runs with more than one worker thread (`n_jobs`) are not exactly
  reproducible
"""

__all__ = ['abstract', 'activity', 'archive', 'common', 'concrete',
           'construction', 'covering', 'graph', 'pheromone', 'scheduler',
           'tests', 'tree', 'util']
