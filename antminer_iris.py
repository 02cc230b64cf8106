# script fitting Ant-Miner, cAnt-MinerPB and Ant-Tree-Miner on the iris dataset
# and calculating usual evaluation measures on the training data

import logging

from sklearn.datasets import load_iris
from sklearn.metrics import confusion_matrix, classification_report
from sklearn.utils import Bunch

from sklearn_antminer.concrete import \
    AntMinerClassifier, AntTreeMinerClassifier, PittsburghAntMinerClassifier

logging.basicConfig(level=logging.INFO)
logging.getLogger('sklearn_antminer.covering').setLevel(logging.DEBUG)

iris = load_iris()  # type: Bunch

for est in [AntMinerClassifier(random_state=1),
            PittsburghAntMinerClassifier(random_state=1),
            AntTreeMinerClassifier(random_state=1)]:
    est.fit(iris.data, iris.target)

    # print learning results
    print(flush=True)
    print("# model of {} after {} iterations #".format(type(est).__name__,
                                                       est.n_iterations_))
    print(est.export_text(iris.feature_names, list(iris.target_names)))

    print("\n" + '# "evaluation" on training set #')
    pred = est.predict(iris.data)
    print(confusion_matrix(iris.target, pred))
    print(classification_report(iris.target, pred,
                                target_names=iris.target_names))
