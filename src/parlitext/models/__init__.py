# Model implementations: party classifiers and text scaling

from .logistic_regression import (
    DfmLogitEstimator,
    RegularizedLogit,
    create_logit_factory,
    lambda_path,
)
from .wordfish import Wordfish
from .wordscores import Wordscores

__all__ = [
    "DfmLogitEstimator",
    "RegularizedLogit",
    "create_logit_factory",
    "lambda_path",
    "Wordfish",
    "Wordscores",
]
