# models_registry.py
from typing import Any, Dict, List, Tuple

from .logistic_regression import PENALTY_ALIASES, create_logit_factory

# dfm options shared by every grid entry
BASE_DFM = {
    "stopwords": "english",
    "remove_numbers": True,
    "min_docfreq": 2,
    "weight": "count",
    "standardize": True,
}


def canonical_model(model: str) -> str:
    name = model.lower()
    name = PENALTY_ALIASES.get(name, name)
    if name in {"lasso", "ridge", "elasticnet"}:
        return name
    raise ValueError(f"Unknown model: {model}")


def get_factory_and_grid(model: str, fast: bool = True) -> Tuple:
    """
    Return (factory, param_grid). factory: params(dict) -> estimator
    param_grid: List[dict]; lambda values are on the glmnet scale.
    """
    name = canonical_model(model)
    factory = create_logit_factory({"penalty": name, **BASE_DFM})

    lams = (0.1, 0.01, 0.001) if fast else (0.3, 0.1, 0.03, 0.01, 0.003, 0.001)
    grid: List[Dict[str, Any]]
    if name == "elasticnet":
        alphas = (0.5,) if fast else (0.25, 0.5, 0.75)
        grid = [{"lam": lam, "alpha": a} for lam in lams for a in alphas]
    else:
        grid = [{"lam": lam} for lam in lams]

    if not fast:
        grid = [
            {**g, "ngrams": ng, "stem": st}
            for g in grid
            for ng in ((1, 1), (1, 2))
            for st in (False, True)
        ]
    return factory, grid
