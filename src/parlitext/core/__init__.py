# Core components: document-feature matrices, cross-validation, metrics

from .cross_validation import (
    CVResult,
    PathCVResult,
    cross_validate_path,
    nested_cv,
    stratified_kfold_indices,
)
from .dfm import (
    DEFAULT_DFM_PARAMS,
    Dfm,
    DfmBuilder,
    Tokenizer,
    build_dfm,
    dfm_group,
    dfm_match,
    dfm_trim,
    dfm_weight,
    topfeatures,
)
from .metrics import (
    accuracy_score,
    precision_score,
    recall_score,
    f1_score,
    confusion_matrix,
    classification_report,
    compute_all_metrics,
    per_class_metrics,
)

__all__ = [
    "CVResult",
    "PathCVResult",
    "cross_validate_path",
    "nested_cv",
    "stratified_kfold_indices",
    "DEFAULT_DFM_PARAMS",
    "Dfm",
    "DfmBuilder",
    "Tokenizer",
    "build_dfm",
    "dfm_group",
    "dfm_match",
    "dfm_trim",
    "dfm_weight",
    "topfeatures",
    "accuracy_score",
    "precision_score",
    "recall_score",
    "f1_score",
    "confusion_matrix",
    "classification_report",
    "compute_all_metrics",
    "per_class_metrics",
]
