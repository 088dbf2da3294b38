# Experimental components: per-term classification, scaling and tuning

from .hyperparameter_tuning import HyperparameterTuner, HYPERPARAMETER_GRIDS, HYPERPARAMETER_GRIDS_FAST
from .polarization import PolarizationExperiment, polarization_index
from .scaling import ScalingExperiment
from .experimental_pipeline import ExperimentalPipeline

__all__ = [
    "HyperparameterTuner",
    "HYPERPARAMETER_GRIDS",
    "HYPERPARAMETER_GRIDS_FAST",
    "PolarizationExperiment",
    "polarization_index",
    "ScalingExperiment",
    "ExperimentalPipeline",
]
