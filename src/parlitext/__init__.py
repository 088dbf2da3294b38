"""
Text-as-data tools for parliamentary speech.

This package estimates how distinguishable parties are from their speeches
in each legislative term, and places debate speakers on a single
ideological dimension.

Key modules:
- prepare_dataset: Corpus loading, cleaning, party filtering and balancing
- transcripts: Plain-text debate transcript parsing
- core.dfm: Document-feature matrices
- core.cross_validation / core.metrics: CV framework and evaluation metrics
- models: Penalized logistic regression, Wordscores, Wordfish
- experiments: Per-term classification, scaling, tuning and plots
"""

__version__ = "0.1.0"
