"""
Boston Housing MARS Analysis
============================

Exploratory analysis and MARS regression on the Boston housing dataset.

Modules:
    - data_loader: Dataset ingestion and validation
    - eda: Exploratory Data Analysis (Phase 1)
    - preprocessing: Factor conversion, scaling and stratified split (Phase 2)
    - mars: MARS estimator (forward pass, GCV pruning)
    - model: MARS model training on DataFrames (Phase 3)
    - evaluation: Test-set metrics and residual diagnostics (Phases 4 and 7)
    - tuning: Cross-validated tuning of nprune (Phase 5)
    - interpretation: Variable importance and partial dependence (Phase 6)
"""

__version__ = "1.0.0"
__author__ = "Housing Analytics Team"
