"""
Stroke Risk — Random-Forest Classification Pipeline

This package loads the stroke dataset, cleans and completes missing values
by chained multiple imputation, tunes a random forest's mtry with
cross-validation and scores the final model on a held-out test split.

Modules:
    config              — Load YAML configuration safely.
    schema              — Column names and categorical domains.
    data_loader         — Read the CSV and check its header.
    cleaner             — Resolve sentinels, coerce types, recode the outcome.
    imputer             — Chained-equation multiple imputation.
    splitter            — Seeded train/test split and K folds.
    recipe              — Normalize, k-NN impute and dummy-encode predictors.
    workflow            — Immutable recipe + forest builder and trained model.
    model_trainer       — Fit the (mtry x fold) grid and record metrics.
    hyper_tuner         — Drive the grid search as an Optuna study.
    evaluator           — Aggregate CV metrics, select mtry, score on test.
    predictor           — Single-record inference from a saved bundle.
    api                 — FastAPI service around the predictor.
    pipeline            — Orchestrates all components.
    utils.logger        — Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader
from .cleaner import Cleaner
from .imputer import ChainedImputer
from .splitter import Fold, Splitter
from .recipe import DummyEncode, ImputeKnn, NormalizeNumeric, Recipe
from .workflow import ForestSpec, TrainedModel, Workflow
from .model_trainer import ModelTrainer
from .evaluator import Evaluator, LastFitResult
from .hyper_tuner import HyperTuner
from .predictor import StrokePredictor, prepare_record
from .pipeline import PipelineRunner

__all__ = [
    "Config",
    "DataLoader",
    "Cleaner",
    "ChainedImputer",
    "Fold",
    "Splitter",
    "NormalizeNumeric",
    "ImputeKnn",
    "DummyEncode",
    "Recipe",
    "ForestSpec",
    "TrainedModel",
    "Workflow",
    "ModelTrainer",
    "Evaluator",
    "LastFitResult",
    "HyperTuner",
    "StrokePredictor",
    "prepare_record",
    "PipelineRunner",
]
