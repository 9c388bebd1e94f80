from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .evaluator import accuracy, roc_auc
from .schema import POSITIVE
from .splitter import Fold
from .utils.logger import get_logger
from .workflow import Workflow

RECORD_COLUMNS = ["mtry", "fold", "metric", "estimate"]


def unit_seed(seed: Optional[int], mtry: int, fold_id: int) -> Optional[int]:
    """Seed for one (mtry, fold) unit, independent of the order units run in."""
    if seed is None:
        return None
    return int(np.random.SeedSequence([seed, mtry, fold_id]).generate_state(1)[0])


def _fit_and_score(workflow: Workflow, mtry: int, fold: Fold, seed: Optional[int]) -> list[dict]:
    model = workflow.finalize({"mtry": mtry}).fit(fold.train, seed=unit_seed(seed, mtry, fold.fold_id))
    proba = model.predict_proba(fold.validation)[f".pred_{POSITIVE}"].to_numpy()
    y_true = (fold.validation[model.recipe.outcome] == POSITIVE).astype(int).to_numpy()
    return [
        {"mtry": mtry, "fold": fold.fold_id, "metric": "accuracy", "estimate": accuracy(y_true, proba)},
        {"mtry": mtry, "fold": fold.fold_id, "metric": "roc_auc", "estimate": roc_auc(y_true, proba)},
    ]


class ModelTrainer:
    """
    Grid fitting over cross-validation folds.

    For each candidate `mtry` and each fold the workflow (recipe + forest) is
    fit on the fold's training rows only and scored on its validation rows.
    Units share no state, so they can run through joblib in parallel.
    """

    def __init__(
        self,
        workflow: Workflow,
        folds: Sequence[Fold],
        seed: Optional[int] = None,
        n_jobs: int = 1,
    ):
        self.workflow = workflow
        self.folds = list(folds)
        self.seed = seed
        self.n_jobs = n_jobs
        self.logger = get_logger(self.__class__.__name__)
        if seed is None:
            self.logger.warning("No seed given to ModelTrainer; forests are not reproducible")

    def tune_grid(self, grid: Sequence[int]) -> pd.DataFrame:
        """Return one metric record per (mtry, fold, metric)."""
        units = [(int(mtry), fold) for mtry in grid for fold in self.folds]
        self.logger.info(
            f"Fitting {len(units)} units ({len(grid)} mtry values x {len(self.folds)} folds), n_jobs={self.n_jobs}"
        )
        results = Parallel(n_jobs=self.n_jobs)(
            delayed(_fit_and_score)(self.workflow, mtry, fold, self.seed) for mtry, fold in units
        )
        records = pd.DataFrame([row for rows in results for row in rows], columns=RECORD_COLUMNS)

        undefined = records[(records["metric"] == "roc_auc") & records["estimate"].isna()]
        for _, row in undefined.iterrows():
            self.logger.warning(
                f"ROC AUC undefined for mtry={row['mtry']} fold {row['fold']}: single-class validation fold"
            )
        return records

    def cross_validate(self, mtry: int) -> pd.DataFrame:
        records = self.tune_grid([mtry])
        means = records.groupby("metric")["estimate"].mean()
        self.logger.info(
            f"mtry={mtry}: mean accuracy={means['accuracy']:.4f}, mean ROC-AUC={means['roc_auc']:.4f}"
        )
        return records
