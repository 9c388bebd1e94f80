from typing import Optional, Sequence

import optuna
import pandas as pd

from .evaluator import Evaluator
from .model_trainer import ModelTrainer
from .utils.logger import get_logger


class HyperTuner:
    """Grid search over mtry, run as an Optuna study with one trial per grid value."""

    def __init__(
        self,
        trainer: ModelTrainer,
        grid: Sequence[int] = (4, 5, 6),
        metric: str = "accuracy",
        seed: Optional[int] = None,
    ):
        self.trainer = trainer
        self.grid = sorted({int(v) for v in grid})
        self.metric = metric
        self.seed = seed
        self.logger = get_logger(self.__class__.__name__)
        self.records_: Optional[pd.DataFrame] = None
        self.best_mtry_: Optional[int] = None

    def tune(self, evaluator: Optional[Evaluator] = None) -> int:
        """
        Cross-validate every grid value and return the best mtry.
        All (mtry, fold, metric) records are kept in `records_`.
        """
        if not self.grid:
            raise ValueError("Tuning grid is empty")
        evaluator = evaluator or Evaluator(verbose=False)

        self.logger.info(
            f"Starting grid search over mtry={self.grid} "
            f"({len(self.trainer.folds)}-fold CV, metric={self.metric})"
        )
        optuna.logging.set_verbosity(optuna.logging.WARNING)
        sampler = optuna.samplers.GridSampler({"mtry": self.grid}, seed=self.seed)
        study = optuna.create_study(direction="maximize", sampler=sampler)

        collected: list[pd.DataFrame] = []

        def objective(trial: optuna.Trial) -> float:
            mtry = trial.suggest_categorical("mtry", self.grid)
            records = self.trainer.cross_validate(mtry)
            collected.append(records)
            return float(records.loc[records["metric"] == self.metric, "estimate"].mean())

        study.optimize(objective, n_trials=len(self.grid))

        self.records_ = (
            pd.concat(collected, ignore_index=True)
            .sort_values(["mtry", "fold", "metric"])
            .reset_index(drop=True)
        )
        self.best_mtry_ = evaluator.select_best(self.records_, metric=self.metric)
        return self.best_mtry_
