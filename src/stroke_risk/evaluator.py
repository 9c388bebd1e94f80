from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import accuracy_score, brier_score_loss, confusion_matrix, roc_auc_score

from .schema import NEGATIVE, POSITIVE
from .utils.logger import get_logger
from .workflow import TrainedModel, Workflow


def _predicted(p_pos: np.ndarray) -> np.ndarray:
    # exact ties go to the negative class
    return (np.asarray(p_pos, dtype=float) > 0.5).astype(int)


def accuracy(y_true: np.ndarray, p_pos: np.ndarray) -> float:
    return float(accuracy_score(np.asarray(y_true).astype(int), _predicted(p_pos)))


def roc_auc(y_true: np.ndarray, p_pos: np.ndarray) -> float:
    """ROC AUC, or NaN when `y_true` holds a single class."""
    y_true = np.asarray(y_true).astype(int)
    if len(np.unique(y_true)) < 2:
        return float("nan")
    return float(roc_auc_score(y_true, np.asarray(p_pos, dtype=float)))


def brier(y_true: np.ndarray, p_pos: np.ndarray) -> float:
    return float(brier_score_loss(np.asarray(y_true).astype(int), np.asarray(p_pos, dtype=float)))


def confusion_counts(y_true: np.ndarray, p_pos: np.ndarray) -> Dict[str, int]:
    tn, fp, fn, tp = confusion_matrix(
        np.asarray(y_true).astype(int), _predicted(p_pos), labels=[0, 1]
    ).ravel()
    return {"tp": int(tp), "fp": int(fp), "tn": int(tn), "fn": int(fn)}


@dataclass
class LastFitResult:
    """Final model refit on the training table and its one-time test scores."""
    model: TrainedModel
    metrics: Dict[str, float]
    confusion: Dict[str, int]
    predictions: pd.DataFrame


class Evaluator:
    """Aggregate tuning results, pick the best mtry and score the final model on the test table."""

    def __init__(
        self,
        metrics_path: Optional[str] = None,
        figures_dir: Optional[str] = None,
        verbose: bool = True,
    ):
        self.metrics_path = metrics_path
        self.figures_dir = figures_dir
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def collect_metrics(records: pd.DataFrame) -> pd.DataFrame:
        """Mean, count and standard error of every metric per mtry."""
        grouped = records.groupby(["mtry", "metric"])["estimate"]
        summary = grouped.agg(mean="mean", n="count", std="std").reset_index()
        summary["std_err"] = summary["std"] / np.sqrt(summary["n"])
        return summary.drop(columns="std").sort_values(["metric", "mtry"]).reset_index(drop=True)

    def select_best(self, records: pd.DataFrame, metric: str = "accuracy") -> int:
        """mtry with the highest mean `metric`; ties go to the smallest mtry."""
        summary = self.collect_metrics(records)
        candidates = summary[(summary["metric"] == metric) & summary["mean"].notna()]
        if candidates.empty:
            raise ValueError(f"No '{metric}' estimates to select from")
        best = candidates.sort_values(["mean", "mtry"], ascending=[False, True]).iloc[0]
        if self.verbose:
            self.logger.info(
                f"Best mtry={int(best['mtry'])} (mean {metric}={best['mean']:.4f} "
                f"+/- {best['std_err']:.4f})"
            )
        return int(best["mtry"])

    def last_fit(
        self,
        workflow: Workflow,
        params: Dict[str, Any],
        train: pd.DataFrame,
        test: pd.DataFrame,
        seed: Optional[int] = None,
    ) -> LastFitResult:
        """Finalize with `params`, refit on all of `train` and score once on `test`."""
        if seed is None:
            self.logger.warning("No seed given to last_fit; the final forest is not reproducible")
        model = workflow.finalize(params).fit(train, seed=seed)
        predictions = model.augment(test)

        y_true = (test[model.recipe.outcome] == POSITIVE).astype(int).to_numpy()
        p_pos = predictions[f".pred_{POSITIVE}"].to_numpy()

        metrics = {
            "accuracy": accuracy(y_true, p_pos),
            "roc_auc": roc_auc(y_true, p_pos),
            "brier": brier(y_true, p_pos),
        }
        confusion = confusion_counts(y_true, p_pos)

        if self.metrics_path:
            self._save_metrics(metrics, confusion, model.mtry)
        if self.figures_dir:
            self._plot_confusion_matrix(confusion)

        return LastFitResult(model=model, metrics=metrics, confusion=confusion, predictions=predictions)

    def _save_metrics(self, metrics: Dict[str, float], confusion: Dict[str, int], mtry: int) -> None:
        directory = os.path.dirname(self.metrics_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        payload = {"mtry": mtry, **metrics, "confusion_matrix": confusion}
        with open(self.metrics_path, "w") as f:
            json.dump(payload, f, indent=4)
        if self.verbose:
            self.logger.info(f"Saved metrics: {self.metrics_path}")

    def _plot_confusion_matrix(self, confusion: Dict[str, int]) -> str:
        """Plot the test confusion matrix (rows actual, columns predicted). Returns saved path."""
        cm = np.array([[confusion["tn"], confusion["fp"]], [confusion["fn"], confusion["tp"]]])

        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt="d",
            cmap="Blues",
            xticklabels=[NEGATIVE, POSITIVE],
            yticklabels=[NEGATIVE, POSITIVE],
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title("Confusion Matrix (test)")

        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, "confusion_matrix.png")

        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()

        if self.verbose:
            self.logger.info(f"Saved confusion matrix: {path}")

        return path
