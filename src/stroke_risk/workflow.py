from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Optional

import joblib
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from .recipe import Recipe
from .schema import NEGATIVE, POSITIVE
from .utils.logger import get_logger

BUNDLE_VERSION = 1


@dataclass(frozen=True)
class ForestSpec:
    """Random-forest specification. `mtry=None` marks it as still to be tuned."""
    mtry: Optional[int] = None
    trees: int = 500
    min_n: int = 1
    n_jobs: int = 1

    def finalize(self, params: dict[str, Any]) -> "ForestSpec":
        unknown = sorted(set(params) - {f.name for f in dataclasses.fields(self)})
        if unknown:
            raise ValueError(f"Unknown forest parameters: {unknown}")
        return dataclasses.replace(self, **params)

    def build(self, seed: Optional[int] = None) -> RandomForestClassifier:
        if self.mtry is None:
            raise ValueError("mtry is still marked for tuning; finalize the specification first")
        return RandomForestClassifier(
            n_estimators=self.trees,
            criterion="gini",
            max_features=int(self.mtry),
            min_samples_leaf=self.min_n,
            bootstrap=True,
            random_state=seed,
            n_jobs=self.n_jobs,
        )


@dataclass(frozen=True)
class Workflow:
    """Recipe plus model specification. Every change returns a new Workflow."""
    recipe: Optional[Recipe] = None
    model: Optional[ForestSpec] = None

    def add_recipe(self, recipe: Recipe) -> "Workflow":
        return dataclasses.replace(self, recipe=recipe)

    def add_model(self, model: ForestSpec) -> "Workflow":
        return dataclasses.replace(self, model=model)

    def finalize(self, params: dict[str, Any]) -> "Workflow":
        if self.model is None:
            raise ValueError("Workflow has no model to finalize")
        return dataclasses.replace(self, model=self.model.finalize(params))

    def fit(self, train: pd.DataFrame, seed: Optional[int] = None) -> "TrainedModel":
        """Fit a fresh copy of the recipe and the forest on `train`."""
        if self.recipe is None or self.model is None:
            raise ValueError("Workflow needs both a recipe and a model before fit()")
        forest = self.model.build(seed)
        recipe = self.recipe.clone().fit(train)
        X, y = recipe.bake(train)
        if y is None:
            raise ValueError(f"Training table has no '{recipe.outcome}' column")
        forest.fit(X.to_numpy(), y)
        return TrainedModel(recipe=recipe, forest=forest, spec=self.model)


class TrainedModel:
    """
    Fitted recipe and forest. Not modified after construction.

    The probability of a class is the fraction of trees voting for it; the
    predicted class is "positive" only when that fraction exceeds one half.
    """

    def __init__(self, recipe: Recipe, forest: RandomForestClassifier, spec: ForestSpec):
        self.recipe = recipe
        self.forest = forest
        self.spec = spec

    @property
    def mtry(self) -> int:
        return int(self.spec.mtry)

    def _positive_votes(self, X: np.ndarray) -> np.ndarray:
        classes = self.forest.classes_
        votes = [classes[tree.predict(X).astype(int)] == 1 for tree in self.forest.estimators_]
        return np.mean(votes, axis=0)

    def predict_proba(self, df: pd.DataFrame) -> pd.DataFrame:
        X = self.recipe.apply(df).to_numpy()
        p_pos = self._positive_votes(X)
        return pd.DataFrame(
            {f".pred_{NEGATIVE}": 1.0 - p_pos, f".pred_{POSITIVE}": p_pos},
            index=df.index,
        )

    def predict(self, df: pd.DataFrame) -> pd.Series:
        proba = self.predict_proba(df)
        labels = np.where(proba[f".pred_{POSITIVE}"] > 0.5, POSITIVE, NEGATIVE)
        return pd.Series(labels, index=df.index, name=".pred_class", dtype=object)

    def augment(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return `df` with predicted class and class probabilities appended."""
        proba = self.predict_proba(df)
        out = df.copy()
        out[".pred_class"] = np.where(proba[f".pred_{POSITIVE}"] > 0.5, POSITIVE, NEGATIVE)
        return pd.concat([out, proba], axis=1)

    def save(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        joblib.dump({"version": BUNDLE_VERSION, "model": self}, path)
        get_logger(self.__class__.__name__).info(f"Saved model bundle: {path}")

    @classmethod
    def load(cls, path: str) -> "TrainedModel":
        bundle = joblib.load(path)
        if not isinstance(bundle, dict) or bundle.get("version") != BUNDLE_VERSION:
            raise ValueError(f"{path} is not a version {BUNDLE_VERSION} model bundle")
        model = bundle["model"]
        if not isinstance(model, cls):
            raise ValueError(f"{path} does not contain a {cls.__name__}")
        return model
