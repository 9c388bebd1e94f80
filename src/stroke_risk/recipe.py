"""
Feature recipe: predictor/outcome roles plus an ordered list of steps.

Every step learns its parameters in `fit` from the training table only and
reuses them in `apply`, so validation and test rows never feed back into
normalization statistics or the neighbour pool.
"""
from __future__ import annotations

import copy
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.impute import KNNImputer

from .errors import ImputationError, SchemaError
from .schema import CATEGORICAL_COLS, CATEGORICAL_DOMAINS, NUMERIC_COLS, POSITIVE, PREDICTORS, TARGET_COL
from .utils.logger import get_logger


class Step:
    """Base class for recipe steps."""

    def __init__(self):
        self.fitted = False
        self.logger = get_logger(self.__class__.__name__)

    def fit(self, df: pd.DataFrame) -> "Step":
        raise NotImplementedError

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        raise NotImplementedError

    def _check_fitted(self) -> None:
        if not self.fitted:
            raise RuntimeError(f"{self.__class__.__name__}.apply() called before fit()")


class NormalizeNumeric(Step):
    """Center and scale numeric columns with the training mean and standard deviation."""

    def __init__(self, columns: Sequence[str] = NUMERIC_COLS):
        super().__init__()
        self.columns = list(columns)
        self.means_: Optional[pd.Series] = None
        self.stds_: Optional[pd.Series] = None

    def fit(self, df: pd.DataFrame) -> "NormalizeNumeric":
        means = df[self.columns].mean()
        stds = df[self.columns].std(ddof=1)
        flat = stds[(stds == 0) | stds.isna()].index.tolist()
        if flat:
            self.logger.warning(f"Zero or undefined spread in {flat}; these columns are only centered")
            stds[flat] = 1.0
        self.means_ = means.copy()
        self.stds_ = stds.copy()
        self.fitted = True
        return self

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        self._check_fitted()
        out = df.copy()
        out[self.columns] = (out[self.columns] - self.means_) / self.stds_
        return out


class ImputeKnn(Step):
    """
    Fill missing predictors from the k nearest complete training rows.

    Numeric columns enter the distance as they are (already normalized);
    categorical columns as one-hot blocks over their schema domain. Numeric
    gaps get the neighbours' mean, categorical gaps the neighbours' most
    frequent level.
    """

    def __init__(
        self,
        numeric: Sequence[str] = NUMERIC_COLS,
        categorical: Sequence[str] = CATEGORICAL_COLS,
        neighbors: int = 5,
    ):
        super().__init__()
        self.numeric = list(numeric)
        self.categorical = list(categorical)
        self.neighbors = neighbors
        self.imputer_: Optional[KNNImputer] = None

    def _encode(self, df: pd.DataFrame) -> np.ndarray:
        blocks = [df[self.numeric].to_numpy(dtype=float)]
        for col in self.categorical:
            values = df[col]
            block = np.column_stack(
                [(values == level).to_numpy(dtype=float) for level in CATEGORICAL_DOMAINS[col]]
            )
            block[values.isna().to_numpy()] = np.nan
            blocks.append(block)
        return np.hstack(blocks)

    def fit(self, df: pd.DataFrame) -> "ImputeKnn":
        encoded = self._encode(df)
        complete = encoded[~np.isnan(encoded).any(axis=1)]
        if len(complete) == 0:
            raise ImputationError("ImputeKnn needs at least one complete training row")
        self.imputer_ = KNNImputer(n_neighbors=min(self.neighbors, len(complete))).fit(complete)
        self.fitted = True
        return self

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        self._check_fitted()
        out = df.copy()
        columns = self.numeric + self.categorical
        if not out[columns].isna().any().any():
            return out

        imputed = self.imputer_.transform(self._encode(out))

        for j, col in enumerate(self.numeric):
            missing = out[col].isna().to_numpy()
            if missing.any():
                out.loc[missing, col] = imputed[missing, j]

        offset = len(self.numeric)
        for col in self.categorical:
            domain = CATEGORICAL_DOMAINS[col]
            missing = out[col].isna().to_numpy()
            if missing.any():
                block = imputed[missing, offset:offset + len(domain)]
                out[col] = out[col].astype(object)
                out.loc[missing, col] = np.asarray(domain, dtype=object)[block.argmax(axis=1)]
            offset += len(domain)
        return out


class DummyEncode(Step):
    """Replace categorical columns by indicator columns, dropping each domain's first level."""

    def __init__(self, columns: Sequence[str] = CATEGORICAL_COLS):
        super().__init__()
        self.columns = list(columns)

    def fit(self, df: pd.DataFrame) -> "DummyEncode":
        self.fitted = True
        return self

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        self._check_fitted()
        out = df.drop(columns=self.columns)
        for col in self.columns:
            if df[col].isna().any():
                raise ValueError(f"Column '{col}' still has missing values at encoding time")
            levels = pd.Categorical(df[col], categories=CATEGORICAL_DOMAINS[col])
            if levels.isna().any():
                offending = sorted(map(str, df[col][levels.isna()].unique()))
                raise SchemaError(f"Column '{col}' has values outside its domain: {offending}")
            dummies = pd.get_dummies(levels, prefix=col, drop_first=True, dtype=float)
            dummies.index = df.index
            out = pd.concat([out, dummies], axis=1)
        return out


class Recipe:
    """Predictor/outcome roles and the ordered steps that turn a table into a design matrix."""

    def __init__(
        self,
        outcome: str = TARGET_COL,
        predictors: Sequence[str] = PREDICTORS,
        steps: Optional[Sequence[Step]] = None,
    ):
        self.outcome = outcome
        self.predictors = list(predictors)
        self.steps = list(steps or [])
        self.feature_names_: Optional[list[str]] = None

    @classmethod
    def default(cls, neighbors: int = 5) -> "Recipe":
        return cls(
            steps=[
                NormalizeNumeric(NUMERIC_COLS),
                ImputeKnn(NUMERIC_COLS, CATEGORICAL_COLS, neighbors=neighbors),
                DummyEncode(CATEGORICAL_COLS),
            ]
        )

    @property
    def fitted(self) -> bool:
        return self.feature_names_ is not None and all(step.fitted for step in self.steps)

    def clone(self) -> "Recipe":
        return copy.deepcopy(self)

    def _predictor_frame(self, df: pd.DataFrame) -> pd.DataFrame:
        missing = [col for col in self.predictors if col not in df.columns]
        if missing:
            raise SchemaError(f"Table is missing predictor columns: {missing}")
        return df[self.predictors]

    def fit(self, train: pd.DataFrame) -> "Recipe":
        current = self._predictor_frame(train)
        for step in self.steps:
            current = step.fit(current).apply(current)
        self.feature_names_ = list(current.columns)
        return self

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self.fitted:
            raise RuntimeError("Recipe.apply() called before fit()")
        current = self._predictor_frame(df)
        for step in self.steps:
            current = step.apply(current)
        return current[self.feature_names_]

    def bake(self, df: pd.DataFrame) -> tuple[pd.DataFrame, Optional[np.ndarray]]:
        """Return the design matrix and, when the outcome is present, 0/1 labels."""
        X = self.apply(df)
        y = None
        if self.outcome in df.columns:
            y = (df[self.outcome] == POSITIVE).astype(int).to_numpy()
        return X, y
