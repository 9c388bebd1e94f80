from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.linear_model import BayesianRidge, LogisticRegression

from .errors import ImputationError
from .schema import CATEGORICAL_DOMAINS, ID_COL
from .utils.logger import get_logger


class ChainedImputer:
    """
    Multiple imputation by chained equations.

    Each completion starts from random draws of observed values, then for
    `max_iter` passes re-imputes every incomplete column from all other
    columns:
      - numeric columns by predictive mean matching on a BayesianRidge fit,
        using a coefficient vector drawn from its posterior;
      - categorical columns by sampling from a multinomial LogisticRegression.

    `m` completions are produced with independent seeds. The returned table is
    either one of them (`completion=<index>`) or their pool
    (`completion="pool"`: numeric mean, categorical mode).
    """

    def __init__(
        self,
        m: int = 5,
        max_iter: int = 5,
        completion: int | str = 0,
        seed: int | None = None,
        donors: int = 5,
        exclude: Sequence[str] = (ID_COL,),
    ):
        if m < 1 or max_iter < 1:
            raise ValueError("m and max_iter must both be at least 1")
        if completion != "pool" and not (isinstance(completion, int) and 0 <= completion < m):
            raise ValueError(f"completion must be 'pool' or an index in [0, {m}), got {completion!r}")
        self.m = m
        self.max_iter = max_iter
        self.completion = completion
        self.seed = seed
        self.donors = donors
        self.exclude = list(exclude)
        self.logger = get_logger(self.__class__.__name__)
        self.completions_: list[pd.DataFrame] = []

    @staticmethod
    def _is_categorical(values: pd.Series) -> bool:
        return values.name in CATEGORICAL_DOMAINS or not pd.api.types.is_numeric_dtype(values)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()
        predictors = [c for c in out.columns if c not in self.exclude]
        incomplete = [c for c in predictors if out[c].isna().any()]

        if not incomplete:
            self.logger.info("No missing values; table returned unchanged")
            self.completions_ = [out]
            return out

        empty = [c for c in incomplete if out[c].notna().sum() == 0]
        if empty:
            raise ImputationError(f"Cannot impute columns with no observed values: {empty}")

        if self.seed is None:
            self.logger.warning("No seed given to ChainedImputer; imputations are not reproducible")

        self.logger.info(
            f"Imputing {incomplete} with {self.m} completion(s) x {self.max_iter} iteration(s)"
        )
        seeds = np.random.SeedSequence(self.seed).spawn(self.m)
        self.completions_ = [
            self._complete(out, predictors, incomplete, np.random.default_rng(ss)) for ss in seeds
        ]
        return self._select(self.completions_, incomplete)

    def _complete(
        self,
        df: pd.DataFrame,
        predictors: list[str],
        incomplete: list[str],
        rng: np.random.Generator,
    ) -> pd.DataFrame:
        work = df[predictors].copy()
        masks = {c: work[c].isna().to_numpy() for c in incomplete}

        for c in incomplete:
            observed = work.loc[~masks[c], c].to_numpy()
            work.loc[masks[c], c] = rng.choice(observed, size=int(masks[c].sum()))

        for _ in range(self.max_iter):
            for c in incomplete:
                miss = masks[c]
                X = self._design_matrix(work.drop(columns=c))
                y_obs = work.loc[~miss, c].to_numpy()
                if self._is_categorical(df[c]):
                    draws = self._draw_categorical(X[~miss], y_obs, X[miss], rng)
                else:
                    draws = self._draw_pmm(X[~miss], y_obs.astype(float), X[miss], rng)
                work.loc[miss, c] = draws

        completed = df.copy()
        for c in incomplete:
            completed[c] = self._restore_dtype(work[c])
        return completed

    def _restore_dtype(self, values: pd.Series) -> pd.Series:
        # 0/1 flags go back to integers, other categoricals stay as labels
        domain = CATEGORICAL_DOMAINS.get(values.name)
        if domain is not None and all(isinstance(level, int) for level in domain):
            return values.astype("int64")
        if self._is_categorical(values):
            return values
        return values.astype(float)

    def _design_matrix(self, frame: pd.DataFrame) -> np.ndarray:
        categorical = [c for c in frame.columns if self._is_categorical(frame[c])]
        X = pd.get_dummies(frame, columns=categorical, drop_first=True, dtype=float).to_numpy(dtype=float)
        std = X.std(axis=0)
        std[std == 0] = 1.0
        return (X - X.mean(axis=0)) / std

    def _draw_pmm(
        self,
        X_obs: np.ndarray,
        y_obs: np.ndarray,
        X_mis: np.ndarray,
        rng: np.random.Generator,
    ) -> np.ndarray:
        model = BayesianRidge().fit(X_obs, y_obs)
        beta = rng.multivariate_normal(model.coef_, model.sigma_)
        yhat_obs = X_obs @ model.coef_ + model.intercept_
        yhat_mis = X_mis @ beta + model.intercept_

        k = min(self.donors, len(y_obs))
        draws = np.empty(len(yhat_mis), dtype=float)
        for i, target in enumerate(yhat_mis):
            nearest = np.argpartition(np.abs(yhat_obs - target), k - 1)[:k]
            draws[i] = y_obs[rng.choice(nearest)]
        return draws

    @staticmethod
    def _draw_categorical(
        X_obs: np.ndarray,
        y_obs: np.ndarray,
        X_mis: np.ndarray,
        rng: np.random.Generator,
    ) -> np.ndarray:
        classes = pd.unique(y_obs)
        if len(classes) == 1:
            return np.repeat(classes[0], len(X_mis))
        clf = LogisticRegression(max_iter=1000).fit(X_obs, y_obs)
        proba = clf.predict_proba(X_mis)
        u = rng.random(len(X_mis))[:, None]
        idx = (proba.cumsum(axis=1) < u).sum(axis=1)
        return clf.classes_[np.minimum(idx, len(clf.classes_) - 1)]

    def _select(self, completions: list[pd.DataFrame], incomplete: list[str]) -> pd.DataFrame:
        if self.completion != "pool":
            return completions[self.completion].copy()

        pooled = completions[0].copy()
        for c in incomplete:
            stacked = pd.concat([comp[c] for comp in completions], axis=1)
            if self._is_categorical(completions[0][c]):
                pooled[c] = self._restore_dtype(stacked.mode(axis=1)[0].rename(c))
            else:
                pooled[c] = stacked.mean(axis=1)
        return pooled
