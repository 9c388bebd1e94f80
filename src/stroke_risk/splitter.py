from __future__ import annotations

from dataclasses import dataclass

import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold, train_test_split

from .schema import TARGET_COL
from .utils.logger import get_logger


@dataclass(frozen=True)
class Fold:
    """One rotation of K-fold cross-validation."""
    fold_id: int
    train: pd.DataFrame
    validation: pd.DataFrame


class Splitter:
    """Seeded train/test split and K-fold partition of the training table."""

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self.logger = get_logger(self.__class__.__name__)
        if seed is None:
            self.logger.warning("No seed given to Splitter; splits are not reproducible")

    def initial_split(self, df: pd.DataFrame, prop: float = 0.75) -> tuple[pd.DataFrame, pd.DataFrame]:
        """Return (train, test) with floor(n * prop) training rows."""
        if not 0.0 < prop < 1.0:
            raise ValueError(f"prop must lie strictly between 0 and 1, got {prop}")
        n_train = int(len(df) * prop)
        if n_train == 0 or n_train == len(df):
            raise ValueError(f"Split of {len(df)} rows with prop={prop} leaves an empty subset")

        train, test = train_test_split(df, train_size=n_train, random_state=self.seed, shuffle=True)
        self.logger.info(f"Split {len(df):,} rows into train={len(train):,} / test={len(test):,}")
        return train, test

    def vfold(self, train: pd.DataFrame, v: int = 10, stratify: bool = False) -> list[Fold]:
        """Partition `train` into `v` disjoint validation folds."""
        if stratify:
            splitter = StratifiedKFold(n_splits=v, shuffle=True, random_state=self.seed)
            indices = splitter.split(train, train[TARGET_COL])
        else:
            splitter = KFold(n_splits=v, shuffle=True, random_state=self.seed)
            indices = splitter.split(train)

        folds = [
            Fold(fold_id=i, train=train.iloc[train_idx], validation=train.iloc[val_idx])
            for i, (train_idx, val_idx) in enumerate(indices, start=1)
        ]
        self.logger.info(
            f"Created {v} folds (validation sizes {min(len(f.validation) for f in folds)}"
            f"-{max(len(f.validation) for f in folds)})"
        )
        return folds
