import numpy as np
import pandas as pd

from .errors import DataIntegrityError, ImputationError, SchemaError
from .schema import CATEGORICAL_DOMAINS, NEGATIVE, NUMERIC_COLS, POSITIVE, TARGET_COL
from .utils.logger import get_logger


class Cleaner:
    """Normalizes sentinels, coerces numeric columns and recodes labels.

    Returns a new frame; the input frame is left untouched.
    """

    OUTCOME_MAP = {0: NEGATIVE, 1: POSITIVE}

    def __init__(
        self,
        bmi_sentinel: str = "N/A",
        smoking_sentinel: str = "Unknown",
        fill_gender: bool = True,
        verbose: bool = True,
    ):
        self.bmi_sentinel = bmi_sentinel
        self.smoking_sentinel = smoking_sentinel
        self.fill_gender = fill_gender
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()

        if "bmi" in out.columns:
            out["bmi"] = out["bmi"].replace(self.bmi_sentinel, np.nan)
        if "smoking_status" in out.columns:
            out["smoking_status"] = out["smoking_status"].replace(self.smoking_sentinel, np.nan)

        if "gender" in out.columns:
            out["gender"] = self._normalize_gender(out["gender"])

        for col in NUMERIC_COLS:
            if col in out.columns:
                out[col] = self._to_numeric(out[col])

        self._check_domains(out)

        if TARGET_COL in out.columns:
            out[TARGET_COL] = self._recode_outcome(out[TARGET_COL])

        if self.verbose:
            self._log_missing(out)
        return out

    def _normalize_gender(self, gender: pd.Series) -> pd.Series:
        allowed = CATEGORICAL_DOMAINS["gender"]
        gender = gender.where(gender.isin(allowed), np.nan)
        if not self.fill_gender or not gender.isna().any():
            return gender

        observed = gender.dropna()
        if observed.empty:
            raise ImputationError("Column 'gender' has no observed values to take the mode from")
        # ties resolve to the first domain value
        counts = observed.value_counts().reindex(allowed, fill_value=0)
        mode = counts.idxmax()
        n_filled = int(gender.isna().sum())
        self.logger.info(f"Replaced {n_filled} unrecognized gender value(s) with mode '{mode}'")
        return gender.fillna(mode)

    @staticmethod
    def _to_numeric(values: pd.Series) -> pd.Series:
        coerced = pd.to_numeric(values, errors="coerce")
        bad = coerced.isna() & values.notna()
        if bad.any():
            examples = sorted(map(str, values[bad].unique()))[:5]
            raise DataIntegrityError(
                f"Column '{values.name}' has {int(bad.sum())} non-numeric entries, e.g. {examples}"
            )
        if np.isinf(coerced).any():
            raise DataIntegrityError(f"Column '{values.name}' has infinite values")
        return coerced.astype(float)

    @staticmethod
    def _check_domains(df: pd.DataFrame) -> None:
        for col, domain in CATEGORICAL_DOMAINS.items():
            if col not in df.columns:
                continue
            values = df[col]
            invalid = values.notna() & ~values.isin(domain)
            if invalid.any():
                offending = sorted(map(str, values[invalid].unique()))
                raise SchemaError(f"Column '{col}' has values outside {domain}: {offending}")

    def _recode_outcome(self, outcome: pd.Series) -> pd.Series:
        if outcome.isin([NEGATIVE, POSITIVE]).all():
            return outcome.astype(object)
        if outcome.isna().any() or not outcome.isin(list(self.OUTCOME_MAP)).all():
            offending = sorted(map(str, outcome[~outcome.isin(list(self.OUTCOME_MAP))].unique()))
            raise SchemaError(f"Column '{TARGET_COL}' must be 0/1, got: {offending}")
        return outcome.map(self.OUTCOME_MAP).astype(object)

    def _log_missing(self, df: pd.DataFrame) -> None:
        counts = df.isna().sum()
        counts = counts[counts > 0]
        if counts.empty:
            self.logger.info("No missing values after cleaning")
            return
        summary = ", ".join(f"{col}={n} ({n / len(df):.1%})" for col, n in counts.items())
        self.logger.info(f"Missing values after cleaning: {summary}")
