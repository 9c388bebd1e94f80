from __future__ import annotations

from typing import Any, Dict, Mapping

import numpy as np
import pandas as pd

from .cleaner import Cleaner
from .errors import SchemaError
from .schema import ID_COL, NEGATIVE, POSITIVE, PREDICTORS, TARGET_COL
from .workflow import TrainedModel

_FLAG_VALUES = {0: 0, 1: 1, "0": 0, "1": 1, "No": 0, "Yes": 1}


def _to_flag(name: str, value: Any) -> int:
    try:
        return _FLAG_VALUES[value]
    except (KeyError, TypeError):
        raise SchemaError(f"'{name}' must be 0/1 or Yes/No, got {value!r}") from None


def prepare_record(record: Mapping[str, Any], cleaner: Cleaner | None = None) -> pd.DataFrame:
    """
    Turn one form submission into a single-row table the model accepts.

    Raises ValueError when no smoking status was selected; an explicit
    "Unknown" is allowed and left for the model to impute.
    """
    smoking = record.get("smoking_status")
    if smoking is None or (isinstance(smoking, str) and not smoking.strip()):
        raise ValueError("smoking_status must be selected")

    missing = [col for col in PREDICTORS if col not in record and col != "bmi"]
    if missing:
        raise SchemaError(f"Record is missing fields: {missing}")

    row = {col: record.get(col, np.nan) for col in PREDICTORS}
    row["hypertension"] = _to_flag("hypertension", row["hypertension"])
    row["heart_disease"] = _to_flag("heart_disease", row["heart_disease"])
    if row["bmi"] is None or row["bmi"] == "":
        row["bmi"] = np.nan
    if ID_COL in record:
        row[ID_COL] = record[ID_COL]

    cleaner = cleaner or Cleaner(fill_gender=False, verbose=False)
    frame = pd.DataFrame([row]).drop(columns=[TARGET_COL], errors="ignore")
    return cleaner.transform(frame)


class StrokePredictor:
    """Inference-only wrapper around a saved TrainedModel bundle."""

    def __init__(self, model: TrainedModel):
        self.model = model

    @classmethod
    def load(cls, path: str) -> "StrokePredictor":
        return cls(TrainedModel.load(path))

    def predict(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        row = self.model.augment(prepare_record(record)).iloc[0]
        return {
            "label": row[".pred_class"],
            "probabilities": {
                NEGATIVE: float(row[f".pred_{NEGATIVE}"]),
                POSITIVE: float(row[f".pred_{POSITIVE}"]),
            },
        }
