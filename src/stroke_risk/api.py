import os
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .predictor import StrokePredictor
from .utils.logger import get_logger

DEFAULT_MODEL_PATH = "artifacts/stroke_rf.joblib"

logger = get_logger("api")
predictor: Optional[StrokePredictor] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global predictor
    model_path = os.environ.get("STROKE_MODEL_PATH", DEFAULT_MODEL_PATH)
    if predictor is None:
        if os.path.exists(model_path):
            predictor = StrokePredictor.load(model_path)
            logger.info(f"Loaded model bundle: {model_path}")
        else:
            logger.warning(f"Model bundle not found: {model_path}")
    yield


app = FastAPI(
    title="Stroke Risk API",
    lifespan=lifespan,
)


class StrokeRecord(BaseModel):
    gender: str
    age: float = Field(ge=0)
    hypertension: Literal[0, 1]
    heart_disease: Literal[0, 1]
    ever_married: Literal["Yes", "No"]
    work_type: str
    Residence_type: Literal["Urban", "Rural"]
    avg_glucose_level: float
    bmi: Optional[float] = None
    smoking_status: Optional[str] = None


@app.get("/health")
def health():
    return {
        "status": "ok",
        "model_loaded": predictor is not None,
        "mtry": None if predictor is None else predictor.model.mtry,
    }


@app.post("/predict")
def predict(record: StrokeRecord):
    if predictor is None:
        raise HTTPException(status_code=503, detail="Model not loaded")

    try:
        return predictor.predict(record.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
