import pytest
from fastapi.testclient import TestClient

from stroke_risk import api
from stroke_risk.errors import SchemaError
from stroke_risk.predictor import StrokePredictor, prepare_record

DOCUMENTED_RECORD = {
    "gender": "Male",
    "age": 50,
    "hypertension": 0,
    "heart_disease": 0,
    "ever_married": "Yes",
    "work_type": "Private",
    "Residence_type": "Urban",
    "avg_glucose_level": 100,
    "bmi": 28.5,
    "smoking_status": "formerly smoked",
}


def test_documented_record_is_predicted_negative(trained_model):
    result = StrokePredictor(trained_model).predict(DOCUMENTED_RECORD)

    assert result["label"] == "negative"
    probs = result["probabilities"]
    assert probs["negative"] + probs["positive"] == pytest.approx(1.0)
    assert probs["negative"] > probs["positive"]


def test_prepare_record_maps_flags_and_resolves_sentinels():
    record = dict(DOCUMENTED_RECORD, hypertension="Yes", heart_disease="0", bmi="N/A", smoking_status="Unknown")
    row = prepare_record(record)

    assert row.loc[0, "hypertension"] == 1
    assert row.loc[0, "heart_disease"] == 0
    assert row["bmi"].isna().all()
    assert row["smoking_status"].isna().all()
    assert "stroke" not in row.columns


def test_incomplete_record_is_filled_by_the_recipe(trained_model):
    record = dict(DOCUMENTED_RECORD, smoking_status="Unknown")
    record.pop("bmi")
    result = StrokePredictor(trained_model).predict(record)
    assert result["label"] in {"negative", "positive"}


@pytest.mark.parametrize("smoking", [None, "", "   "])
def test_empty_smoking_selection_is_rejected(smoking):
    with pytest.raises(ValueError, match="smoking_status"):
        prepare_record(dict(DOCUMENTED_RECORD, smoking_status=smoking))


def test_invalid_flag_is_rejected():
    with pytest.raises(SchemaError, match="hypertension"):
        prepare_record(dict(DOCUMENTED_RECORD, hypertension=3))


def test_predictor_loads_saved_bundle(trained_model, tmp_path):
    path = tmp_path / "stroke_rf.joblib"
    trained_model.save(str(path))
    assert StrokePredictor.load(str(path)).predict(DOCUMENTED_RECORD)["label"] == "negative"


@pytest.fixture
def client(trained_model, tmp_path, monkeypatch):
    path = tmp_path / "stroke_rf.joblib"
    trained_model.save(str(path))
    monkeypatch.setenv("STROKE_MODEL_PATH", str(path))
    monkeypatch.setattr(api, "predictor", None)
    with TestClient(api.app) as c:
        yield c


def test_api_health_reports_loaded_model(client):
    body = client.get("/health").json()
    assert body["model_loaded"] is True
    assert body["mtry"] == 4


def test_api_predicts_documented_record(client):
    response = client.post("/predict", json=DOCUMENTED_RECORD)
    assert response.status_code == 200
    assert response.json()["label"] == "negative"


def test_api_rejects_missing_smoking_status(client):
    record = dict(DOCUMENTED_RECORD)
    record.pop("smoking_status")
    response = client.post("/predict", json=record)
    assert response.status_code == 422
    assert "smoking_status" in response.json()["detail"]


def test_api_without_model_returns_503(tmp_path, monkeypatch):
    monkeypatch.setenv("STROKE_MODEL_PATH", str(tmp_path / "missing.joblib"))
    monkeypatch.setattr(api, "predictor", None)
    with TestClient(api.app) as c:
        assert c.post("/predict", json=DOCUMENTED_RECORD).status_code == 503
