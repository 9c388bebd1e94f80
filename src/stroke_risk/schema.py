"""Column names and value domains of the stroke dataset."""

ID_COL = "id"
TARGET_COL = "stroke"

COLUMNS = [
    "id",
    "gender",
    "age",
    "hypertension",
    "heart_disease",
    "ever_married",
    "work_type",
    "Residence_type",
    "avg_glucose_level",
    "bmi",
    "smoking_status",
    "stroke",
]

NUMERIC_COLS = ["age", "avg_glucose_level", "bmi"]

# 0/1 flags are kept as integer codes but treated as categories downstream
CATEGORICAL_DOMAINS = {
    "gender": ["Male", "Female"],
    "hypertension": [0, 1],
    "heart_disease": [0, 1],
    "ever_married": ["Yes", "No"],
    "work_type": ["Private", "Self-employed", "Govt_job", "children", "Never_worked"],
    "Residence_type": ["Urban", "Rural"],
    "smoking_status": ["formerly smoked", "never smoked", "smokes"],
}
CATEGORICAL_COLS = list(CATEGORICAL_DOMAINS)

PREDICTORS = NUMERIC_COLS + CATEGORICAL_COLS

NEGATIVE = "negative"
POSITIVE = "positive"
OUTCOME_LABELS = [NEGATIVE, POSITIVE]
