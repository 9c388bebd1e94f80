"""Shared fixtures: a seeded synthetic stroke table shaped like the raw CSV."""

import numpy as np
import pandas as pd
import pytest

from stroke_risk.cleaner import Cleaner
from stroke_risk.imputer import ChainedImputer
from stroke_risk.recipe import Recipe
from stroke_risk.workflow import ForestSpec, Workflow


def make_raw_stroke_frame(n: int = 400, seed: int = 0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)

    age = rng.integers(1, 83, n).astype(float)
    hypertension = (rng.random(n) < 0.05 + 0.002 * age).astype(int)
    heart_disease = (rng.random(n) < 0.02 + 0.001 * age).astype(int)
    glucose = np.clip(rng.normal(105, 35, n), 55, 270).round(2)
    bmi = np.clip(rng.normal(28.5, 6, n), 12, 60).round(1).astype(object)
    bmi[rng.random(n) < 0.05] = "N/A"

    logit = -9.0 + 0.09 * age + 0.8 * hypertension + 0.8 * heart_disease
    stroke = (rng.random(n) < 1.0 / (1.0 + np.exp(-logit))).astype(int)

    return pd.DataFrame(
        {
            "id": np.arange(1, n + 1),
            "gender": rng.choice(["Male", "Female", "Other"], n, p=[0.41, 0.58, 0.01]),
            "age": age,
            "hypertension": hypertension,
            "heart_disease": heart_disease,
            "ever_married": np.where(age > 25, "Yes", rng.choice(["Yes", "No"], n, p=[0.1, 0.9])),
            "work_type": rng.choice(
                ["Private", "Self-employed", "Govt_job", "children", "Never_worked"],
                n,
                p=[0.57, 0.16, 0.13, 0.13, 0.01],
            ),
            "Residence_type": rng.choice(["Urban", "Rural"], n),
            "avg_glucose_level": glucose,
            "bmi": bmi,
            "smoking_status": rng.choice(
                ["formerly smoked", "never smoked", "smokes", "Unknown"],
                n,
                p=[0.17, 0.37, 0.16, 0.30],
            ),
            "stroke": stroke,
        }
    )


@pytest.fixture
def raw_df():
    return make_raw_stroke_frame()


@pytest.fixture
def clean_df(raw_df):
    return Cleaner(verbose=False).transform(raw_df)


@pytest.fixture(scope="session")
def complete_df():
    cleaned = Cleaner(verbose=False).transform(make_raw_stroke_frame(n=600, seed=7))
    return ChainedImputer(m=2, max_iter=2, seed=11).transform(cleaned)


@pytest.fixture
def workflow():
    return Workflow().add_recipe(Recipe.default(neighbors=5)).add_model(ForestSpec(trees=40))


@pytest.fixture(scope="session")
def trained_model(complete_df):
    wf = Workflow().add_recipe(Recipe.default()).add_model(ForestSpec(mtry=4, trees=60))
    return wf.fit(complete_df, seed=3)
