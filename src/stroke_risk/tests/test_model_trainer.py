import numpy as np
import pandas as pd
import pytest

from stroke_risk.evaluator import Evaluator
from stroke_risk.hyper_tuner import HyperTuner
from stroke_risk.model_trainer import ModelTrainer, unit_seed
from stroke_risk.splitter import Splitter


@pytest.fixture
def folds(complete_df):
    return Splitter(seed=123).vfold(complete_df, v=3)


def test_tune_grid_records_one_row_per_mtry_fold_metric(workflow, folds):
    records = ModelTrainer(workflow, folds, seed=123).tune_grid([4, 5, 6])

    assert list(records.columns) == ["mtry", "fold", "metric", "estimate"]
    assert len(records) == 3 * 3 * 2
    assert set(records["metric"]) == {"accuracy", "roc_auc"}
    assert records.groupby(["mtry", "fold", "metric"]).size().eq(1).all()
    accuracy = records.loc[records["metric"] == "accuracy", "estimate"]
    assert accuracy.between(0, 1).all()


def test_unit_seeds_are_independent_of_run_order():
    assert unit_seed(123, 4, 1) == unit_seed(123, 4, 1)
    assert unit_seed(123, 4, 1) != unit_seed(123, 4, 2)
    assert unit_seed(123, 4, 1) != unit_seed(123, 5, 1)
    assert unit_seed(None, 4, 1) is None


def test_parallel_units_match_sequential_units(workflow, folds):
    sequential = ModelTrainer(workflow, folds, seed=42, n_jobs=1).tune_grid([4, 5])
    parallel = ModelTrainer(workflow, folds, seed=42, n_jobs=2).tune_grid([4, 5])
    pd.testing.assert_frame_equal(sequential, parallel)


def test_best_mtry_selection_is_deterministic(workflow, folds):
    winners = set()
    for _ in range(2):
        tuner = HyperTuner(ModelTrainer(workflow, folds, seed=123), grid=[4, 5, 6], seed=123)
        winners.add(tuner.tune())
        assert len(tuner.records_) == 18
    assert len(winners) == 1
    assert winners.pop() in {4, 5, 6}


def test_collect_metrics_reports_mean_and_standard_error():
    records = pd.DataFrame(
        {
            "mtry": [4, 4, 4, 5, 5, 5],
            "fold": [1, 2, 3, 1, 2, 3],
            "metric": ["accuracy"] * 6,
            "estimate": [0.90, 0.92, 0.94, 0.95, 0.95, 0.95],
        }
    )
    summary = Evaluator(verbose=False).collect_metrics(records)

    row = summary[summary["mtry"] == 4].iloc[0]
    assert row["mean"] == pytest.approx(0.92)
    assert row["n"] == 3
    assert row["std_err"] == pytest.approx(0.02 / np.sqrt(3))
    assert summary[summary["mtry"] == 5].iloc[0]["std_err"] == pytest.approx(0.0)


def test_select_best_breaks_ties_toward_lowest_mtry():
    records = pd.DataFrame(
        {
            "mtry": [6, 6, 4, 4, 5, 5],
            "fold": [1, 2, 1, 2, 1, 2],
            "metric": ["accuracy"] * 6,
            "estimate": [0.95, 0.93, 0.94, 0.94, 0.90, 0.91],
        }
    )
    assert Evaluator(verbose=False).select_best(records, metric="accuracy") == 4


def test_select_best_ignores_undefined_estimates():
    records = pd.DataFrame(
        {
            "mtry": [4, 5],
            "fold": [1, 1],
            "metric": ["roc_auc", "roc_auc"],
            "estimate": [np.nan, 0.7],
        }
    )
    assert Evaluator(verbose=False).select_best(records, metric="roc_auc") == 5
    with pytest.raises(ValueError):
        Evaluator(verbose=False).select_best(records, metric="accuracy")


def test_trainer_without_seed_warns_and_still_tunes(workflow, folds, capsys):
    records = ModelTrainer(workflow, folds, seed=None).tune_grid([4])

    assert len(records) == len(folds) * 2
    out = capsys.readouterr().out
    assert "WARNING" in out
    assert "No seed given to ModelTrainer" in out
