import dataclasses

import numpy as np
import pandas as pd
import pytest

from stroke_risk.workflow import ForestSpec, TrainedModel, Workflow


def test_workflow_builder_returns_new_values(workflow):
    finalized = workflow.finalize({"mtry": 5})

    assert finalized is not workflow
    assert workflow.model.mtry is None
    assert finalized.model.mtry == 5
    assert finalized.recipe is workflow.recipe
    with pytest.raises(dataclasses.FrozenInstanceError):
        workflow.model = ForestSpec(mtry=4)


def test_workflow_fit_requires_resolved_mtry(workflow, complete_df):
    with pytest.raises(ValueError, match="mtry"):
        workflow.fit(complete_df, seed=1)


def test_workflow_fit_requires_recipe_and_model(complete_df):
    with pytest.raises(ValueError):
        Workflow().add_model(ForestSpec(mtry=4)).fit(complete_df)


def test_finalize_rejects_unknown_parameters(workflow):
    with pytest.raises(ValueError, match="learning_rate"):
        workflow.finalize({"learning_rate": 0.1})


def test_fit_leaves_template_recipe_unfitted(workflow, complete_df):
    workflow.finalize({"mtry": 4}).fit(complete_df, seed=1)
    assert not workflow.recipe.fitted


def test_forest_uses_requested_mtry_and_trees(trained_model):
    forest = trained_model.forest
    assert forest.max_features == 4
    assert forest.n_estimators == 60
    assert forest.criterion == "gini"
    assert forest.bootstrap


def test_probabilities_are_fractions_of_tree_votes(trained_model, complete_df):
    proba = trained_model.predict_proba(complete_df)
    n_trees = trained_model.forest.n_estimators

    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    votes = proba[".pred_positive"].to_numpy() * n_trees
    np.testing.assert_allclose(votes, np.round(votes), atol=1e-9)


def test_predicted_class_is_positive_only_above_one_half(trained_model, complete_df):
    augmented = trained_model.augment(complete_df)
    positive = augmented[".pred_positive"] > 0.5
    assert (augmented.loc[positive, ".pred_class"] == "positive").all()
    assert (augmented.loc[~positive, ".pred_class"] == "negative").all()
    pd.testing.assert_series_equal(
        trained_model.predict(complete_df), augmented[".pred_class"].astype(object), check_names=False
    )


def test_same_seed_gives_same_forest(workflow, complete_df):
    wf = workflow.finalize({"mtry": 5})
    a = wf.fit(complete_df, seed=9).predict_proba(complete_df)
    b = wf.fit(complete_df, seed=9).predict_proba(complete_df)
    pd.testing.assert_frame_equal(a, b)


def test_saved_bundle_reloads_for_inference(trained_model, complete_df, tmp_path):
    path = tmp_path / "models" / "stroke_rf.joblib"
    trained_model.save(str(path))

    loaded = TrainedModel.load(str(path))
    assert loaded.mtry == trained_model.mtry
    features = complete_df.drop(columns="stroke")
    pd.testing.assert_frame_equal(loaded.predict_proba(features), trained_model.predict_proba(features))


def test_load_rejects_foreign_files(tmp_path):
    import joblib

    path = tmp_path / "other.joblib"
    joblib.dump({"weights": [1, 2, 3]}, path)
    with pytest.raises(ValueError):
        TrainedModel.load(str(path))
