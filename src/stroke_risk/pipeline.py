import os
from textwrap import indent

from .cleaner import Cleaner
from .config import Config
from .data_loader import DataLoader
from .evaluator import Evaluator, LastFitResult
from .hyper_tuner import HyperTuner
from .imputer import ChainedImputer
from .model_trainer import ModelTrainer
from .recipe import Recipe
from .splitter import Splitter
from .utils.logger import get_logger
from .workflow import ForestSpec, Workflow


class PipelineRunner:
    """End-to-end stroke risk pipeline.

    Steps:
      1. Load the CSV and check its header
      2. Clean sentinels, coerce numeric columns, recode the outcome
      3. Complete missing values by chained multiple imputation
      4. Split train/test and build cross-validation folds on train
      5. Declare the recipe (normalize, k-NN impute, dummy-encode) and forest spec
      6. Tune mtry over the grid with cross-validation
      7. Refit the best model on all of train and score it once on test
      8. Save the model bundle, metrics and confusion matrix"""

    def __init__(self, config_path: str):
        self.config = Config.from_yaml(config_path)
        self.logger = get_logger(self.__class__.__name__)

    def run(self) -> LastFitResult:
        cfg = self.config
        self.logger.info("Starting stroke risk pipeline")

        df = DataLoader(cfg.data["path"], cfg.data.get("sample_size")).load()

        df = Cleaner(
            bmi_sentinel=cfg.cleaning.get("bmi_sentinel", "N/A"),
            smoking_sentinel=cfg.cleaning.get("smoking_sentinel", "Unknown"),
        ).transform(df)

        df = ChainedImputer(
            m=cfg.imputation.get("m", 5),
            max_iter=cfg.imputation.get("max_iter", 5),
            completion=cfg.imputation.get("completion", 0),
            seed=cfg.imputation.get("seed"),
        ).transform(df)

        splitter = Splitter(seed=cfg.split.get("seed"))
        train, test = splitter.initial_split(df, prop=cfg.split.get("train_prop", 0.75))
        folds = splitter.vfold(
            train,
            v=cfg.split.get("folds", 10),
            stratify=cfg.split.get("stratify", False),
        )

        workflow = (
            Workflow()
            .add_recipe(Recipe.default(neighbors=cfg.features.get("neighbors", 5)))
            .add_model(
                ForestSpec(
                    trees=cfg.model.get("trees", 500),
                    min_n=cfg.model.get("min_n", 1),
                )
            )
        )

        seed = cfg.model.get("seed")
        trainer = ModelTrainer(workflow, folds, seed=seed, n_jobs=cfg.model.get("n_jobs", 1))
        evaluator = Evaluator(
            metrics_path=cfg.output.get("metrics_path"),
            figures_dir=cfg.output.get("figures_dir"),
        )

        metric = cfg.tuning.get("metric", "accuracy")
        tuner = HyperTuner(trainer, grid=cfg.model.get("grid", [4, 5, 6]), metric=metric, seed=seed)
        best_mtry = tuner.tune(evaluator)

        summary = evaluator.collect_metrics(tuner.records_)
        self.logger.info(f"CV summary:\n{indent(summary.to_string(index=False), ' ' * 4)}")
        cv_path = cfg.output.get("cv_metrics_path")
        if cv_path:
            os.makedirs(os.path.dirname(cv_path) or ".", exist_ok=True)
            tuner.records_.to_csv(cv_path, index=False)
            self.logger.info(f"Saved CV metric records: {cv_path}")

        result = evaluator.last_fit(workflow, {"mtry": best_mtry}, train, test, seed=seed)

        metrics_str = indent(
            "\n".join(f"{k}: {v:.4f}" for k, v in result.metrics.items()),
            " " * 4,
        )
        self.logger.info(f"Test metrics (mtry={best_mtry}):\n{metrics_str}")
        self.logger.info(f"Confusion matrix: {result.confusion}")
        if result.confusion["tp"] == 0:
            self.logger.warning("No positive cases predicted correctly on test; the classes are heavily imbalanced")

        result.model.save(cfg.output["model_path"])
        self.logger.info("Pipeline finished")
        return result
