import argparse

from stroke_risk.pipeline import PipelineRunner


def main() -> None:
    """Run the full stroke risk training pipeline."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--config", default="config/default.yaml", help="path to the YAML config")
    args = parser.parse_args()

    runner = PipelineRunner(args.config)
    runner.run()


if __name__ == "__main__":
    main()
