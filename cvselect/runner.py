"""
Model Selection Runner
======================

Reads one YAML configuration, runs a model-selection experiment for every
enabled model family, and writes reports, fitted models and a cross-family
comparison.

Usage:
    cvselect configs/example.yaml [--debug]
"""
import argparse
import json
import logging
import shutil
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from loguru import logger as loguru_logger

from . import __version__
from .data.dataset import Dataset
from .data.preprocessing_pipeline import Preprocessor
from .errors import ConfigurationError
from .experiment import ModelSelectionExperiment
from .metrics import MetricsWrapper
from .models.base import ModelFactory
from .tuning.report import HarnessReport
from .utils.config import Config, HarnessSettings

logger = logging.getLogger(__name__)


def resolve_output_root(config: Config) -> Path:
    """Output directory from the config; relative paths are taken from the config file's folder."""
    output_dir = Path(config.get_output_config().get('output_dir', 'results'))
    if not output_dir.is_absolute() and config.config_path is not None:
        output_dir = config.config_path.parent / output_dir
    return output_dir


class SelectionRunner:
    """Runs every enabled model family from one configuration file."""

    def __init__(self, config_path: Union[str, Path]):
        self.config_path = Path(config_path)
        self.config = Config(self.config_path)

        self.experiment_name = self._create_experiment_name()
        self.output_dir = resolve_output_root(self.config) / self.experiment_name
        self.global_settings = HarnessSettings.from_config(self.config)

        # Initialize storage
        self.results: Dict[str, Dict[str, Any]] = {}
        self.reports: Dict[str, HarnessReport] = {}
        self.dataset: Optional[Dataset] = None

        logger.info(f"Initialized runner - Experiment: {self.experiment_name}")

    def _create_experiment_name(self) -> str:
        """Create unique experiment identifier."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return f"{self.config_path.stem}_{timestamp}"

    def run(self) -> Dict[str, HarnessReport]:
        """Execute every enabled experiment and save the results."""
        logger.info("=" * 80)
        logger.info("MODEL SELECTION")
        logger.info("=" * 80)
        logger.info(f"Configuration: {self.config_path.name}")
        logger.info(f"Experiment: {self.experiment_name}")
        logger.info(f"Seed: {self.global_settings.seed}")
        logger.info("=" * 80)

        try:
            self.dataset = self._load_dataset()
            self._run_models(self.dataset)
            self._save_results()
            self._print_summary()
        except Exception as e:
            logger.error(f"Pipeline failed: {str(e)}", exc_info=True)
            raise

        return self.reports

    def _load_dataset(self) -> Dataset:
        data_config = self.config.get_data_config()
        if 'file' not in data_config or 'label_column' not in data_config:
            raise ConfigurationError("The 'data' section needs 'file' and 'label_column'")

        file_path = Path(data_config['file'])
        if not file_path.is_absolute():
            file_path = self.config_path.parent / file_path
        return Dataset.from_csv(file_path, data_config['label_column'], data_config.get('feature_columns'))

    def _build_plugin_factory(self, model_name: str, model_config: Dict[str, Any], seed: int):
        kind = model_config.get('model', model_name)
        fixed = dict(model_config.get('params') or {})
        # Families without random_state ignore it
        fixed.setdefault('random_state', seed)
        return ModelFactory.plugin_factory(kind, **fixed)

    def _run_models(self, dataset: Dataset) -> None:
        """Run one experiment per enabled model; a failing family is recorded and skipped."""
        enabled = self.config.enabled_models()
        logger.info(f"Running {len(enabled)} model families:")
        for name in enabled:
            logger.info(f" - {name}")

        for idx, model_name in enumerate(enabled, 1):
            logger.info(f"\n[{idx}/{len(enabled)}] Selecting {model_name}...")
            try:
                model_config = self.config.get_model_config(model_name)
                settings = HarnessSettings.from_config(self.config, model_name)
                preprocessor = Preprocessor.from_config(model_config.get('preprocessing'))
                plugin_factory = self._build_plugin_factory(model_name, model_config, settings.seed)

                experiment = ModelSelectionExperiment(settings, preprocessor)
                report = experiment.run(dataset, plugin_factory, model_name=model_name)

                self.reports[model_name] = report
                self.results[model_name] = self._result_row(report)
                self._save_model_outputs(model_name, report)

                primary = settings.primary_metric
                logger.info(f"  ✓ Complete - CV {primary}: {report.best_cv_mean():.4f}, "
                            f"Test {primary}: {report.final.metrics.get(primary, float('nan')):.4f}, "
                            f"Parameters: {report.final.n_parameters:,}")
            except Exception as e:
                logger.error(f"  ✗ Failed: {str(e)}")
                logger.debug(f"Traceback:\n{traceback.format_exc()}")
                self.results[model_name] = {'model': model_name, 'error': str(e)}

    @staticmethod
    def _result_row(report: HarnessReport) -> Dict[str, Any]:
        primary = report.settings.primary_metric
        selected = next(s for s in report.summaries if s.point == report.selected_point)
        row = {
            'model': report.model_name,
            'selected_point': report.selected_point.key,
            'primary_metric': primary,
            f'cv_{primary}_mean': selected.mean(primary),
            f'cv_{primary}_std': selected.metrics[primary].std,
            'successful_folds': selected.successful_fold_count,
            'failed_folds': selected.failed_fold_count,
            'grid_points': len(report.summaries) + len(report.incomplete_points),
            'n_parameters': report.final.n_parameters,
        }
        for name, value in report.final.metrics.items():
            row[f'test_{name}'] = value
        return row

    def _save_model_outputs(self, model_name: str, report: HarnessReport) -> None:
        output_config = self.config.get_output_config()
        model_dir = self.output_dir / model_name
        model_dir.mkdir(parents=True, exist_ok=True)

        report.to_json(model_dir / 'report.json')
        report.to_yaml(model_dir / 'report.yaml')
        report.summaries_frame().to_csv(model_dir / 'summaries.csv', index=False)

        if output_config.get('save_models', True):
            report.final.model.save(str(model_dir / 'model'))
            Preprocessor.save_state(report.final.preprocessor_state, model_dir / 'preprocessor_state.joblib')
        logger.info(f"  ✓ Saved outputs: {model_dir}")

    def _get_best_model(self) -> Optional[str]:
        """Best family by cross-validation mean of the global primary metric."""
        metric = self.global_settings.primary_metric
        column = f'cv_{metric}_mean'
        candidates = {k: v[column] for k, v in self.results.items()
                      if 'error' not in v and column in v and pd.notna(v[column])}
        if not candidates:
            return None
        if MetricsWrapper.greater_is_better(metric):
            return max(sorted(candidates), key=lambda k: candidates[k])
        return min(sorted(candidates), key=lambda k: candidates[k])

    def _comparison_frame(self) -> pd.DataFrame:
        metric = self.global_settings.primary_metric
        column = f'cv_{metric}_mean'
        rows = [v for v in self.results.values() if 'error' not in v]
        if not rows:
            return pd.DataFrame()
        df = pd.DataFrame(rows)
        if column in df.columns:
            ascending = not MetricsWrapper.greater_is_better(metric)
            df = df.sort_values([column, 'model'], ascending=[ascending, True], na_position='last')
            df.insert(0, 'rank', range(1, len(df) + 1))
        return df.reset_index(drop=True)

    def _save_results(self) -> None:
        """Save the comparison table, metadata and a copy of the config."""
        logger.info("\n" + "=" * 60)
        logger.info("SAVING RESULTS")
        logger.info("=" * 60)

        self.output_dir.mkdir(parents=True, exist_ok=True)

        comparison = self._comparison_frame()
        if not comparison.empty:
            comparison.to_csv(self.output_dir / 'comparison.csv', index=False)

        metadata = {
            'experiment': {
                'name': self.experiment_name,
                'timestamp': datetime.now().isoformat(),
                'config_file': self.config_path.name,
                'seed': self.global_settings.seed,
                'version': __version__,
            },
            'data': {
                'n_samples': self.dataset.n_samples,
                'n_features': self.dataset.n_features,
                'classes': self.dataset.class_counts(),
            },
            'models': {
                'completed': [k for k, v in self.results.items() if 'error' not in v],
                'failed': {k: v['error'] for k, v in self.results.items() if 'error' in v},
                'best_model': self._get_best_model(),
            },
            'model_selection': {
                'metric': self.global_settings.primary_metric,
                'signal': 'cross_validation_mean',
            },
        }
        with open(self.output_dir / 'experiment_metadata.json', 'w') as f:
            json.dump(metadata, f, indent=2, default=str)

        shutil.copy2(self.config_path, self.output_dir / 'config.yaml')
        logger.info(f"\n  All results saved to: {self.output_dir}")

    def _print_summary(self) -> None:
        """Print selection summary."""
        logger.info("\n" + "=" * 80)
        logger.info("SELECTION SUMMARY")
        logger.info("=" * 80)

        successful = [k for k, v in self.results.items() if 'error' not in v]
        failed = [k for k, v in self.results.items() if 'error' in v]
        logger.info(f"\nModels completed: {len(successful)}/{len(self.results)}")

        metric = self.global_settings.primary_metric
        comparison = self._comparison_frame()
        if not comparison.empty:
            logger.info(f"\nModels by cross-validation {metric}:")
            for _, row in comparison.head(5).iterrows():
                cv_value = row.get(f'cv_{metric}_mean', float('nan'))
                test_value = row.get(f'test_{metric}', float('nan'))
                logger.info(f"  {row['rank']}. {row['model']:<30} CV {metric}: {cv_value:.4f}, "
                            f"Test {metric}: {test_value:.4f}, Params: {row['n_parameters']:,}")

        if failed:
            logger.info(f"\nFailed models: {', '.join(failed)}")
        logger.info("\n" + "=" * 80)


class TeeOutput:
    def __init__(self, file):
        self.terminal = sys.__stdout__
        self.log = file

    def write(self, message):
        self.terminal.write(message)
        self.log.write(message)
        self.log.flush()

    def flush(self):
        self.terminal.flush()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Cross-validated model selection")
    parser.add_argument('config', type=str, help='Path to configuration file (YAML)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.exists():
        logging.error(f"Configuration file not found: {args.config}")
        return 1

    # Setup log file using config's output directory
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_dir = resolve_output_root(Config(config_path)) / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{config_path.stem}_{timestamp}.log"

    stdout, stderr = sys.stdout, sys.stderr
    with open(log_file, 'w') as f:
        # Redirect stdout and stderr to both console and file
        sys.stdout = TeeOutput(f)
        sys.stderr = sys.stdout

        level = 'DEBUG' if args.debug else 'INFO'
        logging.basicConfig(
            level=getattr(logging, level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            force=True
        )
        loguru_logger.remove()
        handler_id = loguru_logger.add(sys.stderr, level=level)

        print(f"Log file: {log_file}")
        print("=" * 80)

        try:
            SelectionRunner(config_path).run()
            return 0
        except Exception as e:
            logging.error(f"Model selection failed: {e}", exc_info=True)
            return 1
        finally:
            # Point both loggers back at the real streams before the log file closes
            sys.stdout, sys.stderr = stdout, stderr
            loguru_logger.remove(handler_id)
            loguru_logger.add(sys.stderr, level=level)
            logging.basicConfig(level=getattr(logging, level), force=True)


if __name__ == "__main__":
    sys.exit(main())
