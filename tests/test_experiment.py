"""
End-to-end tests for ModelSelectionExperiment and the config-driven runner.
"""
import json
import threading

import numpy as np
import pandas as pd
import pytest
import yaml

from cvselect import ModelSelectionExperiment
from cvselect.data import Preprocessor
from cvselect.errors import AllPointsFailedError, ConfigurationError
from cvselect.models import ModelFactory
from cvselect.runner import SelectionRunner, main
from cvselect.tuning import HarnessReport, HyperparameterPoint
from cvselect.utils import HarnessSettings


@pytest.fixture
def settings():
    return HarnessSettings(test_fraction=0.25, fold_count=3, seed=11,
                           grid={'C': [-1.0, 0.1, 1.0]}, metrics=('accuracy', 'f1', 'auc'),
                           backend='sequential')


class TestModelSelectionExperiment:
    """Split, tune, select and finalise for one model family."""

    def test_full_run(self, classification_dataset, settings):
        experiment = ModelSelectionExperiment(settings, Preprocessor.from_config(['scale']))
        report = experiment.run(classification_dataset, ModelFactory.plugin_factory('logistic_regression'))

        assert report.model_name == 'logistic_regression'
        assert report.cancelled is False
        assert len(report.summaries) == 3
        assert len(report.records) == 9

        failing = next(s for s in report.summaries if s.point == {'C': -1.0})
        assert failing.successful_fold_count == 0
        assert failing.failed_fold_count == 3
        assert failing.rank is None
        assert report.summaries[-1] is failing

        assert report.selected_point != {'C': -1.0}
        assert report.final.selected_point == report.selected_point
        assert report.final.train_size == 90
        assert report.final.test_size == 30
        assert report.final.metrics['accuracy'] > 0.8
        assert report.final.confusion.total == 30

    def test_runs_are_reproducible(self, classification_dataset, settings):
        factory = ModelFactory.plugin_factory('logistic_regression')
        first = ModelSelectionExperiment(settings).run(classification_dataset, factory)
        second = ModelSelectionExperiment(settings).run(classification_dataset, factory)
        assert first.selected_point == second.selected_point
        assert first == second

    def test_grid_argument_overrides_settings(self, classification_dataset, settings):
        report = ModelSelectionExperiment(settings).run(
            classification_dataset, ModelFactory.plugin_factory('knn'),
            grid=[{'n_neighbors': 3}, {'n_neighbors': 5}], model_name='knn_small')
        assert report.model_name == 'knn_small'
        assert {s.point for s in report.summaries} == {HyperparameterPoint({'n_neighbors': 3}),
                                                       HyperparameterPoint({'n_neighbors': 5})}

    def test_multiclass_run(self, multiclass_dataset):
        settings = HarnessSettings(fold_count=3, metrics=('f1_macro', 'accuracy'),
                                   grid={'var_smoothing': [1e-9, 1e-5]}, backend='thread', n_jobs=2)
        report = ModelSelectionExperiment(settings).run(
            multiclass_dataset, ModelFactory.plugin_factory('naive_bayes'))
        assert report.final.classes == (0, 1, 2)
        assert 0.0 <= report.final.metrics['f1_macro'] <= 1.0

    def test_dataset_is_not_modified(self, classification_dataset, settings):
        before = classification_dataset.features.copy()
        ModelSelectionExperiment(settings, Preprocessor.from_config(['scale'])).run(
            classification_dataset, ModelFactory.plugin_factory('logistic_regression'))
        np.testing.assert_array_equal(classification_dataset.features, before)

    def test_all_points_failing_raises(self, classification_dataset, settings):
        with pytest.raises(AllPointsFailedError):
            ModelSelectionExperiment(settings).run(
                classification_dataset, ModelFactory.plugin_factory('logistic_regression'),
                grid={'C': [-1.0, -2.0]})

    def test_cancel_before_start_leaves_nothing_to_select(self, classification_dataset, settings):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(AllPointsFailedError):
            ModelSelectionExperiment(settings).run(
                classification_dataset, ModelFactory.plugin_factory('logistic_regression'),
                cancel_event=cancel)

    def test_unknown_positive_label_raises(self, classification_dataset):
        settings = HarnessSettings(fold_count=3, metrics=('f1',), positive_label='yes')
        with pytest.raises(ConfigurationError, match='positive_label'):
            ModelSelectionExperiment(settings).run(
                classification_dataset, ModelFactory.plugin_factory('majority'))

    def test_single_class_dataset_raises(self, classification_dataset):
        from cvselect.data import Dataset
        single = Dataset.from_arrays(classification_dataset.features, np.zeros(120, dtype=int))
        with pytest.raises(ConfigurationError, match='at least 2'):
            ModelSelectionExperiment(HarnessSettings(fold_count=3)).run(
                single, ModelFactory.plugin_factory('majority'))


@pytest.fixture
def config_file(classification_dataset, tmp_path):
    """CSV dataset plus a YAML config writing under tmp_path/results."""
    classification_dataset.to_frame().to_csv(tmp_path / 'data.csv', index=False)
    config = {
        'data': {'file': 'data.csv', 'label_column': 'label'},
        'selection': {'test_fraction': 0.25, 'fold_count': 3, 'seed': 3},
        'evaluation': {'metrics': ['accuracy', 'auc']},
        'execution': {'backend': 'sequential'},
        'preprocessing': {'default': [{'type': 'scale'}], 'none': []},
        'models': {
            'logistic_regression': {'grid': {'C': [0.1, 1.0]}},
            'majority': {'preprocessing': 'none'},
            'broken': {'model': 'no_such_model'},
            'svm': {'enabled': False},
        },
        'output': {'output_dir': str(tmp_path / 'results')},
    }
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(config))
    return path


class TestSelectionRunner:
    """Config-driven runs across model families."""

    def test_run_writes_outputs(self, config_file, tmp_path):
        runner = SelectionRunner(config_file)
        reports = runner.run()

        assert sorted(reports) == ['logistic_regression', 'majority']
        assert runner.output_dir.parent == tmp_path / 'results'
        assert runner.results['broken']['error'].startswith('Unknown model')

        lr_dir = runner.output_dir / 'logistic_regression'
        for name in ('report.json', 'report.yaml', 'summaries.csv', 'model.joblib',
                     'preprocessor_state.joblib'):
            assert (lr_dir / name).exists()
        assert HarnessReport.load(lr_dir / 'report.json') == reports['logistic_regression']

        comparison = pd.read_csv(runner.output_dir / 'comparison.csv')
        assert list(comparison['model']) == ['logistic_regression', 'majority']
        assert list(comparison['rank']) == [1, 2]
        assert 'cv_accuracy_mean' in comparison.columns
        assert 'test_auc' in comparison.columns

        metadata = json.loads((runner.output_dir / 'experiment_metadata.json').read_text())
        assert metadata['models']['best_model'] == 'logistic_regression'
        assert metadata['models']['failed'] == {'broken': runner.results['broken']['error']}
        assert metadata['data']['n_samples'] == 120
        assert (runner.output_dir / 'config.yaml').exists()

    def test_saved_preprocessor_state_reloads(self, config_file, classification_dataset):
        runner = SelectionRunner(config_file)
        runner.run()
        state = Preprocessor.load_state(runner.output_dir / 'logistic_regression' / 'preprocessor_state.joblib')
        assert state.apply(classification_dataset.features).shape == (120, 5)

    def test_main_returns_zero_and_logs(self, config_file, tmp_path):
        assert main([str(config_file)]) == 0
        assert len(list((tmp_path / 'results' / 'logs').glob('config_*.log'))) == 1
        run_dirs = list((tmp_path / 'results').glob('config_*'))
        assert len(run_dirs) == 1
        assert (run_dirs[0] / 'comparison.csv').exists()

    def test_main_missing_config(self, tmp_path):
        assert main([str(tmp_path / 'absent.yaml')]) == 1

    def test_main_reports_invalid_settings(self, config_file):
        config = yaml.safe_load(config_file.read_text())
        config['selection']['fold_count'] = 1
        config_file.write_text(yaml.safe_dump(config))
        assert main([str(config_file)]) == 1
