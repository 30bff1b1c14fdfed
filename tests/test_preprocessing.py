"""
Tests for cvselect.data preprocessing steps and pipeline.
"""
import numpy as np
import pytest

from cvselect.data import (
    DecorrelationStep,
    FeatureScaler,
    Preprocessor,
    ProjectionStep,
)
from cvselect.errors import ConfigurationError, DataShapeError


@pytest.fixture
def train_features():
    rng = np.random.RandomState(0)
    return rng.normal(loc=5.0, scale=2.0, size=(40, 4))


class TestFeatureScaler:
    """Scaling step."""

    def test_standard_scaling_uses_training_statistics(self, train_features):
        state = FeatureScaler('standard').fit(train_features)
        transformed = state.transform(train_features)
        np.testing.assert_allclose(transformed.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(transformed.std(axis=0), 1.0, atol=1e-10)

    def test_unknown_scaler(self):
        with pytest.raises(ConfigurationError):
            FeatureScaler('zscore')

    def test_step_object_holds_no_fitted_state(self, train_features):
        scaler = FeatureScaler('minmax')
        first = scaler.fit(train_features)
        second = scaler.fit(train_features * 10)
        assert first.transformer is not second.transformer
        np.testing.assert_allclose(first.transform(train_features).max(axis=0), 1.0)


class TestPreprocessor:
    """Pipeline composition, replay and leakage behavior."""

    def test_fit_ignores_held_out_data(self, train_features):
        """Fitting depends on the training argument only."""
        pipeline = Preprocessor.from_config([{'type': 'scale'}, {'type': 'project', 'n_components': 2}])
        held_out_a = np.full((10, 4), 100.0)
        held_out_b = np.full((10, 4), -100.0)

        state_a = pipeline.fit(train_features)
        state_b = pipeline.fit(train_features)
        np.testing.assert_allclose(state_a.apply(train_features), state_b.apply(train_features))

        # held-out values never influence the fitted state
        out_a = state_a.apply(held_out_a)
        out_b = state_a.apply(held_out_b)
        assert out_a.shape == out_b.shape == (10, 2)
        np.testing.assert_allclose(state_a.apply(train_features), state_b.apply(train_features))

    def test_steps_replayed_in_order(self, train_features):
        pipeline = Preprocessor([FeatureScaler('standard'), ProjectionStep(n_components=3)])
        state = pipeline.fit(train_features)
        assert [s.name for s in state.steps] == ['scale', 'project']
        assert state.n_features_in == 4
        assert state.n_features_out == 3
        assert pipeline.apply(state, train_features).shape == (40, 3)

    def test_apply_rejects_wrong_feature_count(self, train_features):
        state = Preprocessor.from_config(['scale']).fit(train_features)
        with pytest.raises(DataShapeError):
            state.apply(np.zeros((5, 3)))

    def test_empty_pipeline_is_identity(self, train_features):
        state = Preprocessor().fit(train_features)
        np.testing.assert_array_equal(state.apply(train_features), train_features)
        assert repr(Preprocessor()) == 'Preprocessor(identity)'

    def test_from_config_skips_disabled_steps(self):
        pipeline = Preprocessor.from_config([
            {'type': 'scale', 'scaler_type': 'robust'},
            {'type': 'decorrelate', 'enabled': False},
        ])
        assert [step.name for step in pipeline.steps] == ['scale']
        assert pipeline.get_config() == [{'type': 'scale', 'scaler_type': 'robust'}]

    @pytest.mark.parametrize('config', [
        [{'type': 'whiten'}],
        [{'type': 'scale', 'bogus': 1}],
        [{'scaler_type': 'standard'}],
    ])
    def test_from_config_errors(self, config):
        with pytest.raises(ConfigurationError):
            Preprocessor.from_config(config)

    def test_save_and_load_state(self, train_features, tmp_path):
        state = Preprocessor.from_config(['scale']).fit(train_features)
        path = tmp_path / 'state.joblib'
        Preprocessor.save_state(state, path)
        loaded = Preprocessor.load_state(path)
        np.testing.assert_allclose(loaded.apply(train_features), state.apply(train_features))


class TestProjectionAndDecorrelation:
    """Projection and decorrelation steps."""

    def test_too_many_components(self, train_features):
        with pytest.raises(DataShapeError):
            ProjectionStep(n_components=10).fit(train_features)

    def test_nmf_needs_non_negative_data(self, train_features):
        step = ProjectionStep(n_components=2, method='nmf')
        with pytest.raises(DataShapeError):
            step.fit(train_features - 100.0)
        state = step.fit(np.abs(train_features))
        assert state.n_features_out == 2

    def test_decorrelate_drops_duplicate_column(self, train_features):
        X = np.column_stack([train_features, train_features[:, 0] * 2.0 + 1.0])
        state = DecorrelationStep(threshold=0.95).fit(X)
        assert state.n_features_out == 4
        assert len(state.info['dropped']) == 1
        assert state.info['dropped'][0] in (0, 4)
        assert state.transform(X).shape == (40, 4)

    def test_decorrelate_respects_min_features(self):
        base = np.arange(20, dtype=float)
        X = np.column_stack([base, base * 2, base * 3])
        state = DecorrelationStep(threshold=0.9, min_features=2).fit(X)
        assert state.n_features_out == 2

    def test_decorrelate_constant_column(self, train_features):
        X = np.column_stack([train_features, np.ones(40)])
        state = DecorrelationStep(threshold=0.95).fit(X)
        assert state.n_features_out == 5
