"""
Unit tests for the network description, training driver and artifacts.
"""

import numpy as np
import pytest
import torch
from pydantic import ValidationError
from torch import nn

from russian_housing.config import TrainingParams
from russian_housing.model import (
    LayerSpec,
    build_network,
    compute_metrics,
    format_topology,
    load_model_artifact,
    network_description,
    predict,
    save_model_artifact,
    set_random_seed,
    train_network,
)
from russian_housing.preprocessing import Example
from russian_housing.streaming import infinite_epochs


TINY_TOPOLOGY = [
    LayerSpec('input', size=3),
    LayerSpec('linear_relu', size=8),
    LayerSpec('dropout', keep_prob=0.9),
    LayerSpec('linear', size=1),
]


def _make_examples(n: int, seed: int = 0):
    rng = np.random.default_rng(seed)
    examples = []
    for _ in range(n):
        features = rng.normal(size=3).astype(np.float32)
        label = float(2.0 * features[0] - features[1] + 0.5)
        examples.append(Example(features=features, label=label))
    return examples


def _tiny_params(**overrides):
    values = dict(test_size=4, batch_size=4, epoch_size=8, epoch_count=3, checkpoint_path=None)
    values.update(overrides)
    return TrainingParams(**values)


def test_network_description_shape():
    topology = network_description(42)

    assert topology[0] == LayerSpec('input', size=42)
    assert topology[-1] == LayerSpec('linear', size=1)
    assert [l.size for l in topology if l.kind == 'linear_relu'] == [512, 256, 128, 32, 8]
    assert [l.keep_prob for l in topology if l.kind == 'dropout'] == [0.9, 0.9, 0.8]
    assert "dropout(keep=0.8)" in format_topology(topology)


def test_build_network_maps_features_to_scalar():
    network = build_network(network_description(5))
    network.eval()

    out = network(torch.zeros(4, 5))

    assert out.shape == (4, 1)
    drop_probs = [m.p for m in network if isinstance(m, nn.Dropout)]
    assert drop_probs == pytest.approx([0.1, 0.1, 0.2])


@pytest.mark.parametrize("topology", [
    [],
    [LayerSpec('linear', size=1)],
    [LayerSpec('input', size=3), LayerSpec('conv', size=2)],
])
def test_build_network_rejects_bad_description(topology):
    with pytest.raises(ValueError):
        build_network(topology)


def test_training_params_validation():
    assert TrainingParams().batch_size == 128
    with pytest.raises(ValidationError):
        TrainingParams(batch_size=0)
    with pytest.raises(ValidationError):
        TrainingParams(optimizer='rmsprop')
    with pytest.raises(ValidationError):
        TrainingParams().test_size = 10


def test_train_network_consumes_one_epoch_per_epoch_count():
    set_random_seed(0)
    examples = _make_examples(40)
    held_out, train_set = examples[:4], examples[4:]
    params = _tiny_params(epoch_count=5)

    pulled = []

    def counting_stream():
        for epoch in infinite_epochs(train_set, params.epoch_size, rng=np.random.default_rng(0)):
            pulled.append(len(epoch))
            yield epoch

    model = train_network(TINY_TOPOLOGY, counting_stream(), held_out, params, verbose=False)

    assert pulled == [8] * 5
    assert [h['epoch'] for h in model.history] == [1, 2, 3, 4, 5]


def test_train_network_returns_best_held_out_weights():
    set_random_seed(1)
    examples = _make_examples(60, seed=1)
    held_out, train_set = examples[:6], examples[6:]
    params = _tiny_params(epoch_count=6, learning_rate=0.01)
    stream = infinite_epochs(train_set, params.epoch_size, rng=np.random.default_rng(1))

    model = train_network(TINY_TOPOLOGY, stream, held_out, params, verbose=False)

    assert model.best_test_loss == pytest.approx(min(h['test_loss'] for h in model.history))
    y_true = np.array([ex.label for ex in held_out])
    y_pred = predict(model, np.stack([ex.features for ex in held_out]))
    assert y_pred.shape == (6,)
    assert float(np.mean((y_pred - y_true) ** 2)) == pytest.approx(model.best_test_loss, rel=1e-4)


def test_train_network_with_sgd():
    examples = _make_examples(20)
    params = _tiny_params(optimizer='sgd', epoch_count=2, learning_rate=0.001)
    stream = infinite_epochs(examples[4:], params.epoch_size)

    model = train_network(TINY_TOPOLOGY, stream, examples[:4], params, verbose=False)

    assert len(model.history) == 2


def test_train_network_requires_held_out():
    stream = infinite_epochs(_make_examples(8), 4)
    with pytest.raises(ValueError):
        train_network(TINY_TOPOLOGY, stream, [], _tiny_params(), verbose=False)


def test_compute_metrics_perfect_prediction():
    y = np.array([100.0, 250.0, 400.0])
    metrics = compute_metrics(y, y, "Perfect", verbose=False)

    assert metrics['r2'] == pytest.approx(1.0)
    assert metrics['mae'] == pytest.approx(0.0)
    assert metrics['mape'] == pytest.approx(0.0)
    assert metrics['mape_excluded_count'] == 0


def test_compute_metrics_skips_small_targets_for_mape():
    y_true = np.array([0.5, 200.0, 400.0])
    y_pred = np.array([1.0, 220.0, 360.0])

    metrics = compute_metrics(y_true, y_pred, verbose=False)

    assert metrics['mape_excluded_count'] == 1
    assert metrics['mape'] == pytest.approx(10.0)


def test_artifact_round_trip(tmp_path):
    set_random_seed(3)
    examples = _make_examples(24, seed=3)
    params = _tiny_params(epoch_count=2)
    stream = infinite_epochs(examples[4:], params.epoch_size)
    model = train_network(TINY_TOPOLOGY, stream, examples[:4], params, verbose=False)
    model.feature_names = ['a', 'b', 'c']
    model.metrics = {'r2': 0.5}

    path = tmp_path / "models" / "net.joblib"
    save_model_artifact(model, str(path))
    loaded = load_model_artifact(str(path))

    features = np.stack([ex.features for ex in examples])
    np.testing.assert_allclose(predict(loaded, features), predict(model, features), rtol=1e-6)
    assert loaded.feature_names == ['a', 'b', 'c']
    assert loaded.topology == TINY_TOPOLOGY
    assert loaded.metrics == {'r2': 0.5}
