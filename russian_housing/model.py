"""
Model Training Module for Russian Housing Price Prediction

This module handles:
1. Network topology description and construction (PyTorch)
2. Training for a fixed number of epochs from an infinite epoch stream
3. Model evaluation metrics (R², MAE, MAPE)
4. Model artifact serialization

Key Technical Decisions:
- Model: feed-forward network, linear+ReLU blocks with interleaved dropout
- Loss: MSE on the raw sale price
- Held-out loss checked after every epoch; the best weights are kept
- Fixed random seed for reproducibility
- CPU execution; device placement is left to PyTorch defaults
"""

import copy
import os
import random
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import joblib
import numpy as np
import pandas as pd
import torch
from torch import nn
from sklearn.metrics import r2_score, mean_absolute_error, mean_absolute_percentage_error

from .config import TrainingParams
from .preprocessing import Example


# ==================== TOPOLOGY ====================

@dataclass(frozen=True)
class LayerSpec:
    """
    One layer of the network description.

    kind is one of:
    - 'input': size = number of input features
    - 'linear_relu': fully-connected layer of `size` units followed by ReLU
    - 'dropout': keeps each activation with probability `keep_prob`
    - 'linear': fully-connected output layer of `size` units
    """
    kind: str
    size: Optional[int] = None
    keep_prob: Optional[float] = None

    def __str__(self) -> str:
        if self.kind == 'dropout':
            return f"dropout(keep={self.keep_prob})"
        return f"{self.kind}({self.size})"


def network_description(input_width: int) -> List[LayerSpec]:
    """
    The fixed price-regression topology for `input_width` features.

    input -> 512 -> dropout -> 256 -> dropout -> 128 -> 32 -> dropout -> 8 -> 1
    """
    return [
        LayerSpec('input', size=input_width),
        LayerSpec('linear_relu', size=512),
        LayerSpec('dropout', keep_prob=0.9),
        LayerSpec('linear_relu', size=256),
        LayerSpec('dropout', keep_prob=0.9),
        LayerSpec('linear_relu', size=128),
        LayerSpec('linear_relu', size=32),
        LayerSpec('dropout', keep_prob=0.8),
        LayerSpec('linear_relu', size=8),
        LayerSpec('linear', size=1),
    ]


def format_topology(topology: Sequence[LayerSpec]) -> str:
    """Human-readable one-layer-per-line rendering of a topology."""
    return "\n".join(f"  [{i}] {layer}" for i, layer in enumerate(topology))


def build_network(topology: Sequence[LayerSpec]) -> nn.Sequential:
    """
    Build a torch module from a network description.

    Args:
        topology: Layer specs starting with a single 'input' layer

    Returns:
        nn.Sequential mapping (batch, input_width) -> (batch, output_size)
    """
    if not topology or topology[0].kind != 'input':
        raise ValueError("Network description must start with an 'input' layer")

    width = topology[0].size
    modules: List[nn.Module] = []

    for layer in topology[1:]:
        if layer.kind == 'linear_relu':
            modules.append(nn.Linear(width, layer.size))
            modules.append(nn.ReLU())
            width = layer.size
        elif layer.kind == 'linear':
            modules.append(nn.Linear(width, layer.size))
            width = layer.size
        elif layer.kind == 'dropout':
            # torch's p is the drop probability
            modules.append(nn.Dropout(p=1.0 - layer.keep_prob))
        else:
            raise ValueError(f"Unknown layer kind: {layer.kind!r}")

    return nn.Sequential(*modules)


# ==================== TRAINING ====================

@dataclass
class TrainedModel:
    """Handle to a trained network plus what is needed to use and inspect it."""
    network: nn.Sequential
    topology: List[LayerSpec]
    best_test_loss: float
    history: List[Dict[str, float]]
    feature_names: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)


def set_random_seed(seed: int = 42) -> None:
    """Seed Python, NumPy and PyTorch RNGs."""
    os.environ["PYTHONHASHSEED"] = str(int(seed))
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def make_optimizer(name: str, parameters, learning_rate: float) -> torch.optim.Optimizer:
    if name == 'adam':
        return torch.optim.Adam(parameters, lr=learning_rate)
    if name == 'sgd':
        return torch.optim.SGD(parameters, lr=learning_rate, momentum=0.9)
    raise ValueError(f"Unknown optimizer: {name!r}")


def examples_to_tensors(examples: Sequence[Example]):
    """Stack Examples into (features, labels) float32 tensors."""
    features = torch.from_numpy(np.stack([ex.features for ex in examples]).astype(np.float32))
    labels = torch.tensor([ex.label for ex in examples], dtype=torch.float32)
    return features, labels


def _evaluate_loss(network: nn.Module, features: torch.Tensor, labels: torch.Tensor, loss_fn) -> float:
    network.eval()
    with torch.no_grad():
        pred = network(features).squeeze(-1)
        return loss_fn(pred, labels).item()


def train_network(
    topology: Sequence[LayerSpec],
    train_stream: Iterator[List[Example]],
    held_out: Sequence[Example],
    params: TrainingParams,
    verbose: bool = True
) -> TrainedModel:
    """
    Train a network for params.epoch_count epochs.

    Each epoch pulls the next epoch from `train_stream` and steps the optimizer
    over it in mini-batches of params.batch_size. The held-out loss is
    computed after every epoch and the weights with the lowest held-out loss
    are returned.

    Args:
        topology: Network description (see network_description)
        train_stream: Infinite stream of training epochs (see infinite_epochs)
        held_out: Fixed examples used only for evaluation
        params: Batch size, epoch count and optimizer settings

    Returns:
        TrainedModel holding the best network and the per-epoch loss history
    """
    if len(held_out) == 0:
        raise ValueError("held_out must contain at least one example")

    network = build_network(topology)
    optimizer = make_optimizer(params.optimizer, network.parameters(), params.learning_rate)
    loss_fn = nn.MSELoss()

    test_features, test_labels = examples_to_tensors(held_out)

    if verbose:
        print("=" * 80)
        print("TRAINING NETWORK")
        print("=" * 80)
        print(f"\nHyperparameters:")
        for key, value in params.model_dump().items():
            print(f"  {key}: {value}")
        print(f"\nHeld-out examples: {len(held_out):,}")

    best_loss = float('inf')
    best_state = copy.deepcopy(network.state_dict())
    history = []

    for epoch in range(1, params.epoch_count + 1):
        features, labels = examples_to_tensors(next(train_stream))

        network.train()
        total_loss, total_count = 0.0, 0
        for start in range(0, len(labels), params.batch_size):
            xb = features[start:start + params.batch_size]
            yb = labels[start:start + params.batch_size]

            optimizer.zero_grad(set_to_none=True)
            loss = loss_fn(network(xb).squeeze(-1), yb)
            loss.backward()
            optimizer.step()

            total_loss += loss.item() * len(yb)
            total_count += len(yb)

        train_loss = total_loss / total_count
        test_loss = _evaluate_loss(network, test_features, test_labels, loss_fn)
        history.append({'epoch': epoch, 'train_loss': train_loss, 'test_loss': test_loss})

        improved = test_loss < best_loss
        if improved:
            best_loss = test_loss
            best_state = copy.deepcopy(network.state_dict())

        if verbose:
            marker = " *" if improved else ""
            print(f"Epoch {epoch:>4}/{params.epoch_count}: train MSE {train_loss:.4e} | held-out MSE {test_loss:.4e}{marker}")

    network.load_state_dict(best_state)
    network.eval()

    if verbose:
        print("\n" + "=" * 80)
        print("TRAINING COMPLETE")
        print("=" * 80)
        print(f"Best held-out loss: {best_loss:.4e}")

    return TrainedModel(
        network=network,
        topology=list(topology),
        best_test_loss=best_loss,
        history=history
    )


def predict(model: TrainedModel, features: np.ndarray) -> np.ndarray:
    """
    Predict sale prices for a feature matrix.

    Args:
        model: Trained model
        features: (n_records x n_features) matrix in the training feature order

    Returns:
        1-D array of predicted prices
    """
    model.network.eval()
    with torch.no_grad():
        inputs = torch.as_tensor(np.asarray(features, dtype=np.float32))
        return model.network(inputs).squeeze(-1).numpy()


# ==================== EVALUATION ====================

def compute_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    dataset_name: str = "Dataset",
    safe_mape_threshold: float = 1.0,
    verbose: bool = True
) -> Dict[str, float]:
    """
    Compute regression metrics in price space.

    Metrics:
    - R² Score: Proportion of variance explained (higher is better, max 1.0)
    - MAE: Mean Absolute Error in roubles (lower is better)
    - MAPE: Mean Absolute Percentage Error (lower is better)

    MAPE Safety: Skip rows where y_true <= threshold to avoid division issues.

    Args:
        y_true: True prices
        y_pred: Predicted prices
        dataset_name: Name for printing (e.g., "Held-out")
        safe_mape_threshold: Minimum y_true value for MAPE computation

    Returns:
        Dictionary with metrics
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    r2 = r2_score(y_true, y_pred)
    mae = mean_absolute_error(y_true, y_pred)

    valid_mask = y_true > safe_mape_threshold
    if valid_mask.sum() > 0:
        mape = mean_absolute_percentage_error(y_true[valid_mask], y_pred[valid_mask]) * 100
        mape_excluded = int(len(y_true) - valid_mask.sum())
    else:
        mape = np.nan
        mape_excluded = len(y_true)

    metrics = {
        'r2': float(r2),
        'mae': float(mae),
        'mape': float(mape),
        'mape_excluded_count': mape_excluded
    }

    if verbose:
        print(f"\n{'=' * 80}")
        print(f"{dataset_name.upper()} METRICS")
        print(f"{'=' * 80}")
        print(f"R² Score:  {r2:.4f}")
        print(f"MAE:       {mae:,.2f}")
        if not np.isnan(mape):
            print(f"MAPE:      {mape:.2f}% (excluded {mape_excluded} rows with y_true <= {safe_mape_threshold})")
        else:
            print(f"MAPE:      Not computable (all values <= {safe_mape_threshold})")

    return metrics


# ==================== ARTIFACTS ====================

def save_model_artifact(model: TrainedModel, save_path: str) -> None:
    """
    Save the trained network with everything needed to rebuild it.

    The artifact contains:
    - Network weights (state dict)
    - Topology (layer specs)
    - Feature order expected at prediction time
    - Held-out loss history and metrics

    Args:
        model: Trained model
        save_path: Path to save artifact (e.g., 'models/trained_network.joblib')
    """
    model_dir = os.path.dirname(os.path.abspath(save_path))
    os.makedirs(model_dir, exist_ok=True)

    artifact = {
        'state_dict': {k: v.detach().cpu() for k, v in model.network.state_dict().items()},
        'topology': [asdict(layer) for layer in model.topology],
        'feature_names': model.feature_names,
        'best_test_loss': model.best_test_loss,
        'history': model.history,
        'metrics': model.metrics,
        'model_version': '1.0',
        'trained_at': pd.Timestamp.now()
    }
    joblib.dump(artifact, save_path)

    size_mb = os.path.getsize(save_path) / (1024**2)
    print("\n" + "=" * 80)
    print("MODEL ARTIFACT SAVED")
    print("=" * 80)
    print(f"File: {save_path}")
    print(f"  Size: {size_mb:.2f} MB")
    print(f"  Features: {len(model.feature_names)}")
    print(f"  Best held-out loss: {model.best_test_loss:.4e}")


def load_model_artifact(artifact_path: str) -> TrainedModel:
    """
    Load a saved artifact and rebuild the trained network.

    Args:
        artifact_path: Path to saved artifact

    Returns:
        TrainedModel in eval mode
    """
    artifact: Dict[str, Any] = joblib.load(artifact_path)

    topology = [LayerSpec(**layer) for layer in artifact['topology']]
    network = build_network(topology)
    network.load_state_dict(artifact['state_dict'])
    network.eval()

    print(f"Model artifact loaded from: {artifact_path}")
    print(f"Trained at: {artifact.get('trained_at', 'unknown')}")

    return TrainedModel(
        network=network,
        topology=topology,
        best_test_loss=artifact['best_test_loss'],
        history=artifact['history'],
        feature_names=artifact['feature_names'],
        metrics=artifact.get('metrics', {})
    )
