"""
Training entry point.

    python -m russian_housing.train

Builds the dataset from DATA_FILE, prints the network topology, holds out the
first `test_size` examples and trains on an infinite shuffled stream of the
rest. Hyperparameters come from config.DEFAULT_PARAMS.
"""

from typing import Optional

import numpy as np

from .config import DATA_FILE, DEFAULT_PARAMS, TrainingParams
from .dataset import HousingDataset
from .model import (
    TrainedModel,
    compute_metrics,
    format_topology,
    network_description,
    predict,
    save_model_artifact,
    set_random_seed,
    train_network,
)
from .streaming import infinite_epochs


def train(
    dataset: Optional[HousingDataset] = None,
    params: TrainingParams = DEFAULT_PARAMS
) -> TrainedModel:
    """
    Train the price network for params.epoch_count epochs.

    Args:
        dataset: Dataset handle (default: HousingDataset(DATA_FILE))
        params: Hyperparameters

    Returns:
        TrainedModel with held-out metrics attached
    """
    set_random_seed(params.random_seed)

    if dataset is None:
        dataset = HousingDataset(DATA_FILE)

    topology = network_description(dataset.feature_count)
    print("\nNetwork description:")
    print(format_topology(topology))

    train_set, held_out = dataset.split(params.test_size)
    print(f"\nTrain examples: {len(train_set):,} | Held-out examples: {len(held_out):,}")

    stream = infinite_epochs(
        train_set,
        epoch_size=params.epoch_size,
        rng=np.random.default_rng(params.random_seed)
    )
    model = train_network(topology, stream, held_out, params)
    model.feature_names = list(dataset.feature_names)

    y_true = np.array([ex.label for ex in held_out])
    y_pred = predict(model, np.stack([ex.features for ex in held_out]))
    model.metrics = compute_metrics(y_true, y_pred, "Held-out")

    if params.checkpoint_path:
        save_model_artifact(model, params.checkpoint_path)

    return model


def main() -> None:
    train()


if __name__ == "__main__":
    main()
