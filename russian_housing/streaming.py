"""
Infinite epoch stream over a finite example set.

The stream shuffles the full example set, concatenates successive shuffles
end to end and cuts the result into fixed-size epochs. An epoch may straddle
two shuffles when epoch_size does not divide the dataset size; the cut never
triggers a reshuffle. Only one permutation of indices is held at a time.
"""

from itertools import islice
from typing import Iterator, List, Optional, Sequence, TypeVar

import numpy as np

T = TypeVar('T')


def _shuffled_cycles(items: Sequence[T], rng: np.random.Generator) -> Iterator[T]:
    while True:
        for idx in rng.permutation(len(items)):
            yield items[idx]


def infinite_epochs(
    examples: Sequence[T],
    epoch_size: int = 1024,
    rng: Optional[np.random.Generator] = None
) -> Iterator[List[T]]:
    """
    Generate an infinite sequence of epochs drawn from shuffled copies of `examples`.

    Each call returns a fresh, independent stream.

    Args:
        examples: Finite example set (not modified)
        epoch_size: Number of examples per epoch
        rng: NumPy Generator used for shuffling (default: unseeded)

    Returns:
        Iterator yielding lists of exactly `epoch_size` examples, forever
    """
    if epoch_size <= 0:
        raise ValueError(f"epoch_size must be positive, got {epoch_size}")
    if len(examples) == 0:
        raise ValueError("Cannot stream epochs from an empty example set")

    if rng is None:
        rng = np.random.default_rng()

    def epochs() -> Iterator[List[T]]:
        stream = _shuffled_cycles(examples, rng)
        while True:
            yield list(islice(stream, epoch_size))

    return epochs()

