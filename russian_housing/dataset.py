"""
Dataset handle owning the parsed and assembled housing data.

Construct one HousingDataset at startup and pass it to every consumer. The
CSV is read on first access and the assembled examples are computed once and
reused for the lifetime of the object.
"""

from functools import cached_property
from pathlib import Path
from typing import List, Tuple, Union

import pandas as pd

from .config import DATA_FILE
from .loader import load_records
from .preprocessing import Example, run_full_preprocessing_pipeline


class HousingDataset:
    """Lazily loaded, memoized housing dataset."""

    def __init__(self, path: Union[str, Path] = DATA_FILE, verbose: bool = True):
        self.path = Path(path)
        self.verbose = verbose

    @cached_property
    def records(self) -> pd.DataFrame:
        """Raw parsed records, in file order."""
        if self.verbose:
            print(f"Loading records from {self.path}...")
        return load_records(self.path)

    @cached_property
    def _pipeline_output(self):
        return run_full_preprocessing_pipeline(self.records, verbose=self.verbose)

    @property
    def examples(self) -> List[Example]:
        return self._pipeline_output['examples']

    @property
    def feature_names(self) -> List[str]:
        return self._pipeline_output['feature_names']

    @property
    def feature_count(self) -> int:
        return len(self.feature_names)

    def split(self, test_size: int) -> Tuple[List[Example], List[Example]]:
        """
        Split into (train, held_out): the first `test_size` examples are held out.

        Encoding already ran on the full dataset, so both parts share one
        feature schema.
        """
        examples = self.examples
        if not 0 < test_size < len(examples):
            raise ValueError(
                f"test_size must be between 1 and {len(examples) - 1}, got {test_size}"
            )
        return examples[test_size:], examples[:test_size]

    def __len__(self) -> int:
        return len(self.examples)
