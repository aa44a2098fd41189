"""
Pipeline constants and training hyperparameters.

Hyperparameters are fixed in-process; they are not read from the command line
or the environment. Tests and scripts build their own TrainingParams when they
need different values.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DATA_FILE = "data/housing_data.csv"  # 30471 rows

# Token the source data uses for an absent value (kept as-is by the loader)
MISSING_MARKER = "NA"

DATE_FORMAT = "%Y-%m-%d"

ID_COLUMN = "id"
TIMESTAMP_COLUMN = "timestamp"
LABEL_COLUMN = "price_doc"

CATEGORICAL_FEATURES: List[str] = ["sub_area", "ecology"]

# product_type is either 'Investment' or 'OwnerOccupier'
PRODUCT_TYPE_FEATURES: List[str] = ["product_type"]
PRODUCT_TYPE_POSITIVE = "Investment"

YES_NO_FEATURES: List[str] = [
    "culture_objects_top_25",
    "thermal_power_plant_raion",
    "water_1line",
    "incineration_raion",
    "oil_chemistry_raion",
    "radiation_raion",
    "railroad_terminal_raion",
    "big_market_raion",
    "nuclear_reactor_raion",
    "detention_facility_raion",
    "big_road1_1line",
    "railroad_1line",
]
YES_NO_POSITIVE = "yes"


class TrainingParams(BaseModel):
    """Hyperparameters handed to the trainer as opaque options."""

    model_config = ConfigDict(frozen=True)

    test_size: int = Field(1920, gt=0, description="Examples held out for evaluation")
    batch_size: int = Field(128, gt=0, description="Mini-batch size for each optimizer step")
    epoch_size: int = Field(1024, gt=0, description="Examples drawn from the stream per epoch")
    epoch_count: int = Field(50, gt=0, description="Number of epochs to train for")
    optimizer: Literal["adam", "sgd"] = Field("adam", description="Optimizer name")
    learning_rate: float = Field(1e-3, gt=0, description="Optimizer step size")
    random_seed: int = Field(42, description="Seed for shuffling and weight initialisation")
    checkpoint_path: Optional[str] = Field(
        "models/trained_network.joblib",
        description="Where the best network is saved (None disables checkpointing)"
    )


DEFAULT_PARAMS = TrainingParams()
