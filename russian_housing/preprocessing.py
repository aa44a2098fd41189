"""
Feature Engineering Module for Russian Housing Price Prediction

This module turns heterogeneous CSV records into uniform numeric feature
vectors paired with their sale price.

CRITICAL: Every stage is a pure function over a record frame. Stages return a
new frame and never modify their input, and the label column travels with its
record until it is split off right before imputation.

Architecture decisions:
- Timestamps become day offsets from the FIRST record's timestamp
- One-hot vocabularies are derived from the data passed in (first-appearance
  order), so encoding must happen before any train/test split
- Yes/no and product-type columns collapse to 1 (positive value) / 0 (anything else,
  including the missing marker)
- Missing values ('NA') are replaced by the per-feature mean of observed values;
  the label is never imputed
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import (
    CATEGORICAL_FEATURES,
    DATE_FORMAT,
    ID_COLUMN,
    LABEL_COLUMN,
    MISSING_MARKER,
    PRODUCT_TYPE_FEATURES,
    PRODUCT_TYPE_POSITIVE,
    TIMESTAMP_COLUMN,
    YES_NO_FEATURES,
    YES_NO_POSITIVE,
)
from .exceptions import (
    DateFormatError,
    ImputationError,
    LabelNotFoundError,
    MissingBaseDateError,
    MissingLabelError,
    NonNumericFeatureError,
)


@dataclass(frozen=True, eq=False)
class Example:
    """One training example: a read-only float feature vector and its sale price."""
    features: np.ndarray
    label: float


def _require_columns(df: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(f"Missing columns in records: {missing}")


def drop_columns(records: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Drop identifier-like columns that carry no signal (e.g. 'id').

    Args:
        records: Input record frame
        columns: Columns to drop (absent columns are ignored)

    Returns:
        New frame without those columns
    """
    return records.drop(columns=[c for c in columns if c in records.columns])


# ==================== DATES ====================

def convert_date(base_day: str, current_day: str) -> int:
    """
    Number of days from base_day to current_day.

    Both dates must be 'year-month-day' strings. The result is negative when
    current_day is earlier than base_day.

    Args:
        base_day: Reference date, e.g. '2011-08-20'
        current_day: Date to convert

    Returns:
        Signed number of whole days between the two dates

    Raises:
        DateFormatError: either value is not a 'year-month-day' string
    """
    try:
        base = datetime.strptime(base_day, DATE_FORMAT)
        current = datetime.strptime(current_day, DATE_FORMAT)
    except (TypeError, ValueError) as exc:
        raise DateFormatError(
            f"Expected dates in {DATE_FORMAT} format, got {base_day!r} and {current_day!r}"
        ) from exc

    return (current - base).days


def convert_timestamps(records: pd.DataFrame, column: str = TIMESTAMP_COLUMN) -> pd.DataFrame:
    """
    Replace an absolute date column with the day offset from the first record.

    The first record's date is the base, so the first offset is always 0.
    Later records with the missing marker keep it and are imputed downstream.

    Args:
        records: Record frame with a date column
        column: Name of the date column

    Returns:
        New frame with integer day offsets in `column`

    Raises:
        MissingBaseDateError: column is absent or the first record has no date
        DateFormatError: a present date is not 'year-month-day'
    """
    if column not in records.columns:
        raise MissingBaseDateError(f"Column '{column}' is required to compute day offsets")

    df = records.copy()
    if df.empty:
        return df

    base_day = df[column].iloc[0]
    if base_day == MISSING_MARKER:
        raise MissingBaseDateError(
            f"First record has no '{column}' value; cannot use it as the base date"
        )

    convert_date(base_day, base_day)
    base = pd.Timestamp(base_day)

    present = df[column] != MISSING_MARKER
    days = df.loc[present, column]
    not_text = days[~days.map(lambda day: isinstance(day, str))]
    if not not_text.empty:
        raise DateFormatError(
            f"Column '{column}' has non-date value {not_text.iloc[0]!r}; expected {DATE_FORMAT}"
        )

    try:
        dates = pd.to_datetime(days, format=DATE_FORMAT)
    except (TypeError, ValueError) as exc:
        raise DateFormatError(f"Column '{column}' has dates not in {DATE_FORMAT} format: {exc}") from exc

    offsets = (dates - base).dt.days
    if present.all():
        df[column] = offsets
    else:
        df[column] = offsets.astype(object).reindex(df.index, fill_value=MISSING_MARKER)
    return df


# ==================== CATEGORICAL ENCODING ====================

def label_to_one_hot(class_names: Sequence[Any], label: Any) -> List[int]:
    """
    One-hot vector for `label` based on its position in `class_names`.

    E.g. label_to_one_hot(['a', 'b', 'c', 'd'], 'b') -> [0, 1, 0, 0]

    Raises:
        LabelNotFoundError: label is not one of class_names
    """
    class_names = list(class_names)
    try:
        label_idx = class_names.index(label)
    except ValueError:
        raise LabelNotFoundError(label, class_names) from None

    vec = [0] * len(class_names)
    vec[label_idx] = 1
    return vec


def one_hot_encode(records: pd.DataFrame, features: Sequence[str]) -> pd.DataFrame:
    """
    Encode categorical columns into one-hot indicator columns.

    For each feature the distinct values seen in `records` (in order of first
    appearance) define the classes. The feature column is replaced by
    `<feature>_0 ... <feature>_{n-1}`, exactly one of which is 1 per record.
    The missing marker counts as a class of its own.

    NOTE: two different subsets of data can assign different indices to the
    same category. Encode the full dataset once, before splitting.

    E.g. one_hot_encode(df with a = ['left', 'right', 'top'], ['a'])
         -> a_0 = [1, 0, 0], a_1 = [0, 1, 0], a_2 = [0, 0, 1]

    Args:
        records: Record frame
        features: Categorical columns to encode

    Returns:
        New frame with indicator columns appended in place of each feature
    """
    _require_columns(records, features)
    df = records.copy()

    for feature in features:
        classes = list(pd.unique(df[feature]))
        new_keys = [f"{feature}_{i}" for i in range(len(classes))]
        vectors = {cls: label_to_one_hot(classes, cls) for cls in classes}

        encoded = pd.DataFrame(
            [vectors[value] for value in df[feature]],
            index=df.index,
            columns=new_keys,
            dtype=int
        )
        df = pd.concat([df.drop(columns=[feature]), encoded], axis=1)

    return df


def binarize(records: pd.DataFrame, features: Sequence[str], positive: Any) -> pd.DataFrame:
    """
    Map columns to 1 where the value equals `positive` and 0 otherwise.

    E.g. yes/no -> 1/0, or product_type 'Investment' -> 1, anything else -> 0.
    Missing values become 0 as well.

    Args:
        records: Record frame
        features: Columns to convert
        positive: Value that maps to 1

    Returns:
        New frame with integer 0/1 columns
    """
    _require_columns(records, features)
    df = records.copy()

    for feature in features:
        df[feature] = (df[feature] == positive).astype(int)

    return df


# ==================== LABELS & IMPUTATION ====================

def split_labels(
    records: pd.DataFrame,
    label_col: str = LABEL_COLUMN
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Split the label column off the records.

    The returned features and labels share the same index, so position i of
    both always refers to the same original record.

    Args:
        records: Record frame including the label column
        label_col: Name of the target column

    Returns:
        features (frame without label_col), labels (numeric Series)

    Raises:
        MissingLabelError: label column absent, or a label is missing/non-numeric
    """
    if label_col not in records.columns:
        raise MissingLabelError(f"Missing label column '{label_col}' in records")

    labels = pd.to_numeric(records[label_col], errors='coerce')
    bad = labels.isna()
    if bad.any():
        first_bad = records.index[bad.to_numpy()][0]
        raise MissingLabelError(
            f"{int(bad.sum())} records have no numeric '{label_col}' "
            f"(first at row {first_bad}: {records[label_col].loc[first_bad]!r})"
        )

    features = records.drop(columns=[label_col])
    return features, labels.rename(label_col)


def dataset_to_feature_map(records: pd.DataFrame) -> Dict[str, List[Any]]:
    """Column-wise view of the records: {feature_name: [value per record]}."""
    return {col: records[col].tolist() for col in records.columns}


def compute_feature_means(features: pd.DataFrame) -> Dict[str, float]:
    """
    Mean of each feature over its observed (non-missing) values.

    Args:
        features: Feature-only record frame

    Returns:
        {feature_name: mean}

    Raises:
        ImputationError: a feature has no observed values at all
        NonNumericFeatureError: a feature's observed values are not all numeric
    """
    means = {}
    for col, values in dataset_to_feature_map(features).items():
        observed = pd.Series([value for value in values if value != MISSING_MARKER], dtype=object)
        if observed.empty:
            raise ImputationError(f"Feature '{col}' has no observed values to compute a mean from")

        numeric = pd.to_numeric(observed, errors='coerce')
        if numeric.isna().any():
            bad_value = observed[numeric.isna()].iloc[0]
            raise NonNumericFeatureError(
                f"Feature '{col}' has non-numeric value {bad_value!r}; encode it before imputing"
            )

        means[col] = float(numeric.mean())

    return means


def impute_missing(features: pd.DataFrame, label_col: str = LABEL_COLUMN) -> pd.DataFrame:
    """
    Fill missing values ('NA') with the mean value of the feature.

    Must run on feature-only records: the label is never imputed.

    Args:
        features: Feature-only record frame
        label_col: Label column that must already be split off

    Returns:
        New frame with float columns and no missing markers
    """
    if label_col in features.columns:
        raise ValueError(f"Split off '{label_col}' with split_labels() before imputing")

    means = compute_feature_means(features)
    df = features.copy()

    for col, mean in means.items():
        missing = df[col] == MISSING_MARKER
        observed = pd.to_numeric(df[col][~missing]).astype(float)
        df[col] = observed.reindex(df.index, fill_value=mean)

    return df


# ==================== ASSEMBLY ====================

def to_feature_matrix(features: pd.DataFrame) -> Tuple[np.ndarray, List[str]]:
    """
    Convert fully numeric feature records into a fixed-schema float matrix.

    Returns:
        (n_records x n_features float32 matrix, feature names in column order)
    """
    matrix = features.to_numpy(dtype=np.float32)
    return matrix, features.columns.tolist()


def assemble_examples(features: pd.DataFrame, labels: pd.Series) -> List[Example]:
    """
    Rejoin imputed features with their labels into Examples.

    Args:
        features: Imputed, fully numeric feature frame
        labels: Labels aligned with `features`

    Returns:
        List of Examples in record order
    """
    if len(features) != len(labels) or not features.index.equals(labels.index):
        raise ValueError("Features and labels are not aligned; they must come from split_labels()")

    matrix, _ = to_feature_matrix(features)
    matrix.setflags(write=False)

    return [Example(features=matrix[i], label=float(label)) for i, label in enumerate(labels)]


# ==================== COMPLETE PREPROCESSING PIPELINE ====================

def run_full_preprocessing_pipeline(
    records: pd.DataFrame,
    categorical_features: List[str] = None,
    product_type_features: List[str] = None,
    yes_no_features: List[str] = None,
    label_col: str = LABEL_COLUMN,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Run the complete feature pipeline on raw records.

    Steps:
    1. Drop id
    2. Convert timestamp to day offset
    3. One-hot encode categorical features
    4. Binarize product type
    5. Binarize yes/no features
    6. Split labels
    7. Impute missing values and assemble Examples

    Configured columns that are absent from the records are skipped.

    Args:
        records: Raw record frame from load_records()
        categorical_features: Columns to one-hot encode (default: sub_area, ecology)
        product_type_features: Columns where 'Investment' -> 1
        yes_no_features: Columns where 'yes' -> 1
        label_col: Target column
        verbose: Print progress

    Returns:
        Dictionary containing:
        - examples: List[Example] in original record order
        - feature_names: column order of every feature vector
        - features: imputed feature frame
        - labels: label Series aligned with features
    """
    def log(message: str) -> None:
        if verbose:
            print(message)

    def present(columns: List[str]) -> List[str]:
        kept = [c for c in columns if c in records.columns]
        skipped = [c for c in columns if c not in records.columns]
        if skipped:
            log(f"  Skipping absent columns: {skipped}")
        return kept

    if categorical_features is None:
        categorical_features = CATEGORICAL_FEATURES
    if product_type_features is None:
        product_type_features = PRODUCT_TYPE_FEATURES
    if yes_no_features is None:
        yes_no_features = YES_NO_FEATURES

    log("=" * 80)
    log("RUNNING FEATURE PIPELINE")
    log("=" * 80)
    log(f"Input: {len(records):,} rows × {records.shape[1]} columns")

    log("\n[1/7] Dropping id column...")
    df = drop_columns(records, [ID_COLUMN])

    log("\n[2/7] Converting timestamps to day offsets...")
    df = convert_timestamps(df)

    log("\n[3/7] One-hot encoding categorical features...")
    df = one_hot_encode(df, present(categorical_features))
    log(f"  Columns after encoding: {df.shape[1]}")

    log(f"\n[4/7] Binarizing product type ('{PRODUCT_TYPE_POSITIVE}' -> 1)...")
    df = binarize(df, present(product_type_features), PRODUCT_TYPE_POSITIVE)

    log(f"\n[5/7] Binarizing yes/no features ('{YES_NO_POSITIVE}' -> 1)...")
    df = binarize(df, present(yes_no_features), YES_NO_POSITIVE)

    log("\n[6/7] Splitting labels...")
    features, labels = split_labels(df, label_col)

    log("\n[7/7] Imputing missing values and assembling examples...")
    missing_count = int((features == MISSING_MARKER).to_numpy().sum())
    features = impute_missing(features, label_col)
    examples = assemble_examples(features, labels)
    log(f"  Imputed {missing_count:,} missing values")

    log("\n" + "=" * 80)
    log("FEATURE PIPELINE COMPLETE")
    log("=" * 80)
    log(f"Examples: {len(examples):,} × {features.shape[1]} features")

    return {
        'examples': examples,
        'feature_names': features.columns.tolist(),
        'features': features,
        'labels': labels
    }
