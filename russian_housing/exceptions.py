"""
Custom exception classes for the housing pipeline.

Every transformation error propagates to the caller; a run is aborted rather
than continued with a partially transformed dataset.
"""


class HousingPipelineError(Exception):
    """Base exception for all pipeline errors."""

    pass


class FileAccessError(HousingPipelineError, OSError):
    """Raised when the input CSV is missing or cannot be read."""

    pass


class CSVFormatError(HousingPipelineError, ValueError):
    """Raised when the input CSV cannot be parsed into records."""

    pass


class DateFormatError(HousingPipelineError, ValueError):
    """Raised when a date string does not match the year-month-day format."""

    pass


class MissingBaseDateError(DateFormatError):
    """Raised when the first record has no timestamp to offset the others from."""

    pass


class LabelNotFoundError(HousingPipelineError, KeyError):
    """Raised when a categorical value is not among the known class names."""

    def __init__(self, label, class_names):
        self.label = label
        self.class_names = list(class_names)
        super().__init__(f"Label {label!r} not in classes {self.class_names!r}")

    def __str__(self):
        return self.args[0]


class MissingLabelError(HousingPipelineError, ValueError):
    """Raised when a record has no usable sale price."""

    pass


class ImputationError(HousingPipelineError, ZeroDivisionError):
    """Raised when a feature has no observed values to compute a mean from."""

    pass


class NonNumericFeatureError(HousingPipelineError, TypeError):
    """Raised when a feature still holds non-numeric values at imputation time."""

    pass
