"""LSTM data preparation: feature engineering, windowing and scaling."""

from .base import Transformer
from .scalers import MinMaxScaler
from .sequences import (
    FeatureConfig,
    ProcessedFeatures,
    SequenceData,
    create_sequences,
    denormalize_predictions,
    engineer_features,
    normalize_sequences,
    to_tensor_datasets,
)

__all__ = [
    "Transformer",
    "MinMaxScaler",
    "FeatureConfig",
    "ProcessedFeatures",
    "SequenceData",
    "engineer_features",
    "create_sequences",
    "normalize_sequences",
    "denormalize_predictions",
    "to_tensor_datasets",
]
