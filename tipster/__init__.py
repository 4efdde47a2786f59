"""Language-model match and bonus predictions with context versioning and reprediction."""

__version__ = "0.1.0"
