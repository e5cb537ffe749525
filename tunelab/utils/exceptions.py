"""
Custom exception hierarchy for the tunelab workbench.
"""

class TuneLabException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(TuneLabException):
    """Configuration validation failed."""
    pass

class DataValidationError(TuneLabException):
    """Task data validation failed."""
    pass

class RegistryError(TuneLabException):
    """Unknown or inconsistent registry entry."""
    pass

class SearchSpaceError(TuneLabException):
    """Malformed parameter declaration or search space."""
    pass

class ModelTrainingError(TuneLabException):
    """Model training or tuning failed."""
    pass

class LearnerNotTrainedError(ModelTrainingError):
    """Prediction requested from a learner that has not been trained."""
    pass

class PredictionError(TuneLabException):
    """Prediction generation failed."""
    pass

class BenchmarkError(TuneLabException):
    """Benchmark design or evaluation failed."""
    pass
