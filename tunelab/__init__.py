"""
tunelab
=======

Config-driven hyperparameter tuning and SVM exploration workbench built on
scikit-learn: search spaces with conditional parameters, auto-tuning
learners, nested resampling and benchmarks.
"""

__version__ = "0.1.0"
