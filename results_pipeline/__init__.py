"""
results_pipeline
Results computation and credential pipeline for school competitions.
"""

__version__ = "1.0.0"
