"""
Survey ML Features backend package.

Scores survey responses for data quality, analyzes free-text sentiment and
predicts respondent drop-out risk, with each feature able to delegate to a
remote model-serving provider or fall back to deterministic rules.
"""

__version__ = "1.0.0"
