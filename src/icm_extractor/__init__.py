"""
ICM Extractor - resilient ICM change-element extraction into BigQuery
"""

__version__ = "1.0.0"
