"""Reference-data integrity, freshness and access governance for ECB EXR data."""

__version__ = "0.1.0"
