"""Caregiver survey cleaning and open-text topic modeling pipeline."""

__version__ = "0.1.0"
