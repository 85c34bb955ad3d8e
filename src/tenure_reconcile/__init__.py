"""Reconciliation pipeline for offline field-survey packages."""

__version__ = "0.1.0"
