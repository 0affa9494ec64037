"""Finguard: data-integrity and external-sync gateway for personal finance records."""

__version__ = "1.0.0"
