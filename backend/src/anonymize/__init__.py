"""Anonymisation engine for media library stores."""

from .core import run_anonymization

__all__ = ["run_anonymization"]
