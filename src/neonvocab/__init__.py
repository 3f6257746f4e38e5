"""Vocabulary learning from definitions, with a daily challenge."""

__version__ = "0.1.0"
