"""Custom exceptions for the application."""


class NeonVocabError(Exception):
    """Base exception for the application."""
    pass


class DefinitionError(NeonVocabError):
    """A definition provider failed or returned an unusable payload."""

    def __init__(self, word: str, reason: str):
        self.word = word
        self.reason = reason
        super().__init__(f"Could not get a definition for {word!r}: {reason}")
