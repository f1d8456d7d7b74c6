"""Exceptions raised by the media directory components."""

import logging

mylogger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Base exception with a message, optionally logged when raised."""
    def __init__(self, message="A media directory error occurred", log=False):
        self.message = message
        super().__init__(self.message)
        if log:
            mylogger.error(message)


class BrokenChain(DirectoryError):
    """A set of terms does not form a single root-to-leaf branch."""


class MisconfiguredVocabulary(DirectoryError):
    """No usable vocabulary (or root term) is configured for a media type."""


class MalformedTreeListing(DirectoryError):
    """A flat tree listing is not a valid pre-order traversal."""


class InvalidSubmission(DirectoryError):
    """A submitted directory value cannot be parsed into a chain."""


class TermCreationError(DirectoryError):
    """Creating a new term while materializing a chain failed."""


class TermStoreError(DirectoryError):
    """The term store rejected an operation."""


__all__ = [
    "BrokenChain",
    "DirectoryError",
    "InvalidSubmission",
    "MalformedTreeListing",
    "MisconfiguredVocabulary",
    "TermCreationError",
    "TermStoreError",
]
