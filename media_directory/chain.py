"""Turning a submitted directory value into a chain of existing term ids."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from markupsafe import Markup

from .errors import DirectoryError, InvalidSubmission, TermCreationError
from .models import DIRECTORY_FIELD

if TYPE_CHECKING:
    from connectors.term_store_interface import TermStore

logger = logging.getLogger(__name__)

SEPARATOR = "|"


def is_identifier(token: str) -> bool:
    """True when ``token`` is the canonical text of an integer, e.g. ``"12"`` but not ``"012"``."""
    try:
        return str(int(token)) == token
    except ValueError:
        return False


def split_submission(value: str) -> list[str]:
    """Split a ``|``-delimited submission into its tokens."""
    tokens = [token.strip() for token in value.split(SEPARATOR)]
    if not value.strip() or not all(tokens):
        raise InvalidSubmission(f"Directory value {value!r} contains empty segments.")
    return tokens


def sanitize_name(name: str) -> str:
    """Strip markup from a name typed by an editor."""
    return Markup(name).striptags()


class SubmissionContext:
    """
    State shared by every processing pass of one form submission.

    The form pipeline runs validation and then submit over the same values;
    results stored here during the first pass are returned by the second one.
    Use it as a context manager, or call close() when the cycle ends.
    """

    def __init__(self, submission_id: str | None = None):
        self.submission_id = submission_id or str(uuid.uuid4())
        self._chains: dict[str, list[int]] = {}
        self.closed = False

    def get_chain(self, key: str) -> list[int] | None:
        chain = self._chains.get(key)
        return list(chain) if chain is not None else None

    def set_chain(self, key: str, chain: list[int]) -> None:
        if self.closed:
            raise InvalidSubmission(f"Submission {self.submission_id} is already closed.")
        self._chains[key] = list(chain)

    def close(self) -> None:
        self._chains.clear()
        self.closed = True

    def __enter__(self) -> SubmissionContext:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChainMaterializer:
    """
    Resolve a submitted chain, creating the terms typed as new names.

    ``vocabulary`` is called lazily, only when something has to be created,
    and must raise MisconfiguredVocabulary when no vocabulary is available.
    """

    def __init__(self, store: TermStore, vocabulary: Callable[[], str], field_name: str = DIRECTORY_FIELD):
        self.store = store
        self.vocabulary = vocabulary
        self.field_name = field_name

    def materialize(self, value: str, context: SubmissionContext) -> list[int]:
        if context.closed:
            raise InvalidSubmission(f"Submission {context.submission_id} is already closed.")
        cached = context.get_chain(self.field_name)
        if cached is not None:
            logger.debug(f"Submission {context.submission_id}: reusing chain {cached}")
            return cached

        tokens = split_submission(value)
        if all(is_identifier(token) for token in tokens):
            return [int(token) for token in tokens]
        if not is_identifier(tokens[0]):
            raise InvalidSubmission(f"Directory value {value!r} does not start with an existing term.")

        vid = self.vocabulary()
        chain: list[int] = []
        for token in tokens:
            if is_identifier(token):
                chain.append(int(token))
                continue
            name = sanitize_name(token)
            try:
                term = self.store.create_term(name, chain[-1], vid)
            except DirectoryError as exc:
                raise TermCreationError(f"Could not create directory term {name!r}: {exc.message}", log=True) from exc
            logger.info(f"Submission {context.submission_id}: created term {term.tid} {name!r} under {chain[-1]}")
            chain.append(term.tid)

        context.set_chain(self.field_name, chain)
        return list(chain)


__all__ = [
    "ChainMaterializer",
    "SEPARATOR",
    "SubmissionContext",
    "is_identifier",
    "sanitize_name",
    "split_submission",
]
