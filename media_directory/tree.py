"""Branch ordering and tree serialization for the directory widget."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

from .errors import BrokenChain, MalformedTreeListing
from .models import ROOT_MARKER, FlatTreeEntry, JsTreeNode, JsTreeState, Term

if TYPE_CHECKING:
    from connectors.term_store_interface import TermStore

logger = logging.getLogger(__name__)

ROOT_TEXT = "/"


def order_branch(terms: Mapping[int, Term]) -> list[int]:
    """
    Order the terms of a single branch from the root down to the leaf.

    Children are looked up through a parent index built in one pass, so the
    walk is linear in the branch length and does not recurse.

    Raises:
        BrokenChain: no root, several roots, a fork, or terms that cannot be
            reached from the root (disconnected or cyclic input).
    """
    roots = [term for term in terms.values() if term.is_root]
    if len(roots) != 1:
        raise BrokenChain(f"Detected directory chain with {len(roots)} root terms.", log=True)

    child_of: dict[int, Term] = {}
    for term in terms.values():
        if term.is_root:
            continue
        if term.parent in child_of:
            raise BrokenChain(f"Detected directory chain forking below term {term.parent}.", log=True)
        child_of[term.parent] = term

    branch = [roots[0].tid]
    while branch[-1] in child_of:
        branch.append(child_of[branch[-1]].tid)

    if len(branch) != len(terms):
        stray = sorted(set(terms) - set(branch))
        raise BrokenChain(f"Detected directory chain with disconnected terms: {stray}.", log=True)
    return branch


def resolve_branch(store: TermStore, tids: Iterable[int]) -> list[int]:
    """Load ``tids`` from ``store`` and return them ordered root first."""
    wanted = {int(tid) for tid in tids}
    if not wanted:
        raise BrokenChain("Cannot resolve an empty directory chain.")
    terms = store.load_terms(wanted)
    missing = wanted - set(terms)
    if missing:
        raise BrokenChain(f"Detected directory chain referencing unknown terms: {sorted(missing)}.", log=True)
    branch = order_branch(terms)
    logger.debug(f"Resolved branch {branch}")
    return branch


def serialize_tree(listing: Sequence[FlatTreeEntry], leaf_tid: int | str | None) -> list[JsTreeNode]:
    """
    Convert a pre-order listing into the records the tree widget renders.

    The first entry is the root: its parent is the root marker, its text is
    ``/`` and it is always opened. Every other entry is attached to either the
    previous entry (one level deeper) or the last parent recorded for its
    level (same level or shallower). The record whose id equals
    ``leaf_tid`` is marked selected.

    Raises:
        MalformedTreeListing: the first entry is not at depth 0, another
            depth-0 entry appears, or the depth grows by more than one level.
    """
    leaf = None if leaf_tid is None else str(leaf_tid)
    records: list[JsTreeNode] = []
    parents: dict[int, str] = {}
    previous: FlatTreeEntry | None = None

    for entry in listing:
        tid = str(entry.tid)
        if previous is None:
            if entry.depth != 0:
                raise MalformedTreeListing(f"Tree listing starts at depth {entry.depth}, expected a root entry.")
            records.append(JsTreeNode(
                id=tid,
                parent=ROOT_MARKER,
                text=ROOT_TEXT,
                state=JsTreeState(opened=True, selected=leaf == tid),
            ))
            parents[0] = ROOT_MARKER
            previous = entry
            continue

        if entry.depth == 0:
            raise MalformedTreeListing(f"Tree listing has a second root entry (term {entry.tid}).")
        if entry.depth > previous.depth + 1:
            raise MalformedTreeListing(
                f"Term {entry.tid} jumps from depth {previous.depth} to depth {entry.depth}."
            )
        if entry.depth > previous.depth:
            # first child of the previous entry
            parents[entry.depth] = str(previous.tid)

        records.append(JsTreeNode(
            id=tid,
            parent=parents[entry.depth],
            text=entry.name,
            state=JsTreeState(selected=leaf == tid),
        ))
        previous = entry

    return records


def tree_data(records: Sequence[JsTreeNode]) -> list[dict]:
    """Plain dictionaries ready to be JSON encoded for the widget."""
    return [record.model_dump() for record in records]


__all__ = ["order_branch", "resolve_branch", "serialize_tree", "tree_data"]
