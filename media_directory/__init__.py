"""Media directory: organize media items in a tree of taxonomy terms."""

from .chain import ChainMaterializer, SubmissionContext, is_identifier
from .errors import (
    BrokenChain,
    DirectoryError,
    InvalidSubmission,
    MalformedTreeListing,
    MisconfiguredVocabulary,
    TermCreationError,
    TermStoreError,
)
from .models import FieldDefinition, FlatTreeEntry, JsTreeNode, Term, Vocabulary
from .registry import FieldBinding, WidgetRegistry
from .selection import apply_selection
from .tree import order_branch, resolve_branch, serialize_tree
from .widget import DirectoryWidget

__all__ = [
    "BrokenChain",
    "ChainMaterializer",
    "DirectoryError",
    "DirectoryWidget",
    "FieldBinding",
    "FieldDefinition",
    "FlatTreeEntry",
    "InvalidSubmission",
    "JsTreeNode",
    "MalformedTreeListing",
    "MisconfiguredVocabulary",
    "SubmissionContext",
    "Term",
    "TermCreationError",
    "TermStoreError",
    "Vocabulary",
    "WidgetRegistry",
    "apply_selection",
    "is_identifier",
    "order_branch",
    "resolve_branch",
    "serialize_tree",
]
