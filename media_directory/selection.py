"""Server-side mirror of the browser selection handler (static/directory_widget.js)."""

import re

from .chain import SEPARATOR

# Strings that JavaScript's Number() converts to a number, once trimmed.
_JS_NUMBER = re.compile(
    r"[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)"
    r"|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+"
)


def is_existing_node_id(node_id: str) -> bool:
    """
    Same answer as ``!isNaN(id)`` in the browser. Nodes added there get
    generated ids such as ``j1_1``; stored terms are numeric. Blank ids
    count as numeric, as they do in JavaScript.
    """
    text = node_id.strip()
    return not text or _JS_NUMBER.fullmatch(text) is not None


def apply_selection(current_value: str, node_id: str, node_text: str) -> str:
    """Return the field value after the editor selects a node in the tree."""
    if is_existing_node_id(str(node_id)):
        return str(node_id)
    return f"{current_value}{SEPARATOR}{node_text}"
