"""
Product-reference marker wire format.

Assistant text ends with a token such as ``[PRODUCTOS:abc,def]``; the UI
extracts it, strips it from the displayed text and resolves each id
against the catalog.
"""
import re
from typing import List, Optional, Sequence

MARKER_PATTERN = re.compile(r"\[PRODUCTOS:([^\[\]]*)\]")
# An opening that was never closed, e.g. from a truncated reply
_DANGLING_MARKER = re.compile(r"\[PRODUCTOS:[^\[\]]*$")


def format_marker(product_ids: Sequence[str]) -> str:
    return f"[PRODUCTOS:{','.join(product_ids)}]"


def _split_ids(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def find_marker_ids(text: str) -> Optional[List[str]]:
    """
    Ids from the LAST marker in ``text``.

    Returns:
        List of ids, or None when the text carries no marker
    """
    matches = MARKER_PATTERN.findall(text or "")
    if not matches:
        return None
    return _split_ids(matches[-1])


def has_marker(text: str) -> bool:
    return MARKER_PATTERN.search(text or "") is not None


def strip_markers(text: str) -> str:
    """Remove every marker and tidy the whitespace left behind."""
    stripped = _DANGLING_MARKER.sub("", MARKER_PATTERN.sub("", text or "").rstrip())
    return re.sub(r"[ \t]+\n", "\n", re.sub(r"[ \t]{2,}", " ", stripped)).strip()


def attach_marker(text: str, product_ids: Sequence[str]) -> str:
    """
    Replace whatever markers ``text`` has with one listing exactly ``product_ids``.

    Generated text may omit the marker, mangle it, or list ids that were never
    offered; product identity is therefore always re-stamped here.
    """
    body = strip_markers(text)
    marker = format_marker(product_ids)
    return f"{body} {marker}" if body else marker
