# workflows/logic/slug.py
"""URL-safe signer ids, e.g. "Jean Dupont" -> "jean-dupont"."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str | None) -> str:
    """
    Lower-case, strip diacritics, collapse every non-alphanumeric run into a
    single "-" and trim leading/trailing "-". Blank input gives "".
    """
    if name is None or not name.strip():
        return ""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("-", stripped.lower()).strip("-")
