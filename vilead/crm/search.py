from __future__ import annotations

import re
import unicodedata
from typing import Any

from vilead.crm.models import CRMLead


_WHITESPACE_RE = re.compile(r"\s+")
_EXTRA_FOLDS = str.maketrans({"đ": "d", "Đ": "d"})


def fold_search_text(value: Any) -> str:
    """Lowercase ``value`` and strip diacritics so "Nguyễn Văn A" folds to "nguyen van a"."""

    if value is None:
        return ""
    text = str(value).translate(_EXTRA_FOLDS)
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _WHITESPACE_RE.sub(" ", stripped).strip().lower()


def refresh_search_text(lead: CRMLead) -> None:
    """Keep one folded copy per searchable field so a term never spans two fields."""

    lead.search_name = fold_search_text(lead.name)
    lead.search_email = fold_search_text(lead.email)
    lead.search_phone = fold_search_text(lead.phone)
