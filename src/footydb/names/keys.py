"""Player identity keys and the spelling variants used to index them.

A player is identified by ``"<name_en>|<YYYY-MM-DD>"``. Source sheets spell the
same person in several ways ("O. Baumann", "O Baumann", "Ömer"/"Omer"), so every
known name is indexed under a fixed list of variants, and lookups try the same
variants in the same order.
"""

from __future__ import annotations

import re
import unicodedata
from typing import List

from footydb.ingest.normalize import normalize_date


_APOSTROPHES_RE = re.compile("['\u2019`\u00b4]")
_DASHES_RE = re.compile("[\u2010-\u2015]")
_LOOSE_PUNCT_RE = re.compile("['\u2019`\u00b4\\-\u2010-\u2015]")
_COMBINING_RE = re.compile("[\u0300-\u036f]")
_WHITESPACE_RE = re.compile(r"\s+")


def norm_name(name: str) -> str:
    """Drop dots, unify apostrophes and dashes, collapse whitespace."""

    text = (name or "").strip().replace(".", "")
    text = _APOSTROPHES_RE.sub("'", text)
    text = _DASHES_RE.sub("-", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def fold_diacritics(name: str) -> str:
    return _COMBINING_RE.sub("", unicodedata.normalize("NFKD", name or ""))


def loosen_name(name: str) -> str:
    """Turn hyphens and apostrophes into spaces ("N'Golo Kanté" -> "N Golo Kanté")."""

    text = _LOOSE_PUNCT_RE.sub(" ", (name or "").strip())
    return _WHITESPACE_RE.sub(" ", text).strip()


def key_of(name_en: str, birth_date: str) -> str:
    return f"{(name_en or '').strip()}|{(birth_date or '').strip()}"


def is_keyable(name_en: str, birth_date: str) -> bool:
    return bool((name_en or "").strip()) and bool(normalize_date(birth_date))


def candidate_keys(name_en: str, birth_date: str) -> List[str]:
    """Keys to try for ``(name_en, birth_date)``, most specific first.

    Returns an empty list for unkeyable input (blank name or unparseable date).
    """

    raw = (name_en or "").strip()
    birth = normalize_date(birth_date)
    if not raw or not birth:
        return []

    normalized = norm_name(raw)
    variants = [raw, normalized, fold_diacritics(raw), fold_diacritics(normalized)]
    loose = loosen_name(raw)
    if loose and loose != raw:
        variants.extend([loose, fold_diacritics(loose)])
    variants.extend([variant.casefold() for variant in variants])

    keys: dict[str, None] = {}
    for variant in variants:
        if variant:
            keys.setdefault(key_of(variant, birth), None)
    return list(keys)


__all__ = [
    "candidate_keys",
    "fold_diacritics",
    "is_keyable",
    "key_of",
    "loosen_name",
    "norm_name",
]
