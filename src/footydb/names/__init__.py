"""Player identity keys and Japanese-name verification.

The enrichment run lives in :mod:`footydb.names.enrich`; it depends on the
persistence layer and is imported from its module directly.
"""

from .keys import candidate_keys, fold_diacritics, is_keyable, key_of, loosen_name, norm_name
from .lookup import (
    LookupKey,
    LookupResult,
    LookupTransientError,
    NameLookup,
    RetryPolicy,
    WikidataLookup,
    build_client,
    lookup_batch,
)

__all__ = [
    "LookupKey",
    "LookupResult",
    "LookupTransientError",
    "NameLookup",
    "RetryPolicy",
    "WikidataLookup",
    "build_client",
    "candidate_keys",
    "fold_diacritics",
    "is_keyable",
    "key_of",
    "loosen_name",
    "lookup_batch",
    "norm_name",
]
