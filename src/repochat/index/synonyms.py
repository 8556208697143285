"""Static query expansion table.

Each canonical token maps to the extra tokens it expands to. Tokens missing
from the table get a plural/singular variant instead (see ``expand_keywords``).
An empty tuple marks a stop word: it is kept as-is with no variants.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

_ORGANIZATION = ("organization", "organisation", "org", "site", "sites")
_COMMODITY = ("commodity", "commodities", "item", "items", "product", "products")
_TABLESPACE = ("tablespace", "tablespaces", "table space", "table spaces", "database space", "db space")
_CONFIGURE = ("configure", "configuration", "config", "setup", "setting", "settings")
_PREREQUISITE = ("prerequisite", "prerequisites", "requirement", "requirements", "prereq")

SYNONYMS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "create": ("creating", "creation", "setup", "configure", "build", "make", "generate"),
        "organization": _ORGANIZATION,
        "organisation": _ORGANIZATION,
        "org": _ORGANIZATION,
        "commodity": _COMMODITY,
        "commodities": _COMMODITY,
        "get": ("get", "retrieve", "fetch", "obtain", "access", "find"),
        "tablespace": _TABLESPACE,
        "tablespaces": _TABLESPACE,
        "how": ("how", "steps", "procedure", "process", "method", "way", "guide"),
        "to": (),
        "install": ("install", "installation", "installing", "deploy", "deployment", "setup"),
        "configure": _CONFIGURE,
        "configuration": _CONFIGURE,
        "maximo": ("maximo", "mas", "manage"),
        "db2": ("db2", "database", "db"),
        "prerequisite": _PREREQUISITE,
        "prerequisites": _PREREQUISITE,
    }
)


def plural_variant(word: str) -> str:
    """Strip a trailing ``s`` from longer words, otherwise add one."""
    if word.endswith("s") and len(word) > 3:
        return word[:-1]
    return word + "s"
