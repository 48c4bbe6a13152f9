# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Lookup index over functions, classes and name keywords."""

import logging
from typing import Any, Dict, List

from codex_reconciler.fact_store import FactStore
from codex_reconciler.naming import split_keywords

logger = logging.getLogger(__name__)


class SearchIndex:
    """Name-based lookups for a frozen FactStore.

    - functions: bare name -> function ids
    - classes: class name -> files declaring it
    - keywords: camel/snake segment (3+ chars, lower-case) -> function names
    """

    def __init__(self) -> None:
        self.functions: Dict[str, List[str]] = {}
        self.classes: Dict[str, List[str]] = {}
        self.keywords: Dict[str, List[str]] = {}

    @classmethod
    def build(cls, store: FactStore) -> "SearchIndex":
        """Index every function and class of the store."""
        index = cls()
        for facts in store.iter_files():
            for cls_fact in facts.classes:
                files = index.classes.setdefault(cls_fact.name, [])
                if facts.path not in files:
                    files.append(facts.path)

        for func in store.iter_functions():
            index.functions.setdefault(func.name, []).append(func.function_id)
            for keyword in split_keywords(func.name):
                names = index.keywords.setdefault(keyword, [])
                if func.name not in names:
                    names.append(func.name)

        logger.debug(
            f"Search index built: {len(index.functions)} function names, "
            f"{len(index.keywords)} keywords"
        )
        return index

    def find_by_keyword(self, keyword: str) -> List[str]:
        """Function names containing a keyword segment."""
        return list(self.keywords.get(keyword.lower(), []))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "functions": {k: list(v) for k, v in self.functions.items()},
            "classes": {k: list(v) for k, v in self.classes.items()},
            "keywords": {k: list(v) for k, v in self.keywords.items()},
        }
