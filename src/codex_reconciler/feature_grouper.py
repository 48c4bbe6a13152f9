# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Feature grouping by source path.

A feature is the set of functions living under the same first meaningful
path segment:
    src/payments/api.ts   -> "payments"
    billing/invoice.py    -> "billing"
    src/index.ts          -> default feature ("common")
    main.py               -> default feature ("common")

Feature A depends on feature B (A != B) when some function in A calls a bare
name declared by a function in B. Dependencies may be mutual.
"""

import logging
from typing import Dict, List, Optional, Set

from codex_reconciler.config import Config
from codex_reconciler.fact_store import FactStore
from codex_reconciler.models import Feature

logger = logging.getLogger(__name__)


class FeatureGrouper:
    """Partitions the functions of a frozen FactStore into features."""

    def __init__(self, store: FactStore, config: Optional[Config] = None) -> None:
        self._store = store
        self._config = config if config is not None else Config.defaults()

    def feature_key(self, filepath: str) -> str:
        """Grouping key for a file path.

        ``<source_root>/<segment>/...`` wins over the bare top segment. A path
        whose only directory-free part is the file itself falls into the
        default feature.
        """
        parts = [p for p in self._store.relative_path(filepath).split("/") if p and p != "."]
        directories = parts[:-1]
        source_root = self._config.source_root

        if not directories or directories[0] == "..":
            return self._config.default_feature

        if source_root and directories[0] == source_root:
            if len(directories) < 2:
                # src/index.ts is shared entry code, not a feature named after the file
                return self._config.default_feature
            segment = directories[1]
        else:
            segment = directories[0]

        key = segment.replace(".", "").lower()
        return key or self._config.default_feature

    def build(self) -> List[Feature]:
        """Group functions and compute feature dependencies.

        Returns:
            Features in order of first appearance in the store's enumeration.
            Every feature has a (possibly empty) ``depends_on_features`` set.

        Raises:
            FactStoreNotFrozenError: If the store is not frozen.
        """
        self._store.require_frozen()
        features: Dict[str, Feature] = {}

        for facts in self._store.iter_files():
            name = self.feature_key(facts.path)
            feature = features.get(name)
            if feature is None:
                feature = Feature(name=name)
                features[name] = feature
            feature.source_files.add(facts.path)

        for func in self._store.iter_functions():
            features[self.feature_key(func.defining_file)].member_functions.append(func)

        # Bare name -> features declaring it
        declared_in: Dict[str, Set[str]] = {}
        for name, feature in features.items():
            for func in feature.member_functions:
                declared_in.setdefault(func.name, set()).add(name)

        for name, feature in features.items():
            for func in feature.member_functions:
                for callee_name in self._store.callee_names(func):
                    for other in declared_in.get(callee_name, ()):
                        if other != name:
                            feature.depends_on_features.add(other)

        logger.info(f"Grouped functions into {len(features)} features")
        return list(features.values())
