# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Analysis run orchestration.

Assembles the call graph, feature list and entity catalog from a frozen
fact store into one CodexReport. The call graph/feature pipeline and the
entity pipeline are independent and only meet in the report.

Files whose raw text cannot be re-read are listed in the report as
unavailable; the rest of the corpus is still analyzed.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from codex_reconciler.call_graph import CallGraphResolver
from codex_reconciler.config import Config
from codex_reconciler.entity_reconciler import EntityReconciler
from codex_reconciler.fact_store import FactStore
from codex_reconciler.feature_grouper import FeatureGrouper
from codex_reconciler.models import CallGraph, EntityCatalog, Feature, FileFacts, FunctionFact
from codex_reconciler.search_index import SearchIndex
from codex_reconciler.type_extractor import TypeExtractor

logger = logging.getLogger(__name__)


@dataclass
class CodexReport:
    """Final artifact of one analysis run."""

    project_name: str
    root_path: str
    language: str
    files_analyzed: int
    call_graph: CallGraph
    features: List[Feature]
    entity_catalog: EntityCatalog
    functions: List[FunctionFact] = field(default_factory=list)
    search_index: Optional[SearchIndex] = None
    unavailable_files: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "projectName": self.project_name,
            "rootPath": self.root_path,
            "language": self.language,
            "filesAnalyzed": self.files_analyzed,
            "callGraph": self.call_graph.to_dict(),
            "features": [f.to_dict() for f in self.features],
            "allFunctions": [f.to_dict() for f in self.functions],
            "entityCatalog": self.entity_catalog.to_dict(),
            "unavailableFiles": [
                {"file": path, "reason": reason} for path, reason in self.unavailable_files.items()
            ],
        }
        if self.search_index is not None:
            result["searchIndex"] = self.search_index.to_dict()
        return result


class ProjectAnalyzer:
    """Runs the reconciliation pipeline over a complete fact store.

    Usage:
        analyzer = ProjectAnalyzer(config)
        report = analyzer.analyze(store, project_name="shop")
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self._config = config if config is not None else Config.defaults()

    def analyze_files(
        self,
        files: Iterable[FileFacts],
        root: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> CodexReport:
        """Freeze the given file facts into a store and analyze it."""
        return self.analyze(FactStore.from_files(files, root=root), project_name=project_name)

    def analyze(self, store: FactStore, project_name: Optional[str] = None) -> CodexReport:
        """Analyze a store. The store is frozen first if it is not already.

        Returns:
            CodexReport with the call graph, features and entity catalog.
        """
        store.freeze()
        logger.info(f"Analyzing {len(store)} files under {store.root}")

        call_graph = CallGraphResolver(store, self._config).build()
        features = FeatureGrouper(store, self._config).build()

        extractor = TypeExtractor(store, self._config)
        declarations, unavailable = extractor.extract()
        catalog = EntityReconciler(self._config).reconcile(declarations)

        languages = store.languages()
        name = project_name or os.path.basename(os.path.normpath(store.root))

        if unavailable:
            logger.warning(f"{len(unavailable)} files could not be re-read; see unavailableFiles")

        return CodexReport(
            project_name=name,
            root_path=store.root,
            language=", ".join(languages) if languages else "unknown",
            files_analyzed=len(store),
            call_graph=call_graph,
            features=features,
            entity_catalog=catalog,
            functions=store.iter_functions(),
            search_index=SearchIndex.build(store),
            unavailable_files=unavailable,
        )
