# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Codex reconciler: cross-file call graphs and semantic entity catalogs."""

from .analyzer import CodexReport, ProjectAnalyzer
from .call_graph import CallGraphResolver
from .config import Config, ConfigurationError
from .entity_reconciler import EntityReconciler
from .fact_store import (
    FactStore,
    FactStoreFrozenError,
    FactStoreNotFrozenError,
    FactUnavailableError,
)
from .feature_grouper import FeatureGrouper
from .logging_setup import StructuredFormatter, setup_logging
from .models import (
    CallEdge,
    CallGraph,
    ClassFact,
    EntityCatalog,
    Feature,
    FieldEntry,
    FileFacts,
    FunctionFact,
    Mismatch,
    SemanticEntity,
    TypeDeclaration,
)
from .naming import normalize
from .search_index import SearchIndex
from .type_extractor import TypeExtractor

__version__ = "0.1.0"

__all__ = [
    "CallEdge",
    "CallGraph",
    "CallGraphResolver",
    "ClassFact",
    "CodexReport",
    "Config",
    "ConfigurationError",
    "EntityCatalog",
    "EntityReconciler",
    "FactStore",
    "FactStoreFrozenError",
    "FactStoreNotFrozenError",
    "FactUnavailableError",
    "Feature",
    "FeatureGrouper",
    "FieldEntry",
    "FileFacts",
    "FunctionFact",
    "Mismatch",
    "ProjectAnalyzer",
    "SearchIndex",
    "SemanticEntity",
    "StructuredFormatter",
    "TypeDeclaration",
    "TypeExtractor",
    "normalize",
    "setup_logging",
]
