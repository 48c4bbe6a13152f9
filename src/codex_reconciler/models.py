# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the codex reconciler.

This module defines the structures exchanged between the fact store, the call
graph resolver, the feature grouper and the entity reconciler:

Input facts (supplied by an external extractor):
- FunctionFact: One function or method declared in one file
- ClassFact: One class with its methods and property names
- FileFacts: Everything extracted from a single source file

Derived artifacts:
- CallEdge / DependencyNode / CallGraph: Resolved function call graph
- Feature: Group of functions sharing a path prefix
- FieldEntry / TypeDeclaration: Type-like declarations re-read from raw text
- SemanticEntity / Mismatch / EntityCatalog: Reconciled data dictionary

All models serialize to JSON-compatible primitives with camelCase keys.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set


# Type text used when a field declaration carries no readable type
UNPARSED_TYPE = "<unparsed>"


class EdgeKind:
    """Kinds of edges in the call graph.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    CALLS = "calls"


class NodeType:
    """Kinds of nodes in the call graph."""

    FUNCTION = "function"


class DeclarationKind:
    """Kinds of type-like declarations recognized in raw source text."""

    INTERFACE = "interface"  # interface Foo { ... }
    CLASS = "class"  # class Foo { ... }
    TYPE_ALIAS = "typeAlias"  # type Foo = { ... }
    SCHEMA_MODEL = "schemaModel"  # model Foo { ... } in a schema file


class LayerTag:
    """Architectural layers a declaration can belong to."""

    DATABASE = "database"
    API = "api"
    BACKEND = "backend"


def make_function_id(name: str, filepath: str) -> str:
    """Build the composite node id for a function."""
    return f"{name}@{filepath}"


@dataclass
class FunctionFact:
    """A function or method declared in a source file.

    Identity is (defining_file, name). The same bare name may be declared in
    several files; resolving which one a caller means is the job of the
    call graph resolver. Only ``called_by`` changes after extraction.
    """

    name: str
    defining_file: str
    parameter_signatures: List[str] = field(default_factory=list)
    return_type_text: Optional[str] = None
    callee_names: List[str] = field(default_factory=list)
    is_exported: bool = False
    line: int = 0
    owner_class: Optional[str] = None  # For methods: containing class name
    called_by: List[str] = field(default_factory=list)  # Caller ids, filled by resolver

    @property
    def function_id(self) -> str:
        """Composite ``name@file`` identifier."""
        return make_function_id(self.name, self.defining_file)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "file": self.defining_file,
            "params": list(self.parameter_signatures),
            "calls": list(self.callee_names),
            "calledBy": list(self.called_by),
            "isExported": self.is_exported,
            "line": self.line,
        }
        if self.return_type_text is not None:
            result["returns"] = self.return_type_text
        if self.owner_class is not None:
            result["ownerClass"] = self.owner_class
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defining_file: Optional[str] = None) -> "FunctionFact":
        """Deserialize from an extractor record.

        Args:
            data: Dictionary with at least a ``name`` key.
            defining_file: File path to use when the record does not carry one.

        Raises:
            KeyError: If ``name`` is missing or no file can be determined.
        """
        filepath = data.get("file", defining_file)
        if filepath is None:
            raise KeyError("file")
        return cls(
            name=data["name"],
            defining_file=filepath,
            parameter_signatures=list(data.get("params", [])),
            return_type_text=data.get("returns"),
            callee_names=list(data.get("calls", [])),
            is_exported=data.get("isExported", False),
            line=data.get("line", 0),
            owner_class=data.get("ownerClass"),
        )


@dataclass
class ClassFact:
    """A class declared in a source file."""

    name: str
    methods: List[FunctionFact] = field(default_factory=list)
    properties: List[str] = field(default_factory=list)
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "name": self.name,
            "methods": [m.to_dict() for m in self.methods],
            "properties": list(self.properties),
            "line": self.line,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defining_file: str) -> "ClassFact":
        """Deserialize from an extractor record."""
        name = data["name"]
        methods = []
        for method_data in data.get("methods", []):
            method = FunctionFact.from_dict(method_data, defining_file)
            method.owner_class = name
            methods.append(method)
        return cls(
            name=name,
            methods=methods,
            properties=list(data.get("properties", [])),
            line=data.get("line", 0),
        )


@dataclass
class FileFacts:
    """All facts extracted from one source file.

    ``source_text`` may be supplied by the extractor. When it is None the
    fact store re-reads the file from disk on demand.
    """

    path: str
    language: str
    functions: List[FunctionFact] = field(default_factory=list)
    classes: List[ClassFact] = field(default_factory=list)
    source_text: Optional[str] = None

    def iter_functions(self) -> List[FunctionFact]:
        """Free functions first, then class methods, in declaration order."""
        result = list(self.functions)
        for cls in self.classes:
            result.extend(cls.methods)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileFacts":
        """Deserialize from an extractor record."""
        path = data["path"]
        return cls(
            path=path,
            language=data.get("language", data.get("languageTag", "unknown")),
            functions=[FunctionFact.from_dict(f, path) for f in data.get("functions", [])],
            classes=[ClassFact.from_dict(c, path) for c in data.get("classes", [])],
            source_text=data.get("sourceText"),
        )


@dataclass(frozen=True)
class CallEdge:
    """A resolved call from one function node to another."""

    from_id: str
    to_id: str
    kind: str = EdgeKind.CALLS

    @property
    def key(self) -> str:
        """Composite key used for deduplication."""
        return f"{self.from_id}|{self.to_id}|{self.kind}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"from": self.from_id, "to": self.to_id, "type": self.kind}


@dataclass
class DependencyNode:
    """A node of the call graph."""

    id: str
    name: str
    file: str
    type: str = NodeType.FUNCTION

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"id": self.id, "type": self.type, "name": self.name, "file": self.file}


@dataclass
class UnresolvedCall:
    """A callee name that matched no declaration in the corpus."""

    caller_id: str
    callee_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {"caller": self.caller_id, "callee": self.callee_name}


class CallGraph:
    """Directed graph of ``calls`` edges between function nodes.

    Edges are deduplicated through a set of composite keys, so adding the
    same (from, to, kind) triple twice keeps a single edge. Self-edges are
    rejected.
    """

    def __init__(self) -> None:
        """Initialize an empty graph."""
        self._nodes: Dict[str, DependencyNode] = {}
        self._edges: List[CallEdge] = []
        self._edge_keys: Set[str] = set()
        self._unresolved: List[UnresolvedCall] = []

    def add_node(self, node: DependencyNode) -> None:
        """Add a node; the first node registered under an id wins."""
        if node.id not in self._nodes:
            self._nodes[node.id] = node

    def add_edge(self, edge: CallEdge) -> bool:
        """Add an edge unless it is a self-edge or a duplicate.

        Returns:
            True if the edge was added, False if it was skipped.
        """
        if edge.from_id == edge.to_id:
            return False
        if edge.key in self._edge_keys:
            return False
        self._edge_keys.add(edge.key)
        self._edges.append(edge)
        return True

    def add_unresolved(self, unresolved: UnresolvedCall) -> None:
        """Record a callee name that could not be resolved."""
        self._unresolved.append(unresolved)

    @property
    def nodes(self) -> Dict[str, DependencyNode]:
        return dict(self._nodes)

    @property
    def edges(self) -> List[CallEdge]:
        return list(self._edges)

    @property
    def unresolved(self) -> List[UnresolvedCall]:
        return list(self._unresolved)

    def get_callees(self, function_id: str) -> List[str]:
        """Ids of functions called by ``function_id``."""
        return [e.to_id for e in self._edges if e.from_id == function_id]

    def get_callers(self, function_id: str) -> List[str]:
        """Ids of functions calling ``function_id``."""
        return [e.from_id for e in self._edges if e.to_id == function_id]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "nodes": {node_id: node.to_dict() for node_id, node in self._nodes.items()},
            "edges": [e.to_dict() for e in self._edges],
            "unresolved": [u.to_dict() for u in self._unresolved],
        }


@dataclass
class Feature:
    """A group of functions sharing a path-derived name."""

    name: str
    member_functions: List[FunctionFact] = field(default_factory=list)
    source_files: Set[str] = field(default_factory=set)
    depends_on_features: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "name": self.name,
            "description": f"Feature: {self.name}",
            "functions": [f.function_id for f in self.member_functions],
            "files": sorted(self.source_files),
            "dependencies": sorted(self.depends_on_features),
        }


@dataclass(frozen=True)
class FieldEntry:
    """One field of a type declaration."""

    name: str
    type_text: str = UNPARSED_TYPE

    @property
    def is_parsed(self) -> bool:
        return self.type_text != UNPARSED_TYPE


@dataclass
class TypeDeclaration:
    """A type-like declaration found in raw source text.

    Several declarations may share a name across files; all are kept.
    """

    name: str
    kind: str  # DeclarationKind value
    fields: List[FieldEntry]
    source_file: str
    layer_tags: Set[str] = field(default_factory=set)
    line: int = 0
    used_in: List[str] = field(default_factory=list)

    def get_field(self, name: str) -> Optional[FieldEntry]:
        """Look up a field by its raw name."""
        for entry in self.fields:
            if entry.name == name:
                return entry
        return None

    def has_layer(self, tag: str) -> bool:
        return tag in self.layer_tags

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "name": self.name,
            "type": self.kind,
            "fields": {entry.name: entry.type_text for entry in self.fields},
            "location": self.source_file,
            "line": self.line,
            "layers": sorted(self.layer_tags),
            "usedIn": list(self.used_in),
        }


@dataclass
class Mismatch:
    """A database field whose API counterpart has an incompatible type."""

    entity_name: str
    database_field: str
    database_type: str
    api_field: str
    api_type: str

    def describe(self) -> str:
        """Human-readable one-line description."""
        return (
            f"{self.entity_name}.{self.database_field}: database type '{self.database_type}' "
            f"vs API type '{self.api_type}' ({self.api_field})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "entity": self.entity_name,
            "databaseField": self.database_field,
            "databaseType": self.database_type,
            "apiField": self.api_field,
            "apiType": self.api_type,
        }


@dataclass
class SemanticEntity:
    """A cluster of declarations judged to describe the same concept."""

    primary_name: str
    alias_names: List[str]
    member_declarations: List[TypeDeclaration]
    field_group_map: Dict[str, List[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def declarations_with_layer(self, tag: str) -> List[TypeDeclaration]:
        """Member declarations carrying a given layer tag."""
        return [d for d in self.member_declarations if d.has_layer(tag)]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "name": self.primary_name,
            "aliases": list(self.alias_names),
            "locations": [
                {
                    "name": d.name,
                    "type": d.kind,
                    "file": d.source_file,
                    "line": d.line,
                    "layers": sorted(d.layer_tags),
                }
                for d in self.member_declarations
            ],
            "fieldMapping": {k: list(v) for k, v in self.field_group_map.items()},
            "warnings": list(self.warnings),
        }


@dataclass
class EntityCatalog:
    """Reconciled data dictionary for one analysis run."""

    entities: List[SemanticEntity] = field(default_factory=list)
    mismatches: List[Mismatch] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    declarations: List[TypeDeclaration] = field(default_factory=list)

    @property
    def type_mismatches(self) -> List[str]:
        return [m.describe() for m in self.mismatches]

    def get_entity(self, name: str) -> Optional[SemanticEntity]:
        """Find an entity by primary name or alias."""
        for entity in self.entities:
            if entity.primary_name == name or name in entity.alias_names:
                return entity
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "totalEntities": len(self.entities),
            "entities": [e.to_dict() for e in self.entities],
            "typeMismatches": self.type_mismatches,
            "recommendations": list(self.recommendations),
            "declarations": [d.to_dict() for d in self.declarations],
        }
