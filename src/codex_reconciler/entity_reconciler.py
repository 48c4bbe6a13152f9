# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Entity reconciliation: from raw type declarations to a semantic catalog.

Declarations whose names are judged to describe the same concept (Money,
Balance, Coin, ...) are clustered into SemanticEntity records. Two names are
linked when either channel matches:

1. Synonym table: if a name's key is a table term, every corpus name that
   contains (or is contained in) one of the term's synonyms is linked to it.
   The lookup is anchored on the term: Coin and Balance only meet through a
   declaration actually named Money.
2. Name similarity: identical keys, substring/superset keys, or a multiset
   character overlap above the configured threshold (0.6 by default).

Clusters are the transitive closure of these links. Only clusters with at
least two declarations become entities: the catalog surfaces drift, it is
not an inventory of every type.

Cross-layer mismatches compare database-tagged declarations against
API-tagged ones (database -> API only). A database field with no API
counterpart is not reported.
"""

import logging
from typing import Dict, List, Optional, Tuple

from codex_reconciler.config import Config
from codex_reconciler.models import (
    UNPARSED_TYPE,
    EntityCatalog,
    LayerTag,
    Mismatch,
    SemanticEntity,
    TypeDeclaration,
)
from codex_reconciler.naming import compact_key, contains_either_way, keys_similar, normalize

logger = logging.getLogger(__name__)

NO_ENTITIES_MESSAGE = "No duplicated entities found: type names are consistent across layers"


class _DisjointSet:
    """Union-find over name indices."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, item: int) -> int:
        while self._parent[item] != item:
            self._parent[item] = self._parent[self._parent[item]]
            item = self._parent[item]
        return item

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        # Keep the earlier name as root so cluster order follows the corpus
        if root_a < root_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_a] = root_b


class EntityReconciler:
    """Clusters TypeDeclarations into SemanticEntities and flags drift.

    Usage:
        reconciler = EntityReconciler(config)
        catalog = reconciler.reconcile(declarations)
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self._config = config if config is not None else Config.defaults()
        self._threshold = self._config.similarity_threshold
        self._synonyms: Dict[str, List[str]] = {}
        for term, synonyms in self._config.synonym_table.items():
            key = compact_key(term)
            if key:
                entries = self._synonyms.setdefault(key, [])
                entries.extend(s for s in (compact_key(x) for x in synonyms) if s)

    def synonym_linked(self, anchor: str, other: str) -> bool:
        """True if ``other`` matches one of the synonyms listed for ``anchor``."""
        synonyms = self._synonyms.get(compact_key(anchor))
        if not synonyms:
            return False
        other_key = compact_key(other)
        return any(contains_either_way(synonym, other_key) for synonym in synonyms)

    def names_linked(self, a: str, b: str) -> bool:
        """True if two declaration names are directly linked by either channel."""
        if keys_similar(compact_key(a), compact_key(b), self._threshold):
            return True
        return self.synonym_linked(a, b) or self.synonym_linked(b, a)

    def cluster(self, declarations: List[TypeDeclaration]) -> List[List[TypeDeclaration]]:
        """Group declarations by transitively linked names.

        Returns:
            Clusters of two or more declarations, ordered by the first
            occurrence of any member name; members keep corpus order.
        """
        names: List[str] = []
        for declaration in declarations:
            if declaration.name not in names:
                names.append(declaration.name)

        links = _DisjointSet(len(names))
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                if self.names_linked(names[i], names[j]):
                    links.union(i, j)

        root_of = {name: links.find(index) for index, name in enumerate(names)}

        # Keyed by the sorted alias tuple so a cluster is only created once
        clusters: Dict[Tuple[str, ...], List[TypeDeclaration]] = {}
        aliases_by_root: Dict[int, List[str]] = {}
        for name in names:
            aliases_by_root.setdefault(root_of[name], []).append(name)

        for root in sorted(aliases_by_root):
            aliases = aliases_by_root[root]
            members = [d for d in declarations if root_of[d.name] == root]
            if len(members) < 2:
                continue
            clusters.setdefault(tuple(sorted(aliases)), members)

        return list(clusters.values())

    def build_entity(self, members: List[TypeDeclaration]) -> SemanticEntity:
        """Merge a cluster of declarations into one SemanticEntity."""
        aliases: List[str] = []
        for declaration in members:
            if declaration.name not in aliases:
                aliases.append(declaration.name)

        primary = aliases[0]
        for alias in aliases[1:]:
            if len(alias) > len(primary):
                primary = alias

        field_group_map: Dict[str, List[str]] = {}
        field_types: Dict[str, List[str]] = {}
        for declaration in members:
            for entry in declaration.fields:
                key = normalize(entry.name) or entry.name
                field_group_map.setdefault(key, []).append(f"{declaration.name}.{entry.name}")
                if entry.is_parsed:
                    types = field_types.setdefault(key, [])
                    if entry.type_text not in types:
                        types.append(entry.type_text)

        warnings: List[str] = []
        for key, types in field_types.items():
            if len(types) > 1:
                warnings.append(f"Field '{key}' has different types: {', '.join(types)}")

        counts = [len(d.fields) for d in members]
        if len(set(counts)) > 1:
            detail = ", ".join(f"{d.name} ({d.source_file}): {len(d.fields)}" for d in members)
            warnings.append(f"Declarations have different field counts: {detail}")

        return SemanticEntity(
            primary_name=primary,
            alias_names=aliases,
            member_declarations=list(members),
            field_group_map=field_group_map,
            warnings=warnings,
        )

    def types_compatible(self, database_type: str, api_type: str) -> bool:
        """Check a database type text against an API type text.

        Identical normalized texts are compatible. Otherwise a compatibility
        table key must occur in the database type and one of its compatible
        types in the API type (case-insensitive substring matching).
        """
        if normalize(database_type) == normalize(api_type):
            return True
        database_lower = database_type.lower()
        api_lower = api_type.lower()
        for db_key, compatible in self._config.type_compatibility.items():
            if db_key.lower() in database_lower:
                if any(c.lower() in api_lower for c in compatible):
                    return True
        return False

    def detect_mismatches(self, entity: SemanticEntity) -> List[Mismatch]:
        """Report database fields whose API counterpart has an incompatible type."""
        database_side = entity.declarations_with_layer(LayerTag.DATABASE)
        api_side = entity.declarations_with_layer(LayerTag.API)
        if not database_side or not api_side:
            return []

        mismatches: List[Mismatch] = []
        seen = set()
        for db_declaration in database_side:
            for api_declaration in api_side:
                if api_declaration is db_declaration:
                    continue
                api_fields = {}
                for entry in api_declaration.fields:
                    api_fields.setdefault(normalize(entry.name), entry)

                for db_field in db_declaration.fields:
                    api_field = api_fields.get(normalize(db_field.name))
                    if api_field is None:
                        continue
                    if UNPARSED_TYPE in (db_field.type_text, api_field.type_text):
                        continue
                    if self.types_compatible(db_field.type_text, api_field.type_text):
                        continue
                    mismatch = Mismatch(
                        entity_name=entity.primary_name,
                        database_field=db_field.name,
                        database_type=db_field.type_text,
                        api_field=api_field.name,
                        api_type=api_field.type_text,
                    )
                    key = (
                        mismatch.database_field,
                        mismatch.database_type,
                        mismatch.api_field,
                        mismatch.api_type,
                    )
                    if key not in seen:
                        seen.add(key)
                        mismatches.append(mismatch)
        return mismatches

    def recommendations(
        self, entities: List[SemanticEntity], mismatches: List[Mismatch]
    ) -> List[str]:
        """Human-readable remediation hints for the catalog."""
        lines: List[str] = []
        for entity in entities:
            if entity.warnings:
                lines.append(
                    f"Entity '{entity.primary_name}' has {len(entity.warnings)} inconsistencies; "
                    f"consider standardizing {', '.join(entity.alias_names)} "
                    f"on '{entity.primary_name}'"
                )
        if mismatches:
            lines.append(
                f"{len(mismatches)} type mismatches between database and API layers; "
                f"align API types with the database schema"
            )
        if not entities:
            lines.append(NO_ENTITIES_MESSAGE)
        return lines

    def reconcile(self, declarations: List[TypeDeclaration]) -> EntityCatalog:
        """Build the entity catalog for one run."""
        entities = [self.build_entity(members) for members in self.cluster(declarations)]

        mismatches: List[Mismatch] = []
        for entity in entities:
            mismatches.extend(self.detect_mismatches(entity))

        logger.info(
            f"Reconciled {len(declarations)} declarations into {len(entities)} entities "
            f"with {len(mismatches)} type mismatches"
        )
        return EntityCatalog(
            entities=entities,
            mismatches=mismatches,
            recommendations=self.recommendations(entities, mismatches),
            declarations=list(declarations),
        )
