# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for EntityReconciler: clustering, field mapping and mismatches."""

import json
from pathlib import Path

import pytest

from codex_reconciler.config import Config
from codex_reconciler.entity_reconciler import NO_ENTITIES_MESSAGE, EntityReconciler
from codex_reconciler.fact_store import FactStore
from codex_reconciler.models import (
    UNPARSED_TYPE,
    DeclarationKind,
    FieldEntry,
    FileFacts,
    LayerTag,
    TypeDeclaration,
)
from codex_reconciler.type_extractor import TypeExtractor

DB = LayerTag.DATABASE
API = LayerTag.API
BACKEND = LayerTag.BACKEND


def decl(name, fields, source_file="src/types.ts", tags=(BACKEND,)):
    """TypeDeclaration from a {field: type} dict."""
    return TypeDeclaration(
        name=name,
        kind=DeclarationKind.INTERFACE,
        fields=[FieldEntry(name=k, type_text=v) for k, v in fields.items()],
        source_file=source_file,
        layer_tags=set(tags),
    )


def names_of(clusters):
    return [[d.name for d in members] for members in clusters]


@pytest.fixture
def reconciler():
    return EntityReconciler(Config.defaults())


class TestSchemaAndApiDeclarations:
    """A type declared once in the schema and once in the API layer."""

    def test_schema_and_api_money(self, tmp_path):
        """Test one entity, a shared field group and a reported mismatch."""
        api_dir = tmp_path / "src" / "api"
        api_dir.mkdir(parents=True)
        (api_dir / "dto.ts").write_text("export interface Money { amount: number }")
        (tmp_path / "schema.prisma").write_text("model Money {\n  amount Int\n}\n")

        store = FactStore.from_files(
            [
                FileFacts(path=str(api_dir / "dto.ts"), language="typescript"),
                FileFacts(path=str(tmp_path / "schema.prisma"), language="prisma"),
            ],
            root=str(tmp_path),
        )
        declarations, unavailable = TypeExtractor(store).extract()
        catalog = EntityReconciler().reconcile(declarations)

        assert unavailable == {}
        assert len(catalog.entities) == 1
        money = catalog.entities[0]
        assert money.primary_name == "Money"
        assert len(money.member_declarations) == 2
        assert money.field_group_map["amount"] == ["Money.amount", "Money.amount"]
        assert catalog.type_mismatches == [
            "Money.amount: database type 'Int' vs API type 'number' (amount)"
        ]


class TestClustering:
    """Name linking and transitive clustering."""

    def test_coin_and_balance_alone_are_not_clustered(self, reconciler):
        """Test that synonyms only meet through the anchor term."""
        catalog = reconciler.reconcile([decl("Coin", {"value": "number"}), decl("Balance", {})])

        assert catalog.entities == []
        assert catalog.recommendations == [NO_ENTITIES_MESSAGE]

    def test_money_bridges_coin_and_balance(self, reconciler):
        """Test that adding the anchor pulls both synonyms into one entity."""
        catalog = reconciler.reconcile(
            [decl("Coin", {}), decl("Balance", {}), decl("Money", {})]
        )

        assert len(catalog.entities) == 1
        entity = catalog.entities[0]
        assert entity.alias_names == ["Coin", "Balance", "Money"]
        assert entity.primary_name == "Balance"

    def test_synonym_link_is_anchored(self, reconciler):
        """Test the direction of the synonym channel."""
        assert reconciler.synonym_linked("Money", "Coin") is True
        assert reconciler.synonym_linked("Coin", "Money") is False
        assert reconciler.names_linked("Coin", "Money") is True
        assert reconciler.names_linked("Coin", "Balance") is False

    def test_synonym_matches_compound_names(self, reconciler):
        """Test that a synonym inside a longer name still links."""
        assert reconciler.names_linked("User", "UserProfileResponse") is True
        assert reconciler.names_linked("user", "account_settings") is True

    @pytest.mark.parametrize(
        "a,b,linked",
        [
            ("Invoice", "InvoiceDTO", True),
            ("Adress", "Address", True),
            ("invoice_line", "InvoiceLine", True),
            ("Invoice", "Shipment", False),
            ("Order", "Coin", False),
        ],
    )
    def test_similarity_channel(self, reconciler, a, b, linked):
        """Test containment and character-overlap linking."""
        assert reconciler.names_linked(a, b) is linked

    def test_same_name_declarations_form_a_cluster(self, reconciler):
        """Test that two declarations of one name are enough for an entity."""
        clusters = reconciler.cluster(
            [decl("Invoice", {}, "src/a.ts"), decl("Invoice", {}, "src/b.ts")]
        )
        assert names_of(clusters) == [["Invoice", "Invoice"]]

    def test_singletons_dropped(self, reconciler):
        """Test that an unrelated lone declaration is not an entity."""
        clusters = reconciler.cluster(
            [decl("Invoice", {}), decl("Shipment", {}), decl("InvoiceDTO", {})]
        )
        assert names_of(clusters) == [["Invoice", "InvoiceDTO"]]

    def test_adding_declarations_never_splits_clusters(self, reconciler):
        """Test that clusters only grow or merge as the corpus grows."""
        base = [decl("Money", {}), decl("Coin", {}), decl("Order", {}), decl("Purchase", {})]
        before = names_of(reconciler.cluster(base))

        after = names_of(reconciler.cluster(base + [decl("Balance", {}), decl("Shipment", {})]))

        for cluster in before:
            assert any(set(cluster) <= set(grown) for grown in after)

    def test_cluster_order_follows_first_occurrence(self, reconciler):
        """Test that clusters are ordered by their earliest member."""
        clusters = reconciler.cluster(
            [decl("Order", {}), decl("Money", {}), decl("Coin", {}), decl("Purchase", {})]
        )
        assert names_of(clusters) == [["Order", "Purchase"], ["Money", "Coin"]]

    def test_deterministic_output(self, reconciler):
        """Test identical catalogs for identical input."""
        corpus = [
            decl("Coin", {"value": "number"}, "src/a.ts"),
            decl("Money", {"amount": "Int"}, "schema.prisma", (DB,)),
            decl("Money", {"amount": "number"}, "src/api/dto.ts", (API,)),
        ]
        first = json.dumps(EntityReconciler().reconcile(corpus).to_dict())
        second = json.dumps(EntityReconciler().reconcile(corpus).to_dict())
        assert first == second


class TestBuildEntity:
    """Merging a cluster into a SemanticEntity."""

    def test_primary_name_tie_goes_to_first(self):
        """Test that equal-length aliases keep the first seen as primary."""
        config = Config(
            config_path=Path("/nonexistent/config.yml"),
            overrides={"synonym_table": {"cash": ["coin"]}},
        )
        catalog = EntityReconciler(config).reconcile([decl("Coin", {}), decl("Cash", {})])

        assert catalog.entities[0].primary_name == "Coin"

    def test_field_group_map_uses_normalized_names(self, reconciler):
        """Test that user_id and userId land in one field group."""
        entity = reconciler.build_entity(
            [decl("User", {"user_id": "Int"}), decl("UserDTO", {"userId": "number"})]
        )
        assert entity.field_group_map == {"user_id": ["User.user_id", "UserDTO.userId"]}

    def test_type_and_count_warnings(self, reconciler):
        """Test consistency warnings for differing field types and counts."""
        entity = reconciler.build_entity(
            [
                decl("Money", {"amount": "Int", "currency": "String"}, "schema.prisma"),
                decl("Money", {"amount": "number"}, "src/api/dto.ts"),
            ]
        )

        assert entity.warnings == [
            "Field 'amount' has different types: Int, number",
            "Declarations have different field counts: "
            "Money (schema.prisma): 2, Money (src/api/dto.ts): 1",
        ]

    def test_unparsed_types_do_not_warn(self, reconciler):
        """Test that unreadable field types are not counted as a difference."""
        entity = reconciler.build_entity(
            [decl("Money", {"amount": "number"}), decl("Money", {"amount": UNPARSED_TYPE})]
        )
        assert entity.warnings == []


class TestTypeCompatibility:
    """Database to API type compatibility."""

    @pytest.mark.parametrize(
        "database_type,api_type,compatible",
        [
            ("BigInt", "string", True),
            ("bigint", "number", True),
            ("VarChar(255)", "string", True),
            ("Boolean", "boolean", True),
            ("Timestamp", "Date", True),
            ("Decimal", "number", True),
            ("String", "string", True),
            ("Int", "number", False),
            ("VarChar", "number", False),
            ("DateTime", "Date", False),
        ],
    )
    def test_types_compatible(self, reconciler, database_type, api_type, compatible):
        """Test the compatibility table with substring matching."""
        assert reconciler.types_compatible(database_type, api_type) is compatible


class TestMismatches:
    """Cross-layer mismatch detection."""

    def test_api_only_entity_has_no_mismatch(self, reconciler):
        """Test that drift without a database side is only a warning."""
        catalog = reconciler.reconcile(
            [
                decl("Invoice", {"total": "number"}, "src/api/a.ts", (API,)),
                decl("InvoiceDTO", {"total": "string"}, "src/api/b.ts", (API,)),
            ]
        )

        assert catalog.mismatches == []
        assert catalog.entities[0].warnings

    def test_mismatch_across_normalized_field_names(self, reconciler):
        """Test that database user_id is compared with API userId."""
        catalog = reconciler.reconcile(
            [
                decl("User", {"user_id": "Int"}, "schema.prisma", (DB,)),
                decl("UserDTO", {"userId": "string"}, "src/api/user.ts", (API,)),
            ]
        )

        assert [m.to_dict() for m in catalog.mismatches] == [
            {
                "entity": "UserDTO",
                "databaseField": "user_id",
                "databaseType": "Int",
                "apiField": "userId",
                "apiType": "string",
            }
        ]

    def test_database_field_without_api_counterpart_ignored(self, reconciler):
        """Test that only fields present on both sides are compared."""
        catalog = reconciler.reconcile(
            [
                decl("Money", {"id": "Int", "amount": "Decimal"}, "schema.prisma", (DB,)),
                decl("Money", {"amount": "number"}, "src/api/dto.ts", (API,)),
            ]
        )
        assert catalog.mismatches == []

    def test_unparsed_fields_skipped(self, reconciler):
        """Test that UNPARSED types never produce a mismatch."""
        catalog = reconciler.reconcile(
            [
                decl("Money", {"amount": UNPARSED_TYPE}, "schema.prisma", (DB,)),
                decl("Money", {"amount": "number"}, "src/api/dto.ts", (API,)),
            ]
        )
        assert catalog.mismatches == []

    def test_declaration_in_both_layers_not_compared_with_itself(self, reconciler):
        """Test that a dual-tagged declaration is not its own counterpart."""
        catalog = reconciler.reconcile(
            [
                decl("Money", {"amount": "Int"}, "db/api.ts", (DB, API)),
                decl("Money", {"amount": "Int"}, "src/money.ts", (BACKEND,)),
            ]
        )
        assert catalog.mismatches == []

    def test_duplicate_mismatches_collapsed(self, reconciler):
        """Test that identical field/type pairs are reported once."""
        catalog = reconciler.reconcile(
            [
                decl("Money", {"amount": "Int"}, "prisma/schema.prisma", (DB,)),
                decl("Money", {"amount": "Int"}, "db/migrations/money.ts", (DB,)),
                decl("Money", {"amount": "number"}, "src/api/dto.ts", (API,)),
            ]
        )
        assert len(catalog.mismatches) == 1


class TestRecommendations:
    """Catalog-level remediation hints."""

    def test_recommendations_for_warnings_and_mismatches(self, reconciler):
        """Test one line per inconsistent entity plus a mismatch summary."""
        catalog = reconciler.reconcile(
            [
                decl("Money", {"amount": "Int"}, "schema.prisma", (DB,)),
                decl("Coin", {"amount": "number"}, "src/api/dto.ts", (API,)),
            ]
        )

        assert catalog.recommendations == [
            "Entity 'Money' has 1 inconsistencies; consider standardizing Money, Coin on 'Money'",
            "1 type mismatches between database and API layers; "
            "align API types with the database schema",
        ]

    def test_consistent_entity_has_no_recommendation(self, reconciler):
        """Test that a clean entity produces no hint."""
        catalog = reconciler.reconcile(
            [decl("Invoice", {"total": "number"}), decl("InvoiceDTO", {"total": "number"})]
        )
        assert catalog.recommendations == []

    def test_get_entity_by_alias(self, reconciler):
        """Test catalog lookup by primary name or alias."""
        catalog = reconciler.reconcile([decl("Money", {}), decl("Coin", {})])

        assert catalog.get_entity("Coin") is catalog.entities[0]
        assert catalog.get_entity("Money") is catalog.entities[0]
        assert catalog.get_entity("Order") is None
