from __future__ import annotations

from decimal import Decimal

import pytest

from tablemap.domain.schema import Column, describe, register
from tablemap.domain.types import SqlType
from tablemap.exceptions import SchemaError
from tablemap.statements import (
    Operation,
    build,
    build_create,
    build_create_many,
    build_delete,
    build_delete_many,
    build_read,
    build_read_all,
    build_update,
    build_update_many,
    quote_identifier,
    quote_table,
    sql_templates,
)
from scripts.models import Collate, Fruit, InventoryItem, Product


class AuditEvent:
    def __init__(self, message: str) -> None:
        self.message = message


class Counter:
    def __init__(self, id: int = 0) -> None:
        self.id = id


class Membership:
    def __init__(self, group_id: int, user_id: int) -> None:
        self.group_id = group_id
        self.user_id = user_id


AUDIT = register(AuditEvent, "audit_events", [Column("message", SqlType.TEXT)])
COUNTER = register(
    Counter, "counters", [Column("id", SqlType.BIGINT, primary_key=True, generated=True)]
)
MEMBERSHIP = register(
    Membership,
    "memberships",
    [
        Column("group_id", SqlType.INT, primary_key=True),
        Column("user_id", SqlType.INT, primary_key=True),
    ],
)


def test_quote_identifier_escapes_quotes() -> None:
    assert quote_identifier("desc") == '"desc"'
    assert quote_identifier('we"ird') == '"we""ird"'
    assert quote_table("public.fruits") == '"public"."fruits"'


class TestFruitStatements:
    def test_create(self) -> None:
        statement = build_create(describe(Fruit), Fruit(name="apple"))
        assert statement.sql == (
            'INSERT INTO "public"."fruits" ("name") VALUES ($1::VARCHAR) RETURNING "id", "name"'
        )
        assert statement.params == ("apple",)
        assert statement.operation is Operation.CREATE
        assert statement.table == "public.fruits"

    def test_read(self) -> None:
        statement = build_read(describe(Fruit), 1)
        assert statement.sql == (
            'SELECT "id", "name" FROM "public"."fruits" WHERE "id" = $1::BIGINT'
        )
        assert statement.params == (1,)

    def test_read_all_orders_by_key(self) -> None:
        statement = build_read_all(describe(Fruit))
        assert statement.sql == 'SELECT "id", "name" FROM "public"."fruits" ORDER BY "id"'
        assert statement.params == ()

    def test_update_binds_values_then_key(self) -> None:
        statement = build_update(describe(Fruit), Fruit(id=1, name="pear"))
        assert statement.sql == (
            'UPDATE "public"."fruits" SET "name" = $1::VARCHAR WHERE "id" = $2::BIGINT '
            'RETURNING "id", "name"'
        )
        assert statement.params == ("pear", 1)

    def test_delete(self) -> None:
        statement = build_delete(describe(Fruit), 1)
        assert statement.sql == 'DELETE FROM "public"."fruits" WHERE "id" = $1::BIGINT RETURNING "id"'
        assert statement.params == (1,)

    def test_values_never_reach_sql_text(self) -> None:
        name = "x'); DROP TABLE fruits; --"
        statement = build_create(describe(Fruit), Fruit(name=name))
        assert name not in statement.sql
        assert statement.params == (name,)


class TestKeywordColumns:
    def test_every_identifier_is_quoted(self) -> None:
        record = Collate(id=1, column=True, desc=False, current_user="u", fetch="f")
        statement = build_update(describe(Collate), record)
        assert statement.sql == (
            'UPDATE "public"."collate" SET "column" = $1::BOOL, "desc" = $2::BOOL, '
            '"constraint" = $3::BIGINT, "current_user" = $4::VARCHAR, "fetch" = $5::VARCHAR '
            'WHERE "id" = $6::INT RETURNING "id", "column", "desc", "constraint", '
            '"current_user", "fetch"'
        )
        assert statement.params == (True, False, None, "u", "f", 1)


class TestCompositeKeys:
    def test_read_filters_on_every_key_column(self) -> None:
        statement = build_read(describe(InventoryItem), ("north", "A-1"))
        assert statement.sql.endswith('WHERE "warehouse" = $1::VARCHAR AND "sku" = $2::VARCHAR')
        assert statement.params == ("north", "A-1")

    def test_update_params(self) -> None:
        item = InventoryItem(warehouse="north", sku="A-1", quantity=3)
        statement = build_update(describe(InventoryItem), item)
        assert 'SET "quantity" = $1::INT WHERE "warehouse" = $2::VARCHAR' in statement.sql
        assert statement.params == (3, "north", "A-1")

    def test_key_arity_is_checked(self) -> None:
        with pytest.raises(SchemaError):
            build_delete(describe(InventoryItem), "north")


class TestUnsupportedOperations:
    @pytest.mark.parametrize(
        "builder",
        [
            lambda: build_read(AUDIT, 1),
            lambda: build_update(AUDIT, AuditEvent("hello")),
            lambda: build_delete(AUDIT, 1),
            lambda: build_update_many(AUDIT, [AuditEvent("hello")]),
            lambda: build_delete_many(AUDIT, [1]),
        ],
    )
    def test_keyless_type(self, builder) -> None:
        with pytest.raises(SchemaError, match="primary key"):
            builder()

    def test_keyless_type_still_supports_create_and_read_all(self) -> None:
        assert build_create(AUDIT, AuditEvent("hi")).params == ("hi",)
        assert build_read_all(AUDIT).sql == 'SELECT "message" FROM "audit_events"'

    def test_update_with_only_key_columns(self) -> None:
        with pytest.raises(SchemaError, match="nothing to set"):
            build_update(MEMBERSHIP, Membership(1, 2))

    def test_all_generated_columns_insert_default_values(self) -> None:
        statement = build_create(COUNTER, Counter())
        assert statement.sql == 'INSERT INTO "counters" DEFAULT VALUES RETURNING "id"'
        assert statement.params == ()
        with pytest.raises(SchemaError, match="server-generated"):
            build_create_many(COUNTER, [Counter()])

    def test_bulk_builders_need_operands(self) -> None:
        with pytest.raises(ValueError):
            build_create_many(describe(Fruit), [])


class TestBulkStatements:
    def test_create_many_numbers_placeholders_per_row(self) -> None:
        statement = build_create_many(describe(Fruit), [Fruit(name="a"), Fruit(name="b")])
        assert statement.sql == (
            'INSERT INTO "public"."fruits" ("name") VALUES ($1::VARCHAR), ($2::VARCHAR) '
            'RETURNING "id", "name"'
        )
        assert statement.params == ("a", "b")

    def test_update_many_joins_on_values_list(self) -> None:
        items = [
            InventoryItem(warehouse="n", sku="a", quantity=1),
            InventoryItem(warehouse="s", sku="b", quantity=2),
        ]
        statement = build_update_many(describe(InventoryItem), items)
        assert statement.sql == (
            'UPDATE "public"."inventory" AS "target" SET "quantity" = "source"."quantity" '
            "FROM (VALUES ($1::VARCHAR, $2::VARCHAR, $3::INT), ($4::VARCHAR, $5::VARCHAR, $6::INT)) "
            'AS "source" ("warehouse", "sku", "quantity") '
            'WHERE "target"."warehouse" = "source"."warehouse" AND "target"."sku" = "source"."sku" '
            'RETURNING "target"."warehouse", "target"."sku", "target"."quantity"'
        )
        assert statement.params == ("n", "a", 1, "s", "b", 2)

    def test_delete_many_single_key(self) -> None:
        statement = build_delete_many(describe(Fruit), [1, 2, 3])
        assert statement.sql == (
            'DELETE FROM "public"."fruits" WHERE "id" IN ($1::BIGINT, $2::BIGINT, $3::BIGINT) '
            'RETURNING "id"'
        )
        assert statement.params == (1, 2, 3)

    def test_delete_many_composite_key(self) -> None:
        statement = build_delete_many(describe(InventoryItem), [("n", "a"), ("s", "b")])
        assert statement.sql == (
            'DELETE FROM "public"."inventory" WHERE ("warehouse", "sku") IN '
            "(($1::VARCHAR, $2::VARCHAR), ($3::VARCHAR, $4::VARCHAR)) "
            'RETURNING "warehouse", "sku"'
        )
        assert statement.params == ("n", "a", "s", "b")


class TestDispatch:
    def test_build_by_operation_name(self) -> None:
        descriptor = describe(Fruit)
        assert build("read", descriptor, 1) == build_read(descriptor, 1)
        assert build(Operation.READ_ALL, descriptor) == build_read_all(descriptor)

    def test_raw_operations_are_not_built_from_schema(self) -> None:
        with pytest.raises(ValueError, match="not built"):
            build(Operation.QUERY, describe(Fruit))

    def test_sql_templates_skip_unsupported_operations(self) -> None:
        assert set(sql_templates(describe(Product))) == {
            "create",
            "read",
            "read_all",
            "update",
            "delete",
        }
        assert set(sql_templates(AUDIT)) == {"create", "read_all"}

    def test_product_insert_casts(self) -> None:
        text = sql_templates(describe(Product))["create"]
        assert text == (
            'INSERT INTO "public"."products" ("title", "price", "tags", "is_active") '
            "VALUES ($1::VARCHAR, $2::NUMERIC, $3::JSONB, $4::BOOL) "
            'RETURNING "prod_id", "title", "price", "tags", "is_active", "created_at"'
        )

    def test_price_value_is_passed_unchanged(self) -> None:
        product = Product(title="lamp", price=Decimal("0.10"))
        assert build_create(describe(Product), product).params[1] == Decimal("0.10")
