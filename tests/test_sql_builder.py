"""
Tests for SQL type mapping and statement generation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest
from pydantic import BaseModel

from entitystore.core.errors import (
    KeyArityMismatchError, NoKeyFoundError, UnsupportedFieldTypeError
)
from entitystore.core.fields import Int64, KeyField
from entitystore.sql import SqlBuilder, get_sql_type


class T(BaseModel):
    Id: int
    Name: str


class Order(BaseModel):
    OrderId: int = KeyField()
    CustomerId: int = KeyField()
    Amount: float


@dataclass
class Event:
    EventId: Int64 = field(metadata={"is_key": True})
    Active: bool = True
    OccurredAt: datetime = datetime(2024, 1, 1)
    Retries: Optional[int] = None


class WithList(BaseModel):
    Id: int
    Tags: List[str] = []


class WithDecimal(BaseModel):
    Id: int
    Price: Decimal


class Stamped(BaseModel):
    At: datetime = KeyField()


class Keyless(BaseModel):
    Title: str


class TestSqlTypes:

    @pytest.mark.parametrize("annotation, expected", [
        (str, "TEXT"),
        (int, "INTEGER"),
        (Int64, "BIGINT"),
        (bool, "BOOLEAN"),
        (datetime, "DATETIME"),
        (float, "REAL"),
    ])
    def test_mapping(self, annotation, expected):
        assert get_sql_type(annotation) == expected

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedFieldTypeError) as exc_info:
            get_sql_type(Decimal, "Price")
        assert exc_info.value.field_name == "Price"
        assert "Price" in str(exc_info.value)


class TestSqlBuilder:

    def test_insert_sql(self):
        builder = SqlBuilder(T)
        assert builder.build_insert_sql("T") == 'INSERT INTO "T" ("Id", "Name") VALUES (@Id, @Name);'

    def test_select_sql(self):
        builder = SqlBuilder(T)
        assert builder.build_select_sql("T") == 'SELECT * FROM "T" WHERE "Id" = @Id LIMIT 1;'

    def test_delete_sql(self):
        builder = SqlBuilder(T)
        assert builder.build_delete_sql("T") == 'DELETE FROM "T" WHERE "Id" = @Id;'

    def test_select_all_sql(self):
        assert SqlBuilder(T).build_select_all_sql("T") == 'SELECT * FROM "T";'

    def test_create_table_sql(self):
        builder = SqlBuilder(T)
        assert builder.build_create_table_sql("T") == (
            'CREATE TABLE IF NOT EXISTS "T" (\n'
            '    "Id" INTEGER NOT NULL,\n'
            '    "Name" TEXT NULL,\n'
            '    PRIMARY KEY ("Id")\n'
            ');'
        )

    def test_composite_where_clause_follows_key_order(self):
        builder = SqlBuilder(Order)
        assert builder.build_where_clause() == '"OrderId" = @OrderId AND "CustomerId" = @CustomerId'

    def test_composite_primary_key(self):
        sql = SqlBuilder(Order).build_create_table_sql("Orders")
        assert '"Amount" REAL NOT NULL' in sql
        assert 'PRIMARY KEY ("OrderId", "CustomerId")' in sql

    def test_column_types_and_nullability(self):
        sql = SqlBuilder(Event).build_create_table_sql("Events")
        assert '"EventId" BIGINT NOT NULL' in sql
        assert '"Active" BOOLEAN NOT NULL' in sql
        assert '"OccurredAt" DATETIME NOT NULL' in sql
        assert '"Retries" INTEGER NULL' in sql

    def test_unsupported_field_fails_at_construction(self):
        with pytest.raises(UnsupportedFieldTypeError):
            SqlBuilder(WithList)
        with pytest.raises(UnsupportedFieldTypeError):
            SqlBuilder(WithDecimal)

    def test_keyless_type_fails_at_construction(self):
        with pytest.raises(NoKeyFoundError):
            SqlBuilder(Keyless)

    def test_insert_parameters(self):
        builder = SqlBuilder(Event)
        params = builder.insert_parameters(Event(EventId=9, OccurredAt=datetime(2024, 3, 4, 5, 6)))
        assert params == {
            "EventId": 9,
            "Active": True,
            "OccurredAt": "2024-03-04T05:06:00",
            "Retries": None,
        }

    def test_key_parameters_coerce_values(self):
        builder = SqlBuilder(Order)
        assert builder.key_parameters(("1", "2")) == {"OrderId": 1, "CustomerId": 2}

    def test_key_parameters_match_insert_parameters_for_datetime(self):
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        builder = SqlBuilder(Stamped)
        inserted = builder.insert_parameters(Stamped(At=at))
        assert builder.key_parameters((str(at),)) == {"At": inserted["At"]}

    def test_key_parameters_arity(self):
        with pytest.raises(KeyArityMismatchError) as exc_info:
            SqlBuilder(Order).key_parameters(("1",))
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 1
