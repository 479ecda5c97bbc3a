"""
SQL Statement Builder

Generates parameterized CREATE/INSERT/DELETE/SELECT text for a record type
from its field list and inferred key set. Identifiers are double-quoted and
parameters are named ``@<field name>``.
"""

from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from ..core.errors import KeyArityMismatchError
from ..core.fields import FieldDescriptor, describe_fields, record_to_dict
from ..core.keys import dump_key_values, get_key_fields
from .types import build_primary_key_clause, get_sql_type, is_nullable, quote_identifier


class SqlBuilder:
    """
    SQL statement generator for one record type.

    Key inference and column type mapping both run in the constructor, so a
    type without keys or with an unmappable field fails before any statement
    is produced.
    """

    def __init__(self, record_type: type, fallback_key_names: Optional[Iterable[str]] = None,
                 strict: bool = False):
        self.record_type = record_type
        self.fields: Tuple[FieldDescriptor, ...] = describe_fields(record_type)
        self.key_fields: Tuple[FieldDescriptor, ...] = get_key_fields(
            record_type, fallback_key_names, strict
        )
        self._column_types: Dict[str, str] = {
            f.name: get_sql_type(f.annotation, f.name) for f in self.fields
        }

    @staticmethod
    def quote(identifier: str) -> str:
        return quote_identifier(identifier)

    def build_where_clause(self) -> str:
        """Conjunction of ``"key" = @key`` over the key set, in key order"""
        return " AND ".join(f"{self.quote(f.name)} = @{f.name}" for f in self.key_fields)

    def build_create_table_sql(self, table_name: str) -> str:
        columns = [
            f"{self.quote(f.name)} {self._column_types[f.name]} "
            f"{'NULL' if is_nullable(f) else 'NOT NULL'}"
            for f in self.fields
        ]
        columns.append(build_primary_key_clause(self.key_fields, self.quote))
        body = ",\n    ".join(columns)
        return f"CREATE TABLE IF NOT EXISTS {self.quote(table_name)} (\n    {body}\n);"

    def build_insert_sql(self, table_name: str) -> str:
        columns = ", ".join(self.quote(f.name) for f in self.fields)
        values = ", ".join(f"@{f.name}" for f in self.fields)
        return f"INSERT INTO {self.quote(table_name)} ({columns}) VALUES ({values});"

    def build_delete_sql(self, table_name: str) -> str:
        return f"DELETE FROM {self.quote(table_name)} WHERE {self.build_where_clause()};"

    def build_select_sql(self, table_name: str) -> str:
        return f"SELECT * FROM {self.quote(table_name)} WHERE {self.build_where_clause()} LIMIT 1;"

    def build_select_all_sql(self, table_name: str) -> str:
        return f"SELECT * FROM {self.quote(table_name)};"

    def insert_parameters(self, record: Any) -> Dict[str, Any]:
        """Parameter mapping for the INSERT statement, JSON-safe values"""
        values = record_to_dict(record, mode="json")
        return {f.name: values.get(f.name) for f in self.fields}

    def key_parameters(self, key_values: Sequence[Any]) -> Dict[str, Any]:
        """Parameter mapping for the WHERE clause, serialized like the INSERT parameters"""
        if len(key_values) != len(self.key_fields):
            raise KeyArityMismatchError(self.record_type, len(self.key_fields), len(key_values))
        dumped = dump_key_values(self.key_fields, key_values)
        return {f.name: value for f, value in zip(self.key_fields, dumped)}


__all__ = ["SqlBuilder"]
