"""
SQL statement generation for SQL-backed stores.
"""

from .builder import SqlBuilder
from .types import SQL_TYPES, get_sql_type, is_nullable, build_primary_key_clause

__all__ = ["SqlBuilder", "SQL_TYPES", "get_sql_type", "is_nullable", "build_primary_key_clause"]
