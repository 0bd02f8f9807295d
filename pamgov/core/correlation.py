"""Correlation key resolution for PAM application schemas.

A stub group or external-referenced account carries the external object's
native identifier and source application in schema attributes flagged as
correlation keys. Each flagged attribute is persisted in an extended column
``key<index>``; this module maps a logical attribute name to that column.
"""
from __future__ import annotations
import threading
from typing import Dict, Optional, Tuple

from .constants import CORRELATION_KEY_PREFIX, SCHEMA_ACCOUNT, SCHEMA_GROUP
from .exceptions import ConfigurationError
from .models import Application


class CorrelationKeyResolver:
    """Resolve correlation key columns, caching one lookup table per (application, schema).

    Usage:
        resolver = CorrelationKeyResolver()
        column = resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False)
        # -> "key1", or None when the application is not correlation enabled
    """

    def __init__(self):
        self._tables: Dict[Tuple[str, str], Dict[str, int]] = {}
        self._lock = threading.Lock()

    def _lookup_table(self, application: Application, schema_type: str) -> Dict[str, int]:
        cache_key = (application.id or application.name, schema_type)
        table = self._tables.get(cache_key)
        if table is not None:
            return table

        schema = application.get_schema(schema_type)
        if schema is None:
            raise ConfigurationError(
                f"Application '{application.name}' has no {schema_type} schema"
            )
        table = {definition.name: definition.correlation_key for definition in schema.attributes}
        with self._lock:
            self._tables[cache_key] = table
        return table

    def resolve_key(self, application: Application, attribute_name: str, is_account_schema: bool) -> Optional[str]:
        """Return the column name holding ``attribute_name``, or None if the schema lacks it.

        Raises:
            ConfigurationError: If the schema is missing, or the attribute exists
                but is not marked as a correlation key.
        """
        schema_type = SCHEMA_ACCOUNT if is_account_schema else SCHEMA_GROUP
        table = self._lookup_table(application, schema_type)
        if attribute_name not in table:
            return None
        index = table[attribute_name]
        if index <= 0:
            raise ConfigurationError(
                f"Attribute '{attribute_name}' on the {schema_type} schema of '{application.name}' "
                "is not a correlation key"
            )
        return f"{CORRELATION_KEY_PREFIX}{index}"

    def invalidate(self, application: Optional[Application] = None) -> None:
        """Drop cached tables, for one application or all of them (after a schema change)."""
        with self._lock:
            if application is None:
                self._tables.clear()
                return
            owner = application.id or application.name
            for cache_key in [key for key in self._tables if key[0] == owner]:
                del self._tables[cache_key]
