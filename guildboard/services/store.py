"""
guildboard.services.store — Plugin document store
==================================================

Typed read/write access to the ``plugin_documents`` table.  Each plugin
keeps free-form state (guild settings, synced spreadsheet rows, conversion
rates) as whole JSON documents addressed by ``(namespace, key)``.  A write
replaces only that one document, so two guilds saving settings at the same
time never clobber each other.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from guildboard.database.engine import get_session
from guildboard.database.models import PluginDocument

logger = logging.getLogger(__name__)


def load_document(engine, namespace: str, key: str | int, default: Any = None) -> Any:
    """Return the decoded document, or *default* when absent or corrupt."""
    with Session(engine) as session:
        row = session.get(PluginDocument, (namespace, str(key)))
        if row is None:
            return default
        try:
            return json.loads(row.value_json)
        except (json.JSONDecodeError, TypeError):
            logger.warning(
                "Corrupt document %s/%s, falling back to defaults", namespace, key
            )
            return default


def save_document(engine, namespace: str, key: str | int, value: Any) -> None:
    """Insert or replace a single document."""
    value_json = json.dumps(value)
    with get_session(engine) as session:
        row = session.get(PluginDocument, (namespace, str(key)))
        if row is None:
            session.add(PluginDocument(namespace=namespace, key=str(key), value_json=value_json))
        else:
            row.value_json = value_json


def delete_document(engine, namespace: str, key: str | int) -> bool:
    with get_session(engine) as session:
        row = session.get(PluginDocument, (namespace, str(key)))
        if row is None:
            return False
        session.delete(row)
        return True

