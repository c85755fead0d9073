"""
Firestore snapshot listeners feeding the stats task queue.

Each watched collection group gets one ``on_snapshot`` listener. Firestore
reports only the new version of a changed document, so the listener keeps
the roster fields (``studentId`` / ``studentIds``) of the last version it saw
of every document and pairs them with the new version to build a
``DocumentChange``; memory therefore grows with the number of watched
documents, not their size. The first snapshot of each listener only fills
that cache.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional, Tuple

from core import config
from core.logger import logger
from stats.events import WATCHED_COLLECTIONS, DocumentChange

# The only fields affected_students reads
_CACHED_FIELDS = ("studentId", "studentIds")


def _roster_fields(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (data or {}).items() if k in _CACHED_FIELDS}


def parse_document_path(path: str) -> Optional[Tuple[str, str, str]]:
    """Split ``businesses/{tenant}/{collection}/{doc}`` into its ids."""
    parts = path.split("/")
    if len(parts) != 4 or parts[0] != config.TENANTS_COLLECTION:
        return None
    _, tenant_id, collection, document_id = parts
    return tenant_id, collection, document_id


class ChangeListener:
    """Publishes watched document writes to a StatsTaskQueue."""

    def __init__(self, client, task_queue, collections=WATCHED_COLLECTIONS):
        self._client = client
        self._task_queue = task_queue
        self._collections = tuple(collections)
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._primed = set()
        self._lock = threading.Lock()
        self._watches = []

    def start(self) -> None:
        if self._watches:
            return
        for name in self._collections:
            watch = self._client.collection_group(name).on_snapshot(self._callback_for(name))
            self._watches.append(watch)
        logger.info(f"Listening for stats-relevant changes on: {', '.join(self._collections)}")

    def stop(self) -> None:
        for watch in self._watches:
            try:
                watch.unsubscribe()
            except Exception as exc:  # pragma: no cover
                logger.warning(f"Error unsubscribing listener: {exc}")
        self._watches = []

    def _callback_for(self, name: str):
        def callback(docs, changes, read_time):
            with self._lock:
                if name not in self._primed:
                    for doc in docs:
                        self._cache[doc.reference.path] = _roster_fields(doc.to_dict())
                    self._primed.add(name)
                    logger.debug(f"Primed {name} listener with {len(docs)} documents")
                    return
                for change in changes:
                    self._handle(change)

        return callback

    def _handle(self, change) -> None:
        doc = change.document
        path = doc.reference.path
        parsed = parse_document_path(path)
        if parsed is None:
            return
        tenant_id, collection, document_id = parsed

        before = self._cache.get(path)
        if change.type.name == "REMOVED":
            after = None
            self._cache.pop(path, None)
        else:
            after = doc.to_dict() or {}
            self._cache[path] = _roster_fields(after)

        try:
            self._task_queue.publish(
                DocumentChange(
                    tenant_id=tenant_id,
                    collection=collection,
                    document_id=document_id,
                    before=before,
                    after=after,
                )
            )
        except Exception as exc:
            logger.error(f"Failed to publish change for {path}: {exc}", exc_info=True)
