"""Access to the shared Firestore client."""

from __future__ import annotations

from typing import Optional

import firebase_admin
from firebase_admin import firestore

from core.logger import logger


def get_firestore_client() -> Optional[firestore.Client]:
    """Return a Firestore client if Firebase Admin is initialized, else None."""
    try:
        if not firebase_admin._apps:
            logger.warning("Firebase Admin not initialized; Firestore access disabled")
            return None
        return firestore.client()
    except Exception as exc:  # pragma: no cover
        logger.error(f"Failed to get Firestore client: {exc}", exc_info=True)
        return None
