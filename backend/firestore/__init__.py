"""
Firestore integration package for tenant-scoped studio data.

Exposes the repository interfaces. The Firestore implementations live in
``firestore.studio_data`` and are imported only where Firebase Admin is wired.
"""

from .repositories import (  # noqa: F401
    DirectoryRepository,
    RepositoryFactory,
    StudioRepository,
)
