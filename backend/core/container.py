"""
Service container.

Holds the repositories, the aggregator and the task queue shared by the API,
the change listener and the sync script. This is the only place where the
Firestore implementations are chosen; tests build a container around
in-memory repositories instead.
"""

from dataclasses import dataclass
from typing import Any, Optional

from core import config
from core.logger import logger
from firestore.repositories import DirectoryRepository, RepositoryFactory
from stats.aggregator import StatsAggregator
from stats.task_queue import StatsTaskQueue


@dataclass
class StudioServices:
    repositories: RepositoryFactory
    directory: DirectoryRepository
    aggregator: StatsAggregator
    task_queue: StatsTaskQueue
    listener: Optional[Any] = None

    def start(self) -> None:
        self.task_queue.start()
        if self.listener is not None:
            self.listener.start()

    def stop(self) -> None:
        if self.listener is not None:
            self.listener.stop()
        self.task_queue.stop()


def build_services(
    repositories: RepositoryFactory,
    directory: DirectoryRepository,
    policy: Optional[str] = None,
    workers: Optional[int] = None,
) -> StudioServices:
    aggregator = StatsAggregator(repositories, policy=policy)
    task_queue = StatsTaskQueue(aggregator, workers=workers)
    return StudioServices(
        repositories=repositories,
        directory=directory,
        aggregator=aggregator,
        task_queue=task_queue,
    )


def build_default_services() -> StudioServices:
    """Wire the Firestore-backed services."""
    # Imported here so tests never need Firebase credentials
    from core.auth import init_firebase_admin
    from firestore.client import get_firestore_client
    from firestore.listeners import ChangeListener
    from firestore.studio_data import FirestoreDirectoryRepository, firestore_repository_factory

    init_firebase_admin()
    client = get_firestore_client()
    if client is None:
        raise RuntimeError("Firestore is not available; check Firebase Admin credentials")

    services = build_services(
        firestore_repository_factory(client),
        FirestoreDirectoryRepository(client),
    )
    if config.STATS_CHANGE_LISTENER:
        services.listener = ChangeListener(client, services.task_queue)
    logger.info(
        f"Services ready (attendance policy={services.aggregator.policy}, "
        f"sync chunk={services.aggregator.chunk_size}, workers={config.STATS_TASK_WORKERS})"
    )
    return services
