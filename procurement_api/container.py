"""
Process-scoped wiring of the procurement components.

One container is built at startup and shared by every request and by the
catalog event consumer.  Nothing in the kernel reaches for globals; the
session factory, clock and catalog client are all handed in here.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from kombu import Connection
from sqlalchemy.orm import Session, sessionmaker

from procurement_config.settings import ServiceSettings
from procurement_kernel.domain.clock import Clock
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.purchase_order_store import PurchaseOrderStore
from procurement_kernel.services.status_engine import StatusTransitionEngine
from procurement_services.catalog_client import CatalogClient
from procurement_services.event_consumer import CatalogEventConsumer, start_consumer_thread
from procurement_services.procurement_service import ProcurementService
from procurement_services.reconciler import CatalogChangeReconciler

logger = get_logger("api.container")


@dataclass
class ServiceContainer:
    settings: ServiceSettings
    session_factory: sessionmaker[Session]
    store: PurchaseOrderStore
    engine: StatusTransitionEngine
    catalog: CatalogClient
    service: ProcurementService
    reconciler: CatalogChangeReconciler
    consumer: Optional[CatalogEventConsumer] = None
    consumer_thread: Optional[threading.Thread] = field(default=None, repr=False)

    def start_consumer(self) -> None:
        """Start the catalog event consumer in the background if enabled."""
        if not self.settings.consumer_enabled or self.consumer_thread is not None:
            return
        self.consumer = CatalogEventConsumer(
            Connection(self.settings.amqp_url),
            self.reconciler,
            max_retries=self.settings.consumer_max_retries,
            interval_start=self.settings.consumer_interval_start,
            interval_step=self.settings.consumer_interval_step,
            interval_max=self.settings.consumer_interval_max,
        )
        self.consumer_thread = start_consumer_thread(self.consumer)

    def close(self, join_timeout: float = 5.0) -> None:
        if self.consumer is not None:
            self.consumer.stop()
        if self.consumer_thread is not None:
            self.consumer_thread.join(timeout=join_timeout)
            if self.consumer_thread.is_alive():
                logger.warning("catalog_consumer_still_running")
        self.catalog.close()


def build_container(
    settings: ServiceSettings,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
    catalog: CatalogClient | None = None,
) -> ServiceContainer:
    store = PurchaseOrderStore(
        session_factory,
        clock=clock,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    engine = StatusTransitionEngine(store)
    catalog = catalog or CatalogClient(
        settings.catalog_base_url,
        timeout=settings.catalog_timeout_seconds,
    )
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        store=store,
        engine=engine,
        catalog=catalog,
        service=ProcurementService(store, engine, catalog),
        reconciler=CatalogChangeReconciler(store),
    )
