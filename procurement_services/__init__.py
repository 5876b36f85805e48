"""
Procurement services - I/O boundaries around the kernel.

- CatalogClient: catalog snapshot lookups over HTTP
- CatalogChangeReconciler: applies catalog-change events to draft POs
- CatalogEventConsumer: AMQP transport feeding the reconciler
- ProcurementService: fetch-then-store orchestration for the HTTP layer
"""

from procurement_services.catalog_client import CatalogClient
from procurement_services.event_consumer import CatalogEventConsumer, start_consumer_thread
from procurement_services.procurement_service import ProcurementService
from procurement_services.reconciler import CatalogChangeReconciler

__all__ = [
    "CatalogClient",
    "CatalogChangeReconciler",
    "CatalogEventConsumer",
    "ProcurementService",
    "start_consumer_thread",
]
