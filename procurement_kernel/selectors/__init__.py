"""Read-only query selectors."""

from procurement_kernel.selectors.purchase_order_selector import PurchaseOrderSelector

__all__ = ["PurchaseOrderSelector"]
