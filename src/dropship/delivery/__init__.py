"""
Delivery loop.
"""

from dropship.delivery.coordinator import CycleSummary, DeliveryCoordinator

__all__ = [
    "CycleSummary",
    "DeliveryCoordinator",
]
