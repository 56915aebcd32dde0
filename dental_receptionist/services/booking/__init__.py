"""
Booking service module.
"""

from .treatment import TreatmentCatalog
from .service import BookingService

__all__ = ["TreatmentCatalog", "BookingService"]
