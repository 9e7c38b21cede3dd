from .tables import AvailabilityRules, Base, Bookings, Holidays, Services, metadata

__all__ = [
    "Base",
    "metadata",
    "Services",
    "AvailabilityRules",
    "Holidays",
    "Bookings",
]
