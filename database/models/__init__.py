from .booking import Booking, BookingAddon, BookingStatus, PaymentMethod
from .vehicle import Vehicle, VehicleStatus, Company
from .customer import Customer
from .accounting import AccountingEntryRecord, EntryStatus

__all__ = [
    "Booking", "BookingAddon", "BookingStatus", "PaymentMethod",
    "Vehicle", "VehicleStatus", "Company",
    "Customer",
    "AccountingEntryRecord", "EntryStatus"
]
