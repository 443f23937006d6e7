from .waste import WasteBatch, WasteAuction, WasteBid, BATCH_STATUSES, BID_STATUSES
from .appointments import Appointment, AppointmentHistory, APPOINTMENT_STATUSES, TERMINAL_APPOINTMENT_STATUSES
from .resources import Staff, Vehicle, Customer, STAFF_STATUSES, VEHICLE_STATUSES
from .pricing import ServiceItem, SERVICE_ITEM_STATUSES
from .destruction import (
    DestructionTask,
    DestructionRecord,
    DestructionCertificate,
    DESTRUCTION_TASK_STATUSES,
    CERTIFICATE_STATUSES,
)

__all__ = [
    'WasteBatch', 'WasteAuction', 'WasteBid',
    'Appointment', 'AppointmentHistory',
    'Staff', 'Vehicle', 'Customer',
    'ServiceItem',
    'DestructionTask', 'DestructionRecord', 'DestructionCertificate',
    'BATCH_STATUSES', 'BID_STATUSES',
    'APPOINTMENT_STATUSES', 'TERMINAL_APPOINTMENT_STATUSES',
    'STAFF_STATUSES', 'VEHICLE_STATUSES', 'SERVICE_ITEM_STATUSES',
    'DESTRUCTION_TASK_STATUSES', 'CERTIFICATE_STATUSES',
]
