from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .package import Package
from .blocked_slot import BlockedSlot
from .reservation import Reservation, PatientInfo
from .payment import Payment, PaymentCancel
