from .db import db
from .user import User
from .session import Session
from .audit_log import AuditLog
from .slot import Slot
from .booking import Booking
from .waitlist import WaitlistEntry
from .recurring import RecurringAppointment
from .notification import Notification
