# eventhub/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from eventhub.models.user import User, UserRole  # noqa: F401

from eventhub.models.event import Event  # noqa: F401
from eventhub.models.ticket import Ticket  # noqa: F401
from eventhub.models.promotion import Promotion  # noqa: F401

from eventhub.models.discount_coupon import DiscountCoupon  # noqa: F401
from eventhub.models.point_transaction import PointTransaction  # noqa: F401

from eventhub.models.transaction import Transaction, TransactionStatus  # noqa: F401
from eventhub.models.event_attendee import EventAttendee  # noqa: F401
