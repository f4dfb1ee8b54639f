"""valetflow - transactional valet booking and spot locking."""

from valetflow.domain.models.auth_context import AuthContext, Role
from valetflow.domain.models.booking import BookingStatus, PaymentMethod
from valetflow.domain.models.errors import ErrorCategory, ValetFlowError
from valetflow.infrastructure.config.settings import ValetFlowSettings
from valetflow.service import BookingService

__version__ = "0.1.0"

__all__ = [
    "BookingService",
    "AuthContext",
    "Role",
    "BookingStatus",
    "PaymentMethod",
    "ErrorCategory",
    "ValetFlowError",
    "ValetFlowSettings",
]
