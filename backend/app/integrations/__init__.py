"""External service integrations: payment gateway, course catalog, notifier."""

from .course_rates import CatalogCourseRateProvider, CourseRateProvider, StaticCourseRateProvider
from .notifier import AppointmentNotifier, LoggingNotifier, WebhookNotifier
from .payment_gateway import (
    GatewayPaymentStatus,
    PaymentGateway,
    PaymentGatewayError,
    PaymentIntentHandle,
    StripePaymentGateway,
)

__all__ = [
    "AppointmentNotifier",
    "CatalogCourseRateProvider",
    "CourseRateProvider",
    "GatewayPaymentStatus",
    "LoggingNotifier",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentIntentHandle",
    "StaticCourseRateProvider",
    "StripePaymentGateway",
    "WebhookNotifier",
]
