# backend/app/core/constants.py
"""
Application-wide constants.
"""

BRAND_NAME = "Course Scheduling"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = (
    f"Backend API for {BRAND_NAME} - one-on-one course appointments with "
    "availability, checkout, payment confirmation and rescheduling"
)
API_VERSION = "1.0.0"

# Path prefix for versioned routers
API_V1_PREFIX = "/api/v1"
