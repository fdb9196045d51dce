"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "Assessment Delivery"
BRAND_SERVICE_ID = "assessment-delivery-api"
BRAND_APP_DESCRIPTION = "Session and result API for third-party assessment delivery"
