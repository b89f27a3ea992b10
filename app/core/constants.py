"""
Service-wide constants
"""
SERVICE_NAME = "field-ops-backend"
DEFAULT_VERSION = "1.0.0"
