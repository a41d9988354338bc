"""
Chipa License Validator - Configuration

Runtime settings are read once from the environment at import time.
Defaults target a local development license server.
"""

import os

# =============================================================================
# License Server
# =============================================================================

DEFAULT_BASE_URL = os.environ.get("CHIPA_LICENSE_SERVER", "http://localhost:8000")
REQUEST_TIMEOUT = float(os.environ.get("CHIPA_REQUEST_TIMEOUT", "10.0"))  # seconds

# Protocol header sent with every secure request
PROTOCOL_VERSION_HEADER = "X-Protocol-Version"
PROTOCOL_VERSION = "v1"

# =============================================================================
# Security
# =============================================================================

# Embedded secret material (fallback if the environment does not provide one).
# Client and license server must share the same value.
EMBEDDED_SECURITY_SECRET = "chipa-license-validator/embedded-secret/2025-04"
SECURITY_SECRET = os.environ.get("CHIPA_SECURITY_SECRET", EMBEDDED_SECURITY_SECRET).encode("utf-8")

# Numeric wire value of the version used when callers do not pick one
DEFAULT_VERSION = int(os.environ.get("CHIPA_DEFAULT_VERSION", "1"))

# =============================================================================
# Container Files
# =============================================================================

CONTAINER_EXTENSION = "chipa"
