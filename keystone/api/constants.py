"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
RETRY_AFTER_HEADER = "Retry-After"

# Client address headers, most trusted first
CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for")
UNKNOWN_CLIENT = "unknown"

# Security
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds

# Route prefixes
API_PREFIX = "/api"

# Largest id a BIGINT primary key can hold
MAX_ENTITY_ID = 2**63 - 1
