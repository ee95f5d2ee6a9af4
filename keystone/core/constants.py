"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Fingerprinting
FINGERPRINT_LENGTH = 16
FINGERPRINT_MAX_FRAMES = 5

# Security and redaction
REDACTED = "[REDACTED]"

# Fallback text when nothing usable can be extracted from a raised value
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"
