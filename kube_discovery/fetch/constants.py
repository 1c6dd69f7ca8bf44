"""HTTP constants for the API fetch layer.

Centralizes HTTP-related constants to avoid duplication across modules.
"""

# The only status accepted as success
HTTP_STATUS_OK = 200

# Timeouts (seconds); listings of large clusters can be slow
DEFAULT_READ_TIMEOUT_SECONDS = 60.0
DEFAULT_WRITE_TIMEOUT_SECONDS = 10.0

# Response Size Limits
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 300 * 1024 * 1024  # 300 MB

# How often an in-flight request rechecks its cancel event and deadline
WATCHDOG_POLL_SECONDS = 0.05

# Bytes of response body kept in ProtocolError for diagnostics
BODY_PREVIEW_BYTES = 1024

# Client identification
USER_AGENT = "kube-discovery/1.0.0"

# Binding to the IPv4 wildcard disables IPv6 dialing
IPV4_ANY_ADDRESS = "0.0.0.0"  # noqa: S104
