"""HTTP and backoff constants for the fetch layer.

Centralizes header names, status codes, and backoff defaults shared across modules.
"""

# Conditional request headers
HEADER_IF_MODIFIED_SINCE = "If-Modified-Since"
HEADER_LAST_MODIFIED = "Last-Modified"

# HTTP status codes the composed fetch distinguishes
HTTP_STATUS_OK = 200
HTTP_STATUS_NOT_MODIFIED = 304
HTTP_STATUS_BAD_REQUEST = 400

# Schemes
SECURE_SCHEME = "https"

# Freshness marker default meaning "never fetched"
MARKER_UNKNOWN = 0

# Backoff defaults: base 2 seconds raised to 5 gives a 32 second ceiling
DEFAULT_BACKOFF_BASE_SECONDS = 2
DEFAULT_BACKOFF_EXPONENT = 5
MAX_BACKOFF_TIMEOUT = DEFAULT_BACKOFF_BASE_SECONDS**DEFAULT_BACKOFF_EXPONENT

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

# Fallback charset when the response does not declare one
DEFAULT_CHARSET = "utf-8"

# Suffix of the httpcore trace events emitted once a TLS handshake completes.
# The prefix names the connection type: "connection", "proxy" or "socks".
TLS_HANDSHAKE_COMPLETE_SUFFIX = ".start_tls.complete"
