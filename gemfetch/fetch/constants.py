"""HTTP constants for the fetch layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_REDIRECT_MIN = 300
HTTP_STATUS_REDIRECT_MAX = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_REQUEST_ENTITY_TOO_LARGE = 413

# Redirect and timeout defaults
DEFAULT_REDIRECT_LIMIT = 5
DEFAULT_API_TIMEOUT_SECONDS = 10.0

# Registry imposed limit on names per dependency query
DEFAULT_API_REQUEST_LIMIT = 100

# Body bytes quoted in generic HTTP error messages
ERROR_BODY_SNIPPET_LENGTH = 200

# Registry paths
DEPENDENCY_API_PATH = "api/v1/dependencies"
MARSHAL_SPEC_DIR = "quick/Marshal.4.8/"
FULL_INDEX_PATH = "specs.4.8.gz"
