"""
Relay and Offline Cache Constants

Central location for upstream defaults, prompts, cache naming and the
user-facing error messages returned by the relay.
"""

# Upstream model service
DEFAULT_UPSTREAM_URL = "https://text.pollinations.ai/openai"
DEFAULT_MODEL = "openai-large"
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 60.0

# Prompts sent with every transcription request
SYSTEM_PROMPT = (
    "You are an expert OCR model that extracts text from images accurately. "
    "You only return the text found in the image without any additional commentary."
)
USER_PROMPT = "OCR This."
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

# Upstream stream protocol
RECORD_PREFIX = "data:"
SENTINEL_PAYLOAD = "[DONE]"

# Relay error messages
INVALID_BASE64_MESSAGE = "Missing or invalid base64 string."
INVALID_MIME_TYPE_MESSAGE = "Invalid image mime type."
UPSTREAM_FAILURE_MESSAGE = "Upstream request failed."

# Status used when the upstream could not be reached at all
UPSTREAM_UNREACHABLE_STATUS = 502
UPSTREAM_TIMEOUT_STATUS = 504

# Offline cache
CACHE_NAME_PREFIX = "freeocr-cache-"
NETWORK_TIMEOUT_SECONDS = 8.0
DEFAULT_CACHE_PATH = ":memory:"
DEFAULT_ORIGIN = "http://localhost:8000"

# HTTP server
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
