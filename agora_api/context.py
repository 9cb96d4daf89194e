"""Request context for observability.

Context variables carry per-request identifiers across async boundaries so
the JSON log formatter can attach them to every record.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated subject, set once the role resolver succeeds
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
