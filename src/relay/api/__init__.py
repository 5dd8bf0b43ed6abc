"""HTTP surface of the relay.

Note: relay_router is imported from relay.api.endpoint in main.py, after
the other routers, because its path pattern matches every request.
"""

from relay.api.adapter import (
    MissingPromptError,
    build_upstream_request,
    parse_flag,
    resolve_mode,
)

__all__ = [
    "MissingPromptError",
    "build_upstream_request",
    "parse_flag",
    "resolve_mode",
]
