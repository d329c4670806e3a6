"""Custom handler dispatch.

Hosts that authenticate through something other than the built-in OAuth2
flow register :class:`CustomHandler` implementations with a
:class:`HandlerRegistry`; the flow controller delegates to the one a call
names.
"""

from oauthbridge.handlers.base import AccessTokenCallback, CustomHandler, HandlerContext
from oauthbridge.handlers.registry import ENTRY_POINT_GROUP, HandlerRegistry

__all__ = [
    "AccessTokenCallback",
    "CustomHandler",
    "ENTRY_POINT_GROUP",
    "HandlerContext",
    "HandlerRegistry",
]
