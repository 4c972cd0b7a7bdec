"""
This package contains reusable dependencies for the Messaging Service.

By importing the main dependency functions here, we provide a stable access point
for our routers, abstracting away the internal module structure.
"""

from messaging_service.dependencies.app_deps import (
    get_attachment_storage,
    get_connection_registry,
    get_conversation_locks,
    get_delivery_dispatcher,
)
from messaging_service.dependencies.user_deps import (
    get_current_user_id,
    get_current_user_token_data,
)

__all__ = [
    "get_attachment_storage",
    "get_connection_registry",
    "get_conversation_locks",
    "get_current_user_id",
    "get_current_user_token_data",
    "get_delivery_dispatcher",
]
