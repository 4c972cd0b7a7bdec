from starlette.requests import HTTPConnection

from ..services.dispatcher import DeliveryDispatcher
from ..services.registry import ConnectionRegistry
from ..services.sequencing import ConversationLocks
from ..services.storage import AttachmentStorage

# The collaborators below are owned by the application instance (see main.create_app)
# and resolved per request/websocket from app.state.


def get_connection_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


def get_delivery_dispatcher(conn: HTTPConnection) -> DeliveryDispatcher:
    return conn.app.state.dispatcher


def get_attachment_storage(conn: HTTPConnection) -> AttachmentStorage:
    return conn.app.state.storage


def get_conversation_locks(conn: HTTPConnection) -> ConversationLocks:
    return conn.app.state.conversation_locks
