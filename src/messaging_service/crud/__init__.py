from . import conversations, messages

__all__ = ["conversations", "messages"]
