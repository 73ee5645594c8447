"""Customer support: polled chat with the support team and a canned FAQ bot."""
from .chat import SupportChat
from .faq import FaqBot

__all__ = ["SupportChat", "FaqBot"]
