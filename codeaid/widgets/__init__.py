"""Widget exports for the CodeAid UI."""

from .activity_bar import ActivityBar
from .conversation import ConversationView
from .logo import LOGO, Logo
from .message import MessageBubble
from .status_bar import StatusBar

__all__ = ["ActivityBar", "ConversationView", "LOGO", "Logo", "MessageBubble", "StatusBar"]
