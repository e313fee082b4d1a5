"""SQLAlchemy models: re-export all."""

from applifix.models.user import UserProfile, APIKey  # noqa: F401
from applifix.models.topic import Topic  # noqa: F401
from applifix.models.conversation import Conversation, ConversationTurn, Speaker  # noqa: F401
from applifix.models.guest_usage import GuestUsageCounter  # noqa: F401
