from .profile import profile_service
from .conversation import conversation_service
from .executor import TurnStage, execute_conversation_turn

__all__ = ["profile_service", "conversation_service", "TurnStage", "execute_conversation_turn"]
