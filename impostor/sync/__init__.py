"""Session synchronization core for the impostor party game."""

from .channel import GameChannel
from .client import ClientReconciler
from .config import SyncSettings, load_settings
from .errors import ImpostorError, RoundStartError, TopicProviderError
from .host import HostAuthority
from .models import Player, Role, RoundData, Session, Settings, Status, TopicResponse
from .roles import assign_roles
from .state import build_initial_session, generate_room_code
from .topics import GeminiTopicProvider, StaticTopicProvider, create_topic_provider
from .transport import HttpRelayTransport, InMemoryTransport, Transport
from .view import Screen, ViewStateMachine, derive_screen, secret_card

__all__ = [
    "assign_roles",
    "build_initial_session",
    "ClientReconciler",
    "create_topic_provider",
    "derive_screen",
    "GameChannel",
    "GeminiTopicProvider",
    "generate_room_code",
    "HostAuthority",
    "HttpRelayTransport",
    "ImpostorError",
    "InMemoryTransport",
    "load_settings",
    "Player",
    "Role",
    "RoundData",
    "RoundStartError",
    "Screen",
    "secret_card",
    "Session",
    "Settings",
    "StaticTopicProvider",
    "Status",
    "SyncSettings",
    "TopicProviderError",
    "TopicResponse",
    "Transport",
    "ViewStateMachine",
]
