"""Structured command pipeline."""

from .briefing import DailyBriefingBuilder
from .models import CommandResult, CommandStage, StructuredCommand
from .normalize import EmbeddedError, detect_embedded_error, match_shape, normalize_response
from .quick import QUICK_COMMANDS, expand_quick_command, list_quick_commands
from .router import SERVICE_ALIASES, CommandRouter, resolve_alias
from .users import InMemoryUserDirectory, JsonFileUserDirectory, UserDirectory, UserRecord

__all__ = [
    # Models
    "StructuredCommand",
    "CommandResult",
    "CommandStage",
    # Router
    "CommandRouter",
    "SERVICE_ALIASES",
    "resolve_alias",
    # Normalization
    "normalize_response",
    "match_shape",
    "detect_embedded_error",
    "EmbeddedError",
    # Users
    "UserRecord",
    "UserDirectory",
    "InMemoryUserDirectory",
    "JsonFileUserDirectory",
    # Quick commands / briefing
    "QUICK_COMMANDS",
    "expand_quick_command",
    "list_quick_commands",
    "DailyBriefingBuilder",
]
