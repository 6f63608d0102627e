from .chain import chain_status, generate_chain
from .errors import (
    ConflictError,
    ExternalServiceError,
    InvariantViolation,
    NotFound,
    ProgressionError,
    ValidationError,
)
from .goals import get_goal, set_goal
from .ledger import RewardLedger, get_profile
from .orchestrator import AttemptResult, ChainStatus, ProgressionOrchestrator, QuestUpdate, record_attempt
from .quest_graph import QuestGraph
from .recommendations import build_recommendations
from .text_generation import TextGenerationClient

__all__ = [
    "AttemptResult",
    "ChainStatus",
    "ConflictError",
    "ExternalServiceError",
    "InvariantViolation",
    "NotFound",
    "ProgressionError",
    "ProgressionOrchestrator",
    "QuestGraph",
    "QuestUpdate",
    "RewardLedger",
    "TextGenerationClient",
    "ValidationError",
    "build_recommendations",
    "chain_status",
    "generate_chain",
    "get_goal",
    "get_profile",
    "record_attempt",
    "set_goal",
]
