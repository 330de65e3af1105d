from .groq_client import (
    CompletionClient,
    GroqCompletionClient,
    LLMError,
    UnparseableResponseError,
    params_from_settings,
)
from .retry import AttemptRecord, AttemptStatus, RetryController, RetryOutcome, RetryState

__all__ = [
    "CompletionClient",
    "GroqCompletionClient",
    "LLMError",
    "UnparseableResponseError",
    "params_from_settings",
    "AttemptRecord",
    "AttemptStatus",
    "RetryController",
    "RetryOutcome",
    "RetryState",
]
