"""completionkit: batch adapter for OpenAI-compatible completion endpoints."""
from .assemble import extract_text, extract_usage, to_output_dict
from .classify import classify_error
from .client import BaseCompletionClient, OpenAIStyleClient
from .errors import (
    ApiError,
    BatchAborted,
    BatchCancelled,
    CompletionKitError,
    ConfigError,
    TransportError,
    ValidationError,
)
from .executor import BatchExecutor, run_batch
from .options import normalize_options
from .request_builder import build_request, to_payload
from .types import (
    ChatRequest,
    CompletionOptions,
    ConversationTurn,
    ErrorInfo,
    Failure,
    InputRecord,
    Success,
    TextRequest,
)

__version__ = "0.1.0"
