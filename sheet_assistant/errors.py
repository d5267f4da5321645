"""
Error taxonomy. Only NoDatasetError is ever surfaced to the caller as a failure;
the LLM errors drive fallback routing inside the pipeline.
"""


class AssistantError(Exception):
    """Base class for errors raised by the question-answering pipeline."""


class NoDatasetError(AssistantError):
    """Raised when a question arrives before any dataset has been loaded."""

    default_message = "No spreadsheet data is loaded. Please load a file first, then ask your question."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)


class LLMError(AssistantError):
    """Generic language-model failure (bad request, auth, unexpected response)."""


class LLMOverloadedError(LLMError):
    """Transient overload signal (rate limited, 503, 'overloaded')."""


class LLMUnavailableError(LLMError):
    """Network-class failure: the model endpoint could not be reached or timed out."""
