"""Exception types for SurviveAI.

Each exception carries a technical message (for logs) and a user-facing
message (for display in the chat surface).
"""


class SurviveAIError(Exception):
    """Base exception for SurviveAI errors."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class CorpusLoadError(SurviveAIError):
    """Knowledge data files are missing or malformed."""

    def __init__(self, details: str):
        super().__init__(
            f"Failed to load knowledge corpus: {details}",
            "The offline survival knowledge could not be loaded.",
        )


# =============================================================================
# MODEL ERRORS
# =============================================================================


class ModelNotInitializedError(SurviveAIError):
    def __init__(self, model_id: str | None = None):
        name = f" '{model_id}'" if model_id else ""
        super().__init__(
            f"Model{name} is not initialized",
            "Model not loaded. Please initialize the model first.",
        )
        self.model_id = model_id


class ModelInUseError(SurviveAIError):
    """Model handle released while a generation call is in flight."""

    def __init__(self, model_id: str, in_flight: int):
        super().__init__(
            f"Cannot release model '{model_id}' with {in_flight} generation(s) in flight",
            "The model is busy. Wait for the current response to finish.",
        )
        self.model_id = model_id
        self.in_flight = in_flight


class GenerationError(SurviveAIError):
    """The generation engine failed to produce a response."""

    def __init__(self, details: str):
        super().__init__(f"Generation failed: {details}", details or "Failed to generate response")


class GenerationTimeoutError(GenerationError):
    def __init__(self, timeout_seconds: float):
        SurviveAIError.__init__(
            self,
            f"Generation timed out after {timeout_seconds:.0f}s",
            "Response timed out. The model may be overloaded. Please try again.",
        )
        self.timeout_seconds = timeout_seconds


class EmptyResponseError(GenerationError):
    def __init__(self):
        SurviveAIError.__init__(
            self,
            "Generation produced no visible content",
            "No response generated. Please try again.",
        )


# =============================================================================
# CONVERSATION ERRORS
# =============================================================================


class ConversationNotFoundError(SurviveAIError):
    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation not found: {conversation_id}",
            "No active conversation",
        )
        self.conversation_id = conversation_id
