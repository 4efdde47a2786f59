"""Exception types shared across the prediction core."""


class TipsterError(Exception):
    """Base error for the prediction core."""

    pass


class ConfigurationError(TipsterError):
    """Missing or invalid setup. The only error allowed to abort a run."""

    pass


class LLMError(TipsterError):
    """Error from the completion endpoint (HTTP, timeout, malformed envelope)."""

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LLMCancelledError(LLMError):
    """The caller signalled cancellation before the completion arrived."""

    pass


class PredictionPolicyError(ValueError):
    """Conflicting or invalid prediction policy (e.g. override + reprediction)."""

    pass
