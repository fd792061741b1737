class AgentStreamError(Exception):
    """Base exception class for agentstream errors."""


class AgentStreamConfigurationError(AgentStreamError):
    """Raised when a transformer is misconfigured."""


class AgentStreamValidationError(AgentStreamError):
    """Raised when raw input cannot be decoded at all."""


class AgentStreamRuntimeError(AgentStreamError):
    """Raised when the transformer is driven incorrectly."""


class SessionFinishedError(AgentStreamRuntimeError):
    """Raised when an event is fed to a session that already finished."""


__all__ = [
    "AgentStreamError",
    "AgentStreamConfigurationError",
    "AgentStreamValidationError",
    "AgentStreamRuntimeError",
    "SessionFinishedError",
]
