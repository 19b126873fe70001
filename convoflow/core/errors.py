"""Custom exception hierarchy for convoflow."""


class ConvoflowError(Exception):
    """Base error type."""


class SessionNotFound(ConvoflowError):
    pass


class ConfigError(ConvoflowError):
    pass


class FlowError(ConvoflowError):
    """Raised when a guided flow cannot be started or advanced."""


class UnknownFlowType(FlowError):
    """Raised when no onboarding catalog exists for the requested flow type."""
