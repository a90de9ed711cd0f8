"""Exceptions raised by directory services and translated by the API layer."""


class DirectoryError(Exception):
    """Base class for agent directory errors."""


class ValidationError(DirectoryError):
    """Caller supplied missing or malformed input."""


class FeedbackValidationError(ValidationError):
    pass


class AgentValidationError(ValidationError):
    pass


class AgentNotFoundError(DirectoryError):
    def __init__(self, agent_id: str):
        super().__init__("Agent not found")
        self.agent_id = agent_id


class AgentAlreadyRegisteredError(DirectoryError):
    def __init__(self, agent_id: str):
        super().__init__("Agent already registered")
        self.agent_id = agent_id
