"""Exception hierarchy shared by all agentkit components."""


class AgentKitError(Exception):
    """Base class for all agentkit errors."""


class ConfigurationError(AgentKitError):
    """Invalid or incomplete configuration (missing identity, unknown model or provider)."""


class AgentNotInitializedError(AgentKitError):
    """Raised when an agent is used before a provider client is attached."""


class ProviderError(AgentKitError):
    """The model provider failed during a completion or stream."""


class ToolExecutionError(AgentKitError):
    """A single tool call failed.

    The agent turns these into error tool results for the model; they never
    abort the turn.
    """


class ToolLoopLimitError(AgentKitError):
    """The model kept requesting tools past the configured iteration limit."""

    def __init__(self, limit: int):
        super().__init__(f"Tool call limit of {limit} iterations exceeded")
        self.limit = limit


class EmbeddingError(AgentKitError):
    """An embedding model failed or returned an unexpected number of vectors."""


class IngestionError(AgentKitError):
    """A document could not be processed, embedded or stored."""


class RetrievalError(AgentKitError):
    """A knowledge base query failed."""


class UnsupportedDocumentError(AgentKitError):
    """No processor is registered for a document type."""


class KnowledgeBaseNotFoundError(AgentKitError, LookupError):
    """Referenced knowledge base does not exist."""


class DocumentNotFoundError(AgentKitError, LookupError):
    """Referenced document does not exist in the knowledge base."""


class ConversationNotFoundError(AgentKitError, LookupError):
    """Referenced conversation does not exist."""


class CollectionNotFoundError(AgentKitError, LookupError):
    """Referenced vector collection does not exist."""
