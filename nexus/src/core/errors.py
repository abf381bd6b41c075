"""
Nexus - Domain Errors
======================
Exceptions raised by the core services.  The API layer maps them to
HTTP status codes; anything not listed here surfaces as a 500.
"""


class NexusError(Exception):
    """Base class for all Nexus domain errors."""


class KnowledgeError(NexusError):
    """Embedding generation or knowledge-store access failed."""


class IngestionError(KnowledgeError):
    """A source could not be turned into storable knowledge."""


class ConversationNotFoundError(NexusError):
    """No conversation exists with the requested id."""


class ToolNotFoundError(NexusError):
    """No tool is registered under the requested name."""
