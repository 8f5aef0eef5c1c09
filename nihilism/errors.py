from __future__ import annotations


class EngineError(RuntimeError):
    """Base class for errors surfaced to callers of the session store.

    Every subclass carries a stable `kind` so the transport layer can map it to a
    specific status and message without string matching.
    """

    kind = "engine_error"


class NotFound(EngineError):
    kind = "not_found"


class InvalidState(EngineError):
    kind = "invalid_state"


class ValidationError(EngineError):
    kind = "validation_error"


class UpstreamError(EngineError):
    kind = "upstream_error"


class UpstreamTimeout(UpstreamError):
    kind = "upstream_timeout"


class PersistenceError(EngineError):
    kind = "persistence_error"
