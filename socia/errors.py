"""Exception hierarchy shared by the relay, store and suggestion layers."""


class SociaError(Exception):
    """Base exception for Socia backend errors."""

    pass


class ValidationError(SociaError):
    """A frame or request is missing fields or has malformed values."""

    pass


class AuthorizationError(SociaError):
    """Invalid credentials, or the caller is not a participant of a conversation."""

    pass


class NotFoundError(AuthorizationError):
    """Unknown conversation, message or user.

    Subclasses AuthorizationError so unknown ids take the same path as
    forbidden ones and do not leak existence.
    """

    pass


class TransportError(SociaError):
    """Read or write failure on a live connection."""

    pass


class PersistenceError(SociaError):
    """The relational store is unavailable or rejected a write."""

    pass


class ProviderError(SociaError):
    """The external LLM provider failed, timed out or returned garbage."""

    pass
