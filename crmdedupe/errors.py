"""
Error kinds raised while resolving and merging duplicate contacts.

None of these is allowed to end a run: the merge orchestrator catches
them per tuple and turns them into statistics and merge-log lines.
"""


class XdedupeError(Exception):
    """Base class for all merge-related errors."""
    pass


class PreconditionViolation(XdedupeError):
    """A contact of the tuple is missing or flagged deleted."""
    pass


class ResolverFailure(XdedupeError):
    """A resolver could not complete its correction."""
    pass


class MergePrimitiveFailure(XdedupeError):
    """The external merge primitive raised or refused the merge."""
    pass


class ConfigurationError(XdedupeError):
    """An unknown resolver was requested."""
    pass


class StoreError(XdedupeError):
    """The contact store rejected a read or write."""
    pass
