"""Exception hierarchy for the data-access layer.

Every failure is raised as a DatabaseError subclass so callers can tell a
refused connection apart from a bad statement. The driver exception is kept
as ``__cause__``.
"""


class DatabaseError(Exception):
    """Base class for all data-access failures."""


class ConnectError(DatabaseError):
    """The server could not be reached or refused the session."""


class CharsetError(DatabaseError):
    """The client encoding could not be negotiated after connecting."""


class PrepareError(DatabaseError):
    """The statement was rejected before it could run."""


class ExecError(DatabaseError):
    """The statement was accepted but failed while executing."""


class TransactionError(DatabaseError):
    """Transaction control was used out of order."""
