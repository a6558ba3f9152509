"""Error type shared by every store operation in the tracker app."""


class OperationFailed(Exception):
    """Raised when a fetch, insert, update or delete cannot be completed.

    The message is meant to be shown to the user as-is.
    """
