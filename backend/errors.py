"""Vote hub error taxonomy.

Client-facing errors carry the HTTP status the API layer answers with. The
remaining two never leave the core: serialization failures are absorbed by the
gateway, delivery failures by the dispatcher.
"""
from __future__ import annotations


class VoteHubError(Exception):
    status_code: int = 500
    detail: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class DecodeError(VoteHubError):
    """Request body could not be parsed into the expected shape."""
    status_code = 400
    detail = "Invalid vote data"


class InvalidVote(VoteHubError):
    """Decoded fine, but a required field is empty."""
    status_code = 400
    detail = "Invalid vote data"


class DuplicateVoter(VoteHubError):
    status_code = 403
    detail = "Voter has already voted"


class SerializationFailure(VoteHubError):
    detail = "Snapshot could not be encoded"


class DeliveryFailure(VoteHubError):
    detail = "Write to connection failed"
