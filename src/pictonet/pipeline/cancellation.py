"""Per-row cooperative cancellation flags.

A stop request does not interrupt a collaborator call in flight. The work
already sent always completes its round trip; the processor checks the
flag once the call returns and skips committing the result.
"""

import logging

__all__ = ['CancellationRegistry']

logger = logging.getLogger(__name__)


class CancellationRegistry:
    """Mapping of row identity to a "stop requested" flag.

    Entries are advisory and hold no resources. An absent entry means
    "not cancelled", so forgetting a row is always safe.

    Example usage::

        registry = CancellationRegistry()
        registry.clear(row_id)              # start of a unit of work
        result = await collaborator(...)
        if registry.is_stop_requested(row_id):
            ...                             # discard result
    """

    def __init__(self):
        self._flags: dict[str, bool] = {}

    def request_stop(self, identity: str) -> None:
        self._flags[identity] = True
        logger.info("Stop requested for %s", identity)

    def clear(self, identity: str) -> None:
        """Reset the flag at the start of a unit of work."""
        self._flags[identity] = False

    def is_stop_requested(self, identity: str) -> bool:
        return self._flags.get(identity, False)

    def discard(self, identity: str) -> None:
        """Forget a row entirely (used when the row is deleted)."""
        self._flags.pop(identity, None)

    def pending(self) -> list[str]:
        """Identities with an outstanding stop request."""
        return [identity for identity, flag in self._flags.items() if flag]

    def __contains__(self, identity: str) -> bool:
        return identity in self._flags
