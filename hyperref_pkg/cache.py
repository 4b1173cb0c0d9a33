"""
In-memory asset cache shared by every worker of a run.

Each identity maps to a single ``Future``: the first requester builds the
value, concurrent requesters for the same identity wait on that future
instead of fetching or transforming again. Failures are cached too, so a
broken asset is attempted once per run.
"""

import logging
import threading
from concurrent.futures import Future

logger = logging.getLogger(__name__)


class AssetCache:
    def __init__(self):
        self._lock = threading.Lock()
        self._slots = {}
        self.builds = 0

    def __contains__(self, identity):
        with self._lock:
            return identity in self._slots

    def get_or_build(self, identity, build):
        """
        Return the cached value for ``identity``, building it at most once.

        Args:
            identity: Asset identity (node id)
            build: Zero-argument callable producing the value

        Raises:
            Whatever ``build`` raised, for the builder and every waiter
        """
        with self._lock:
            slot = self._slots.get(identity)
            owner = slot is None
            if owner:
                slot = Future()
                self._slots[identity] = slot
                self.builds += 1

        if not owner:
            logger.debug(f"cache: waiting on {identity}")
            return slot.result()

        try:
            value = build()
        except Exception as e:
            slot.set_exception(e)
            raise
        slot.set_result(value)
        return value

