import secrets
import threading
from collections import OrderedDict

from notesbridge.api.models import Flash

MAX_PENDING_FLASHES = 1024


def new_session_id() -> str:
    """Return a fresh opaque session identifier."""
    return secrets.token_hex(16)


class FlashStore:
    """
    Keyed store of pending flash messages (session id -> flash).

    A session holds at most one pending flash; setting a new one replaces
    it. `pop` reads and clears in one step, so a message is displayed on
    exactly one render. Clients that never send their session cookie back
    never collect their flash, so at most `max_pending` flashes are kept and
    the oldest is evicted first.
    """

    def __init__(self, max_pending: int = MAX_PENDING_FLASHES):
        self.max_pending = max_pending
        self._flashes: OrderedDict[str, Flash] = OrderedDict()
        self._lock = threading.Lock()

    def set(self, session_id: str, flash: Flash) -> None:
        with self._lock:
            self._flashes[session_id] = flash
            self._flashes.move_to_end(session_id)
            while len(self._flashes) > self.max_pending:
                self._flashes.popitem(last=False)

    def pop(self, session_id: str) -> Flash | None:
        with self._lock:
            return self._flashes.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._flashes)
