import threading
import time
from typing import Callable, Dict, Optional


class ChallengeTimers:
    """Per-session countdown timers for the legacy timed-expiry path.

    - At most one live timer per session id; arming replaces the previous one
    - A timer is a background task that sleeps until its deadline and then
      fires only if its token is still the registered one
    - Callbacks run inside ``app.app_context()``
    - ``cancel_all()`` must run on shutdown so nothing fires against a
      torn-down store
    """

    def __init__(self, app, spawn: Optional[Callable] = None, sleep: Callable[[float], None] = time.sleep):
        self.app = app
        self._spawn = spawn or _spawn_thread
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens: Dict[str, object] = {}
        self._deadlines: Dict[str, float] = {}

    def arm(self, session_id: str, delay: float, callback: Callable[[], None], label: str = 'challenge') -> None:
        token = object()
        deadline = time.time() + delay
        with self._lock:
            replaced = session_id in self._tokens
            self._tokens[session_id] = token
            self._deadlines[session_id] = deadline
        if replaced:
            self.app.logger.info(f"[timer-replace] session={session_id}")
        self.app.logger.info(f"[timer-set] session={session_id} kind={label} delay={delay}s deadline={deadline}")
        self._spawn(self._worker, session_id, token, delay, callback, label)

    def cancel(self, session_id: str) -> bool:
        with self._lock:
            self._deadlines.pop(session_id, None)
            cancelled = self._tokens.pop(session_id, None) is not None
        if cancelled:
            self.app.logger.info(f"[timer-cancel] session={session_id}")
        return cancelled

    def cancel_all(self) -> int:
        with self._lock:
            count = len(self._tokens)
            self._tokens.clear()
            self._deadlines.clear()
        if count:
            self.app.logger.info(f"[timer-shutdown] cancelled={count}")
        return count

    def is_armed(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._tokens

    def deadline(self, session_id: str) -> Optional[float]:
        with self._lock:
            return self._deadlines.get(session_id)

    def _claim(self, session_id: str, token: object) -> bool:
        with self._lock:
            if self._tokens.get(session_id) is not token:
                return False
            del self._tokens[session_id]
            self._deadlines.pop(session_id, None)
            return True

    def _worker(self, session_id: str, token: object, delay: float, callback: Callable[[], None], label: str) -> None:
        if delay > 0:
            self._sleep(delay)
        if not self._claim(session_id, token):
            self.app.logger.info(f"[timer-abort] session={session_id} kind={label} superseded or cancelled")
            return
        self.app.logger.info(f"[timer-fire] session={session_id} kind={label}")
        with self.app.app_context():
            try:
                callback()
            except Exception:
                self.app.logger.exception(f"[timer-error] session={session_id} kind={label}")


def _spawn_thread(fn, *args) -> None:
    thread = threading.Thread(target=fn, args=args, daemon=True)
    thread.start()
