import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimerTicket:
    """What a deferred callback expects to still be true when it fires.

    ``generation`` is the race generation at scheduling time; ``token`` is
    the player's penalty token for penalty timers. A ticket that no longer
    matches live state is dropped.
    """

    kind: str
    generation: int
    identity: Optional[str] = None
    token: int = 0


class SocketIOScheduler:
    """Runs deferred work on Socket.IO background tasks.

    Uses ``socketio.sleep`` so timers behave under threading, eventlet and
    gevent alike.
    """

    def __init__(self, socketio):
        self._socketio = socketio

    def call_later(self, delay_sec: float, callback, *args):
        def _worker():
            if delay_sec > 0:
                self._socketio.sleep(delay_sec)
            _run(callback, *args)

        return self._socketio.start_background_task(_worker)

    def spawn(self, callback, *args):
        return self._socketio.start_background_task(_run, callback, *args)


def _run(callback, *args):
    try:
        callback(*args)
    except Exception:
        # Background tasks have no caller to propagate to
        logger.exception(f"[timer-error] {getattr(callback, '__name__', callback)} failed")
