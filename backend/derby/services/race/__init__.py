"""Race domain services: parsing, question bank, registry and the engine.

The engine never talks to Socket.IO directly: it is handed a notifier and a
scheduler as collaborators. ``SocketIONotifier`` and ``SocketIOScheduler`` are
the production ones; tests pass in recording and manual fakes.
"""

from .bank import QuestionBank
from .engine import RaceEngine
from .notifier import SocketIONotifier
from .parser import parse_question
from .registry import PlayerRegistry
from .scheduler import SocketIOScheduler, TimerTicket

__all__ = [
    'PlayerRegistry',
    'QuestionBank',
    'RaceEngine',
    'SocketIONotifier',
    'SocketIOScheduler',
    'TimerTicket',
    'parse_question',
]
