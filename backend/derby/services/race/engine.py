import logging
import random
import threading
import time
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from derby.errors import EmptyBank, QuestionSourceError
from derby.models import FinishOrder, Player, PlayerState, Question, RaceState
from .grading import is_correct
from .registry import PlayerRegistry
from .scheduler import TimerTicket

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.monotonic() * 1000


class RaceEngine:
    """Owns the race: lobby, players, horse positions and finish order.

    Every public operation and every timer callback runs under one lock, so
    handlers dispatched on different threads never interleave their updates.
    Outbound events go through ``notifier.send``; deferred work goes through
    ``scheduler.call_later`` / ``scheduler.spawn``.
    """

    def __init__(self, bank, source, notifier, scheduler, host_password=None,
                 finish_line=700, step_distance=35, start_delay_sec=5,
                 starting_passes=3, clock=None, rng=None):
        self.bank = bank
        self.source = source
        self.notifier = notifier
        self.scheduler = scheduler
        self.finish_line = finish_line
        self.step_distance = step_distance
        self.start_delay_sec = start_delay_sec
        self.registry = PlayerRegistry(starting_passes)
        self.state = RaceState.LOBBY
        self.finish_order = FinishOrder()
        self.host_id: Optional[str] = None
        self.generation = 0
        self._host_password_hash = None
        self._clock = clock or _now_ms
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        if host_password:
            self.set_host_password(host_password)

    @classmethod
    def from_config(cls, config, bank, source, notifier, scheduler, **kwargs):
        return cls(
            bank,
            source,
            notifier,
            scheduler,
            host_password=config.get('HOST_PASSWORD'),
            finish_line=int(config.get('FINISH_LINE', 700)),
            step_distance=int(config.get('STEP_DISTANCE', 35)),
            start_delay_sec=float(config.get('RACE_START_DELAY_SEC', 5)),
            starting_passes=int(config.get('STARTING_PASSES', 3)),
            **kwargs,
        )

    # ---- Question bank ----

    def load_questions(self) -> int:
        """Initial load; any failure here must stop the server from starting."""
        rows = self.source.fetch_rows()
        total = self.bank.load(rows)
        if total == 0:
            raise QuestionSourceError('Question source produced no usable questions')
        return total

    def reload_questions(self) -> bool:
        try:
            rows = self.source.fetch_rows()
        except QuestionSourceError as exc:
            logger.error(f"[bank-reload] failed, keeping previous bank: {exc}")
            return False
        if not rows:
            logger.error("[bank-reload] source returned no rows, keeping previous bank")
            return False
        self.bank.load(rows)
        return True

    # ---- Host ----

    def set_host_password(self, password: str) -> None:
        self._host_password_hash = generate_password_hash(password)

    def is_host(self, identity) -> bool:
        return self.host_id is not None and identity == self.host_id

    def host_login(self, identity: str, password) -> bool:
        with self._lock:
            if not self._host_password_hash or not isinstance(password, str):
                return False
            if not check_password_hash(self._host_password_hash, password):
                logger.info(f"[host-login] rejected sid={identity}")
                return False
            self.host_id = identity
            logger.info(f"[host-login] host connected sid={identity}")
            self.notifier.send('syncGame', self.snapshot(identity), to=identity)
            return True

    def start_race(self, identity: str) -> bool:
        with self._lock:
            if not self.is_host(identity):
                logger.info(f"[unauthorized] startRace from sid={identity}")
                return False
            if self.state is not RaceState.LOBBY:
                return False
            if self.registry.count() == 0:
                logger.info("[race-start] refused, no players in the lobby")
                return False
            logger.info(f"[race-start] starting in {self.start_delay_sec}s players={self.registry.count()}")
            self.notifier.send('raceStarting')
            ticket = TimerTicket('race-start', self.generation)
            self.scheduler.call_later(self.start_delay_sec, self._begin_race, ticket)
            return True

    def _begin_race(self, ticket: TimerTicket) -> None:
        with self._lock:
            if ticket.generation != self.generation or self.state is not RaceState.LOBBY:
                logger.info(f"[timer-abort] race-start generation={ticket.generation} state={self.state.value}")
                return
            if self.registry.count() == 0:
                logger.info("[timer-abort] race-start, lobby emptied during countdown")
                return
            self.state = RaceState.RACING
            self.finish_order.clear()
            self.registry.reset_progress()
            self.notifier.send('gameStateChange', {'state': self.state.value, 'winner': None})
            logger.info("[race-go] race started")

    def reset_game(self, identity: str) -> bool:
        with self._lock:
            if not self.is_host(identity):
                logger.info(f"[unauthorized] resetGame from sid={identity}")
                return False
            if self.state not in (RaceState.LOBBY, RaceState.FINISHED):
                return False
            logger.info("[race-reset] host is resetting the game")
            self.scheduler.spawn(self.reload_questions)
            self._reset_to_lobby()
            self.notifier.send('gameReset')
            return True

    def _reset_to_lobby(self) -> None:
        self.registry.clear()
        self.finish_order.clear()
        self.state = RaceState.LOBBY
        # Supersedes any start or penalty timer still pending
        self.generation += 1

    # ---- Players ----

    def join(self, identity: str, name: str, color: str) -> Player:
        with self._lock:
            rejoin = self.registry.get(identity) is not None
            player = self.registry.join(identity, name, color, self.state)
            self.notifier.send('syncGame', self.snapshot(identity), to=identity)
            if not rejoin:
                self.notifier.send('playerJoined', player.to_dict(), skip=identity)
                logger.info(f"[join] player={player.name} lane={player.lane}")
            return player

    def request_question(self, identity: str, tier) -> Optional[dict]:
        with self._lock:
            player = self.registry.get(identity)
            if self.state is not RaceState.RACING or not player or player.state is not PlayerState.IDLE:
                return None
            try:
                question = self.bank.draw_random(tier)
            except EmptyBank:
                player.state = PlayerState.IDLE
                logger.error(f"[question] no questions for difficulty={tier}")
                raise

            player.state = PlayerState.ANSWERING
            player.current_question = question
            player.question_start_time = self._clock()
            payload = {
                'question': question.prompt,
                'type': question.type.value,
                'dangerZone': question.effect.danger_ms,
            }
            payload.update(question.presentation(self._rng))
            self.notifier.send('hereIsYourQuestion', payload, to=identity)
            return payload

    def submit_answer(self, identity: str, raw_answer) -> Optional[str]:
        """Grade an answer; returns 'finished', 'correct', 'penalized' or 'wrong'."""
        with self._lock:
            player = self.registry.get(identity)
            if self.state is not RaceState.RACING or not player or player.state is not PlayerState.ANSWERING:
                return None

            question = player.current_question
            started = player.question_start_time
            player.clear_question()
            if question is None:
                return None

            if is_correct(question, raw_answer):
                return self._advance(player, question)
            return self._punish(player, question, started)

    def _advance(self, player: Player, question: Question) -> str:
        player.state = PlayerState.IDLE
        position = self.registry.advance(player.lane, question.effect.steps * self.step_distance)
        self.notifier.send('horseAdvanced', {'lane': player.lane, 'newPosition': position})

        if position >= self.finish_line and player.lane not in self.finish_order:
            place = self.finish_order.record_finish(player.lane, player.name)
            logger.info(f"[finish] player={player.name} lane={player.lane} place={place}")
            self.notifier.send('youFinished', {'place': place}, to=player.id)
            if place == 1:
                self.notifier.send('winnerAnnounced', {'name': player.name}, skip=player.id)
            self._finish_if_complete()
            return 'finished'

        self.notifier.send('answerResult', {'correct': True, 'feedback': question.feedback}, to=player.id)
        return 'correct'

    def _punish(self, player: Player, question: Question, started: float) -> str:
        effect = question.effect
        elapsed = self._clock() - started
        if elapsed < effect.danger_ms:
            player.state = PlayerState.PENALIZED
            player.penalty_token += 1
            self.notifier.send('answerResult', {
                'correct': False,
                'penalized': True,
                'penalty': effect.penalty_ms,
                'feedback': question.feedback,
            }, to=player.id)
            ticket = TimerTicket('penalty', self.generation, player.id, player.penalty_token)
            self.scheduler.call_later(effect.penalty_ms / 1000, self._end_penalty, ticket)
            return 'penalized'

        player.state = PlayerState.IDLE
        self.notifier.send('answerResult', {
            'correct': False,
            'penalized': False,
            'feedback': question.feedback,
        }, to=player.id)
        return 'wrong'

    def _end_penalty(self, ticket: TimerTicket) -> None:
        with self._lock:
            player = self.registry.get(ticket.identity)
            if (not player or ticket.generation != self.generation
                    or player.penalty_token != ticket.token
                    or player.state is not PlayerState.PENALIZED):
                logger.debug(f"[timer-abort] penalty sid={ticket.identity}")
                return
            player.state = PlayerState.IDLE
            self.notifier.send('penaltyOver', to=player.id)

    def pass_question(self, identity: str) -> Optional[bool]:
        with self._lock:
            player = self.registry.get(identity)
            if self.state is not RaceState.RACING or not player or player.state is not PlayerState.ANSWERING:
                return None
            if player.passes > 0:
                player.passes -= 1
                player.clear_question()
                player.state = PlayerState.IDLE
                self.notifier.send('passUsed', {'success': True, 'passesRemaining': player.passes}, to=identity)
                return True
            # Out of passes: the question and its danger window stay in force
            self.notifier.send('passUsed', {'success': False, 'passesRemaining': 0}, to=identity)
            return False

    def disconnect(self, identity: str) -> None:
        with self._lock:
            if self.is_host(identity):
                self.host_id = None
                logger.info("[host-left] host disconnected")

            player = self.registry.get(identity)
            if player:
                logger.info(f"[leave] player={player.name} lane={player.lane}")
                if self.state is RaceState.RACING and player.lane not in self.finish_order:
                    self.finish_order.record_dnf(player.lane, player.name)
                    logger.info(f"[dnf] player={player.name} lane={player.lane}")
                self.registry.remove(identity)
                self.notifier.send('playerLeft', {'lane': player.lane, 'name': player.name})
                if self.state is RaceState.RACING:
                    self._finish_if_complete()

            if self.registry.count() == 0 and self.host_id is None:
                logger.info("[race-reset] everyone left, back to lobby")
                self._reset_to_lobby()

    # ---- Race completion ----

    def _finish_if_complete(self) -> None:
        if self.state is not RaceState.RACING:
            return
        # The finish order never outgrows the field: once it holds as many
        # lanes as there are registered players, the race is over.
        if len(self.finish_order) >= self.registry.count():
            self.state = RaceState.FINISHED
            winner = self.finish_order.winner_name()
            logger.info(f"[race-finished] winner={winner} order={self.finish_order.lanes}")
            self.notifier.send('gameStateChange', {'state': self.state.value, 'winner': winner})

    def snapshot(self, identity: Optional[str] = None) -> dict:
        with self._lock:
            return {
                'allPlayers': {p.id: p.to_dict() for p in self.registry.players()},
                'allProgress': {str(lane): pos for lane, pos in self.registry.progress.items()},
                'currentState': self.state.value,
                'finishOrder': list(self.finish_order.lanes),
                'isHost': self.is_host(identity),
                'myId': identity,
            }
