from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple
import random


class RaceState(str, Enum):
    LOBBY = 'LOBBY'
    RACING = 'RACING'
    FINISHED = 'FINISHED'


class PlayerState(str, Enum):
    IDLE = 'idle'
    ANSWERING = 'answering'
    PENALIZED = 'penalized'


class QuestionType(str, Enum):
    MCQ = 'mcq'
    MSQ = 'msq'
    TEXT = 'text'
    RANK = 'rank'
    MATCH = 'match'
    SORT = 'sort'


@dataclass(frozen=True)
class TierEffect:
    steps: int
    danger_ms: int
    penalty_ms: int


@dataclass(frozen=True)
class Question:
    prompt: str
    answer: str
    feedback: str
    effect: Optional[TierEffect] = None

    type = None

    def with_effect(self, effect: TierEffect) -> 'Question':
        return replace(self, effect=effect)

    def presentation(self, rng=random) -> dict:
        return {'choices': None}


@dataclass(frozen=True)
class McqQuestion(Question):
    choices: Tuple[str, ...] = ()

    type = QuestionType.MCQ

    def presentation(self, rng=random):
        return {'choices': list(self.choices)}


@dataclass(frozen=True)
class MsqQuestion(Question):
    choices: Tuple[str, ...] = ()

    type = QuestionType.MSQ

    def presentation(self, rng=random):
        return {'choices': list(self.choices)}


@dataclass(frozen=True)
class TextQuestion(Question):
    type = QuestionType.TEXT


@dataclass(frozen=True)
class RankQuestion(Question):
    items: Tuple[str, ...] = ()

    type = QuestionType.RANK

    def presentation(self, rng=random):
        # The given order is the answer, so never show it as-is
        return {'choices': None, 'items': rng.sample(list(self.items), len(self.items))}


@dataclass(frozen=True)
class MatchQuestion(Question):
    stems: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()

    type = QuestionType.MATCH

    def presentation(self, rng=random):
        return {
            'choices': None,
            'stems': list(self.stems),
            'targets': rng.sample(list(self.targets), len(self.targets)),
        }


@dataclass(frozen=True)
class SortQuestion(Question):
    buckets: Tuple[str, ...] = ()
    items: Tuple[str, ...] = ()

    type = QuestionType.SORT

    def presentation(self, rng=random):
        return {'choices': None, 'buckets': list(self.buckets), 'items': list(self.items)}


@dataclass
class Player:
    id: str
    name: str
    color: str
    lane: int
    passes: int = 3
    state: PlayerState = PlayerState.IDLE
    current_question: Optional[Question] = None
    question_start_time: float = 0
    penalty_token: int = 0

    def clear_question(self) -> None:
        self.current_question = None
        self.question_start_time = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'lane': self.lane,
            'passes': self.passes,
            'state': self.state.value,
        }


@dataclass
class FinishOrder:
    """Lanes in the order they left the race, finishers and DNFs alike."""

    lanes: list = field(default_factory=list)
    dnf: set = field(default_factory=set)
    names: dict = field(default_factory=dict)

    def __contains__(self, lane):
        return lane in self.lanes

    def __len__(self):
        return len(self.lanes)

    def record_finish(self, lane: int, name: str) -> int:
        """Append a finisher and return its place, counting every earlier entry."""
        self.lanes.append(lane)
        self.names[lane] = name
        return len(self.lanes)

    def record_dnf(self, lane: int, name: str) -> None:
        self.lanes.append(lane)
        self.dnf.add(lane)
        self.names[lane] = name

    def winner_name(self) -> Optional[str]:
        # Names outlive their players, so a departed leader is still reported
        if not self.lanes:
            return None
        return self.names.get(self.lanes[0])

    def clear(self) -> None:
        self.lanes.clear()
        self.dnf.clear()
        self.names.clear()
