from typing import Dict, List, Optional

from derby.errors import GameInProgress
from derby.models import Player, RaceState


class PlayerRegistry:
    """Connected players, their lanes and how far each lane's horse has run."""

    def __init__(self, starting_passes: int = 3):
        self.starting_passes = starting_passes
        self._players: Dict[str, Player] = {}
        self.progress: Dict[int, int] = {}

    def join(self, identity: str, name: str, color: str, race_state: RaceState) -> Player:
        if race_state is not RaceState.LOBBY:
            raise GameInProgress('The race has already started')
        existing = self._players.get(identity)
        if existing:
            return existing

        used = self.lanes()
        lane = 0
        while lane in used:
            lane += 1

        player = Player(id=identity, name=name, color=color, lane=lane, passes=self.starting_passes)
        self._players[identity] = player
        self.progress[lane] = 0
        return player

    def remove(self, identity: str) -> Optional[Player]:
        player = self._players.pop(identity, None)
        if player:
            self.progress.pop(player.lane, None)
        return player

    def get(self, identity: str) -> Optional[Player]:
        return self._players.get(identity)

    def count(self) -> int:
        return len(self._players)

    def players(self) -> List[Player]:
        return list(self._players.values())

    def lanes(self) -> set:
        return {p.lane for p in self._players.values()}

    def player_for_lane(self, lane: int) -> Optional[Player]:
        for p in self._players.values():
            if p.lane == lane:
                return p
        return None

    def advance(self, lane: int, distance: int) -> int:
        self.progress[lane] = self.progress.get(lane, 0) + distance
        return self.progress[lane]

    def reset_progress(self) -> None:
        self.progress = {lane: 0 for lane in self.lanes()}

    def clear(self) -> None:
        self._players.clear()
        self.progress.clear()
