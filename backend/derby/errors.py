class DerbyError(Exception):
    """Base class for race engine errors."""


class ParseFailure(DerbyError):
    """An encoded question string could not be decoded."""


class EmptyBank(DerbyError):
    """No questions are available for the requested tier."""

    def __init__(self, tier):
        super().__init__(f'No questions available for difficulty {tier}')
        self.tier = tier


class GameInProgress(DerbyError):
    """A join was attempted while the race is not in the lobby."""


class QuestionSourceError(DerbyError):
    """The question source could not be read."""


class ConfigError(DerbyError):
    """Startup configuration is incomplete."""
