"""Exception types raised by workshopcal.

Validation errors derive from ValueError, lookups from LookupError, so callers
that only care about the broad category can catch the builtin.
"""


class InvalidWeekday(ValueError):
    """Weekday number outside 0..6 (0 = Sunday), or an empty weekday set."""


class InvalidRuleWindow(ValueError):
    """Series end is not after series start."""


class InvalidTimeWindow(ValueError):
    """Time-of-day window is empty or spans midnight."""


class NotFound(LookupError):
    pass


class RuleNotFound(NotFound):
    pass


class OneOffEventNotFound(NotFound):
    pass


class OccurrenceNotFound(NotFound):
    """Id parses as an occurrence id but the rule does not fire on that date."""


class AgentNotFound(NotFound):
    pass
