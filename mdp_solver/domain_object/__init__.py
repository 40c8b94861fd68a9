from .environment import (
    PROBABILITY_TOLERANCE,
    ActionDestination,
    ActionResult,
    Environment,
    Reward,
    StateActions,
)
from .policy import Policy, PolicyState, ValueTable, ActionValueTable
from .errors import InvariantViolation, SamplingError, EpisodeTooLongError
from .interfaces import (
    StartStateFn,
    NextStateFn,
    ActionFn,
    StateActionFeaturesFn,
    ActionPossibleFn,
)
