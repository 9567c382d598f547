"""
Lifecycle state machines - validate status transitions

The current state lives on the persisted entity; a StateMachine only answers
"may this entity go from A via trigger T" and returns the target state.
"""
from typing import Dict, List, Optional
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    Transition definition

    Attributes:
        from_state: source state
        to_state: target state
        trigger: action name that causes the transition
    """

    from_state: str
    to_state: str
    trigger: str


@dataclass
class StateMachineConfig:
    """
    Attributes:
        name: machine name (used in logs and errors)
        states: all valid states
        transitions: allowed transitions
        terminal_states: states with no way out
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    terminal_states: Optional[List[str]] = None


class StateMachine:
    """
    Transition table keyed by (from_state, trigger)

    Example:
        >>> room = StateMachine(StateMachineConfig(
        ...     name="Room",
        ...     states=["available", "occupied", "cleaning"],
        ...     transitions=[StateTransition("available", "occupied", "check_in")],
        ... ))
        >>> room.target("available", "check_in")
        'occupied'
    """

    def __init__(self, config: StateMachineConfig):
        self._config = config
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        for t in config.transitions:
            if t.from_state not in config.states or t.to_state not in config.states:
                raise ValueError(f"{config.name}: transition {t} uses an unknown state")
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> StateMachineConfig:
        return self._config

    def target(self, current_state: str, trigger: str) -> Optional[str]:
        """Target state for trigger from current_state, or None if not allowed"""
        transition = self._transition_map.get(_value(current_state), {}).get(trigger)
        return transition.to_state if transition else None

    def can_fire(self, current_state: str, trigger: str) -> bool:
        return self.target(current_state, trigger) is not None

    def is_terminal(self, state: str) -> bool:
        return _value(state) in (self._config.terminal_states or [])

    def get_available_triggers(self, current_state: str) -> List[str]:
        return list(self._transition_map.get(_value(current_state), {}).keys())

    def fire(self, current_state: str, trigger: str) -> str:
        """
        Return the target state or raise ValueError.
        Callers translate the ValueError into their own domain error.
        """
        to_state = self.target(current_state, trigger)
        if to_state is None:
            logger.warning(
                f"{self.name}: invalid transition from {_value(current_state)} (trigger: {trigger})"
            )
            raise ValueError(
                f"{self.name} cannot '{trigger}' from state '{_value(current_state)}'"
            )
        logger.debug(f"{self.name}: {_value(current_state)} -> {to_state} (trigger: {trigger})")
        return to_state


def _value(state) -> str:
    """Accept str-valued enums as well as plain strings"""
    return getattr(state, "value", state)


# ============== Lodging lifecycles ==============

ROOM_LIFECYCLE = StateMachine(StateMachineConfig(
    name="Room",
    states=["available", "occupied", "cleaning"],
    transitions=[
        StateTransition("available", "occupied", "check_in"),
        StateTransition("occupied", "cleaning", "checkout"),
        StateTransition("cleaning", "available", "mark_clean"),
    ],
))

BOOKING_LIFECYCLE = StateMachine(StateMachineConfig(
    name="Booking",
    states=["reserved", "checked_in", "checked_out"],
    transitions=[
        StateTransition("reserved", "checked_in", "check_in"),
        StateTransition("checked_in", "checked_out", "checkout"),
    ],
    terminal_states=["checked_out"],
))

CASHIER_SESSION_LIFECYCLE = StateMachine(StateMachineConfig(
    name="CashierSession",
    states=["open", "pending_approval", "closed"],
    transitions=[
        StateTransition("open", "pending_approval", "close"),
        StateTransition("pending_approval", "closed", "approve"),
    ],
    terminal_states=["closed"],
))
