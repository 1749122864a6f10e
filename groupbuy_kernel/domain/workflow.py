"""
Canonical workflow types (``groupbuy_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines.  The order and procurement
lifecycles are each declared once as a ``Workflow``; services ask the
workflow whether an action is legal instead of hard-coding status lists.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` and every ``terminal_states`` entry are members of
  ``states``; terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition checked before a transition fires.

    Descriptive only: the service evaluates it.  ``blocking=False`` guards
    produce a warning instead of a rejection.
    """
    name: str
    description: str
    blocking: bool = True


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        for state in self.terminal_states:
            if state not in known:
                raise ValueError(f"{self.name}: terminal state {state!r} not in states")
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.name}: transition {t.from_state}->{t.to_state} "
                    f"references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has an outgoing transition"
                )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def is_legal(self, from_state: str, to_state: str) -> bool:
        """True when some action moves ``from_state`` directly to ``to_state``."""
        return any(
            t.from_state == from_state and t.to_state == to_state
            for t in self.transitions
        )

    def allowed_from(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire, in declaration order."""
        seen: list[str] = []
        for t in self.transitions:
            if t.action == action and t.from_state not in seen:
                seen.append(t.from_state)
        return tuple(seen)

    def find(self, action: str, from_state: str) -> Transition | None:
        for t in self.transitions:
            if t.action == action and t.from_state == from_state:
                return t
        return None

    def allowed_actions(self, state: str) -> tuple[str, ...]:
        return tuple(dict.fromkeys(
            t.action for t in self.transitions if t.from_state == state
        ))
