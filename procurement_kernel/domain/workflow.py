"""
Canonical workflow types (``procurement_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for entity state machines.  A ``Workflow`` is an explicit
transition table ``(from_state, action) -> to_state``; any pair missing from
the table is an illegal transition.  Used by every purchasing entity so that
Transition and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* At most one transition per ``(from_state, action)`` pair.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"{self.name}: transition {t} uses unknown state")
            if (t.from_state, t.action) in seen:
                raise ValueError(
                    f"{self.name}: duplicate transition for "
                    f"({t.from_state!r}, {t.action!r})"
                )
            seen.add((t.from_state, t.action))

    def transition_for(self, from_state: str, action: str) -> Transition | None:
        """Look up the transition for ``(from_state, action)``, or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def sources_for(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` is legal, in declaration order."""
        return tuple(t.from_state for t in self.transitions if t.action == action)

    def allowed_actions(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)
