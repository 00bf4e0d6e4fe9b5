"""Role-gated transition policy for case statuses."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Final

from charity_cases.domain.case_status import CaseStatus
from charity_cases.domain.roles import Role


@dataclass(frozen=True)
class StatusTransition:
    """One legal (from, to) status change and who may invoke it."""

    from_status: CaseStatus
    to_status: CaseStatus
    allowed_roles: frozenset[Role]
    requires_reason: bool = False
    system_allowed: bool = False


class DuplicateTransitionError(ValueError):
    """Raised when a table declares the same (from, to) pair twice."""


class TransitionTable:
    """Immutable lookup of status transitions keyed by exact (from, to) pair."""

    def __init__(self, transitions: Iterable[StatusTransition]) -> None:
        rules: dict[tuple[CaseStatus, CaseStatus], StatusTransition] = {}
        for transition in transitions:
            key = (transition.from_status, transition.to_status)
            if key in rules:
                raise DuplicateTransitionError(
                    f"Duplicate transition: {key[0].value} -> {key[1].value}"
                )
            rules[key] = transition
        self._rules = rules

    def __iter__(self) -> Iterator[StatusTransition]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def get(self, from_status: CaseStatus, to_status: CaseStatus) -> StatusTransition | None:
        """Return the rule for the exact pair, or None when the pair is not declared."""

        return self._rules.get((from_status, to_status))

    def is_transition_allowed(
        self,
        from_status: CaseStatus,
        to_status: CaseStatus,
        actor_role: Role | None = None,
        system_triggered: bool = False,
    ) -> bool:
        """Return whether the actor (or the system) may move a case between statuses."""

        transition = self.get(from_status, to_status)
        if transition is None:
            return False
        return _permits(transition, actor_role=actor_role, system_triggered=system_triggered)

    def requires_reason(self, from_status: CaseStatus, to_status: CaseStatus) -> bool:
        """Return whether a declared transition demands a change reason."""

        transition = self.get(from_status, to_status)
        return transition is not None and transition.requires_reason

    def available_transitions(
        self,
        from_status: CaseStatus,
        actor_role: Role | None = None,
        system_triggered: bool = False,
    ) -> frozenset[CaseStatus]:
        """Return every status reachable from `from_status` under the same legality rule."""

        return frozenset(
            transition.to_status
            for transition in self._rules.values()
            if transition.from_status is from_status
            and _permits(transition, actor_role=actor_role, system_triggered=system_triggered)
        )


def _permits(
    transition: StatusTransition,
    *,
    actor_role: Role | None,
    system_triggered: bool,
) -> bool:
    if system_triggered:
        return transition.system_allowed
    if actor_role is None:
        return False
    return actor_role in transition.allowed_roles


_ADMIN_ONLY: Final = frozenset({Role.ADMIN})

DEFAULT_TRANSITION_TABLE: Final[TransitionTable] = TransitionTable(
    [
        StatusTransition(
            CaseStatus.DRAFT,
            CaseStatus.SUBMITTED,
            frozenset({Role.DONOR, Role.SPONSOR, Role.ADMIN}),
        ),
        StatusTransition(CaseStatus.SUBMITTED, CaseStatus.PUBLISHED, _ADMIN_ONLY),
        StatusTransition(
            CaseStatus.SUBMITTED,
            CaseStatus.UNDER_REVIEW,
            _ADMIN_ONLY,
            requires_reason=True,
        ),
        StatusTransition(CaseStatus.UNDER_REVIEW, CaseStatus.PUBLISHED, _ADMIN_ONLY),
        StatusTransition(
            CaseStatus.UNDER_REVIEW,
            CaseStatus.CLOSED,
            _ADMIN_ONLY,
            requires_reason=True,
        ),
        # Only transition the automatic closure job may trigger unattended.
        StatusTransition(
            CaseStatus.PUBLISHED,
            CaseStatus.CLOSED,
            _ADMIN_ONLY,
            system_allowed=True,
        ),
        StatusTransition(
            CaseStatus.PUBLISHED,
            CaseStatus.UNDER_REVIEW,
            _ADMIN_ONLY,
            requires_reason=True,
        ),
        StatusTransition(
            CaseStatus.CLOSED,
            CaseStatus.PUBLISHED,
            _ADMIN_ONLY,
            requires_reason=True,
        ),
        StatusTransition(
            CaseStatus.CLOSED,
            CaseStatus.UNDER_REVIEW,
            _ADMIN_ONLY,
            requires_reason=True,
        ),
    ]
)
