"""
Crisis lifecycle: the only path by which a crisis changes status.
"""

import logging
from typing import Callable, Dict, FrozenSet, Optional, Union

from db.enums import CrisisStatus

from .clock import utcnow
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .locks import KeyedLocks
from .models import Crisis
from .store import IncidentStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[CrisisStatus, FrozenSet[CrisisStatus]] = {
    CrisisStatus.DETECTED: frozenset({CrisisStatus.ACKNOWLEDGED}),
    CrisisStatus.ACKNOWLEDGED: frozenset({CrisisStatus.INVESTIGATING, CrisisStatus.RESOLVED}),
    CrisisStatus.INVESTIGATING: frozenset({CrisisStatus.RESOLVED}),
    CrisisStatus.RESOLVED: frozenset({CrisisStatus.CLOSED}),
    CrisisStatus.CLOSED: frozenset(),
}


def can_transition(from_status: CrisisStatus, to_status: CrisisStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS[from_status]


class CrisisLifecycleManager:
    """Moves crises through DETECTED -> ... -> CLOSED and records each move."""

    def __init__(
        self,
        incident_store: Optional[IncidentStore] = None,
        clock: Callable = utcnow,
        lock_timeout: float = 30.0,
    ):
        self.incident_store = incident_store or IncidentStore()
        self.clock = clock
        self._crisis_locks = KeyedLocks(timeout=lock_timeout)

    def update_crisis_status(
        self,
        crisis_id: int,
        new_status: Union[CrisisStatus, str],
        actor_id: str,
        note: Optional[str] = None,
    ) -> Crisis:
        """
        Transition a crisis to ``new_status``.

        Appends exactly one timeline entry. ``acknowledged_at`` and
        ``resolved_at`` are stamped on the first move into ACKNOWLEDGED and
        RESOLVED respectively and never overwritten.

        Args:
            crisis_id: Crisis to update
            new_status: Target status (enum or its string value)
            actor_id: Operator performing the transition
            note: Optional free-text note for the timeline

        Returns:
            New snapshot of the crisis

        Raises:
            NotFoundError: If the crisis does not exist
            InvalidTransitionError: If the move is not allowed from the current status
            CrisisConflictError: If another writer changed the crisis concurrently
            ValidationError: If the status or actor is malformed
        """
        new_status = self._coerce_status(new_status)
        if not actor_id:
            raise ValidationError("actor_id", "actor_id is required", actor_id)

        with self._crisis_locks.hold(crisis_id, crisis_id=crisis_id):
            crisis = self.incident_store.get_crisis(crisis_id)
            if crisis is None:
                raise NotFoundError(crisis_id)

            if not can_transition(crisis.status, new_status):
                logger.warning(
                    f"Rejected transition of crisis {crisis_id}: "
                    f"{crisis.status.value} -> {new_status.value} by {actor_id}"
                )
                raise InvalidTransitionError(crisis_id, crisis.status, new_status)

            updated = self.incident_store.apply_transition(
                crisis_id,
                from_status=crisis.status,
                to_status=new_status,
                actor_id=actor_id,
                timestamp=self.clock(),
                note=note,
            )

        logger.info(
            f"Crisis {crisis_id} moved {crisis.status.value} -> {new_status.value} by {actor_id}"
        )
        return updated

    @staticmethod
    def _coerce_status(status: Union[CrisisStatus, str]) -> CrisisStatus:
        if isinstance(status, CrisisStatus):
            return status
        try:
            return CrisisStatus(str(status).upper())
        except ValueError:
            raise ValidationError("new_status", "Unknown crisis status", status) from None
