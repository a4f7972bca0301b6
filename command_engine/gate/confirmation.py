"""
Confirmation Gate: single-slot staging for agent-proposed action batches.

Behavioral Contract:
- Holds at most one PendingActionBatch; staging replaces it (last writer wins)
- confirm() hands the actions to the caller and clears the slot
- cancel() clears the slot
- Never executes anything itself
"""

from typing import List, Optional

from command_engine.log import setup_logger
from command_engine.models.action import Action, PendingActionBatch

logger = setup_logger("command_engine.gate")


class ConfirmationGate:
    def __init__(self):
        self._pending: Optional[PendingActionBatch] = None

    @property
    def pending(self) -> Optional[PendingActionBatch]:
        return self._pending

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def stage(self, reply: str, actions: List[Action]) -> PendingActionBatch:
        """Stage a new batch, discarding any unconfirmed one."""
        if self._pending is not None:
            logger.info(
                "Discarding unconfirmed batch of %d actions", len(self._pending.actions)
            )
        self._pending = PendingActionBatch(reply=reply, actions=list(actions))
        logger.info("Staged batch of %d actions", len(actions))
        return self._pending

    def confirm(self) -> List[Action]:
        """Release the staged actions. Empty list when nothing is staged."""
        batch, self._pending = self._pending, None
        if batch is None:
            return []
        logger.info("Confirmed batch of %d actions", len(batch.actions))
        return list(batch.actions)

    def cancel(self) -> bool:
        """Drop the staged batch. Returns whether there was one."""
        batch, self._pending = self._pending, None
        if batch is not None:
            logger.info("Cancelled batch of %d actions", len(batch.actions))
        return batch is not None
