"""Single-use free trial for users without a subscription."""

import logging
from typing import Optional

from .exceptions import TrialAlreadyUsedError
from .schemas import TrialState
from .store import UsageStore

logger = logging.getLogger(__name__)


class FreeTrialGate:
    """Checks and consumes the one free report each user gets."""

    def __init__(self, store: UsageStore):
        self._store = store

    async def get_state(self, user_id: str, email: Optional[str] = None) -> TrialState:
        return await self._store.get_trial_state(user_id, email)

    async def check(self, user_id: str) -> TrialState:
        """
        Check that the trial is still available. Never writes the flag.

        Raises:
            TrialAlreadyUsedError: If the trial was already consumed
        """
        state = await self._store.get_trial_state(user_id)
        if state.trial_used:
            raise TrialAlreadyUsedError(user_id)
        return state

    async def confirm_trial_use(self, user_id: str) -> TrialState:
        """
        Mark the trial as used after the trial request succeeded.

        The flag flips with one conditional write, so of any number of
        concurrent confirmations exactly one succeeds.

        Raises:
            TrialAlreadyUsedError: If the trial was already confirmed
        """
        if not await self._store.mark_trial_used(user_id):
            logger.warning(f"Trial confirmation rejected for user {user_id}: already used")
            raise TrialAlreadyUsedError(user_id)

        logger.info(f"Free trial consumed by user {user_id}")
        return await self._store.get_trial_state(user_id)
