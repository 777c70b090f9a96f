"""
Registration inference.

The Omni Bridge exposes no direct "is this token registered" query. The
fee endpoint only quotes routes for registered tokens, so a successful fee
quote is read as "registered" and any failure as "not registered".
"""
from __future__ import annotations

import logging

from .fees import FeeEstimator
from .models import Address, RegistrationStatus

logger = logging.getLogger(__name__)


class RegistrationGate:
    """Decides between the registration and transfer workflows."""

    def __init__(self, estimator: FeeEstimator):
        self._estimator = estimator

    async def check(self, sender: Address, token: Address, recipient: Address) -> RegistrationStatus:
        """Never raises for observation failures."""
        try:
            await self._estimator.estimate(sender, recipient, token)
        except Exception as e:
            logger.info(f"Treating {token.omni} as not registered: {e}")
            return RegistrationStatus.NOT_REGISTERED
        return RegistrationStatus.REGISTERED


__all__ = ["RegistrationGate"]
