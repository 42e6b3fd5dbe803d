"""Reads live DCA session parameters from the contract."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from web3 import AsyncWeb3

from .errors import ConfigReadError
from .models import DCASession

logger = logging.getLogger(__name__)


class ConfigFetcher:
    """Read-only view of DCA sessions stored on chain."""

    def __init__(self, contract: Any):
        self._contract = contract

    async def fetch_config(self, buyer: str, destination_token: str) -> DCASession:
        """Read the current session for ``buyer`` / ``destination_token``.

        Raises:
            ConfigReadError: if the chain read fails.
        """
        try:
            raw = await self._contract.functions.getDCAConfig(
                AsyncWeb3.to_checksum_address(buyer),
                AsyncWeb3.to_checksum_address(destination_token),
            ).call()
        except Exception as exc:
            raise ConfigReadError(buyer, destination_token, exc) from exc

        return DCASession.from_chain(buyer, raw)

    async def find_active_session(self, buyer: str, destination_token: str) -> Optional[DCASession]:
        """Like ``fetch_config`` but returns None for missing or exhausted sessions."""
        try:
            session = await self.fetch_config(buyer, destination_token)
        except ConfigReadError as exc:
            logger.warning("No readable DCA session: %s", exc.message)
            return None

        if session.amount_per_day <= 0 or not session.is_active:
            return None
        return session

    async def registered_buyers(self) -> List[str]:
        return list(await self._contract.functions.getRegisteredBuyers().call())

    async def destination_tokens(self, buyer: str) -> List[str]:
        return list(
            await self._contract.functions.getUserDestinationTokens(
                AsyncWeb3.to_checksum_address(buyer)
            ).call()
        )
