"""Submits ``runDCA`` transactions and waits for confirmation."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import structlog
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from app.config import settings
from app.providers.chain import ChainClient

from .errors import ConfirmationTimeoutError, ExecutorNotConfiguredError, TransactionRevertedError
from .models import ExecutionStep

_slog = structlog.stdlib.get_logger("dca.submitter")


def _hex(tx_hash: Any) -> str:
    value = tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash)
    return value if value.startswith("0x") else f"0x{value}"


class TransactionSubmitter:
    """Signs and sends runDCA from the executor account, one tx at a time."""

    def __init__(
        self,
        chain: ChainClient,
        *,
        confirmation_timeout_s: Optional[float] = None,
    ):
        self._chain = chain
        self._timeout_s = confirmation_timeout_s or settings.tx_confirmation_timeout_seconds

    async def submit(
        self,
        buyer: str,
        destination_token: str,
        steps: Sequence[ExecutionStep],
    ) -> str:
        """Execute ``steps`` for ``buyer`` and return the confirmed tx hash.

        Raises:
            ExecutorNotConfiguredError: no signing key.
            TransactionRevertedError: receipt status is 0.
            ConfirmationTimeoutError: no receipt within the timeout.
        """
        account = self._chain.account
        if account is None:
            raise ExecutorNotConfiguredError()

        w3 = self._chain.w3
        call = self._chain.contract.functions.runDCA(
            AsyncWeb3.to_checksum_address(buyer),
            AsyncWeb3.to_checksum_address(destination_token),
            [step.as_abi_tuple() for step in steps],
        )
        nonce = await w3.eth.get_transaction_count(account.address, "pending")
        tx = await call.build_transaction(
            {
                "from": account.address,
                "nonce": nonce,
                "chainId": self._chain.chain_id,
            }
        )
        signed = account.sign_transaction(tx)
        sent = await w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash = _hex(sent)
        _slog.info("dca_tx_sent", buyer=buyer, tx_hash=tx_hash, nonce=nonce, steps=len(steps))

        try:
            receipt = await w3.eth.wait_for_transaction_receipt(sent, timeout=self._timeout_s)
        except TimeExhausted as exc:
            raise ConfirmationTimeoutError(tx_hash, self._timeout_s) from exc

        if receipt["status"] != 1:
            raise TransactionRevertedError(tx_hash)

        _slog.info("dca_tx_confirmed", buyer=buyer, tx_hash=tx_hash, block=receipt.get("blockNumber"))
        return tx_hash
