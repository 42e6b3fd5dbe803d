"""
Chain access for the DCA contract.

Builds an ``AsyncWeb3`` client, the DCA contract handle, and the executor
account that signs ``runDCA`` transactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.contract import AsyncContract

from ..config import settings

logger = logging.getLogger(__name__)


_STEP_COMPONENTS: List[Dict[str, str]] = [
    {"name": "to", "type": "address"},
    {"name": "data", "type": "bytes"},
    {"name": "value", "type": "uint256"},
]

DCA_CONTRACT_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "getRegisteredBuyers",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "type": "function",
        "name": "getUserDestinationTokens",
        "stateMutability": "view",
        "inputs": [{"name": "buyer", "type": "address"}],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "type": "function",
        "name": "getDCAConfig",
        "stateMutability": "view",
        "inputs": [
            {"name": "buyer", "type": "address"},
            {"name": "destinationToken", "type": "address"},
        ],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "sourceToken", "type": "address"},
                    {"name": "destinationToken", "type": "address"},
                    {"name": "amount_per_day", "type": "uint256"},
                    {"name": "days_left", "type": "uint256"},
                    {"name": "isNativeETH", "type": "bool"},
                    {"name": "buy_time", "type": "uint256"},
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "runDCA",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "buyer", "type": "address"},
            {"name": "destinationToken", "type": "address"},
            {"name": "steps", "type": "tuple[]", "components": _STEP_COMPONENTS},
        ],
        "outputs": [],
    },
]


@dataclass
class ChainClient:
    """Bundle of the web3 client, DCA contract and signing account."""

    w3: AsyncWeb3
    contract: AsyncContract
    account: Optional[LocalAccount] = None
    chain_id: int = settings.chain_id

    @property
    def contract_address(self) -> str:
        return self.contract.address


def build_chain_client(
    rpc_url: Optional[str] = None,
    contract_address: Optional[str] = None,
    private_key: Optional[str] = None,
    chain_id: Optional[int] = None,
) -> ChainClient:
    """Create a ``ChainClient`` from explicit values or settings."""
    rpc_url = rpc_url or settings.rpc_url
    contract_address = contract_address or settings.dca_contract_address
    private_key = private_key or settings.executor_private_key

    if not rpc_url:
        raise ValueError("RPC_URL is required")
    if not contract_address:
        raise ValueError("CONTRACT_ADDRESS is required")

    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
    contract = w3.eth.contract(
        address=AsyncWeb3.to_checksum_address(contract_address),
        abi=DCA_CONTRACT_ABI,
    )
    account = Account.from_key(private_key) if private_key else None
    if account is None:
        logger.warning("No executor key configured; runDCA submission disabled")

    return ChainClient(
        w3=w3,
        contract=contract,
        account=account,
        chain_id=chain_id or settings.chain_id,
    )


_chain_client: Optional[ChainClient] = None


def get_chain_client() -> ChainClient:
    """Get the singleton chain client."""
    global _chain_client
    if _chain_client is None:
        _chain_client = build_chain_client()
    return _chain_client
