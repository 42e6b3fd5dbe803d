"""
Quote Router

Asks Relay for an exact-input swap executed by the DCA contract itself and
turns the answer into a typed ``Quote`` whose steps can be handed straight to
``runDCA``.

Soft outcomes (HTTP 4xx/5xx from Relay, zero output) come back as a
``QuoteResult``; network failures and unparseable bodies raise.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
import structlog

from app.config import settings
from app.providers.relay import RelayProvider

from .errors import QuoteParseError
from .models import ExecutionStep, Quote, QuoteResult

logger = logging.getLogger(__name__)
_slog = structlog.stdlib.get_logger("dca.quote_router")

ROUTER_NAME = "Relay"


def _percent(container: Any, *path: str) -> Optional[float]:
    """Walk nested dicts and parse the leaf as a float percent."""
    node = container
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if node is None:
        return None
    return float(node)


def extract_price_impact(quote: Dict[str, Any], hop_penalty_percent: float) -> float:
    """Signed price impact in percent; positive is favorable.

    Prefers ``swapImpact``, then ``totalImpact``. When Relay omits both,
    estimates ``-(hops * hop_penalty_percent)``; this is a rough heuristic.
    """
    details = quote.get("details") or {}
    for field_name in ("swapImpact", "totalImpact"):
        value = _percent(details, field_name, "percent")
        if value is not None:
            return value

    steps = quote.get("steps") or []
    return -(len(steps) * hop_penalty_percent)


def convert_quote_to_steps(quote: Dict[str, Any]) -> List[ExecutionStep]:
    """Flatten Relay ``steps[].items[].data`` into runDCA calls."""
    steps: List[ExecutionStep] = []
    for step in quote.get("steps") or []:
        for item in step.get("items") or []:
            data = item.get("data")
            if not data or not data.get("data"):
                continue
            steps.append(
                ExecutionStep(
                    target=data["to"],
                    call_data=data["data"],
                    native_value=int(data.get("value") or 0),
                )
            )
    return steps


class QuoteRouter:
    """Routes DCA swaps through Relay on a single chain."""

    name = ROUTER_NAME

    def __init__(
        self,
        relay: Optional[RelayProvider] = None,
        *,
        chain_id: Optional[int] = None,
        hop_penalty_percent: Optional[float] = None,
    ):
        self._relay = relay or RelayProvider()
        self._chain_id = chain_id or settings.chain_id
        self._hop_penalty = (
            settings.price_impact_hop_penalty_percent
            if hop_penalty_percent is None
            else hop_penalty_percent
        )

    def build_payload(
        self,
        contract_address: str,
        source_token: str,
        destination_token: str,
        amount_in: int,
    ) -> Dict[str, Any]:
        return {
            "user": contract_address,
            "originChainId": self._chain_id,
            "destinationChainId": self._chain_id,
            "originCurrency": source_token,
            "destinationCurrency": destination_token,
            "amount": str(amount_in),
            "tradeType": "EXACT_INPUT",
            "recipient": contract_address,
        }

    async def get_quote(
        self,
        contract_address: str,
        source_token: str,
        destination_token: str,
        amount_in: int,
    ) -> QuoteResult:
        """Request an executable quote for ``amount_in`` base units.

        Raises:
            httpx.RequestError: transport failure talking to Relay.
            QuoteParseError: 2xx response with an unusable body.
        """
        payload = self.build_payload(contract_address, source_token, destination_token, amount_in)

        try:
            raw = await self._relay.quote(payload)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body = exc.response.text
            logger.error("Relay API error: %s %s", status, body)
            return QuoteResult.soft_error(status, body)
        except ValueError as exc:
            raise QuoteParseError(f"Relay returned a non-JSON body: {exc}") from exc

        return self.parse_quote(raw)

    def parse_quote(self, raw: Dict[str, Any]) -> QuoteResult:
        if not isinstance(raw, dict):
            raise QuoteParseError("Relay quote is not a JSON object")

        details = raw.get("details") or {}
        currency_out = details.get("currencyOut") or {}
        try:
            amount_out = int(currency_out.get("amount") or 0)
            price_impact = extract_price_impact(raw, self._hop_penalty)
            slippage = _percent(details, "slippageTolerance", "origin", "percent")
            minimum = currency_out.get("minimumAmount")
            minimum_out = int(minimum) if minimum is not None else None
            steps = convert_quote_to_steps(raw)
        except (TypeError, ValueError, KeyError) as exc:
            raise QuoteParseError(f"Malformed Relay quote: {exc}") from exc

        if amount_out == 0:
            _slog.warning("relay_quote_zero_output", request_id=raw.get("requestId"))
            return QuoteResult.no_quote()

        quote = Quote(
            expected_output_amount=amount_out,
            price_impact_percent=price_impact,
            execution_steps=steps,
            slippage_tolerance_percent=slippage,
            minimum_output_amount=minimum_out,
            request_id=raw.get("requestId"),
            quote_details=details,
        )
        _slog.info(
            "relay_quote_received",
            request_id=quote.request_id,
            amount_out=str(amount_out),
            price_impact=price_impact,
            slippage_percent=slippage,
            steps=len(steps),
        )
        return QuoteResult.success(quote)
