"""
Convex client for the DCA telemetry store.

Wraps the Convex HTTP API (queries and mutations) and exposes one helper per
server-side function the execution pipeline and reporting endpoints use.
Every helper is a single function call on the Convex side, so increments and
upserts happen inside one Convex transaction.
"""

from typing import Any, Dict, List, Optional

import httpx

from app.config import settings


class ConvexError(Exception):
    """Base exception for Convex errors."""
    pass


class ConvexAuthError(ConvexError):
    """Authentication error when calling Convex."""
    pass


class ConvexQueryError(ConvexError):
    """Error executing a Convex query."""
    pass


class ConvexMutationError(ConvexError):
    """Error executing a Convex mutation."""
    pass


class ConvexClient:
    """
    Async client for the DCA tables stored in Convex.

    Example usage:
        client = ConvexClient(
            deployment_url="https://your-deployment.convex.cloud",
            deploy_key="prod:your-deploy-key"
        )

        await client.insert_dca_attempt({...})
        stats = await client.get_pair_stats(source, destination)
    """

    def __init__(
        self,
        deployment_url: Optional[str] = None,
        deploy_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.deployment_url = deployment_url or settings.convex_url
        self.deploy_key = deploy_key or settings.convex_deploy_key
        self.timeout = timeout

        if not self.deployment_url:
            raise ConvexError("CONVEX_URL is required")

        self.deployment_url = self.deployment_url.rstrip("/")

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        """Get headers for Convex API requests."""
        headers = {"Content-Type": "application/json"}
        if self.deploy_key:
            headers["Authorization"] = f"Convex {self.deploy_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _call(
        self,
        kind: str,
        function_name: str,
        args: Optional[Dict[str, Any]],
        error_cls: type,
    ) -> Any:
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.deployment_url}/api/{kind}",
                json={
                    "path": function_name,
                    "args": args or {},
                },
            )

            if response.status_code == 401:
                raise ConvexAuthError("Invalid or missing deploy key")

            response.raise_for_status()
            data = response.json()

            if data.get("status") == "error" or "error" in data:
                raise error_cls(data.get("errorMessage") or data.get("error"))

            return data.get("value")

        except httpx.HTTPStatusError as e:
            raise error_cls(f"{kind.title()} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise error_cls(f"Request failed: {str(e)}") from e

    async def query(
        self,
        function_name: str,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute a Convex query function.

        Raises:
            ConvexQueryError: If the query fails
        """
        return await self._call("query", function_name, args, ConvexQueryError)

    async def mutation(
        self,
        function_name: str,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute a Convex mutation function.

        Raises:
            ConvexMutationError: If the mutation fails
        """
        return await self._call("mutation", function_name, args, ConvexMutationError)

    # =========================================================================
    # DCA attempt log
    # =========================================================================

    async def insert_dca_attempt(self, row: Dict[str, Any]) -> Any:
        """Append one immutable attempt row."""
        return await self.mutation("dcaAttempts:insert", row)

    async def list_dca_attempts(
        self,
        since_ms: int,
        buyer_address: Optional[str] = None,
        destination_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List attempt rows newer than ``since_ms``, newest first."""
        args: Dict[str, Any] = {"sinceMs": since_ms}
        if buyer_address:
            args["buyerAddress"] = buyer_address
        if destination_token:
            args["destinationToken"] = destination_token
        return await self.query("dcaAttempts:listSince", args) or []

    # =========================================================================
    # Price impact cache and snapshots
    # =========================================================================

    async def upsert_price_impact(self, row: Dict[str, Any]) -> Any:
        """Insert or overwrite the price impact row keyed by ``tx_hash``."""
        return await self.mutation("priceImpactCache:upsertByTxHash", row)

    async def upsert_price_snapshot(self, row: Dict[str, Any]) -> Any:
        """Store the registration-time price for later ROI comparison."""
        return await self.mutation("priceSnapshots:upsert", row)

    # =========================================================================
    # Pair stats
    # =========================================================================

    async def increment_pair_stats(
        self,
        source_token: str,
        destination_token: str,
        *,
        volume_registered: int = 0,
        volume_executed: int = 0,
        purchase_count: int = 0,
    ) -> Any:
        """Atomically add to the counters of one token pair.

        Amounts are sent as decimal strings; base-unit volumes overflow
        float64.
        """
        return await self.mutation(
            "pairStats:increment",
            {
                "sourceToken": source_token,
                "destinationToken": destination_token,
                "volumeRegistered": str(volume_registered),
                "volumeExecuted": str(volume_executed),
                "purchaseCount": purchase_count,
            },
        )

    async def get_pair_stats(
        self,
        source_token: str,
        destination_token: str,
    ) -> Optional[Dict[str, Any]]:
        return await self.query(
            "pairStats:get",
            {"sourceToken": source_token, "destinationToken": destination_token},
        )


# Singleton instance
_convex_client: Optional[ConvexClient] = None


def get_convex_client() -> ConvexClient:
    """Get the singleton Convex client instance."""
    global _convex_client
    if _convex_client is None:
        _convex_client = ConvexClient()
    return _convex_client
