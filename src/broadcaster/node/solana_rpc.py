"""
Solana JSON-RPC adapter for ledger access.

Provides ledger access via the JSON-RPC 2.0 over HTTP interface exposed by
Solana RPC nodes.
"""

import asyncio
import base64
import itertools
import json
from typing import Any, List, Optional

import httpx
import structlog

from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import Transaction

from broadcaster.config import BroadcasterConfig, Commitment, get_config
from broadcaster.node.interface import (
    BlockReference,
    FinalizationStatus,
    LedgerError,
    LedgerInterface,
    LedgerNetworkError,
    NodeConnectionError,
    SignatureStatus,
    StatusCheckError,
    SubmitRejection,
    TransactionSubmitError,
    classify_rejection,
)

logger = structlog.get_logger(__name__)

_COMMITMENT_RANK = {
    Commitment.PROCESSED.value: 0,
    Commitment.CONFIRMED.value: 1,
    Commitment.FINALIZED.value: 2,
}

# Blockhash validity is re-checked every this many acceptance polls
_BLOCKHASH_CHECK_EVERY = 4


class RpcResponseError(LedgerNetworkError):
    """Raised when the node answers a request with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    @property
    def details(self) -> str:
        """Error message plus any program logs the node attached."""
        parts = [str(self)]
        if isinstance(self.data, dict):
            if self.data.get("err") is not None:
                parts.append(json.dumps(self.data["err"]))
            parts.extend(self.data.get("logs") or [])
        return " ".join(parts)


def _confirmation_level(status: dict) -> Optional[str]:
    """Get the confirmation level of a status entry."""
    level = status.get("confirmationStatus")
    if level:
        return level
    # Older nodes omit confirmationStatus; null confirmations means rooted
    if status.get("confirmations", 0) is None:
        return Commitment.FINALIZED.value
    return Commitment.PROCESSED.value


def _satisfies(level: Optional[str], commitment: Commitment) -> bool:
    if level is None:
        return False
    return _COMMITMENT_RANK.get(level, -1) >= _COMMITMENT_RANK[commitment.value]


class SolanaRpcAdapter(LedgerInterface):
    """
    Solana JSON-RPC adapter.

    Implements the LedgerInterface using a shared httpx.AsyncClient, which
    makes the adapter safe to use from many dispatch units at once.
    """

    def __init__(
        self,
        config: Optional[BroadcasterConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the RPC adapter.

        Args:
            config: Broadcaster configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.rpc_url = self.config.rpc_endpoint
        self.commitment = self.config.acceptance_commitment
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=self.config.http_timeout_seconds,
            transport=self._transport,
        )

        # Test connection
        try:
            version = await self._rpc("getVersion")
        except LedgerNetworkError as e:
            await self.disconnect()
            raise NodeConnectionError(f"Failed to connect to {self.rpc_url}: {e}") from e

        logger.info(
            "rpc_connected",
            rpc_url=self.rpc_url,
            solana_core=(version or {}).get("solana-core"),
        )

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected")

    async def _rpc(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC request and return its result."""
        if not self._client:
            await self.connect()

        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
        }
        if params is not None:
            body["params"] = params

        try:
            response = await self._client.post(self.rpc_url, json=body)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise LedgerNetworkError(f"{method} request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise LedgerNetworkError(f"{method} returned HTTP {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError as e:
            raise LedgerNetworkError(f"{method} returned invalid JSON") from e

        error = payload.get("error")
        if error:
            raise RpcResponseError(
                error.get("message", "unknown RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return payload.get("result")

    async def fetch_block_reference(self) -> BlockReference:
        """Get the latest blockhash."""
        result = await self._rpc(
            "getLatestBlockhash",
            [{"commitment": self.commitment.value}],
        )

        try:
            value = result["value"]
            return BlockReference(
                blockhash=Hash.from_string(value["blockhash"]),
                last_valid_block_height=value.get("lastValidBlockHeight"),
            )
        except Exception as e:
            raise LedgerNetworkError(f"Failed to parse latest blockhash: {result}") from e

    async def submit_and_await_acceptance(self, tx: Transaction) -> Signature:
        """Send a signed transaction and poll until it reaches the acceptance commitment."""
        encoded = base64.b64encode(bytes(tx)).decode("ascii")

        try:
            result = await self._rpc(
                "sendTransaction",
                [
                    encoded,
                    {
                        "encoding": "base64",
                        "preflightCommitment": self.commitment.value,
                    },
                ],
            )
        except RpcResponseError as e:
            logger.error("tx_submit_failed", code=e.code, error=e.details)
            raise TransactionSubmitError(
                f"Transaction submission failed: {e.details}",
                rejection=classify_rejection(e.details),
                error_code=e.code,
            ) from e
        except LedgerNetworkError as e:
            raise TransactionSubmitError(
                f"Transaction submission request failed: {e}",
                rejection=SubmitRejection.NETWORK,
            ) from e

        try:
            signature = Signature.from_string(result)
        except Exception as e:
            raise TransactionSubmitError(f"Node returned an invalid signature: {result}") from e
        logger.debug("tx_sent", signature=str(signature)[:16] + "...")

        await self._await_acceptance(signature, tx.message.recent_blockhash)
        return signature

    async def _await_acceptance(self, signature: Signature, blockhash: Hash) -> None:
        """Poll signature statuses until accepted, rejected, expired or timed out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.submit_timeout_seconds

        for attempt in itertools.count():
            try:
                status = await self._get_status_entry(signature)
            except LedgerNetworkError as e:
                raise TransactionSubmitError(
                    f"Status check while awaiting acceptance failed: {e}",
                    rejection=SubmitRejection.NETWORK,
                ) from e

            if status is not None:
                if status.get("err") is not None:
                    message = json.dumps(status["err"])
                    raise TransactionSubmitError(
                        f"Transaction {signature} failed: {message}",
                        rejection=classify_rejection(message),
                    )
                if _satisfies(_confirmation_level(status), self.commitment):
                    logger.debug(
                        "tx_accepted",
                        signature=str(signature)[:16] + "...",
                        confirmation_status=_confirmation_level(status),
                    )
                    return
            elif attempt and attempt % _BLOCKHASH_CHECK_EVERY == 0:
                if not await self._is_blockhash_valid(blockhash):
                    raise TransactionSubmitError(
                        f"Blockhash {blockhash} expired before {signature} was accepted",
                        rejection=SubmitRejection.EXPIRED_BLOCK_REFERENCE,
                    )

            if loop.time() >= deadline:
                raise TransactionSubmitError(
                    f"timeout: {signature} not accepted within "
                    f"{self.config.submit_timeout_seconds}s",
                    rejection=SubmitRejection.TIMEOUT,
                )

            await asyncio.sleep(self.config.acceptance_poll_interval_seconds)

    async def _is_blockhash_valid(self, blockhash: Hash) -> bool:
        try:
            result = await self._rpc(
                "isBlockhashValid",
                [str(blockhash), {"commitment": Commitment.PROCESSED.value}],
            )
        except LedgerNetworkError as e:
            # Treat an unanswerable validity check as still valid
            logger.warning("blockhash_check_failed", error=str(e))
            return True
        return bool((result or {}).get("value", True))

    async def _get_status_entry(self, signature: Signature) -> Optional[dict]:
        result = await self._rpc(
            "getSignatureStatuses",
            [[str(signature)], {"searchTransactionHistory": True}],
        )
        try:
            return result["value"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise LedgerNetworkError(f"Malformed signature status response: {result}") from e

    async def poll_finalization_status(self, signature: Signature) -> SignatureStatus:
        """Check once whether a signature has been finalized."""
        try:
            status = await self._get_status_entry(signature)
        except LedgerNetworkError as e:
            raise StatusCheckError(f"Failed to get status of {signature}: {e}") from e

        if status is None:
            return SignatureStatus(status=FinalizationStatus.PENDING)

        level = _confirmation_level(status)
        if level != Commitment.FINALIZED.value:
            return SignatureStatus(
                status=FinalizationStatus.PENDING,
                confirmation_status=level,
                slot=status.get("slot"),
            )

        if status.get("err") is not None:
            return SignatureStatus(
                status=FinalizationStatus.FINALIZED_FAILURE,
                error=json.dumps(status["err"]),
                confirmation_status=level,
                slot=status.get("slot"),
            )

        return SignatureStatus(
            status=FinalizationStatus.FINALIZED_SUCCESS,
            confirmation_status=level,
            slot=status.get("slot"),
        )

    async def get_balance(self, address: str) -> int:
        """Get the balance of an account in lamports."""
        result = await self._rpc(
            "getBalance",
            [address, {"commitment": self.commitment.value}],
        )

        balance = result.get("value") if isinstance(result, dict) else None
        if not isinstance(balance, int):
            raise LedgerNetworkError("Failed to parse balance")
        return balance

    async def health_check(self) -> bool:
        """Ask the node whether it is healthy."""
        try:
            result = await self._rpc("getHealth")
        except LedgerError as e:
            logger.warning("rpc_unhealthy", rpc_url=self.rpc_url, error=str(e))
            return False
        return result == "ok"
