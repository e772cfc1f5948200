"""
WebSocket block subscription.

Streams block notifications that mention a given account from the RPC node's
PubSub interface.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import structlog
import websockets

from broadcaster.config import Commitment
from broadcaster.node.interface import NodeConnectionError

logger = structlog.get_logger(__name__)


@dataclass
class BlockUpdate:
    """A block notification received from the subscription."""
    slot: int
    blockhash: Optional[str] = None
    error: Optional[Any] = None
    raw: dict = field(default_factory=dict, repr=False)


class BlockSubscription:
    """
    Async iterator over `blockSubscribe` notifications.

    Usage:
        ```python
        async with BlockSubscription(ws_url, account) as updates:
            async for update in updates:
                ...
        ```
    """

    def __init__(
        self,
        ws_url: str,
        account: str,
        commitment: Commitment = Commitment.CONFIRMED,
        subscribe_timeout: float = 30.0,
    ):
        self.ws_url = ws_url
        self.account = account
        self.commitment = commitment
        self.subscribe_timeout = subscribe_timeout
        self.subscription_id: Optional[int] = None
        self._ws = None

    async def __aenter__(self) -> "BlockSubscription":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the WebSocket and register the subscription."""
        if self._ws is not None:
            return

        try:
            self._ws = await websockets.connect(
                self.ws_url,
                ping_interval=30,
                ping_timeout=10,
            )
        except Exception as e:
            raise NodeConnectionError(f"Failed to connect to {self.ws_url}: {e}") from e

        request = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "blockSubscribe",
            "params": [
                {"mentionsAccountOrProgram": self.account},
                {
                    "commitment": self.commitment.value,
                    "encoding": "base64",
                    "transactionDetails": "none",
                    "showRewards": False,
                },
            ],
        }

        try:
            await self._ws.send(json.dumps(request))
            reply = json.loads(await asyncio.wait_for(self._ws.recv(), timeout=self.subscribe_timeout))
        except Exception as e:
            await self.close()
            raise NodeConnectionError(f"blockSubscribe failed: {e}") from e

        if "error" in reply:
            await self.close()
            raise NodeConnectionError(
                f"blockSubscribe rejected: {reply['error'].get('message', 'unknown error')}"
            )

        self.subscription_id = reply.get("result")
        logger.info(
            "block_subscription_started",
            ws_url=self.ws_url,
            account=self.account[:8] + "...",
            subscription_id=self.subscription_id,
        )

    async def close(self) -> None:
        """Close the WebSocket."""
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
            logger.info("block_subscription_closed")

    def __aiter__(self) -> AsyncIterator[BlockUpdate]:
        return self._updates()

    async def _updates(self) -> AsyncIterator[BlockUpdate]:
        if self._ws is None:
            await self.connect()

        try:
            async for message in self._ws:
                data = json.loads(message)
                if data.get("method") != "blockNotification":
                    continue

                value = data.get("params", {}).get("result", {}).get("value", {})
                block = value.get("block") or {}
                update = BlockUpdate(
                    slot=value.get("slot", 0),
                    blockhash=block.get("blockhash"),
                    error=value.get("err"),
                    raw=data,
                )
                logger.debug("block_update", slot=update.slot)
                yield update

        except websockets.ConnectionClosed:
            logger.warning("block_subscription_connection_closed")
