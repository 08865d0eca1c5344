#!/usr/bin/env python3
import asyncio
import json
import logging
from typing import AsyncIterator, Optional

import aiohttp
from aiohttp import ClientSession

from constants import FEED_HEARTBEAT_SECONDS, FEED_SUBSCRIBE_TIMEOUT
from exceptions import FeedSubscriptionError


class PendingTransactionFeed:
    """Streams pending transaction hashes from a node's eth_subscribe websocket."""

    def __init__(
        self,
        session: ClientSession,
        ws_url: str,
        *,
        timeout: float = FEED_SUBSCRIBE_TIMEOUT,
        heartbeat: Optional[float] = FEED_HEARTBEAT_SECONDS,
    ) -> None:
        self._session = session
        self._ws_url = ws_url
        self._timeout = timeout
        self._heartbeat = heartbeat
        self._id_lock = asyncio.Lock()
        self._next_request_id = 1
        self.logger = logging.getLogger(__name__)

    async def subscribe(self) -> AsyncIterator[str]:
        try:
            ws = await self._session.ws_connect(self._ws_url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise FeedSubscriptionError(f"Failed to connect to {self._ws_url}: {exc}") from exc

        try:
            subscription_id = await self._subscribe(ws)
            self.logger.info("Subscribed to pending transactions (subscription %s)", subscription_id)

            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    tx_hash = self._extract_hash(message.data, subscription_id)
                    if tx_hash:
                        yield tx_hash
                elif message.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSING):
                    break
                elif message.type == aiohttp.WSMsgType.ERROR:
                    raise FeedSubscriptionError(f"Pending transaction feed errored: {ws.exception()}")
        finally:
            await ws.close()

        raise FeedSubscriptionError("Pending transaction feed closed by the node")

    async def _subscribe(self, ws) -> str:
        request_id = await self._get_request_id()
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "eth_subscribe",
            "params": ["newPendingTransactions"],
        }
        try:
            await ws.send_json(payload)
            reply = await ws.receive_json(timeout=self._timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, TypeError, ValueError) as exc:
            raise FeedSubscriptionError(f"Failed to subscribe to pending transactions: {exc}") from exc

        if 'error' in reply:
            raise FeedSubscriptionError(f"Failed to subscribe to pending transactions: {reply['error']}")
        subscription_id = reply.get('result')
        if not subscription_id:
            raise FeedSubscriptionError(f"Subscription reply carried no id: {reply}")
        return subscription_id

    def _extract_hash(self, raw: str, subscription_id: str) -> Optional[str]:
        try:
            data = json.loads(raw)
        except ValueError:
            self.logger.debug("Ignoring non-JSON feed message: %.80s", raw)
            return None
        params = data.get('params') if isinstance(data, dict) else None
        if not params or params.get('subscription') != subscription_id:
            return None
        result = params.get('result')
        # Some nodes push full transaction objects instead of bare hashes.
        if isinstance(result, dict):
            return result.get('hash')
        return result

    async def _get_request_id(self) -> int:
        async with self._id_lock:
            request_id = self._next_request_id
            self._next_request_id += 1
        return request_id
