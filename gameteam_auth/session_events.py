"""
Session change notifications.

``SessionBroadcaster`` fans a payload-less "auth changed" signal out to every
subscriber; consumers re-read the credential store themselves. The optional
``RedisSessionRelay`` carries the same signal between processes sharing a
Redis instance.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Callable, Dict, Optional

logger = logging.getLogger("gameteam.events")

Handler = Callable[[], None]


class SessionBroadcaster:
    def __init__(self) -> None:
        self._handlers: Dict[int, Handler] = {}
        self._next_id = 0
        self.relay: Optional["RedisSessionRelay"] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        handler_id = self._next_id
        self._next_id += 1
        self._handlers[handler_id] = handler
        logger.debug("session_subscribe id=%s total=%s", handler_id, len(self._handlers))

        def unsubscribe() -> None:
            if self._handlers.pop(handler_id, None) is not None:
                logger.debug("session_unsubscribe id=%s total=%s", handler_id, len(self._handlers))

        return unsubscribe

    def notify(self) -> None:
        self.notify_local()
        if self.relay is not None:
            self.relay.publish()

    def notify_local(self) -> None:
        # Snapshot: handlers may unsubscribe while being called
        handlers = list(self._handlers.items())
        delivered = 0
        for handler_id, handler in handlers:
            try:
                handler()
                delivered += 1
            except Exception:
                logger.exception("session_handler_error id=%s", handler_id)
        logger.info("session_notify subscribers=%s delivered=%s", len(handlers), delivered)


class RedisSessionRelay:
    """Mirror broadcaster notifications across processes through Redis pub/sub."""

    def __init__(
        self,
        broadcaster: SessionBroadcaster,
        channel: str,
        redis_client=None,
        url: Optional[str] = None,
    ) -> None:
        self.broadcaster = broadcaster
        self.channel = channel
        self.origin = uuid.uuid4().hex
        self._redis_client = redis_client
        self._url = url
        self.task: Optional[asyncio.Task] = None
        self._running = False
        self._async_redis = None
        self._pubsub = None

    def attach(self) -> None:
        self.broadcaster.relay = self

    def detach(self) -> None:
        if self.broadcaster.relay is self:
            self.broadcaster.relay = None

    def _get_redis_client(self):
        if self._redis_client is None:
            from .redis_client import get_redis
            self._redis_client = get_redis()
        return self._redis_client

    def publish(self) -> None:
        message = json.dumps({"origin": self.origin, "ts": time.time()})
        try:
            receivers = self._get_redis_client().publish(self.channel, message)
            logger.debug("relay_publish channel=%s receivers=%s", self.channel, receivers)
        except Exception as e:
            # Local subscribers were already notified; other processes catch up on their next read
            logger.error("relay_publish_error channel=%s error=%s", self.channel, repr(e))

    def handle_message(self, message: dict) -> bool:
        """Relay one pub/sub message locally. Returns True when it was relayed."""
        if message.get("type") != "message":
            return False
        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            body = json.loads(data)
        except (TypeError, ValueError):
            logger.warning("relay_message_invalid channel=%s", self.channel)
            return False
        if body.get("origin") == self.origin:
            return False
        logger.info("relay_received channel=%s origin=%s", self.channel, body.get("origin"))
        self.broadcaster.notify_local()
        return True

    async def start(self) -> None:
        if self._running:
            logger.warning("relay_already_started channel=%s", self.channel)
            return
        self._running = True
        self.attach()
        self.task = asyncio.create_task(self._run())
        logger.info("relay_started channel=%s origin=%s", self.channel, self.origin)

    async def stop(self) -> None:
        self.detach()
        self._running = False
        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        self.task = None
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except Exception as e:
                logger.warning("relay_pubsub_close_error error=%s", repr(e))
            self._pubsub = None
        if self._async_redis is not None:
            try:
                await self._async_redis.aclose()
            except Exception as e:
                logger.warning("relay_redis_close_error error=%s", repr(e))
            self._async_redis = None
        logger.info("relay_stopped channel=%s", self.channel)

    async def _run(self) -> None:
        import redis.asyncio as aioredis

        if self._url is None:
            from .redis_client import redis_url
            self._url = redis_url()
        try:
            self._async_redis = aioredis.from_url(self._url, decode_responses=False)
            self._pubsub = self._async_redis.pubsub()
            await self._pubsub.subscribe(self.channel)
            async for message in self._pubsub.listen():
                self.handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("relay_listen_error channel=%s error=%s", self.channel, repr(e))
            self._running = False
