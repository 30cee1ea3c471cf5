import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from docker_manager.schemas import JoinMeetingPayload, QueueItem

logger = logging.getLogger("docker_manager.queue_client")


class JoinMeetQueue:
    """
    Owned handle on the Redis list carrying join-meeting jobs.

    Producers RPUSH and the listener BLPOPs, so items come out in FIFO order.
    Redis hands each element to exactly one blocked client, which is what
    lets several docker-manager processes share the same queue.
    """

    def __init__(self, redis_url: str, name: str, client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self.name = name
        self._client = client

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise RuntimeError(f"Queue '{self.name}' is not connected. Call connect() first.")
        return self._client

    async def connect(self) -> None:
        if self._client is None:
            logger.info(f"Connecting to Redis at {self.redis_url}...")
            self._client = aioredis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        await self._client.ping()
        logger.info(f"Connected to Redis. Queue: '{self.name}'")

    async def close(self) -> None:
        if self._client is None:
            return
        logger.info("Closing Redis connection...")
        try:
            await self._client.aclose()
        finally:
            self._client = None

    async def pop(self, timeout: float = 0) -> Optional[QueueItem]:
        """
        Block until an item is available and return it.

        timeout=0 waits forever. The only way a None comes back is a positive
        timeout running out. Connection errors are raised to the caller.
        """
        res = await self.client.blpop([self.name], timeout=timeout)
        if res is None:
            return None
        key, element = res
        return QueueItem(queue=key, raw=element)

    async def push(self, payload: JoinMeetingPayload) -> int:
        length = await self.client.rpush(self.name, json.dumps(payload.to_wire()))
        logger.debug(f"Pushed job for user {payload.user_id} onto '{self.name}' (length={length})")
        return length

    async def length(self) -> int:
        return await self.client.llen(self.name)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
