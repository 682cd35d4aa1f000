"""
Key-Value Store Adapter

Thin async contract over a Redis-protocol store (Kvrocks): single keys, sets, hashes,
bulk reads, MULTI/EXEC batches and Lua scripts. Transport and transaction failures
surface as StoreUnavailableError; nothing is retried here.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError

from src.platform.exception.exceptions import StoreUnavailableError
from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.platform.state.lua_script_executor import LuaScripts, lua_script_executor


class KvTransaction:
    """Write batch queued on a MULTI/EXEC pipeline; sent as one unit on commit."""

    def __init__(self, pipe: Pipeline) -> None:
        self._pipe = pipe
        self.queued: list[str] = []

    def set(self, key: str, value: str | bytes) -> 'KvTransaction':
        self._pipe.set(key, value)
        self.queued.append(f'SET {key}')
        return self

    def delete(self, *keys: str) -> 'KvTransaction':
        self._pipe.delete(*keys)
        self.queued.append(f'DEL {" ".join(keys)}')
        return self

    def sadd(self, key: str, *members: str) -> 'KvTransaction':
        self._pipe.sadd(key, *members)
        self.queued.append(f'SADD {key}')
        return self

    def srem(self, key: str, *members: str) -> 'KvTransaction':
        self._pipe.srem(key, *members)
        self.queued.append(f'SREM {key}')
        return self

    def hset(self, key: str, field: str, value: str) -> 'KvTransaction':
        self._pipe.hset(key, field, value)
        self.queued.append(f'HSET {key}')
        return self

    def hdel(self, key: str, *fields: str) -> 'KvTransaction':
        self._pipe.hdel(key, *fields)
        self.queued.append(f'HDEL {key}')
        return self


class KvStore:
    def __init__(
        self,
        *,
        client_factory: Optional[Callable[[], Redis]] = None,
        scripts: LuaScripts = lua_script_executor,
    ) -> None:
        self._client_factory = client_factory or kvrocks_client.get_client
        self._scripts = scripts

    @property
    def client(self) -> Redis:
        return self._client_factory()

    async def _call(self, op: str, coro: Any) -> Any:
        try:
            return await coro
        except RedisError as e:
            Logger.base.error(f'❌ [KV-STORE] {op} failed: {type(e).__name__}: {e}')
            raise StoreUnavailableError(f'Key-value store {op} failed') from e

    # ========== Single keys ==========

    async def get(self, key: str) -> Optional[str]:
        return await self._call('GET', self.client.get(key))

    async def set(self, key: str, value: str | bytes, *, only_if_exists: bool = False) -> bool:
        """SET; with only_if_exists (XX) nothing is written for a missing key and False is returned."""
        return bool(await self._call('SET', self.client.set(key, value, xx=only_if_exists)))

    async def delete(self, *keys: str) -> int:
        return await self._call('DEL', self.client.delete(*keys))

    async def mget(self, keys: list[str]) -> list[Optional[str]]:
        if not keys:
            return []
        return await self._call('MGET', self.client.mget(keys))

    # ========== Sets ==========

    async def sadd(self, key: str, *members: str) -> int:
        return await self._call('SADD', self.client.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        return await self._call('SREM', self.client.srem(key, *members))

    async def smembers(self, key: str) -> frozenset[str]:
        return frozenset(await self._call('SMEMBERS', self.client.smembers(key)))

    async def sismember(self, key: str, member: str) -> bool:
        return bool(await self._call('SISMEMBER', self.client.sismember(key, member)))

    # ========== Hashes ==========

    async def hget(self, key: str, field: str) -> Optional[str]:
        return await self._call('HGET', self.client.hget(key, field))

    async def hset(self, key: str, field: str, value: str) -> int:
        return await self._call('HSET', self.client.hset(key, field, value))

    async def hdel(self, key: str, *fields: str) -> int:
        return await self._call('HDEL', self.client.hdel(key, *fields))

    async def hmget(self, key: str, fields: list[str]) -> list[Optional[str]]:
        if not fields:
            return []
        return await self._call('HMGET', self.client.hmget(key, fields))

    # ========== Atomic batches ==========

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[KvTransaction]:
        """
        Queue writes and execute them as one MULTI/EXEC when the block exits.

        If the block raises, the queued commands are discarded and never reach the store.
        """
        async with self.client.pipeline(transaction=True) as pipe:
            batch = KvTransaction(pipe)
            yield batch
            if batch.queued:
                Logger.base.debug(f'🔒 [KV-STORE] MULTI/EXEC: {batch.queued}')
                await self._call('MULTI/EXEC', pipe.execute())

    async def run_script(self, name: str, *, keys: list[str], args: list[Any]) -> Any:
        """Run a registered Lua script; the whole script executes atomically server-side."""
        return await self._call(
            f'EVALSHA {name}',
            self._scripts.run(name=name, client=self.client, keys=keys, args=args),
        )
