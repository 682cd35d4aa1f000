"""
Lua Scripts for Redis/Kvrocks

Simplified approach using redis-py's built-in register_script().
Every `*.lua` file in the scripts directory is registered under its file stem.
"""

from pathlib import Path
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import NoScriptError

from src.platform.constant.path import LUA_SCRIPTS_DIR
from src.platform.logging.loguru_io import Logger


class LuaScripts:
    """Manages Lua scripts using redis-py's register_script()"""

    def __init__(self, *, scripts_dir: Path = LUA_SCRIPTS_DIR) -> None:
        self._scripts_dir = scripts_dir
        self._sources: dict[str, str] = {}
        self._scripts: dict[str, Any] = {}
        self._client: Redis | None = None

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self, *, client: Redis) -> None:
        """Load Lua scripts (idempotent per client)"""
        if self._client is client:
            return

        if not self._sources:
            for path in sorted(self._scripts_dir.glob('*.lua')):
                self._sources[path.stem] = path.read_text()
            if not self._sources:
                Logger.base.warning(f'⚠️ [LUA] No scripts found in {self._scripts_dir}')

        self._scripts = {
            name: client.register_script(source) for name, source in self._sources.items()
        }
        self._client = client
        Logger.base.info(f'🔥 [LUA] Registered scripts: {sorted(self._scripts)}')

    async def run(self, *, name: str, client: Redis, keys: list[str], args: list[Any]) -> Any:
        """Execute a registered script with auto-retry on NoScriptError"""
        if self._client is not client:
            await self.initialize(client=client)

        script = self._scripts.get(name)
        if script is None:
            raise RuntimeError(f'Lua script not registered: {name}')

        try:
            return await script(keys=keys, args=args, client=client)
        except NoScriptError:
            # Script cache is flushed on Kvrocks restart
            Logger.base.warning(f'⚠️ [LUA] {name} not found, re-registering...')
            self._scripts[name] = client.register_script(self._sources[name])
            return await self._scripts[name](keys=keys, args=args, client=client)


# Global singleton
lua_script_executor = LuaScripts()
