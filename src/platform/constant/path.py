from pathlib import Path


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent

# Log directory
LOG_DIR = BASE_DIR / 'logs'

# Lua scripts for atomic slot reservation
LUA_SCRIPTS_DIR = (
    BASE_DIR / 'src' / 'service' / 'booking' / 'driven_adapter' / 'state' / 'lua_scripts'
)
