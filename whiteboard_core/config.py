"""
Whiteboard configuration.

Every setting resolves in three tiers:
    1. Explicit override (passed by the embedding application)
    2. Environment variable
    3. Hard-coded default
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .serialization import DanglingEdgePolicy
from .storage import JsonFileStorage, MemoryStorage, SqliteStorage, StorageBackend

_DEFAULT_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')


def resolve_setting(key: str, env_var: str, default: str,
                    overrides: Optional[Mapping[str, str]] = None) -> str:
    """Three-tier resolution: override → env → default."""
    if overrides and overrides.get(key) is not None:
        return str(overrides[key])
    env_val = os.environ.get(env_var, '').strip()
    if env_val:
        return env_val
    return default


@dataclass
class WhiteboardSettings:
    """Effective configuration of a whiteboard session."""
    storage: str = "memory"
    storage_path: str = ""
    storage_key: str = "workflow"
    dangling_edges: DanglingEdgePolicy = DanglingEdgePolicy.DROP
    contract_type: str = "ERC-20"
    network: str = "ethereum"
    host: str = "0.0.0.0"
    port: int = 5002
    log_level: str = "INFO"
    
    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, str]] = None) -> 'WhiteboardSettings':
        storage = resolve_setting('storage', 'WHITEBOARD_STORAGE', 'memory', overrides).lower()
        if storage not in ('memory', 'file', 'sqlite'):
            raise ValueError(f"Unknown storage backend: {storage}")
        default_path = {
            'file': os.path.join(_DEFAULT_DATA_DIR, 'workflows'),
            'sqlite': os.path.join(_DEFAULT_DATA_DIR, 'whiteboard.db'),
        }.get(storage, '')
        return cls(
            storage=storage,
            storage_path=resolve_setting('storage_path', 'WHITEBOARD_STORAGE_PATH', default_path, overrides),
            storage_key=resolve_setting('storage_key', 'WHITEBOARD_STORAGE_KEY', 'workflow', overrides),
            dangling_edges=DanglingEdgePolicy(
                resolve_setting('dangling_edges', 'WHITEBOARD_DANGLING_EDGES', 'drop', overrides).lower()
            ),
            contract_type=resolve_setting('contract_type', 'WHITEBOARD_CONTRACT_TYPE', 'ERC-20', overrides),
            network=resolve_setting('network', 'WHITEBOARD_NETWORK', 'ethereum', overrides),
            host=resolve_setting('host', 'WHITEBOARD_HOST', '0.0.0.0', overrides),
            port=int(resolve_setting('port', 'WHITEBOARD_PORT', '5002', overrides)),
            log_level=resolve_setting('log_level', 'WHITEBOARD_LOG_LEVEL', 'INFO', overrides).upper(),
        )
    
    def create_storage(self) -> StorageBackend:
        """Instantiate the configured storage backend."""
        if self.storage == 'file':
            return JsonFileStorage(self.storage_path)
        if self.storage == 'sqlite':
            return SqliteStorage(self.storage_path)
        return MemoryStorage()
