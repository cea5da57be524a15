"""
Selected-network state.

The chosen chain ID is the only state that outlives a session. It is read
from a key-value store on startup and written back on every switch; only
NetworkSession.switch_network mutates it.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from .networks import DEFAULT_NETWORK_ID, NetworkConfig, get_network, is_supported

logger = logging.getLogger("agent8004.session")

STORAGE_KEY = "agent8004-selected-network"


class KeyValueStore:
    """Minimal string key-value persistence interface."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """
    Key-value store persisted as a flat JSON object.

    A missing file reads as empty. An unreadable or malformed file is
    logged and also reads as empty; it is overwritten on the next set().
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning("Could not read state file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: not a JSON object", self.path)
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


class NetworkSession:
    """
    Holds the currently selected chain.

    Args:
        store: Persistence backend, defaults to an in-memory store
        default_chain_id: Chain used when nothing valid is stored
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        default_chain_id: int = DEFAULT_NETWORK_ID,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.default_chain_id = default_chain_id
        self._chain_id = self._load()

    def _load(self) -> int:
        stored = self.store.get(STORAGE_KEY)
        if stored is None:
            return self.default_chain_id
        try:
            chain_id = int(stored)
        except ValueError:
            logger.warning("Invalid stored network %r, using default %d", stored, self.default_chain_id)
            return self.default_chain_id
        if not is_supported(chain_id):
            logger.warning("Stored network %d is not supported, using default %d", chain_id, self.default_chain_id)
            return self.default_chain_id
        return chain_id

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def network(self) -> NetworkConfig:
        return get_network(self._chain_id)

    def switch_network(self, chain_id: int) -> NetworkConfig:
        """
        Select and persist a network.

        Raises:
            UnsupportedNetworkError: chain_id is not a known network
        """
        network = get_network(chain_id)
        self._chain_id = network.id
        self.store.set(STORAGE_KEY, str(network.id))
        logger.info("Switched to %s (chain %d)", network.name, network.id)
        return network
