"""
Configuration lookup

Persistence is owned elsewhere; the core only needs ``get(key)``. The
in-memory store backs tests and single-process use.
"""

from typing import Dict, Generic, Iterable, List, Optional, Protocol, TypeVar

from .domain import ConfigKey

T = TypeVar("T")


class ConfigurationStore(Protocol[T]):
    """Lookup of configurations by (user_id, config_id)"""

    def get(self, key: ConfigKey) -> Optional[T]:
        ...


class InMemoryConfigurationStore(Generic[T]):
    """Dictionary backed configuration store"""

    def __init__(self, configs: Optional[Iterable[T]] = None):
        self._configs: Dict[ConfigKey, T] = {}
        for config in configs or []:
            self.save(config)

    def save(self, config: T) -> T:
        self._configs[config.key] = config
        return config

    def get(self, key: ConfigKey) -> Optional[T]:
        return self._configs.get(tuple(key))

    def delete(self, key: ConfigKey) -> bool:
        return self._configs.pop(tuple(key), None) is not None

    def find_all(self, user_id: int) -> List[T]:
        return [c for k, c in sorted(self._configs.items()) if k[0] == user_id]
