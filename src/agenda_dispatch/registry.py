"""Identity-keyed reducer registry."""
import threading
from typing import Callable, Dict, List, Optional, Tuple

from agenda_dispatch.models import Reducer
from agenda_dispatch.store import Store


class ReducerRegistry:
    """Side table mapping each reducer (by identity) to its Store.

    Registration is serialized: the first registration for a reducer wins
    and concurrent duplicates receive the same Store. The reducer is held
    alongside its Store so its ``id`` stays valid for the registry's life.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, Tuple[Reducer, Store]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, reducer: object) -> bool:
        return self.get(reducer) is not None  # type: ignore[arg-type]

    def get(self, reducer: Reducer) -> Optional[Store]:
        entry = self._entries.get(id(reducer))
        if entry is None or entry[0] is not reducer:
            return None
        return entry[1]

    def get_or_create(self, reducer: Reducer, factory: Callable[[], Store]) -> Store:
        """Return the registered Store, creating it with ``factory`` if absent.

        Raises:
            Exception: Whatever ``factory`` raises; nothing is registered.
        """
        with self._lock:
            store = self.get(reducer)
            if store is None:
                store = factory()
                self._entries[id(reducer)] = (reducer, store)
            return store

    def stores(self) -> List[Store]:
        """Registered stores in registration order."""
        return [store for _, store in self._entries.values()]

    def clear(self) -> List[Store]:
        """Forget every registration and return the stores that were held."""
        with self._lock:
            stores = self.stores()
            self._entries.clear()
        return stores
