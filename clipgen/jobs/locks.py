"""Process-local keyed exclusion.

Keeps two coroutines in this process from advancing the same job at once.
It gives no protection across processes; that boundary belongs to the job
store's conditional status update.
"""

from contextlib import contextmanager
from typing import Iterator, Set


class KeyedGuard:

    def __init__(self):
        self._held: Set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._held

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """Yields True if the key was acquired, False if already held."""
        if key in self._held:
            yield False
            return
        self._held.add(key)
        try:
            yield True
        finally:
            self._held.discard(key)
