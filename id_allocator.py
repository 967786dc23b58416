"""
Entity id allocation for one simulation run.

Every fog node, sensor and actuator built during a run takes its id from
the same allocator, so ids never collide across entity kinds.
"""
import itertools


class IdAllocator:
    """Hands out strictly increasing integer ids"""

    def __init__(self, start=0):
        self._start = start
        self._counter = itertools.count(start)
        self.last_id = None

    def next_id(self):
        self.last_id = next(self._counter)
        return self.last_id

    def advance_past(self, used_id):
        """Make sure the next id handed out is greater than ``used_id``"""
        if self.last_id is None or used_id > self.last_id:
            self._counter = itertools.count(used_id + 1)
            self.last_id = used_id

    def reset(self):
        """Start over for a fresh run"""
        self._counter = itertools.count(self._start)
        self.last_id = None
