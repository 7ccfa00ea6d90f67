"""
Request id allocation and lookup.

Every provider request gets an id from the registry before it is sent, so
callbacks that arrive immediately can already be resolved.
"""

import threading
from typing import Dict, List, Optional

from volradar.entities import RequestKind, RequestRecord
from volradar.errors import RequestNotFound


class RequestRegistry:
    """
    Maps in-flight request ids to (ticker, kind).

    Representation Invariants:
        - issued ids are strictly increasing from 1 and never reused
        - every id in the mapping was issued by this registry
        - issue, resolve and release are serialized by one lock, so an id
          released by one thread never resolves in another
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._next_id = 1
        self._records: Dict[int, RequestRecord] = {}

    def issue(self, ticker: str, kind: RequestKind) -> int:
        """Allocate the next id and record what it is for."""
        with self._lock:
            req_id = self._next_id
            self._next_id += 1
            self._records[req_id] = RequestRecord(req_id, ticker, kind)
        return req_id

    def resolve(self, req_id: int) -> RequestRecord:
        """
        Look up an in-flight request.

        Raises:
            RequestNotFound: If the id is unknown or already released
        """
        with self._lock:
            record = self._records.get(req_id)
        if record is None:
            raise RequestNotFound(req_id)
        return record

    def release(self, req_id: int) -> None:
        """Forget a request. Releasing an unknown id is a no-op."""
        with self._lock:
            self._records.pop(req_id, None)

    def active(self, ticker: Optional[str] = None) -> List[RequestRecord]:
        """Snapshot of in-flight requests, optionally for one ticker."""
        with self._lock:
            records = list(self._records.values())
        if ticker is not None:
            records = [r for r in records if r.ticker == ticker]
        return sorted(records, key=lambda r: r.req_id)

    def __contains__(self, req_id: int) -> bool:
        with self._lock:
            return req_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
