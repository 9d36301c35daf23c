"""
Upload de-duplication cache

Files attached during checkout are uploaded once per session. A file is
identified by (name, type, size, last_modified). Concurrent requests for the
same file share one in-flight upload; failed uploads are not cached, so the
next request tries again. The cache is bounded and evicts least recently used
entries.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from checkout_engine.core.config import settings

logger = logging.getLogger(__name__)

Uploader = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class FileKey:
    name: str
    type: str
    size: int
    last_modified: int


class UploadCache:
    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries if max_entries is not None else settings.UPLOAD_CACHE_MAX_ENTRIES
        self._results: "OrderedDict[FileKey, Any]" = OrderedDict()
        self._in_flight: Dict[FileKey, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, key: FileKey) -> bool:
        return key in self._results

    def clear(self) -> None:
        self._results.clear()

    def _store(self, key: FileKey, result: Any) -> None:
        self._results[key] = result
        self._results.move_to_end(key)
        while len(self._results) > self.max_entries:
            evicted, _ = self._results.popitem(last=False)
            logger.debug(f"[UPLOAD] Evicted {evicted.name} from upload cache")

    def _settle(self, key: FileKey, task: asyncio.Future) -> None:
        self._in_flight.pop(key, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"[UPLOAD] Upload of {key.name} failed: {error}")
            return
        self._store(key, task.result())

    async def get_or_upload(self, key: FileKey, upload: Uploader) -> Any:
        """Cached result for key, or the result of running (or joining) its upload."""
        if key in self._results:
            self._results.move_to_end(key)
            return self._results[key]

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(upload())
            self._in_flight[key] = task
            task.add_done_callback(lambda t: self._settle(key, t))

        # A cancelled waiter must not cancel the upload other waiters share
        return await asyncio.shield(task)
