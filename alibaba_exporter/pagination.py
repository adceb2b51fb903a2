import logging
import threading
from typing import Any, Callable, List, Optional

from .schemas import Page

LOG = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGES = 10000


def paginate(fetch_page: Callable[[int, int], Optional[Page]],
             page_size: int = DEFAULT_PAGE_SIZE,
             stop_event: Optional[threading.Event] = None,
             name: str = "listing",
             max_pages: int = MAX_PAGES) -> List[Any]:
    """
    Calls fetch_page(page_num, page_size) from page 1 until the listing is exhausted.

    Stops on an empty page, a short page, or once the accumulated records reach the
    total the provider reports. If stop_event is set before a fetch, the records
    gathered so far are returned. Errors raised by fetch_page propagate.
    """
    records: List[Any] = []
    page_num = 1
    while True:
        if page_num > max_pages:
            LOG.warning(f"{name}: stopped after {max_pages} full pages ({len(records)} records)")
            return records
        if stop_event is not None and stop_event.is_set():
            LOG.warning(f"{name}: interrupted before page {page_num}, returning {len(records)} records")
            return records
        page = fetch_page(page_num, page_size)
        if page is None or not page.records:
            break
        records.extend(page.records)
        LOG.debug(f"{name}: page {page_num} -> {len(page.records)} records (total {len(records)})")
        if len(page.records) < page_size:
            break
        if page.total_count is not None and len(records) >= page.total_count:
            break
        page_num += 1
    return records
