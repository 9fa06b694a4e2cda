"""
Exhaustive paged listing of one entity type.

``scan_all`` hides limit/offset pagination behind a single generator. It keeps
no cursor between calls: calling it again starts over from offset 0.
"""

from typing import Callable, Iterator, Optional

from .errors import ScanError, StoreError
from .logger import get_logger
from .storage import EntityStore, Record

logger = get_logger()

DEFAULT_PAGE_SIZE = 5000
DEFAULT_SORT = "-created_date"


def scan_all(
    store: EntityStore,
    entity: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    sort: str = DEFAULT_SORT,
    where: Optional[Callable[[Record], bool]] = None,
) -> Iterator[Record]:
    """
    Yield every record of ``entity``, one page at a time.

    Args:
        store: Entity store to read from
        entity: Entity type name (e.g. "MetricRecord")
        page_size: Records requested per page
        sort: Sort key; must be stable across pages
        where: Optional predicate; records failing it are not yielded

    Raises:
        ScanError: The store failed to return a page. The scan cannot resume.
    """
    if not isinstance(page_size, int) or page_size < 1:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    offset = 0
    pages = 0
    while True:
        try:
            page = list(store.list(entity, sort, page_size, offset))
        except StoreError as e:
            logger.error("Scan aborted", entity=entity, offset=offset, error=str(e))
            raise ScanError(f"Failed to list {entity} at offset {offset}: {e}") from e

        pages += 1
        logger.debug(f"Batch: skip={offset}, got {len(page)} records", entity=entity)

        for record in page:
            if where is None or where(record):
                yield record

        if len(page) < page_size:
            break
        offset += page_size

    logger.debug("Scan complete", entity=entity, pages=pages, scanned=offset + len(page))


def load_all(store: EntityStore, entity: str, **kwargs):
    """Drain ``scan_all`` into a list."""
    return list(scan_all(store, entity, **kwargs))
