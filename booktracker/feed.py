# booktracker/feed.py
from typing import Callable, List, Optional
import logging

from booktracker.models import Book, BookQuery, Page, DEFAULT_PAGE_SIZE
from booktracker.repo import RepoError

logger = logging.getLogger(__name__)

PageLoader = Callable[[BookQuery, int, int], Page]

class BookFeed:
    """
    The list currently on screen for one query, loaded a page at a time.

    apply() starts over for a new filter/sort and replaces the list;
    load_more() appends the next page. A request in flight blocks further
    load_more() calls. Failed fetches are not retried: the error is kept on
    the feed and the caller decides what to show.
    """

    def __init__(self, loader: PageLoader, page_size: int = DEFAULT_PAGE_SIZE,
                 clear_on_error: bool = False):
        self.loader = loader
        self.page_size = page_size
        self.clear_on_error = clear_on_error
        self.query = BookQuery()
        self.items: List[Book] = []
        self.page = -1  # last page loaded
        self.total = 0
        self.has_more = True
        self.loading = False
        self.error: Optional[str] = None

    def apply(self, query: BookQuery) -> List[Book]:
        self.query = query
        self.items = []
        self.page = -1
        self.total = 0
        self.has_more = True
        self.loading = False
        self.error = None
        self._fetch(0, replace=True)
        return self.items

    def load_more(self) -> bool:
        """Load the next page. Returns False when nothing was requested."""
        if self.loading or not self.has_more:
            logger.debug("load_more skipped (loading=%s has_more=%s)", self.loading, self.has_more)
            return False
        return self._fetch(self.page + 1, replace=False)

    def drain(self) -> List[Book]:
        """Load every remaining page and return the full list."""
        while self.has_more and self.error is None:
            if not self.load_more():
                break
        return self.items

    def _fetch(self, page: int, replace: bool) -> bool:
        self.loading = True
        try:
            result = self.loader(self.query, page, self.page_size)
        except RepoError as e:
            logger.warning("fetching page %s failed: %s", page, e)
            self.error = str(e)
            self.has_more = False
            if self.clear_on_error:
                self.items = []
            return False
        finally:
            self.loading = False
        self.items = list(result.items) if replace else self.items + list(result.items)
        self.page = page
        self.total = result.total
        self.has_more = len(self.items) < result.total and len(result.items) > 0
        self.error = None
        return True
