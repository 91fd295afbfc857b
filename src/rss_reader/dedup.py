"""Guid-based deduplication against stored articles."""

import logging

from .models import Article

logger = logging.getLogger(__name__)


class Deduplicator:
    """Decides whether a normalized article has been seen before.

    First-seen wins: an article whose guid already exists anywhere in storage
    is dropped, never merged into or used to refresh the stored one.
    """

    def __init__(self, storage):
        """
        Args:
            storage: Anything with find_article_by_guid(guid) -> Article | None
        """
        self.storage = storage

    def is_new(self, article: Article) -> bool:
        existing = self.storage.find_article_by_guid(article.guid)
        if existing is not None:
            logger.debug(f"Duplicate guid {article.guid} (article {existing.id})")
            return False
        return True
