"""Article reads and user-state mutations."""

import logging
from typing import List, Optional

from .errors import NotFoundError
from .models import Article
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


class ArticleService:
    """Read/star actions and article queries for one storage backend.

    Read and star actions persist the article change first and only then
    record the stats event through StatsAggregator.record_activity, so a stats
    failure can never undo or fail the action itself.
    """

    def __init__(self, storage, stats: Optional[StatsAggregator] = None):
        self.storage = storage
        self.stats = stats or StatsAggregator(storage)

    def get_article(self, article_id: str) -> Article:
        article = self.storage.get_article(article_id)
        if article is None:
            raise NotFoundError("Article", article_id)
        return article

    def list_by_feed(self, feed_id: str, limit: int = 50, offset: int = 0) -> List[Article]:
        return self.storage.list_articles_by_feed(feed_id, limit, offset)

    def list_by_user(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Article]:
        return self.storage.list_articles_by_user(user_id, limit, offset)

    def unread_count(self, user_id: str) -> int:
        return self.storage.count_unread_by_user(user_id)

    def mark_as_read(
        self, article_id: str, is_read: bool, user_id: Optional[str] = None
    ) -> Article:
        """Mark an article read or unread.

        Marking read with a user_id also counts towards today's articles_read.

        Raises:
            NotFoundError: If the article doesn't exist
        """
        article = self.storage.set_article_read(article_id, is_read)
        if article is None:
            raise NotFoundError("Article", article_id)

        if is_read and user_id:
            self.stats.record_activity(user_id, articles_read=1)

        return article

    def toggle_star(
        self, article_id: str, is_starred: bool, user_id: Optional[str] = None
    ) -> Article:
        """Star or unstar an article.

        Starring with a user_id also counts towards today's articles_starred.

        Raises:
            NotFoundError: If the article doesn't exist
        """
        article = self.storage.set_article_starred(article_id, is_starred)
        if article is None:
            raise NotFoundError("Article", article_id)

        if is_starred and user_id:
            self.stats.record_activity(user_id, articles_starred=1)

        return article

    def delete_article(self, article_id: str) -> None:
        if not self.storage.delete_article(article_id):
            raise NotFoundError("Article", article_id)
