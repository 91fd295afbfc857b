"""REST API server for the RSS reader daemon."""

import logging
import time

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from rich.console import Console

from . import errors
from .api_errors import (
    APIError,
    ConflictError,
    MailDeliveryError,
    NotFoundError,
    ServerError,
    ValidationError,
    from_reader_error,
)
from .api_models import (
    APIResponse,
    ArticleUpdateRequest,
    FeedRequest,
    FeedUpdateRequest,
    ShareRequest,
    UserRequest,
    UserUpdateRequest,
)
from .article_service import ArticleService
from .config import Config
from .feed_fetcher import FeedFetcher
from .fetchers import RSSFetcher
from .mailer import ArticleSharer, Mailer
from .models import User
from .observability import log as obs_log
from .orchestrator import BatchOrchestrator
from .stats import StatsAggregator
from .storage import EDITABLE_FEED_FIELDS, EDITABLE_USER_FIELDS, Storage

logger = logging.getLogger(__name__)

console = Console()

app = FastAPI(
    title="RSS Reader API",
    description="REST API for feeds, articles, reading stats and sharing",
    version="1.0.0",
)


@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Log API requests in same style as daemon output."""
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000

    client_ip = request.client.host if request.client else "unknown"
    query_str = f"?{request.url.query}" if request.url.query else ""
    console.print(
        f"[dim]   📡 API: {request.method} {request.url.path}{query_str} from {client_ip} → {response.status_code} ({duration:.0f}ms)[/dim]"
    )

    obs_log(
        "api.request",
        method=request.method,
        path=request.url.path,
        query=request.url.query if request.url.query else None,
        client_ip=client_ip,
        status_code=response.status_code,
        duration_ms=int(duration),
    )

    return response


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle our custom APIError exceptions with consistent format.

    Formats all errors as: {"success": false, "message": "...", "data": null}
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "data": None},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert FastAPI's {"detail": [...]} validation errors to the envelope."""
    first_error = exc.errors()[0]
    field = " -> ".join(str(loc) for loc in first_error["loc"])

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": f"Validation error in {field}: {first_error['msg']}",
            "data": None,
        },
    )


# Dependency injection for Storage with proper cleanup
async def get_storage() -> Storage:
    """Yield a Storage per request and close its connection afterwards."""
    storage = Storage()
    try:
        yield storage
    finally:
        storage.close()


async def get_config() -> Config:
    """Load configuration from the standard location."""
    try:
        return Config.from_file()
    except (FileNotFoundError, ValueError) as e:
        raise ServerError(f"Configuration error: {e}")


def get_rss_fetcher() -> RSSFetcher:
    """Yield an RSSFetcher using configured timeout and user agent.

    Fetching doesn't need SMTP settings, so a missing config file falls back
    to the fetcher defaults instead of failing the request.
    """
    try:
        config = Config.from_file()
    except (FileNotFoundError, ValueError) as e:
        logger.warning(f"Using default fetch settings: {e}")
        config = None

    fetcher = RSSFetcher(config)
    try:
        yield fetcher
    finally:
        fetcher.close()


def get_mailer(config: Config = Depends(get_config)) -> Mailer:
    return Mailer(config)


# Configure CORS for local access only
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:*", "http://127.0.0.1:*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------


@app.post("/api/users", response_model=APIResponse)
async def add_user(
    request: UserRequest, storage: Storage = Depends(get_storage)
) -> APIResponse:
    try:
        user = storage.add_user(User(name=request.name, email=request.email))
        return APIResponse(
            success=True, message="User created successfully", data=user.to_dict()
        )

    except errors.DuplicateKeyError:
        raise ConflictError(f"Email already registered: {request.email}")
    except Exception as e:
        raise ServerError(f"Failed to add user: {str(e)}")


@app.get("/api/users", response_model=APIResponse)
async def list_users(storage: Storage = Depends(get_storage)) -> APIResponse:
    try:
        users = storage.list_users()
        return APIResponse(
            success=True,
            message=f"Retrieved {len(users)} users",
            data={"users": [user.to_dict() for user in users], "total": len(users)},
        )

    except Exception as e:
        raise ServerError(f"Failed to get users: {str(e)}")


@app.get("/api/users/{user_id}", response_model=APIResponse)
async def get_user(user_id: str, storage: Storage = Depends(get_storage)) -> APIResponse:
    try:
        user = storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        return APIResponse(success=True, message="User retrieved", data=user.to_dict())

    except APIError:
        raise
    except Exception as e:
        raise ServerError(f"Failed to get user: {str(e)}")


@app.patch("/api/users/{user_id}", response_model=APIResponse)
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Rename a user or change their email."""
    try:
        update_data = {
            name: getattr(request, name)
            for name in EDITABLE_USER_FIELDS
            if getattr(request, name) is not None
        }
        if not update_data:
            raise ValidationError("No fields to update")

        if not storage.update_user(user_id, update_data):
            raise NotFoundError("User", user_id)

        return APIResponse(
            success=True,
            message="User updated successfully",
            data=storage.get_user(user_id).to_dict(),
        )

    except APIError:
        raise
    except errors.DuplicateKeyError:
        raise ConflictError(f"Email already registered: {request.email}")
    except Exception as e:
        raise ServerError(f"Failed to update user: {str(e)}")


@app.delete("/api/users/{user_id}", response_model=APIResponse)
async def delete_user(user_id: str, storage: Storage = Depends(get_storage)) -> APIResponse:
    """Delete a user.

    This will cascade delete their feeds, articles, daily stats and email logs.
    """
    try:
        if not storage.delete_user(user_id):
            raise NotFoundError("User", user_id)

        return APIResponse(
            success=True, message="User removed successfully", data={"id": user_id}
        )

    except APIError:
        raise
    except Exception as e:
        raise ServerError(f"Failed to remove user: {str(e)}")


# ----------------------------------------------------------------------
# Feeds
# ----------------------------------------------------------------------


@app.post("/api/feeds", response_model=APIResponse)
async def add_feed(
    request: FeedRequest, storage: Storage = Depends(get_storage)
) -> APIResponse:
    """Subscribe a user to a feed.

    Adding a URL the same user already follows returns the existing feed.
    """
    try:
        if storage.get_user(request.user_id) is None:
            raise NotFoundError("User", request.user_id)

        feed_id = storage.add_feed(request.user_id, request.feed_url, request.title or "")
        feed = storage.get_feed(feed_id)

        if feed.user_id != request.user_id:
            raise ConflictError(f"Feed URL already subscribed: {request.feed_url}")

        return APIResponse(
            success=True, message="Feed added successfully", data=feed.to_dict()
        )

    except APIError:
        raise  # Re-raise our custom errors
    except Exception as e:
        raise ServerError(f"Failed to add feed: {str(e)}")


@app.get("/api/users/{user_id}/feeds", response_model=APIResponse)
async def list_user_feeds(
    user_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    """Get all feeds of a user, active and paused, in subscription order."""
    try:
        feeds = storage.list_feeds_by_user(user_id)
        return APIResponse(
            success=True,
            message=f"Retrieved {len(feeds)} feeds",
            data={"feeds": [feed.to_dict() for feed in feeds], "total": len(feeds)},
        )

    except Exception as e:
        raise ServerError(f"Failed to get feeds: {str(e)}")


@app.get("/api/feeds/{feed_id}", response_model=APIResponse)
async def get_feed(feed_id: str, storage: Storage = Depends(get_storage)) -> APIResponse:
    try:
        feed = storage.get_feed(feed_id)
        if feed is None:
            raise NotFoundError("Feed", feed_id)

        return APIResponse(success=True, message="Feed retrieved", data=feed.to_dict())

    except APIError:
        raise
    except Exception as e:
        raise ServerError(f"Failed to get feed: {str(e)}")


@app.patch("/api/feeds/{feed_id}", response_model=APIResponse)
async def update_feed(
    feed_id: str,
    request: FeedUpdateRequest,
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Edit a feed's title, description, link or URL, or pause/resume it."""
    try:
        update_data = {
            name: getattr(request, name)
            for name in EDITABLE_FEED_FIELDS
            if getattr(request, name) is not None
        }
        if not update_data:
            raise ValidationError("No fields to update")

        if not storage.update_feed(feed_id, update_data):
            raise NotFoundError("Feed", feed_id)

        return APIResponse(
            success=True,
            message="Feed updated successfully",
            data=storage.get_feed(feed_id).to_dict(),
        )

    except APIError:
        raise
    except errors.DuplicateKeyError:
        raise ConflictError(f"Feed URL already subscribed: {request.feed_url}")
    except ValueError as e:
        raise ValidationError(str(e))
    except Exception as e:
        raise ServerError(f"Failed to update feed: {str(e)}")


@app.delete("/api/feeds/{feed_id}", response_model=APIResponse)
async def delete_feed(
    feed_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    """Delete a feed.

    This will cascade delete all articles of the feed.
    """
    try:
        if not storage.remove_feed(feed_id):
            raise NotFoundError("Feed", feed_id)

        return APIResponse(
            success=True, message="Feed removed successfully", data={"id": feed_id}
        )

    except APIError:
        raise
    except Exception as e:
        raise ServerError(f"Failed to remove feed: {str(e)}")


@app.post("/api/feeds/{feed_id}/fetch", response_model=APIResponse)
def fetch_feed(
    feed_id: str,
    storage: Storage = Depends(get_storage),
    rss_fetcher: RSSFetcher = Depends(get_rss_fetcher),
) -> APIResponse:
    """Fetch one feed now. A failed fetch is reported in data, not as an error."""
    try:
        if storage.get_feed(feed_id) is None:
            raise NotFoundError("Feed", feed_id)

        result = FeedFetcher(storage, rss_fetcher).fetch_feed(feed_id)
        message = (
            f"Fetched {result.article_count} new articles"
            if result.success
            else f"Fetch failed: {result.error}"
        )
        return APIResponse(success=result.success, message=message, data=result.to_dict())

    except APIError:
        raise
    except Exception as e:
        raise ServerError(f"Failed to fetch feed: {str(e)}")


@app.post("/api/users/{user_id}/fetch", response_model=APIResponse)
def fetch_user_feeds(
    user_id: str,
    storage: Storage = Depends(get_storage),
    rss_fetcher: RSSFetcher = Depends(get_rss_fetcher),
) -> APIResponse:
    """Fetch every active feed of a user, one at a time."""
    try:
        orchestrator = BatchOrchestrator(
            storage, FeedFetcher(storage, rss_fetcher), console=console
        )
        results = orchestrator.fetch_all_feeds_by_user(user_id)

        failed = sum(1 for r in results if not r.success)
        articles_new = sum(r.article_count for r in results)
        return APIResponse(
            success=True,
            message=f"Fetched {len(results)} feeds ({failed} failed)",
            data={
                "results": [r.to_dict() for r in results],
                "total": len(results),
                "failed": failed,
                "articles_new": articles_new,
            },
        )

    except Exception as e:
        raise ServerError(f"Failed to fetch feeds: {str(e)}")


# ----------------------------------------------------------------------
# Articles
# ----------------------------------------------------------------------


@app.get("/api/feeds/{feed_id}/articles", response_model=APIResponse)
async def list_feed_articles(
    feed_id: str,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Articles of one feed, newest first; undated articles come last."""
    try:
        articles = ArticleService(storage).list_by_feed(feed_id, limit, offset)
        return APIResponse(
            success=True,
            message=f"Retrieved {len(articles)} articles",
            data={
                "articles": [a.to_dict() for a in articles],
                "total": len(articles),
            },
        )

    except Exception as e:
        raise ServerError(f"Failed to get articles: {str(e)}")


@app.get("/api/users/{user_id}/articles", response_model=APIResponse)
async def list_user_articles(
    user_id: str,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Articles across all feeds of a user, newest first."""
    try:
        articles = ArticleService(storage).list_by_user(user_id, limit, offset)
        return APIResponse(
            success=True,
            message=f"Retrieved {len(articles)} articles",
            data={
                "articles": [a.to_dict() for a in articles],
                "total": len(articles),
            },
        )

    except Exception as e:
        raise ServerError(f"Failed to get articles: {str(e)}")


@app.get("/api/users/{user_id}/articles/unread-count", response_model=APIResponse)
async def unread_count(
    user_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    try:
        count = ArticleService(storage).unread_count(user_id)
        return APIResponse(
            success=True, message=f"{count} unread articles", data={"unread": count}
        )

    except Exception as e:
        raise ServerError(f"Failed to count unread articles: {str(e)}")


@app.get("/api/articles/{article_id}", response_model=APIResponse)
async def get_article(
    article_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    try:
        article = ArticleService(storage).get_article(article_id)
        return APIResponse(
            success=True, message="Article retrieved", data=article.to_dict()
        )

    except Exception as e:
        raise from_reader_error(e, "get article")


@app.patch("/api/articles/{article_id}", response_model=APIResponse)
async def update_article(
    article_id: str,
    request: ArticleUpdateRequest,
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Mark an article read/unread and/or starred/unstarred.

    With a user_id, marking read or starring counts towards that user's
    daily stats. At least one of is_read and is_starred must be provided.
    """
    try:
        if request.is_read is None and request.is_starred is None:
            raise ValidationError("No fields to update")

        service = ArticleService(storage)
        if request.is_read is not None:
            article = service.mark_as_read(article_id, request.is_read, request.user_id)
        if request.is_starred is not None:
            article = service.toggle_star(
                article_id, request.is_starred, request.user_id
            )

        return APIResponse(
            success=True,
            message="Article updated successfully",
            data=article.to_dict(),
        )

    except Exception as e:
        raise from_reader_error(e, "update article")


@app.delete("/api/articles/{article_id}", response_model=APIResponse)
async def delete_article(
    article_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    try:
        ArticleService(storage).delete_article(article_id)
        return APIResponse(
            success=True, message="Article deleted", data={"id": article_id}
        )

    except Exception as e:
        raise from_reader_error(e, "delete article")


@app.post("/api/articles/share", response_model=APIResponse)
def share_article(
    request: ShareRequest,
    storage: Storage = Depends(get_storage),
    mailer: Mailer = Depends(get_mailer),
) -> APIResponse:
    """Email an article, either sent inline or loaded by article_id."""
    try:
        if request.article is not None:
            article = request.article.model_dump()
        elif request.article_id:
            article = ArticleService(storage).get_article(request.article_id).to_dict()
        else:
            raise ValidationError("Either article or article_id is required")

        sharer = ArticleSharer(mailer, StatsAggregator(storage))
        sent = sharer.share_article(
            request.to, article, user_id=request.user_id, article_id=request.article_id
        )
        if not sent:
            raise MailDeliveryError()

        return APIResponse(
            success=True,
            message=f"Article shared with {request.to}",
            data={"to": request.to, "title": article.get("title")},
        )

    except Exception as e:
        raise from_reader_error(e, "share article")


# ----------------------------------------------------------------------
# Stats
# ----------------------------------------------------------------------


@app.get("/api/users/{user_id}/stats/daily", response_model=APIResponse)
async def daily_stats(
    user_id: str,
    days: int = Query(7, ge=1, le=366, description="Window size ending today (UTC)"),
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Per-day counters for the last ``days`` days, oldest first, zero-filled."""
    try:
        series = StatsAggregator(storage).get_daily_stats(user_id, days)
        return APIResponse(
            success=True,
            message=f"Daily stats for {days} days",
            data={"days": [stat.to_dict() for stat in series]},
        )

    except ValueError as e:
        raise ValidationError(str(e))
    except Exception as e:
        raise ServerError(f"Failed to get daily stats: {str(e)}")


@app.get("/api/users/{user_id}/stats/overall", response_model=APIResponse)
async def overall_stats(
    user_id: str, storage: Storage = Depends(get_storage)
) -> APIResponse:
    try:
        stats = StatsAggregator(storage).get_overall_stats(user_id)
        return APIResponse(success=True, message="Overall stats", data=stats)

    except Exception as e:
        raise ServerError(f"Failed to get overall stats: {str(e)}")


@app.get("/api/users/{user_id}/email-logs", response_model=APIResponse)
async def email_logs(
    user_id: str,
    limit: int = Query(50, ge=1, le=1000),
    storage: Storage = Depends(get_storage),
) -> APIResponse:
    """Most recent email log entries of a user, newest first."""
    try:
        logs = StatsAggregator(storage).get_email_logs(user_id, limit)
        return APIResponse(
            success=True,
            message=f"Retrieved {len(logs)} email logs",
            data={"logs": [entry.to_dict() for entry in logs], "total": len(logs)},
        )

    except Exception as e:
        raise ServerError(f"Failed to get email logs: {str(e)}")


@app.get("/health")
async def health_check(storage: Storage = Depends(get_storage)) -> dict:
    """Health check endpoint that verifies database connectivity."""
    try:
        feeds_count = storage.count_feeds()
        return {
            "success": True,
            "message": "Service healthy",
            "data": {
                "service": "rss-reader-api",
                "database": "connected",
                "feeds": feeds_count,
            },
        }
    except Exception as e:
        # Let the exception handler format it consistently
        raise ServerError(f"Health check failed: {str(e)}")
