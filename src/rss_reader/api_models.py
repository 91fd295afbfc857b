"""Pydantic models for REST API requests and responses."""

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, validator


def clean_feed_url(v: str) -> str:
    """Basic URL validation and cleanup."""
    v = v.strip()
    if not v:
        raise ValueError("URL cannot be empty")
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    try:
        url = httpx.URL(v)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid URL: {e}") from e
    if not url.host:
        raise ValueError("URL must include a host")
    return v


def clean_email(v: str) -> str:
    v = v.strip()
    if "@" not in v:
        raise ValueError("Must be an email address")
    return v


class UserRequest(BaseModel):
    """Request model for registering a user."""

    name: str = Field(..., min_length=1, description="Display name")
    email: str = Field(..., description="Unique email address")

    @validator("email")
    def validate_email(cls, v: str) -> str:
        return clean_email(v)


class UserUpdateRequest(BaseModel):
    """Request model for editing a user. Omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, description="Display name")
    email: Optional[str] = Field(None, description="Unique email address")

    @validator("email")
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return clean_email(v) if v is not None else v


class FeedRequest(BaseModel):
    """Request model for subscribing a user to a feed."""

    user_id: str = Field(..., min_length=1, description="Owning user")
    feed_url: str = Field(..., description="URL of the RSS/Atom document")
    title: Optional[str] = Field(
        None, description="Display title until the first successful fetch"
    )

    @validator("feed_url")
    def validate_url(cls, v: str) -> str:
        return clean_feed_url(v)


class FeedUpdateRequest(BaseModel):
    """Request model for editing a feed. Omitted fields are left unchanged."""

    title: Optional[str] = Field(None, description="Display title")
    description: Optional[str] = Field(None, description="Feed description")
    link: Optional[str] = Field(None, description="Site link")
    feed_url: Optional[str] = Field(None, description="Feed document URL")
    is_active: Optional[bool] = Field(None, description="Pause or resume fetching")

    @validator("feed_url")
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return clean_feed_url(v) if v is not None else v


class ArticleUpdateRequest(BaseModel):
    """Request model for updating article state."""

    is_read: Optional[bool] = Field(None, description="Mark as read/unread")
    is_starred: Optional[bool] = Field(None, description="Star/unstar")
    user_id: Optional[str] = Field(
        None, description="User performing the action; counted in daily stats"
    )


class SharedArticle(BaseModel):
    """Article fields rendered into a share email."""

    title: str = Field(..., description="Article title")
    link: str = Field(..., description="Link to the original article")
    author: Optional[str] = Field(None, description="Article author")
    pub_date: Optional[datetime] = Field(None, description="Publish time")
    description: Optional[str] = Field(None, description="Article summary")


class ShareRequest(BaseModel):
    """Request model for sharing an article by email.

    Either ``article`` or ``article_id`` must be given; a stored article is
    loaded when only the id is sent.
    """

    to: str = Field(..., description="Recipient email address")
    article: Optional[SharedArticle] = Field(None, description="Article to share")
    article_id: Optional[str] = Field(None, description="Stored article id")
    user_id: Optional[str] = Field(None, description="User sharing the article")

    @validator("to")
    def validate_recipient(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("Recipient must be an email address")
        return v


class APIResponse(BaseModel):
    """Standard API response format."""

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable message")
    data: Optional[Dict[str, Any]] = Field(None, description="Response data if any")
