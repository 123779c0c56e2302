from __future__ import annotations

from enum import StrEnum


class ContentType(StrEnum):
    """Every kind of item the tracking store can record progress against."""

    COURSE = "course"
    CHALLENGE = "challenge"
    SESSION = "session"
    POST = "post"
    EVENT = "event"
    PRODUCT = "product"
    RESOURCE = "resource"
    COMMUNITY = "community"
    SUBSCRIPTION = "subscription"


class PurchasableType(StrEnum):
    """Content types an Order can be raised for."""

    COMMUNITY = "community"
    COURSE = "course"
    CHALLENGE = "challenge"
    EVENT = "event"
    PRODUCT = "product"
    SESSION = "session"
    SUBSCRIPTION = "subscription"


class ActionType(StrEnum):
    VIEW = "view"
    START = "start"
    COMPLETE = "complete"
    LIKE = "like"
    SHARE = "share"
    DOWNLOAD = "download"
    BOOKMARK = "bookmark"
    COMMENT = "comment"
    RATE = "rate"
