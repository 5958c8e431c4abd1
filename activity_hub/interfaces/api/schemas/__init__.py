from .activity import ActivityItemRead, FeedRefreshResponse
from .notification import ReadMarkRead, ViewingRead, ViewingUpdate
from .session import LoginRequest, SessionRead

__all__ = [
    "ActivityItemRead",
    "FeedRefreshResponse",
    "LoginRequest",
    "ReadMarkRead",
    "SessionRead",
    "ViewingRead",
    "ViewingUpdate",
]
