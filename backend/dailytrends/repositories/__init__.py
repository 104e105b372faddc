from .feed_repository import FeedRepository, FeedStore

__all__ = ["FeedRepository", "FeedStore"]
