"""Services package."""

from projecthub.services.change_feed import ChangeFeed, change_feed
from projecthub.services.comment import CommentService
from projecthub.services.custom_property import CustomPropertyService
from projecthub.services.live_query import LiveTaskQuery
from projecthub.services.task import TaskService
from projecthub.services.taxonomy import TaxonomyService

__all__ = [
    "ChangeFeed",
    "change_feed",
    "CommentService",
    "CustomPropertyService",
    "LiveTaskQuery",
    "TaskService",
    "TaxonomyService",
]
