from .base import (
    AuthorRepository,
    CatalogRepository,
    NotificationRepository,
    PublicationService,
    QueueRepository,
    SourceArticleRepository,
)
from .memory import (
    InMemoryAuthorRepository,
    InMemoryCatalogRepository,
    InMemoryNotificationRepository,
    InMemoryPublicationService,
    InMemoryQueueRepository,
    InMemorySourceArticleRepository,
)
from .jsonfile import (
    JsonAuthorRepository,
    JsonNotificationRepository,
    JsonPublicationService,
    JsonQueueRepository,
    JsonSourceArticleRepository,
    JsonTable,
    json_repositories,
)

__all__ = [
    "AuthorRepository",
    "CatalogRepository",
    "NotificationRepository",
    "PublicationService",
    "QueueRepository",
    "SourceArticleRepository",
    "InMemoryAuthorRepository",
    "InMemoryCatalogRepository",
    "InMemoryNotificationRepository",
    "InMemoryPublicationService",
    "InMemoryQueueRepository",
    "InMemorySourceArticleRepository",
    "JsonAuthorRepository",
    "JsonNotificationRepository",
    "JsonPublicationService",
    "JsonQueueRepository",
    "JsonSourceArticleRepository",
    "JsonTable",
    "json_repositories",
]
