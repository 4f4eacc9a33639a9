from newsdesk.db.models.config import (
    ApiKey,
    IngestionConfig,
    SequencePromptConfig,
    WeeklyPromptConfig,
)
from newsdesk.db.models.content import (
    Article,
    DataSource,
    NewsletterComponent,
    RssSource,
    SavedContent,
)
from newsdesk.db.models.delivery import (
    EmailEvent,
    EmailTemplate,
    NewsActivity,
    ShortLink,
    Subscriber,
)
from newsdesk.db.models.newsletter import NewsletterTemplate, Sequence, WeeklyNewsletter
from newsdesk.db.models.user import User

__all__ = [
    "ApiKey",
    "Article",
    "DataSource",
    "EmailEvent",
    "EmailTemplate",
    "IngestionConfig",
    "NewsActivity",
    "NewsletterComponent",
    "NewsletterTemplate",
    "RssSource",
    "SavedContent",
    "Sequence",
    "SequencePromptConfig",
    "ShortLink",
    "Subscriber",
    "User",
    "WeeklyNewsletter",
    "WeeklyPromptConfig",
]
