from pydantic import Field
from src.models.base import MongoBaseModel, UtcDatetime
from src.models.validation import WebsiteDetails


class DomainCacheEntry(MongoBaseModel):
    """Last successful website analysis for a normalized domain."""
    domain: str = Field(..., description="Normalized domain, e.g. 'acme.com'")
    result: WebsiteDetails
    last_analyzed_at: UtcDatetime
