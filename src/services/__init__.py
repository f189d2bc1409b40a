"""Services package."""
from src.services.budget_assessor import BudgetRealismAssessor
from src.services.completeness import CompletenessAssessor, readiness_score
from src.services.domain_cache import DomainCache, normalize_domain
from src.services.field_extractor import FieldExtractor
from src.services.identity_validator import CompletionIdentityLookup, IdentityValidator
from src.services.site_fetcher import HttpSiteFetcher, SiteFetchError
from src.services.website_intelligence import WebsiteIntelligenceAnalyzer

__all__ = [
    "BudgetRealismAssessor",
    "CompletenessAssessor",
    "readiness_score",
    "DomainCache",
    "normalize_domain",
    "FieldExtractor",
    "CompletionIdentityLookup",
    "IdentityValidator",
    "HttpSiteFetcher",
    "SiteFetchError",
    "WebsiteIntelligenceAnalyzer",
]
