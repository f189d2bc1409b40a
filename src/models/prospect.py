from typing import Dict, Optional
from pydantic import Field
from src.models.base import MongoBaseModel

# Company-size buckets offered by the intake form, mapped to a representative head count
COMPANY_SIZE_ESTIMATES: Dict[str, int] = {
    "1-10": 5,
    "11-50": 30,
    "51-200": 125,
    "201-500": 350,
    "501-1000": 750,
    "1000+": 2000,
}


class Prospect(MongoBaseModel):
    """
    The company and contact being vetted.
    Written by the intake layer; vetting runs only read it.
    """
    prospect_id: str = Field(..., description="Stable external identifier")
    session_id: Optional[str] = None
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    domain: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    employee_count: Optional[int] = Field(None, gt=0)

    def resolve_domain(self) -> Optional[str]:
        """Claimed domain, falling back to the e-mail's domain."""
        if self.domain:
            return self.domain
        if self.email and "@" in self.email:
            return self.email.rsplit("@", 1)[1].strip().lower() or None
        return None

    def estimated_employee_count(self) -> Optional[int]:
        """Verified head count first, then the intake bucket."""
        if self.employee_count:
            return self.employee_count
        if self.company_size:
            return COMPANY_SIZE_ESTIMATES.get(self.company_size.strip())
        return None
