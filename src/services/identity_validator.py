"""
Identity Validator
Checks the company and the contact against a professional-network source
and turns the contact's seniority into an authority score.
"""
import asyncio
import re
from typing import Optional, Protocol, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from src.agents.completion_agent import TextCompleter, parse_json_reply
from src.models.conversation import ConversationTurn, TurnRole
from src.models.validation import (
    FailureReason,
    IdentityDetails,
    SeniorityLevel,
    ValidatorName,
    ValidatorOutcome,
    failed,
    ok,
)


class CompanyRecord(BaseModel):
    found: bool
    name: Optional[str] = None
    employee_count: Optional[int] = Field(None, gt=0)
    industry: Optional[str] = None


class PersonRecord(BaseModel):
    found: bool
    title: Optional[str] = None


class IdentityLookup(Protocol):
    """Professional-identity data source."""

    async def lookup_company(self, company_name: str, domain: Optional[str]) -> CompanyRecord:
        ...

    async def lookup_person(self, contact_name: str, company_name: str) -> PersonRecord:
        ...


# Fixed ordinal scale
SENIORITY_SCORES = {
    SeniorityLevel.C_LEVEL: 100,
    SeniorityLevel.VP: 85,
    SeniorityLevel.DIRECTOR: 70,
    SeniorityLevel.MANAGER: 50,
    SeniorityLevel.INDIVIDUAL_CONTRIBUTOR: 25,
    SeniorityLevel.UNSPECIFIED: 10,
}

# Checked in order; "vice president" must be tested before "president"
_SENIORITY_RULES: Tuple[Tuple[SeniorityLevel, re.Pattern], ...] = (
    (SeniorityLevel.VP, re.compile(r"\b(?:vp|svp|evp|vice[ -]president)\b")),
    (SeniorityLevel.C_LEVEL, re.compile(
        r"\b(?:ceo|cto|cfo|coo|cio|cmo|cro|chief|president|founder|co-?founder|owner|managing director|partner)\b"
    )),
    (SeniorityLevel.DIRECTOR, re.compile(r"\b(?:director|head of)\b")),
    (SeniorityLevel.MANAGER, re.compile(r"\b(?:manager|lead|supervisor)\b")),
    (SeniorityLevel.INDIVIDUAL_CONTRIBUTOR, re.compile(
        r"\b(?:engineer|analyst|developer|specialist|coordinator|associate|assistant|consultant|accountant|designer)\b"
    )),
)


def classify_seniority(title: Optional[str]) -> SeniorityLevel:
    if not title:
        return SeniorityLevel.UNSPECIFIED
    lowered = title.lower()
    for level, pattern in _SENIORITY_RULES:
        if pattern.search(lowered):
            return level
    return SeniorityLevel.UNSPECIFIED


class CompletionIdentityLookup:
    """
    IdentityLookup backed by the text-completion collaborator, standing in
    for a professional-network API. Asks for a JSON profile and validates it.
    """

    def __init__(self, completer: TextCompleter):
        self.completer = completer

    async def _ask(self, instructions: str, query: str) -> dict:
        reply = await self.completer.complete([
            ConversationTurn(role=TurnRole.SYSTEM, text=instructions),
            ConversationTurn(role=TurnRole.USER, text=query),
        ])
        return parse_json_reply(reply)

    async def lookup_company(self, company_name: str, domain: Optional[str]) -> CompanyRecord:
        data = await self._ask(
            "You look up companies on a professional network. Reply with a single JSON object: "
            '{"found": bool, "name": string|null, "employee_count": int|null, "industry": string|null}. '
            "Set found to false unless you are confident the company exists.",
            f"Company: {company_name}\nDomain: {domain or 'unknown'}",
        )
        return CompanyRecord.model_validate(data)

    async def lookup_person(self, contact_name: str, company_name: str) -> PersonRecord:
        data = await self._ask(
            "You look up people on a professional network. Reply with a single JSON object: "
            '{"found": bool, "title": string|null}. '
            "Set found to false unless the person is listed at the named company.",
            f"Person: {contact_name}\nCompany: {company_name}",
        )
        return PersonRecord.model_validate(data)


class IdentityValidator:
    """
    Company and person lookups run concurrently. A person who cannot be
    found has no authority (score 0); a found person scores by the
    seniority of their listed title, falling back to the title the
    prospect stated.
    """

    def __init__(self, lookup: IdentityLookup):
        self.lookup = lookup

    async def validate(
        self,
        company_name: Optional[str],
        contact_name: Optional[str],
        domain: Optional[str],
        stated_title: Optional[str] = None,
    ) -> ValidatorOutcome:
        if not company_name or not contact_name:
            return failed(
                ValidatorName.IDENTITY,
                FailureReason.MISSING_INPUT,
                "Company name and contact name are both required",
            )

        company_result, person_result = await asyncio.gather(
            self.lookup.lookup_company(company_name, domain),
            self.lookup.lookup_person(contact_name, company_name),
            return_exceptions=True,
        )

        for result in (company_result, person_result):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"⚠️ Identity lookup failed for {company_name}: {result}")
                return failed(ValidatorName.IDENTITY, FailureReason.UPSTREAM_ERROR, str(result))

        if person_result.found:
            title = person_result.title or stated_title
            seniority = classify_seniority(title)
            authority = SENIORITY_SCORES[seniority]
        else:
            title = stated_title
            seniority = SeniorityLevel.UNSPECIFIED
            authority = 0

        details = IdentityDetails(
            company_found=company_result.found,
            person_found=person_result.found,
            authority_score=authority,
            seniority=seniority,
            title=title,
            company_employee_count=company_result.employee_count if company_result.found else None,
            company_industry=company_result.industry if company_result.found else None,
        )
        logger.info(
            f"🪪 Identity checked: company_found={details.company_found} "
            f"person_found={details.person_found} authority={authority}"
        )
        return ok(ValidatorName.IDENTITY, authority, details)
