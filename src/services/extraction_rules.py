"""
Extraction Rule Table
Ordered, declarative keyword/regex rules that map prospect language onto
qualification fields.

Every field owns an ordered tuple of rules. The generic matcher walks each
tuple top to bottom against the lower-cased user text and the first rule
that yields a value wins. Rule order is the precedence policy: specific
phrasings sit above generic ones ("customer support" above a bare
"support"), and negations sit above the phrases they negate ("no budget"
above "budget approved").
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from src.models.extraction import FieldCategory, FieldName

CLEAR = FieldCategory.CLEAR
VAGUE = FieldCategory.VAGUE

ValueResolver = Union[str, Callable[[re.Match], Optional[str]]]


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern
    value: ValueResolver
    category: FieldCategory = CLEAR

    def apply(self, text: str) -> Optional[Tuple[str, re.Match]]:
        match = self.pattern.search(text)
        if match is None:
            return None
        value = self.value(match) if callable(self.value) else self.value
        if value is None:
            return None
        return value, match


@dataclass(frozen=True)
class RuleMatch:
    field: FieldName
    value: str
    category: FieldCategory
    rule_index: int
    evidence: str


def rule(pattern: str, value: ValueResolver, category: FieldCategory = CLEAR) -> Rule:
    return Rule(re.compile(pattern), value, category)


# ============================================
# NUMBER HELPERS
# ============================================

_MULTIPLIERS = {
    None: 1,
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "mm": 1_000_000,
    "million": 1_000_000,
}

_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"
_UNIT = r"(k|mm|m|thousand|million)?\b"

# Company-size figures ("$10m in revenue") are not project budgets.
_NOT_COMPANY_FIGURE = r"(?![^.,;$]{0,20}\b(?:revenue|arr|valuation|turnover|in (?:annual )?sales|in funding|funding round)\b)"
_AMOUNT = r"\$\s?" + _NUMBER + r"\s*" + _UNIT
_BUDGET_WORDS = r"(?:budget\w*|set aside|allocated|allocating|earmarked|spend|spending|invest|investing)"


def to_dollars(number: str, unit: Optional[str]) -> Optional[int]:
    """'75', 'k' -> 75000. Returns None for zero or unparseable input."""
    try:
        amount = float(number.replace(",", ""))
    except ValueError:
        return None
    dollars = int(round(amount * _MULTIPLIERS[unit]))
    return dollars if dollars > 0 else None


def _single_amount(match: re.Match) -> Optional[str]:
    dollars = to_dollars(match.group(1), match.group(2))
    return str(dollars) if dollars else None


def _range_upper_bound(match: re.Match) -> Optional[str]:
    upper_unit = match.group(4)
    dollars = to_dollars(match.group(3), upper_unit)
    return str(dollars) if dollars else None


def _head_count(match: re.Match) -> Optional[str]:
    count = int(match.group(1).replace(",", ""))
    return str(count) if count > 0 else None


# ============================================
# JOB TITLES
# ============================================

# (job_function value, title pattern), highest seniority first
_TITLES: Tuple[Tuple[str, str], ...] = (
    ("c_level", r"(?:ceo|cto|cfo|coo|cio|cmo|cro|chief [a-z]+ officer|(?<!vice )(?<!vice-)president|managing director)"),
    ("founder", r"(?:co-?founder|founder|business owner|company owner|owner of (?:the|this|our|a) (?:company|business|firm))"),
    ("vp", r"(?:vp|svp|evp|vice[ -]president)"),
    ("director", r"(?:director|head of [a-z]+)"),
    ("manager", r"(?:[a-z]+ manager|manager|team lead|supervisor)"),
    ("consultant", r"(?:consultant|advisor|freelancer)"),
    ("individual_contributor", r"(?:engineer|analyst|developer|specialist|coordinator|associate|administrator|accountant)"),
)

_SELF = r"\b(?:i am|i'm|im|i work as|my role is|my title is|as)\s+(?:the\s+|a\s+|an\s+|our\s+)?(?:company's\s+)?"

# Stated about oneself: clear. Mentioned anywhere else: vague.
_JOB_FUNCTION_RULES = tuple(
    rule(_SELF + title + r"\b", value) for value, title in _TITLES
) + tuple(
    rule(r"\b" + title + r"\b", value, VAGUE) for value, title in _TITLES
)


# ============================================
# RULE TABLE
# ============================================

RULE_TABLE: Dict[FieldName, Tuple[Rule, ...]] = {
    FieldName.PROBLEM_TYPE: (
        rule(r"\b(?:hiring|recruit\w*|talent acquisition|applicants?|job candidates?)\b", "hiring_recruitment"),
        rule(r"\b(?:customer support|customer service|help ?desk|support tickets?|call cent(?:er|re))\b", "customer_support"),
        rule(r"\b(?:fraud\w*|chargebacks?)\b", "fraud_detection"),
        rule(r"\b(?:compliance|regulatory reporting|audit reports?)\b", "compliance_reporting"),
        rule(r"\b(?:invoices?|paperwork|document processing|contracts review|scanned documents?)\b", "document_processing"),
        rule(r"\b(?:inventory|stock levels|warehouse)\b", "inventory_management"),
        rule(r"\b(?:time ?tracking|timesheets?|tracking hours)\b", "time_tracking"),
        rule(r"\b(?:forecast\w*|predictive|predict\w*)\b", "predictive_analytics"),
        rule(r"\b(?:quality assurance|quality control|defects?|inspections?)\b", "quality_assurance"),
        rule(r"\b(?:personali[sz]\w*|product recommendations?)\b", "personalization"),
        rule(r"\b(?:content creation|copywriting|blog posts?|marketing content)\b", "content_creation"),
        rule(r"\b(?:bookkeeping|accounting|cash ?flow|financial (?:management|reporting|planning))\b", "financial_management"),
        rule(r"\b(?:lead generation|sales pipeline|crm|sales|marketing)\b", "sales_marketing"),
        rule(r"\b(?:data analysis|analytics|dashboards?|business intelligence)\b", "data_analysis"),
        rule(r"\bmanual (?:data entry|processes?|work)\b", "process_automation"),
        rule(r"\bautomat\w*\b", "process_automation", VAGUE),
        rule(r"\bsupport\b", "customer_support", VAGUE),
        rule(r"\breports?\b", "data_analysis", VAGUE),
        rule(r"\b(?:ai|artificial intelligence|machine learning)\b", "other", VAGUE),
    ),
    FieldName.INDUSTRY: (
        rule(r"\b(?:construction|general contract\w*|contractors?|builders?)\b", "construction"),
        rule(r"\b(?:healthcare|health care|hospitals?|clinics?|medical|patients?|pharma\w*)\b", "healthcare"),
        rule(r"\b(?:insurance|insurer|underwriting)\b", "insurance"),
        rule(r"\b(?:banks?|banking|fintech|financial services|credit unions?|wealth management|lending|finance)\b", "finance"),
        rule(r"\b(?:real estate|property management|realtors?)\b", "real_estate"),
        rule(r"\b(?:law firm|legal|attorneys?|lawyers?)\b", "legal"),
        rule(r"\b(?:retail\w*|e-?commerce|online store|brick and mortar)\b", "retail"),
        rule(r"\b(?:manufactur\w*|factor(?:y|ies)|assembly lines?|production lines?)\b", "manufacturing"),
        rule(r"\b(?:schools?|universit(?:y|ies)|education\w*|edtech|students)\b", "education"),
        rule(r"\b(?:government|municipal\w*|public sector|city council)\b", "government"),
        rule(r"\b(?:non-?profit|charity|ngo)\b", "nonprofit"),
        rule(r"\b(?:consulting|consultancy)\b", "consulting"),
        rule(r"\b(?:media|entertainment|publishing|broadcast\w*)\b", "media_entertainment"),
        rule(r"\b(?:logistics|trucking|transportation|freight|fleet)\b", "transportation"),
        rule(r"\b(?:energy|oil and gas|utilit(?:y|ies)|solar|renewables?)\b", "energy"),
        rule(r"\b(?:agricultur\w*|farms?|farming|crops?)\b", "agriculture"),
        rule(r"\b(?:software|saas|tech company|technology company|it services)\b", "technology"),
        rule(r"\b(?:startup|tech)\b", "technology", VAGUE),
    ),
    FieldName.JOB_FUNCTION: _JOB_FUNCTION_RULES,
    FieldName.DECISION_ROLE: (
        rule(r"\b(?:i (?:control|own|hold|manage) the budget|budget holder|i sign off on (?:the )?(?:budget|spend))\b", "budget_holder"),
        rule(r"\b(?:i make the (?:final )?decisions?|i decide|i have (?:the )?final say|i'?m the decision maker|final decision is mine)\b", "decision_maker"),
        rule(r"\b(?:need (?:to get )?approval|run it by|check with my (?:boss|manager)|i(?:'ll| will)? recommend|make a recommendation)\b", "influencer"),
        rule(r"\b(?:part of the (?:team|committee)|on the (?:team|committee) evaluating|our team (?:will|is going to) decide)\b", "team_member"),
        rule(r"\b(?:gathering information|doing (?:some )?research|researching (?:options|solutions|this))\b", "researcher"),
        rule(_SELF + r"(?:ceo|cto|cfo|coo|chief [a-z]+ officer|(?<!vice )president|founder|co-?founder|owner)\b", "decision_maker", VAGUE),
        rule(r"\bdecision maker\b", "decision_maker", VAGUE),
        rule(r"\b(?:my (?:boss|manager)|leadership)\b", "influencer", VAGUE),
    ),
    FieldName.SOLUTION_PREFERENCE: (
        rule(r"\b(?:hybrid|combination of|mix of|customi[sz]e an existing)\b", "hybrid_approach"),
        rule(r"\b(?:custom[- ](?:built|build|solution|software|development|tool)|build (?:it|something) (?:from scratch|ourselves)|tailor[- ]made|bespoke)\b", "custom_build"),
        rule(r"\b(?:off[- ]the[- ]shelf|existing (?:tool|product|platform|software)|plug[- ]and[- ]play|ready[- ]made)\b", "off_the_shelf"),
        rule(r"\b(?:undecided|open to (?:options|suggestions|anything)|not sure (?:what|which) (?:solution|approach))\b", "undecided"),
        rule(r"\b(?:custom|build)\b", "custom_build", VAGUE),
        rule(r"\b(?:software|tool|platform)\b", "off_the_shelf", VAGUE),
    ),
    FieldName.IMPLEMENTATION_CAPACITY: (
        rule(r"\b(?:no (?:technical|tech|it|dev|engineering) (?:team|staff|people)|need (?:outside|external) help|outsourc\w*|need (?:a |an )?(?:partner|vendor|agency))\b", "need_external_help"),
        rule(r"\b(?:work alongside|together with our team|some internal (?:help|capacity)|partly in-?house)\b", "hybrid_approach"),
        rule(r"\b(?:in-?house (?:team|developers|engineers|it)|internal (?:team|developers|engineers|it)|our (?:own )?(?:developers|engineers|it team|dev team))\b", "have_internal_team"),
        rule(r"\b(?:it department|it guy|it person)\b", "have_internal_team", VAGUE),
    ),
    FieldName.BUSINESS_URGENCY: (
        rule(r"\b(?:not (?:that |very |really |too |super )?urgent|(?:isn'?t|is not|wasn'?t) (?:that |very |really |too )?urgent|no (?:real |particular )?urgency|no rush|not in a (?:rush|hurry))\b", "just_exploring"),
        rule(r"\b(?:asap|as soon as possible|urgent\w*|immediately|right away|this month)\b", "urgent_asap"),
        rule(r"\b(?:3|three)\s*(?:to|-)\s*(?:6|six) months\b", "3_to_6_months"),
        rule(r"\b(?:6|six)\s*(?:to|-)\s*(?:12|twelve) months\b", "6_to_12_months"),
        rule(r"\b(?:next (?:month|few weeks|couple of months)|within (?:a|one|two|three|1|2|3) months?|in (?:a few|two|three|2|3) weeks|this quarter|end of (?:the )?quarter)\b", "under_3_months"),
        rule(r"\b(?:next quarter|(?:4|5|6|four|five|six) months|by (?:the )?summer|mid[- ]year)\b", "3_to_6_months"),
        rule(r"\b(?:later this year|(?:by )?(?:the )?end of (?:the )?year|within (?:a|one) year|this year)\b", "6_to_12_months"),
        rule(r"\b(?:next year|(?:12|18|24) months|(?:two|2) years|long[- ]term)\b", "1_year_plus"),
        rule(r"\b(?:just (?:exploring|looking|browsing|curious)|exploring (?:new |our |different |some )?(?:options|technologies|solutions|tools|possibilities|ideas)|no (?:specific |set |fixed )?timeline|no rush)\b", "just_exploring"),
        rule(r"\b(?:soon|quickly|shortly)\b", "under_3_months", VAGUE),
        rule(r"\b(?:eventually|someday|at some point)\b", "1_year_plus", VAGUE),
    ),
    FieldName.BUDGET_STATUS: (
        rule(r"(?:\bno budget\b|\b(?:don'?t|do not) have (?:a |any )?budget\b|\bhaven'?t (?:set|allocated) (?:a |any )?budget\b|\bwithout a budget\b)", "just_exploring"),
        rule(r"\b(?:not (?:yet )?(?:been )?(?:approved|allocated|signed off)|(?:isn'?t|wasn'?t|weren'?t|aren'?t) (?:yet )?(?:approved|allocated|signed off)|(?:hasn'?t|haven'?t) (?:yet )?been (?:approved|allocated|signed off)|pending approval|awaiting approval|waiting (?:for|on) (?:budget )?approval|budget (?:is )?in planning|planning (?:the|a|our) budget|next (?:year'?s|quarter'?s) budget|putting together a budget)\b", "in_planning"),
        rule(r"\b(?:approved|pre-approved|allocated|signed off|earmarked|budget is set)\b", "approved"),
        rule(r"\b(?:how much (?:does|would|will) (?:it|this|that) cost|pricing|ballpark|cost estimates?|what (?:does|would) it cost|researching (?:costs|prices|pricing))\b", "researching_costs"),
        rule(r"\b(?:have|has|got) (?:a |the |some )?budget\b", "approved", VAGUE),
        rule(r"\b(?:just (?:exploring|looking|browsing|curious)|exploring (?:new |our |different |some )?(?:options|technologies|solutions|tools|possibilities|ideas))\b", "just_exploring", VAGUE),
        rule(_AMOUNT + _NOT_COMPANY_FIGURE, "in_planning", VAGUE),
    ),
    FieldName.BUDGET_AMOUNT: (
        rule(_AMOUNT + r"\s*(?:-|to|–)\s*\$?\s?" + _NUMBER + r"\s*" + _UNIT + _NOT_COMPANY_FIGURE, _range_upper_bound),
        rule(r"\b(?:about|around|roughly|approximately|maybe)\s+" + _AMOUNT + _NOT_COMPANY_FIGURE, _single_amount, VAGUE),
        rule(r"\b" + _BUDGET_WORDS + r"\b[^$.;]{0,25}" + _AMOUNT + _NOT_COMPANY_FIGURE, _single_amount),
        rule(_AMOUNT + r"(?=\s*(?:for (?:this|it|the project|the pilot)|budget|set aside|allocated|earmarked|approved)\b)", _single_amount),
        rule(_AMOUNT + _NOT_COMPANY_FIGURE, _single_amount),
        rule(r"\bbudget (?:of|is)\s+(?:about |around )?" + _NUMBER + r"\s*" + _UNIT, _single_amount),
        rule(r"\b" + _NUMBER + r"\s*(k|thousand|million)\s*(?:dollars|usd|budget)\b", _single_amount),
    ),
    FieldName.TEAM_SIZE: (
        rule(r"\b(?:about|around|roughly|approximately|over|nearly|almost)\s+(\d[\d,]*)\s*\+?\s*(?:[a-z-]+\s+)?(?:people|employees|workers|staff|team members|engineers|agents|reps|nurses|drivers|technicians)\b", _head_count, VAGUE),
        rule(r"(?<![$\d.,])\b(\d[\d,]*)\s*\+?\s*(?:full[- ]time\s+)?(?:[a-z-]+\s+)?(?:people|employees|workers|staff|team members|engineers|agents|reps|nurses|drivers|technicians)\b", _head_count),
        rule(r"\b(?:team|company|staff) of (\d[\d,]*)\b", _head_count),
        rule(r"\b(\d[\d,]*)[- ]person (?:team|company|firm|shop)\b", _head_count),
    ),
    FieldName.TECH_CAPABILITY: (
        rule(r"\b(?:not (?:very |really )?technical|non-?technical|paper[- ]based|pen and paper)\b", "basic"),
        rule(r"\b(?:data scien(?:ce|tists?)|ml engineers?|machine learning team|engineering team|dev team|highly technical|strong technical team)\b", "advanced"),
        rule(r"\b(?:some technical|it department|it team|basic scripting|we use (?:salesforce|hubspot|quickbooks|sap|netsuite))\b", "intermediate"),
        rule(r"\b(?:excel|spreadsheets?|manually)\b", "basic", VAGUE),
    ),
}


def match_field(field: FieldName, text: str, table: Dict[FieldName, Tuple[Rule, ...]] = RULE_TABLE) -> Optional[RuleMatch]:
    """First rule for the field that yields a value, or None."""
    for index, candidate in enumerate(table.get(field, ())):
        hit = candidate.apply(text)
        if hit is None:
            continue
        value, match = hit
        return RuleMatch(
            field=field,
            value=value,
            category=candidate.category,
            rule_index=index,
            evidence=match.group(0),
        )
    return None


def extract_with_rules(text: str, table: Dict[FieldName, Tuple[Rule, ...]] = RULE_TABLE) -> Dict[FieldName, RuleMatch]:
    """Run every field's rules over already lower-cased text."""
    matches: Dict[FieldName, RuleMatch] = {}
    for field in table:
        found = match_field(field, text, table)
        if found is not None:
            matches[field] = found
    return matches


def parse_budget_amount(text: str) -> Optional[int]:
    """Dollar figure stated in free text, upper bound for ranges."""
    found = match_field(FieldName.BUDGET_AMOUNT, text.lower())
    return int(found.value) if found else None
