"""AI strategy generation with static fallback.

Both entry points follow the same contract: when OPENAI_API_KEY is set, ask
the model for a JSON object at low temperature and backfill every missing or
malformed field from the static fallback; when the key is absent or the call
or parse fails, return the fallback outright. Callers always receive a
complete object.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from resolve_api.config.env import get_openai_api_key, get_openai_model
from resolve_api.schemas import CamelModel

logger = logging.getLogger(__name__)

STRATEGY_TEMPERATURE = 0.3
OPENAI_TIMEOUT_SECONDS = 60.0

SYSTEM_PROMPT = (
    "You are an expert in Australian construction law and the Security of Payment "
    "legislation in each state and territory. You write practical, plain-English "
    "guidance for tradespeople chasing unpaid work. Respond only with a JSON object."
)


# ============================================================================
# Strategy document shape
# ============================================================================


class SOPAStep(BaseModel):
    step: int
    title: str
    description: str
    timeframe: str


class SecurityOfPaymentAct(BaseModel):
    applicable: bool
    reasoning: str
    steps: list[SOPAStep]


class TimelineItem(BaseModel):
    day: str
    action: str
    deadline: Optional[str] = None


class CostEstimate(CamelModel):
    adjudication_fee: str
    adjudicator_fee: str
    recovery_likelihood: str
    total_estimated_cost: str


class StrategyDocument(CamelModel):
    """Structured strategy pack content rendered into PDF/Word."""

    client_name: str
    case_title: str
    amount: str
    issue_type: str
    description: str
    welcome_message: str
    legal_analysis: str
    security_of_payment_act: SecurityOfPaymentAct
    timeline: list[TimelineItem]
    cost_estimate: CostEstimate
    risk_assessment: str
    enforcement_info: str
    next_steps: str
    attachments: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys the web client expects."""
        return self.model_dump(by_alias=True)


class CaseFacts(BaseModel):
    """Inputs to strategy generation and case analysis."""

    title: str
    issue_type: str
    amount: Optional[str] = None
    description: Optional[str] = None
    client_name: Optional[str] = None
    state: Optional[str] = None


# ============================================================================
# Fallback content
# ============================================================================


def _issue_label(issue_type: str) -> str:
    return issue_type.replace("_", " ").strip() or "payment"


def build_fallback_strategy(facts: CaseFacts) -> StrategyDocument:
    """Static strategy used when the model is unavailable."""
    issue = _issue_label(facts.issue_type)
    amount = facts.amount or "Not specified"

    return StrategyDocument(
        client_name=facts.client_name or "Valued Client",
        case_title=facts.title,
        amount=amount,
        issue_type=facts.issue_type,
        description=facts.description or "",
        welcome_message=(
            f"Thanks for reaching out. I understand you're dealing with {issue} issues, "
            "and I know how stressful it can be when you've done the work and the money "
            "hasn't followed. This pack sets out your options and the steps to take next."
        ),
        legal_analysis=(
            f"Based on the information provided, your {issue} matter appears to fall within "
            "the scope of the Security of Payment legislation in your state. These laws give "
            "contractors and subcontractors a statutory right to progress payments and a fast "
            "adjudication process when a payment claim is not paid in full."
        ),
        security_of_payment_act=SecurityOfPaymentAct(
            applicable=True,
            reasoning=(
                "Construction work and related goods and services supplied under a "
                "construction contract are covered by the Security of Payment Act."
            ),
            steps=[
                SOPAStep(
                    step=1,
                    title="Issue Payment Claim",
                    description=(
                        "Serve a written payment claim that identifies the work, states the "
                        "amount claimed and notes it is made under the Act."
                    ),
                    timeframe="Immediate action required",
                ),
                SOPAStep(
                    step=2,
                    title="Await Payment Schedule",
                    description=(
                        "The respondent must reply with a payment schedule stating what it "
                        "will pay and why, or pay the claimed amount in full."
                    ),
                    timeframe="10 business days",
                ),
                SOPAStep(
                    step=3,
                    title="Consider Adjudication",
                    description=(
                        "If no schedule is provided, or the scheduled amount is less than "
                        "claimed, apply to an authorised nominating authority for adjudication."
                    ),
                    timeframe="Available after 10 business days",
                ),
            ],
        ),
        timeline=[
            TimelineItem(day="Day 0", action="Serve payment claim"),
            TimelineItem(
                day="Day 10",
                action="Payment schedule due from respondent",
                deadline="10 business days after service",
            ),
            TimelineItem(
                day="Day 11-15",
                action="Lodge adjudication application if unpaid",
            ),
        ],
        cost_estimate=CostEstimate(
            adjudication_fee="Often free through some providers",
            adjudicator_fee="$500 - $1,500 depending on complexity",
            recovery_likelihood="High if paperwork is correct and claim is valid",
            total_estimated_cost="$500 - $1,500 (may be recoverable if successful)",
        ),
        risk_assessment=(
            "The main risks are procedural: a claim served late, without the required "
            "statutory wording, or to the wrong party can be challenged. Keep copies of "
            "every document and proof of service."
        ),
        enforcement_info=(
            "An adjudication determination can be filed as a judgment debt in a court of "
            "competent jurisdiction and enforced like any other judgment, including by "
            "suspending work until paid."
        ),
        next_steps=(
            "Gather your contract, invoices, variations and correspondence, then prepare and "
            "serve your payment claim using the template provided."
        ),
        attachments=[
            "Payment Claim Letter Template",
            "Supporting Documentation Checklist",
            "Timeline Tracker",
        ],
    )


def build_fallback_analysis(facts: CaseFacts) -> dict[str, Any]:
    """Static case analysis used when the model is unavailable."""
    issue = _issue_label(facts.issue_type)
    return {
        "caseType": issue,
        "jurisdiction": facts.state.upper() if facts.state else "Australia",
        "legalFramework": "Building and Construction Industry Security of Payment Act",
        "strengthOfCase": "moderate",
        "riskLevel": "medium",
        "estimatedTimeframe": "4-8 weeks",
        "keyIssues": [
            f"Unresolved {issue} dispute",
            "Compliance of the payment claim with statutory requirements",
        ],
        "recommendedActions": [
            "Serve a compliant payment claim",
            "Diarise the payment schedule deadline",
            "Prepare an adjudication application if unpaid",
        ],
        "legalProtections": [
            "Statutory right to progress payments",
            "Rapid adjudication process",
            "Right to suspend work for non-payment",
        ],
        "successProbability": 70,
        "source": "fallback",
    }


# ============================================================================
# Prompting
# ============================================================================


def _strategy_prompt(facts: CaseFacts) -> str:
    return f"""
Prepare a strategy pack for an Australian tradesperson with an unpaid or disputed payment.

Case title: {facts.title}
Client name: {facts.client_name or "Unknown"}
State: {facts.state or "Unknown"}
Issue type: {facts.issue_type}
Amount in dispute: {facts.amount or "Not specified"}
Description: {facts.description or "No description provided"}

Return a JSON object with exactly these keys:
{{
  "welcomeMessage": "warm opening paragraph",
  "legalAnalysis": "analysis of the position under Security of Payment law",
  "securityOfPaymentAct": {{
    "applicable": true,
    "reasoning": "why the Act does or does not apply",
    "steps": [{{"step": 1, "title": "", "description": "", "timeframe": ""}}]
  }},
  "timeline": [{{"day": "Day 0", "action": "", "deadline": ""}}],
  "costEstimate": {{
    "adjudicationFee": "", "adjudicatorFee": "",
    "recoveryLikelihood": "", "totalEstimatedCost": ""
  }},
  "riskAssessment": "key risks",
  "enforcementInfo": "how a determination is enforced",
  "nextSteps": "what to do this week",
  "attachments": ["template names"]
}}
"""


def _analysis_prompt(facts: CaseFacts) -> str:
    return f"""
Analyse this Australian construction payment dispute.

Title: {facts.title}
Issue type: {facts.issue_type}
Amount: {facts.amount or "Not specified"}
State: {facts.state or "Unknown"}
Description: {facts.description or "No description provided"}

Return a JSON object with keys: caseType, jurisdiction, legalFramework,
strengthOfCase (weak|moderate|strong), riskLevel (low|medium|high),
estimatedTimeframe, keyIssues (list), recommendedActions (list),
legalProtections (list), successProbability (0-100 integer).
"""


@lru_cache(maxsize=1)
def get_openai_client() -> Optional[AsyncOpenAI]:
    """Return a shared AsyncOpenAI client, or None when no key is configured."""
    api_key = get_openai_api_key()
    if not api_key:
        return None
    return AsyncOpenAI(
        api_key=api_key,
        http_client=httpx.AsyncClient(timeout=OPENAI_TIMEOUT_SECONDS),
    )


async def request_json_completion(
    client: AsyncOpenAI,
    prompt: str,
    system_prompt: str = SYSTEM_PROMPT,
    temperature: float = STRATEGY_TEMPERATURE,
) -> dict[str, Any]:
    """Ask the model for a JSON object and parse it.

    Raises:
        ValueError: Empty content or a non-object JSON payload
        json.JSONDecodeError: Content is not valid JSON
    """
    response = await client.chat.completions.create(
        model=get_openai_model(),
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        response_format={"type": "json_object"},
        temperature=temperature,
    )
    content = response.choices[0].message.content
    if not content:
        raise ValueError("Empty completion content")

    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"Expected JSON object, got {type(data).__name__}")
    return data


def merge_with_fallback(raw: dict[str, Any], fallback: StrategyDocument) -> StrategyDocument:
    """Backfill each top-level field of a model response from the fallback.

    Fields are validated one at a time so a single malformed section (e.g. a
    timeline given as a string) is replaced without discarding the rest.
    """
    base = fallback.model_dump(by_alias=True)
    merged = dict(base)
    replaced: list[str] = []

    for name, field in StrategyDocument.model_fields.items():
        key = field.alias or name
        if key not in raw or raw[key] in (None, "", [], {}):
            continue
        candidate = dict(merged)
        candidate[key] = raw[key]
        try:
            StrategyDocument.model_validate(candidate)
        except ValidationError:
            replaced.append(key)
            continue
        merged[key] = raw[key]

    if replaced:
        logger.info(
            "strategy.fields_backfilled",
            extra={"event": "strategy.fields_backfilled", "fields": replaced},
        )

    return StrategyDocument.model_validate(merged)


async def generate_strategy(facts: CaseFacts) -> StrategyDocument:
    """Produce a complete strategy document for a case. Never raises."""
    fallback = build_fallback_strategy(facts)
    client = get_openai_client()

    if client is None:
        logger.warning(
            "strategy.fallback",
            extra={"event": "strategy.fallback", "reason": "openai_not_configured"},
        )
        return fallback

    try:
        raw = await request_json_completion(client, _strategy_prompt(facts))
    except Exception as e:
        logger.error(
            "strategy.fallback",
            extra={
                "event": "strategy.fallback",
                "reason": "completion_failed",
                "error_type": type(e).__name__,
            },
        )
        return fallback

    # Case facts always come from our own record, not the model
    for key in ("clientName", "caseTitle", "amount", "issueType", "description"):
        raw.pop(key, None)

    strategy = merge_with_fallback(raw, fallback)
    logger.info("strategy.generated", extra={"event": "strategy.generated", "source": "openai"})
    return strategy


async def analyze_case(facts: CaseFacts) -> dict[str, Any]:
    """Produce a case analysis blob. Never raises and never returns None."""
    fallback = build_fallback_analysis(facts)
    client = get_openai_client()

    if client is None:
        return fallback

    try:
        raw = await request_json_completion(client, _analysis_prompt(facts))
    except Exception as e:
        logger.error(
            "case.analysis.fallback",
            extra={"event": "case.analysis.fallback", "error_type": type(e).__name__},
        )
        return fallback

    analysis = dict(fallback)
    for key, default in fallback.items():
        value = raw.get(key)
        if value is not None and isinstance(value, type(default)):
            analysis[key] = value
    analysis["source"] = "openai"
    return analysis
