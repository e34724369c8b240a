"""
Vehicle reliability report generation.

Reports come from the language model when it is configured and answers with
usable JSON. Otherwise a deterministic placeholder derived from the vehicle is
returned, so the same vehicle always gets the same placeholder scores.
"""
import hashlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import APIError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from car_reliability.core.config import OPENAI_API_KEY, OPENAI_MODEL
from car_reliability.db.models.search_log import SearchLogEntry
from car_reliability.llm.openai_provider import OpenAIProvider
from car_reliability.llm.provider import LLMProvider
from car_reliability.services.entitlement_service import EntitlementDecision

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"
SOURCE_PLACEHOLDER = "placeholder"

UPSELL_MESSAGE = "Upgrade to premium for full analysis"

CATEGORY_KEYS = ["engine", "transmission", "electricalSystem", "brakes", "suspension", "fuelSystem"]
FREE_CATEGORY_KEYS = ["engine", "transmission"]
ISSUE_KEYS = ["description", "costToFix", "occurrence", "mileage"]

SYSTEM_PROMPT = (
    "You are an automotive expert assistant that provides detailed and accurate reliability "
    "information about vehicles. Return all responses as properly formatted JSON."
)

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


@dataclass
class Vehicle:
    year: int
    make: str
    model: str
    mileage: int


def build_prompt(vehicle: Vehicle, locale: Optional[str] = None) -> str:
    return f"""
Given the following vehicle details:

Year: {vehicle.year}
Make: {vehicle.make}
Model: {vehicle.model}
Mileage: {vehicle.mileage}

Provide an overall reliability score between 1 and 100, reliability scores between 1 and 100
for the engine, transmission, electrical system, brakes, suspension and fuel system, the
known common issues with an estimated cost to fix, how often they occur and the mileage at
which they typically occur, and a written analysis comparing the vehicle to its class and
mentioning relevant recalls.

Output JSON with exactly this structure:

{{
  "overallScore": 0,
  "categories": {{
    "engine": 0,
    "transmission": 0,
    "electricalSystem": 0,
    "brakes": 0,
    "suspension": 0,
    "fuelSystem": 0
  }},
  "commonIssues": [
    {{"description": "", "costToFix": "", "occurrence": "", "mileage": ""}}
  ],
  "aiAnalysis": ""
}}

Write the text fields in the language for locale "{locale or 'en'}".
"""


def _score(value: Any) -> int:
    score = int(round(float(value)))
    if not 0 <= score <= 100:
        raise ValueError(f"score out of range: {value}")
    return score


def parse_report(text: str) -> Dict[str, Any]:
    """
    Parse a model answer into a report.

    Code fences around the JSON are tolerated.

    Raises:
        ValueError: not JSON or missing required keys
    """
    match = _CODE_FENCE.search(text)
    raw = match.group(1) if match else text.strip()
    data = json.loads(raw)

    if not isinstance(data, dict) or not isinstance(data.get("categories"), dict):
        raise ValueError("report JSON missing categories")

    raw_issues = data.get("commonIssues") or []
    if not isinstance(raw_issues, list):
        raise ValueError("report JSON commonIssues is not a list")

    categories = data["categories"]
    issues: List[Dict[str, str]] = []
    for issue in raw_issues:
        if isinstance(issue, dict) and issue.get("description"):
            issues.append({key: str(issue.get(key) or "") for key in ISSUE_KEYS})

    try:
        return {
            "overallScore": _score(data["overallScore"]),
            "categories": {key: _score(categories[key]) for key in CATEGORY_KEYS},
            "commonIssues": issues,
            "aiAnalysis": str(data.get("aiAnalysis") or ""),
        }
    except (KeyError, TypeError, OverflowError) as e:
        raise ValueError(f"report JSON incomplete: {e}") from e


def placeholder_report(vehicle: Vehicle) -> Dict[str, Any]:
    """Deterministic scores in 70-99 derived from a hash of the vehicle."""
    key = f"{vehicle.year}|{vehicle.make.strip().lower()}|{vehicle.model.strip().lower()}|{vehicle.mileage}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()

    def score(index: int) -> int:
        return 70 + digest[index] % 30

    return {
        "overallScore": score(0),
        "categories": {name: score(i + 1) for i, name in enumerate(CATEGORY_KEYS)},
        "commonIssues": [
            {
                "description": f"{vehicle.make} {vehicle.model} transmission issues reported after 60,000 miles",
                "costToFix": "$1,500-$3,000",
                "occurrence": "15% of vehicles",
                "mileage": "60,000-80,000 miles",
            },
            {
                "description": "Electrical system problems in cold weather",
                "costToFix": "$200-$800",
                "occurrence": "8% of vehicles",
                "mileage": "Any mileage",
            },
        ],
        "aiAnalysis": (
            f"The {vehicle.year} {vehicle.make} {vehicle.model} shows generally good reliability with some "
            "minor concerns. Compared to similar vehicles in its class, it ranks above average for long-term "
            "dependability. Regular maintenance appears to prevent most common problems."
        ),
    }


def get_llm_provider() -> Optional[LLMProvider]:
    """Configured provider, or None when no API key is set."""
    if not OPENAI_API_KEY:
        return None
    return OpenAIProvider()


def generate_report(vehicle: Vehicle, locale: Optional[str] = None, provider: Optional[LLMProvider] = None) -> tuple:
    """
    Full (untiered) report for a vehicle.

    Returns:
        Tuple of (report dict, source) where source is "ai" or "placeholder"
    """
    provider = provider or get_llm_provider()
    if provider is None:
        logger.warning("OPENAI_API_KEY not configured, using placeholder report")
        return placeholder_report(vehicle), SOURCE_PLACEHOLDER

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(vehicle, locale)},
    ]
    try:
        response = provider.chat(messages=messages, model=OPENAI_MODEL, temperature=0.2)
        report = parse_report(response.content)
    except APIError as e:
        logger.warning(f"Report provider failed, using placeholder: {e}")
        return placeholder_report(vehicle), SOURCE_PLACEHOLDER
    except ValueError as e:
        logger.warning(f"Report response unusable, using placeholder: {e}")
        return placeholder_report(vehicle), SOURCE_PLACEHOLDER

    logger.info(f"Report generated: {vehicle.year} {vehicle.make} {vehicle.model}, tokens={response.tokens_in}/{response.tokens_out}")
    return report, SOURCE_AI


def apply_tier(report: Dict[str, Any], decision: EntitlementDecision, source: str) -> Dict[str, Any]:
    """Response envelope; non-entitled callers get the free subset."""
    if decision.is_entitled:
        categories = dict(report["categories"])
        common_issues = list(report["commonIssues"])
        analysis = report["aiAnalysis"]
    else:
        categories = {key: (report["categories"][key] if key in FREE_CATEGORY_KEYS else None) for key in CATEGORY_KEYS}
        common_issues = []
        analysis = UPSELL_MESSAGE

    return {
        "overallScore": report["overallScore"],
        "categories": categories,
        "commonIssues": common_issues,
        "aiAnalysis": analysis,
        "isPremium": decision.is_entitled,
        "isBasic": decision.is_basic,
        "source": source,
    }


def log_search(db: Session, user_id: int, vehicle: Vehicle, results: Dict[str, Any]) -> None:
    """Append a search log row. Failures are logged, never raised."""
    try:
        db.add(SearchLogEntry(
            user_id=user_id,
            year=vehicle.year,
            make=vehicle.make,
            model=vehicle.model,
            mileage=vehicle.mileage,
            results=results,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to log search for user_id={user_id}: {e}")
