import json
import logging
import re
from dataclasses import dataclass

import httpx

from cafemod.models.submission import PlaceDetails, Submission

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class LlmDecision:
    approve: bool
    reasoning: str


def build_prompt(
    submission: Submission, place: PlaceDetails, name_score: float, distance: int
) -> str:
    return f"""You are a cafe verification assistant. A user submitted a cafe to our database, and we need to verify if it matches the Google Maps data.

## User Submission
- **Name**: "{submission.name}"
- **Pin Location**: ({submission.latitude:.6f}, {submission.longitude:.6f})

## Google Maps Data (from the link they provided)
- **Name**: "{place.name}"
- **Address**: "{place.address}"
- **Location**: ({place.latitude:.6f}, {place.longitude:.6f})

## Computed Metrics
- **Name Similarity**: {name_score:.1f}% (based on Levenshtein distance)
- **Distance Between Pins**: {distance} meters

## Context
- Name similarity of 50-85% is considered borderline (could be abbreviation, typo, or different business)
- Distance of 100-500m is considered borderline (could be imprecise pin drop or different location)
- Common reasons for mismatch: user typed informal name, Google has formal name, pin dropped on wrong building

## Your Task
Decide if this submission should be APPROVED (same cafe, minor discrepancies) or FLAGGED for manual review (likely different business or suspicious).

Respond in this exact JSON format:
{{
  "approve": true or false,
  "reasoning": "Brief explanation (1-2 sentences)"
}}"""


def parse_decision(text: str) -> LlmDecision:
    """Pull the JSON object out of the reply, tolerating markdown fences. Raises ValueError."""
    match = _JSON_OBJECT.search(text)
    if not match:
        raise ValueError(f"no JSON object in reply: {text[:200]}")
    data = json.loads(match.group(0))
    if not isinstance(data.get("approve"), bool) or not isinstance(data.get("reasoning"), str):
        raise ValueError(f"invalid decision shape: {data}")
    return LlmDecision(approve=data["approve"], reasoning=data["reasoning"])


class LlmEvaluator:
    def __init__(
        self,
        api_key: str | None,
        model: str = "claude-3-haiku-20240307",
        max_tokens: int = 500,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def evaluate(
        self, submission: Submission, place: PlaceDetails, name_score: float, distance: int
    ) -> LlmDecision:
        """Decide a borderline case. Never raises: any failure means flag for manual review."""
        if not self._api_key:
            logger.warning("[llm] no API key configured | submission=%s | flagging", submission.id)
            return LlmDecision(
                approve=False,
                reasoning="LLM API key not configured. Borderline case flagged for manual review.",
            )

        payload = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [
                {"role": "user", "content": build_prompt(submission, place, name_score, distance)}
            ],
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(ANTHROPIC_MESSAGES_URL, json=payload, headers=headers)
                response.raise_for_status()
            blocks = response.json().get("content", [])
            text = next((b["text"] for b in blocks if b.get("type") == "text"), None)
            if text is None:
                raise ValueError("no text block in reply")
            return parse_decision(text.strip())
        except Exception as exc:
            logger.error("[llm] evaluation failed | submission=%s | error=%s", submission.id, exc)
            return LlmDecision(
                approve=False,
                reasoning=f"LLM API error: {exc}. Flagged for manual review.",
            )
