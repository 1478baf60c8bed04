"""Structured business assessments derived from the consultation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from .maf_client import ChatBackend
from .prompts import ASSESSMENT_SCHEMA, build_assessment_prompt

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .conversation import Message

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100
STRONG_THRESHOLD = 70
MODERATE_THRESHOLD = 40


@dataclass(frozen=True, slots=True)
class Assessment:
    """A scored category with supporting insights."""

    category: str
    score: int
    insights: Tuple[str, ...] = ()

    @property
    def status(self) -> str:
        if self.score >= STRONG_THRESHOLD:
            return "Strong"
        if self.score >= MODERATE_THRESHOLD:
            return "Moderate"
        return "Needs Attention"

    @property
    def color(self) -> str:
        """Hex colour used to render the score in exported documents."""

        if self.score >= STRONG_THRESHOLD:
            return "22C55E"
        if self.score >= MODERATE_THRESHOLD:
            return "F59E0B"
        return "EF4444"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "score": self.score,
            "insights": list(self.insights),
        }


class _AssessmentItem(BaseModel):
    category: str = ""
    score: float = 0
    insights: List[str] = Field(default_factory=list)


class _AssessmentPayload(BaseModel):
    assessments: Optional[List[_AssessmentItem]] = None


def clamp_score(value: float) -> int:
    return int(round(min(SCORE_MAX, max(SCORE_MIN, value))))


def parse_assessments(payload: Dict[str, Any]) -> Optional[Tuple[Assessment, ...]]:
    """Validate a structured-generation payload into assessments.

    Returns ``None`` when the payload does not carry an assessment list.
    Scores are clamped into 0-100 and entries without a category dropped.
    """

    try:
        parsed = _AssessmentPayload.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Assessment payload failed validation: %s", exc)
        return None
    if parsed.assessments is None:
        return None
    results: List[Assessment] = []
    for item in parsed.assessments:
        category = item.category.strip()
        if not category:
            continue
        insights = tuple(
            insight.strip() for insight in item.insights if insight.strip()
        )
        results.append(
            Assessment(
                category=category,
                score=clamp_score(item.score),
                insights=insights,
            )
        )
    return tuple(results)


class AssessmentEngine:
    """Requests assessments from the model and holds the current set."""

    def __init__(self, backend: ChatBackend, threshold: int = 4) -> None:
        if threshold < 1:
            raise ValueError("Assessment threshold must be at least 1")
        self._backend = backend
        self._threshold = threshold
        self._assessments: Tuple[Assessment, ...] = ()
        self._fired = False
        self._epoch = 0

    @property
    def assessments(self) -> Tuple[Assessment, ...]:
        return self._assessments

    @property
    def threshold(self) -> int:
        return self._threshold

    def should_trigger(self, transcript_length: int) -> bool:
        """Return True exactly once when the transcript reaches the threshold."""

        if self._fired or transcript_length < self._threshold:
            return False
        self._fired = True
        return True

    async def refresh(
        self,
        messages: Sequence["Message"],
        latest_reply: str,
    ) -> bool:
        """Regenerate the assessment set; keep the old one on failure."""

        epoch = self._epoch
        prompt = build_assessment_prompt(messages, latest_reply)
        try:
            payload = await self._backend.generate_object(
                prompt, ASSESSMENT_SCHEMA
            )
        except Exception:
            logger.exception("Error generating assessment")
            return False
        results = parse_assessments(payload)
        if results is None:
            logger.warning("Assessment response carried no assessments")
            return False
        if epoch != self._epoch:
            logger.info("Discarding assessment generated before a reset")
            return False
        self._assessments = results
        logger.info("Assessment refreshed with %d categories", len(results))
        return True

    def reset(self) -> None:
        self._assessments = ()
        self._fired = False
        self._epoch += 1
