"""
Scoring client - turns a subjective answer into marks via the external scorer.

The client never raises to its caller: when the scorer is not configured, keeps
failing after the retry budget, or answers with something unusable, a low
heuristic score is returned instead and the metadata records why, so teachers
can tell trustworthy scores from stand-ins.
"""

import asyncio
import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from examsuite.config import logger, ScorerSettings, get_scorer_settings
from examsuite.models.exam import EvaluationPolicy
from examsuite.models.submission import (
    EvaluatorKind,
    AiSuccessMeta,
    AiFallbackConfigMeta,
    AiFallbackErrorMeta,
)
from examsuite.services.scorer_transport import ScoringTransportError, build_transport
from examsuite.services.scoring_parser import ScoreParseError, parse_scorer_output
from examsuite.services.scoring_prompt import build_scoring_prompt, DEFAULT_EXPECTED_LENGTH
from examsuite.utils.ids import new_correlation_id
from examsuite.utils.retry import RetryError, retry_async

HEURISTIC_MAX_SCORE = 20
EMPTY_ANSWER_REMARK = "No answer was provided."
HEURISTIC_REMARK = (
    "Automatic scoring was unavailable, so a provisional heuristic score was applied. "
    "This answer is flagged for teacher review."
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+(?:\s+|$)")
_UNSET = object()


@dataclass
class ScoreResult:
    marks: float
    remarks: str
    evaluator: EvaluatorKind
    meta: Union[AiSuccessMeta, AiFallbackConfigMeta, AiFallbackErrorMeta]

    @property
    def is_fallback(self) -> bool:
        return self.evaluator == EvaluatorKind.SYSTEM_FALLBACK


def sanitize_answer(text: Optional[str], char_cap: int) -> Tuple[str, bool]:
    """Collapse whitespace and cap length. Returns (clean_text, truncated)."""
    clean = " ".join((text or "").split())
    if len(clean) > char_cap:
        return clean[:char_cap], True
    return clean, False


def heuristic_score(answer: str, expected_length: Optional[int] = None) -> Tuple[int, str]:
    """Length/structure based stand-in score out of 100, capped low."""
    words = answer.split()
    if not words:
        return 0, EMPTY_ANSWER_REMARK

    expected = expected_length or DEFAULT_EXPECTED_LENGTH
    coverage = min(1.0, len(words) / expected)
    sentences = [s for s in _SENTENCE_SPLIT.split(answer) if s.strip()]

    score = 5 + 12 * coverage
    if len(sentences) >= 2:
        score += 3
    return min(HEURISTIC_MAX_SCORE, int(math.floor(score + 0.5))), HEURISTIC_REMARK


def scale_marks(score_100: int, weight: float, max_marks: Optional[float] = None) -> float:
    """Weight a 0..100 score into question marks, rounded and kept within bounds."""
    ceiling = max_marks if max_marks is not None else weight * 100
    marks = math.floor(score_100 * weight + 0.5)
    return float(max(0, min(marks, ceiling)))


class ScoringClient:
    """Scores open-response answers with retry, timeout and heuristic fallback."""

    def __init__(self, settings: Optional[ScorerSettings] = None, transport=_UNSET,
                 sleep=asyncio.sleep):
        self.settings = settings or get_scorer_settings()
        self.transport = build_transport(self.settings) if transport is _UNSET else transport
        self._sleep = sleep

    @property
    def provider(self) -> Optional[str]:
        return getattr(self.transport, "name", None) if self.transport is not None else None

    async def score(self, question: str, answer: Optional[str],
                    reference_answer: Optional[str] = None, weight: float = 1.0,
                    max_marks: Optional[float] = None,
                    policy: Optional[EvaluationPolicy] = None) -> ScoreResult:
        correlation_id = new_correlation_id()
        clean_answer, truncated = sanitize_answer(answer, self.settings.answer_char_cap)
        expected_length = policy.expected_length if policy else None

        if self.transport is None:
            heuristic, remark = heuristic_score(clean_answer, expected_length)
            logger.info(f"[{correlation_id}] No scorer configured - heuristic score {heuristic}/100")
            return ScoreResult(
                marks=scale_marks(heuristic, weight, max_marks),
                remarks=remark,
                evaluator=EvaluatorKind.SYSTEM_FALLBACK,
                meta=AiFallbackConfigMeta(
                    correlation_id=correlation_id,
                    heuristic_score_100=heuristic,
                    truncated=truncated,
                ),
            )

        prompt = build_scoring_prompt(question, clean_answer, reference_answer, policy)
        attempts_made = 0

        async def attempt(number: int) -> Tuple[int, str]:
            nonlocal attempts_made
            attempts_made = number
            try:
                raw = await asyncio.wait_for(
                    self.transport.complete(prompt),
                    timeout=self.settings.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise ScoringTransportError(
                    f"Scorer timed out after {self.settings.timeout_seconds}s") from e
            return parse_scorer_output(raw)

        def log_retry(number: int, error: BaseException):
            logger.warning(
                f"[{correlation_id}] Scoring attempt {number}/{self.settings.max_retries + 1} failed: {error}"
            )

        try:
            score_100, review = await retry_async(
                attempt,
                max_attempts=self.settings.max_retries + 1,
                delay=self.settings.retry_delay_seconds,
                retry_on=(ScoringTransportError, ScoreParseError),
                on_retry=log_retry,
                sleep=self._sleep,
            )
        except RetryError as e:
            return self._error_fallback(correlation_id, clean_answer, truncated, weight,
                                        max_marks, expected_length, str(e.last_error), e.attempts)
        except Exception as e:
            logger.error(f"[{correlation_id}] Unexpected scoring failure: {e}", exc_info=True)
            return self._error_fallback(correlation_id, clean_answer, truncated, weight,
                                        max_marks, expected_length,
                                        f"{type(e).__name__}: {e}", attempts_made)

        logger.info(f"[{correlation_id}] Scored {score_100}/100 via {self.provider} "
                    f"in {attempts_made} attempt(s)")
        return ScoreResult(
            marks=scale_marks(score_100, weight, max_marks),
            remarks=review,
            evaluator=EvaluatorKind.DELEGATED_AI,
            meta=AiSuccessMeta(
                correlation_id=correlation_id,
                provider=self.provider or "unknown",
                score_100=score_100,
                attempts=attempts_made,
                truncated=truncated,
            ),
        )

    def _error_fallback(self, correlation_id, clean_answer, truncated, weight, max_marks,
                        expected_length, reason, attempts) -> ScoreResult:
        heuristic, remark = heuristic_score(clean_answer, expected_length)
        logger.warning(f"[{correlation_id}] Falling back to heuristic score {heuristic}/100 "
                       f"after {attempts} attempt(s): {reason}")
        return ScoreResult(
            marks=scale_marks(heuristic, weight, max_marks),
            remarks=remark,
            evaluator=EvaluatorKind.SYSTEM_FALLBACK,
            meta=AiFallbackErrorMeta(
                correlation_id=correlation_id,
                heuristic_score_100=heuristic,
                reason=reason[:500],
                attempts=attempts,
                truncated=truncated,
            ),
        )
