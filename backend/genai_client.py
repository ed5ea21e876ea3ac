"""
Gemini client for question, feedback, quiz and tip generation.

Every generation call site declares its own fallback value. A failed upstream
call or a response that does not decode into the expected schema yields
that fallback instead of an exception. Nothing is retried.
"""
from typing import Any, Optional, Sequence, TypeVar
import json
import logging
import re

from pydantic import BaseModel

from errors import GenerationError
from prompts import (
    interview_feedback_prompt,
    interview_questions_prompt,
    improvement_tip_prompt,
    quiz_prompt,
    render_transcript,
)
from schemas import InterviewFeedback, InterviewQuestionSet, Quiz

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\n?")
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_json_text(text: str) -> Any:
    """Parse JSON out of free model text, tolerating fences and surrounding prose."""
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(cleaned)
        if match:
            return json.loads(match.group())
        raise


def decode_json_with_fallback(text: str, schema: type[T], fallback: Any) -> Any:
    """Decode ``text`` into ``schema``; on any failure return ``fallback``."""
    try:
        data = parse_json_text(text)
        return schema(**data)
    except Exception as e:
        logger.error(f"Error parsing {schema.__name__}: {e}")
        logger.debug(f"Raw output (first 500 chars): {str(text)[:500]}")
        return fallback


def fallback_interview_questions(topic: str) -> list[dict]:
    return [
        {"question": f"Tell me about your experience with {topic}?", "followUp": "Can you give a specific example?"},
        {"question": "What is a project you are proud of?", "followUp": "What was the biggest challenge?"},
    ]


def fallback_interview_feedback() -> dict:
    return {
        "totalScore": 7.5,
        "finalAssessment": (
            "Good effort! You provided solid answers but could be more specific "
            "with your examples. (AI analysis fallback)"
        ),
        "individualFeedback": [
            {
                "question": "Transcript was unclear or empty",
                "answer": "N/A",
                "feedback": "AI analysis failed or transcript was empty.",
                "score": 0,
            }
        ],
    }


class GenerativeClient:
    """Thin wrapper over ``google.genai``. Built once per process."""

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.0-flash", client: Any = None):
        self.model = model
        self._client = client
        if self._client is None and api_key:
            from google import genai

            self._client = genai.Client(api_key=api_key)

    async def generate_text(self, prompt: str) -> str:
        if self._client is None:
            raise GenerationError("GEMINI_API_KEY not configured")
        response = await self._client.aio.models.generate_content(model=self.model, contents=prompt)
        return response.text or ""

    async def _generate_json(self, prompt: str, schema: type[T], fallback: Any) -> Any:
        try:
            text = await self.generate_text(prompt)
        except Exception as e:
            logger.error(f"Generation request failed ({schema.__name__}): {e}")
            return fallback
        return decode_json_with_fallback(text, schema, fallback)

    async def generate_interview_questions(
        self, topic: str, level: str, existing_questions: Sequence[str] = ()
    ) -> list[dict]:
        fallback = fallback_interview_questions(topic)
        prompt = interview_questions_prompt(topic, level, list(existing_questions))
        parsed = await self._generate_json(prompt, InterviewQuestionSet, None)
        if parsed is None:
            logger.warning(f"Using fallback interview questions for topic {topic!r}")
            return fallback
        return [q.model_dump() for q in parsed.questions]

    async def generate_interview_feedback(self, transcript: list[dict]) -> dict:
        transcript_text = render_transcript(transcript)
        if not transcript_text.strip():
            logger.warning("Transcript is empty, using fallback feedback")
            return fallback_interview_feedback()
        parsed = await self._generate_json(
            interview_feedback_prompt(transcript_text), InterviewFeedback, None
        )
        if parsed is None:
            logger.warning("Using fallback interview feedback")
            return fallback_interview_feedback()
        return parsed.model_dump()

    async def generate_quiz(self, industry: Optional[str], skills: Optional[list[str]]) -> list[dict]:
        parsed = await self._generate_json(
            quiz_prompt(industry or "General", list(skills or [])), Quiz, None
        )
        if parsed is None:
            return []
        return [q.model_dump() for q in parsed.questions]

    async def generate_improvement_tip(
        self, industry: Optional[str], wrong_answers: list[dict]
    ) -> Optional[str]:
        try:
            text = await self.generate_text(improvement_tip_prompt(industry or "General", wrong_answers))
        except Exception as e:
            logger.error(f"Error generating improvement tip: {e}")
            return None
        return text.strip() or None
