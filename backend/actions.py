"""
Assessment orchestration.

Each action resolves the caller, then sequences the generative client, the
persistence gateway, the mailer and the cache. The steps are independent
calls: a failure after the DB write can leave the cache stale or the email
unsent, and nothing is rolled back across them.
"""
from typing import Any, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cache import RedisCache, assessments_cache_key
from email_service import EmailService, build_interview_feedback_email, build_quiz_result_email
from errors import (
    AssessmentNotFoundError,
    GenerationError,
    PersistenceError,
    UnauthorizedError,
    UserNotFoundError,
)
from genai_client import GenerativeClient
from models import ASSESSMENT_TYPE_QUIZ, ASSESSMENT_TYPE_VOICE, Assessment, User
from repository import (
    create_assessment,
    get_assessment_for_user,
    get_user_by_subject,
    list_assessments_for_user,
    serialize_assessment,
    update_assessment,
    update_assessment_by_id,
)

logger = logging.getLogger(__name__)

VOICE_INTERVIEW_LEVEL = "Mid-level"
DEFAULT_TOPIC = "General"
QUIZ_CATEGORY = "Technical"
IN_PROGRESS_TIP = "Interview in progress..."
EMPTY_TRANSCRIPT_MESSAGE = "Interview ended before any conversation was recorded."


def zero_feedback(message: str) -> dict:
    return {"totalScore": 0, "finalAssessment": message, "individualFeedback": []}


def grade_quiz(questions: list[dict], answers: list[Optional[str]]) -> list[dict]:
    results = []
    for index, q in enumerate(questions):
        user_answer = answers[index] if index < len(answers) else None
        correct_answer = q.get("correctAnswer")
        results.append({
            "question": q.get("question"),
            "answer": correct_answer,
            "userAnswer": user_answer,
            "isCorrect": user_answer is not None and correct_answer == user_answer,
            "explanation": q.get("explanation"),
        })
    return results


def feedback_available(assessment: Assessment) -> bool:
    feedback = assessment.feedback
    return (
        assessment.type == ASSESSMENT_TYPE_VOICE
        and isinstance(feedback, dict)
        and bool(feedback.get("finalAssessment"))
    )


def _is_valid_transcript(transcript: Any) -> bool:
    return isinstance(transcript, list) and all(isinstance(m, dict) for m in transcript)


class InterviewActions:
    def __init__(
        self,
        db: AsyncSession,
        cache: RedisCache,
        genai: GenerativeClient,
        mailer: EmailService,
        app_url: str,
        cache_ttl: int = 3600,
    ):
        self.db = db
        self.cache = cache
        self.genai = genai
        self.mailer = mailer
        self.app_url = app_url.rstrip("/")
        self.cache_ttl = cache_ttl

    async def _resolve_user(self, subject_id: Optional[str]) -> User:
        if not subject_id:
            raise UnauthorizedError("Unauthorized")
        user = await get_user_by_subject(self.db, subject_id)
        if not user:
            raise UserNotFoundError("User not found")
        return user

    async def _invalidate(self, subject_id: str) -> None:
        await self.cache.delete(assessments_cache_key(subject_id))

    # ── Voice interviews ─────────────────────────────────

    async def start_voice_interview(self, subject_id: Optional[str], topic: Optional[str] = None) -> dict:
        user = await self._resolve_user(subject_id)
        try:
            topic = (topic or "").strip() or user.industry or DEFAULT_TOPIC
            questions = await self.genai.generate_interview_questions(topic, VOICE_INTERVIEW_LEVEL, [])
            if not questions:
                return {"error": "Failed to generate interview questions."}

            assessment = await create_assessment(
                self.db,
                user,
                type=ASSESSMENT_TYPE_VOICE,
                category=topic,
                questions=questions,
                quiz_score=0,
                improvement_tip=IN_PROGRESS_TIP,
                transcript=[],
                feedback={},
            )
            await self._invalidate(user.subject_id)
            logger.info(f"Started voice interview {assessment.id} on {topic!r} for {user.subject_id}")
            return {
                "success": True,
                "assessment_id": assessment.id,
                "questions": assessment.questions,
            }
        except Exception as e:
            logger.error(f"Error starting voice interview: {e}", exc_info=True)
            return {"error": f"An unexpected error occurred: {e}"}

    async def save_voice_interview_feedback(
        self, subject_id: Optional[str], assessment_id: Optional[int], transcript: Any
    ) -> dict:
        if not assessment_id:
            return {"error": "Assessment ID is missing"}
        if not _is_valid_transcript(transcript):
            return {"error": "Transcript data is missing or invalid"}

        user = await self._resolve_user(subject_id)
        assessment = await get_assessment_for_user(self.db, user, assessment_id)
        if not assessment:
            return {"error": f"Assessment {assessment_id} not found"}
        if assessment.type != ASSESSMENT_TYPE_VOICE:
            return {"error": "Assessment is not a voice interview"}
        if assessment.feedback:
            return {"error": "Feedback has already been saved for this assessment"}

        try:
            if len(transcript) == 0:
                await update_assessment(
                    self.db,
                    assessment,
                    improvement_tip=EMPTY_TRANSCRIPT_MESSAGE,
                    quiz_score=0,
                    feedback=zero_feedback(EMPTY_TRANSCRIPT_MESSAGE),
                )
                logger.warning(f"Assessment {assessment_id}: Saved empty transcript.")
                await self._invalidate(user.subject_id)
                return {"success": True, "assessment_id": assessment.id}

            feedback = await self.genai.generate_interview_feedback(transcript)
            await update_assessment(
                self.db,
                assessment,
                transcript=transcript,
                feedback=feedback,
                quiz_score=feedback["totalScore"],
                improvement_tip=feedback["finalAssessment"],
            )

            if user.email:
                subject, body = build_interview_feedback_email(
                    assessment.id, feedback["totalScore"], feedback["finalAssessment"], self.app_url
                )
                self.mailer.send_email(user.email, subject, body)

            await self._invalidate(user.subject_id)
            return {"success": True, "assessment_id": assessment.id}

        except Exception as e:
            logger.error(f"Error saving feedback for assessment {assessment_id}: {e}", exc_info=True)
            await self._record_feedback_failure(subject_id, assessment_id, transcript, e)
            return {"error": f"Failed to save feedback: {e}"}

    async def _record_feedback_failure(
        self, owner_subject_id: str, assessment_id: int, transcript: list, error: Exception
    ) -> None:
        try:
            await self.db.rollback()
            await update_assessment_by_id(
                self.db,
                assessment_id,
                improvement_tip=f"Failed to process feedback: {error}",
                transcript=transcript or [],
                feedback=zero_feedback(f"Failed to generate feedback: {error}"),
            )
            await self._invalidate(owner_subject_id)
        except Exception as update_error:
            logger.error(
                f"Failed to update assessment {assessment_id} with error status: {update_error}"
            )

    # ── Quizzes ──────────────────────────────────────────

    async def generate_quiz(self, subject_id: Optional[str]) -> list[dict]:
        user = await self._resolve_user(subject_id)
        questions = await self.genai.generate_quiz(user.industry, user.skills or [])
        if not questions:
            raise GenerationError("Failed to generate quiz questions")
        return questions

    async def save_quiz_result(
        self,
        subject_id: Optional[str],
        questions: list[dict],
        answers: list[Optional[str]],
        score: float,
    ) -> dict:
        user = await self._resolve_user(subject_id)
        question_results = grade_quiz(questions, answers)
        wrong_answers = [q for q in question_results if not q["isCorrect"]]

        improvement_tip = None
        if wrong_answers:
            improvement_tip = await self.genai.generate_improvement_tip(user.industry, wrong_answers)

        try:
            assessment = await create_assessment(
                self.db,
                user,
                type=ASSESSMENT_TYPE_QUIZ,
                category=QUIZ_CATEGORY,
                questions=question_results,
                quiz_score=score,
                improvement_tip=improvement_tip,
                transcript=[],
                feedback={},
            )
            if user.email:
                subject, body = build_quiz_result_email(score, improvement_tip, self.app_url)
                self.mailer.send_email(user.email, subject, body)
            await self._invalidate(user.subject_id)
            return serialize_assessment(assessment)
        except Exception as e:
            logger.error(f"Error saving quiz result: {e}", exc_info=True)
            raise PersistenceError("Failed to save quiz result") from e

    # ── Reads ────────────────────────────────────────────

    async def get_assessments(self, subject_id: Optional[str]) -> list[dict]:
        user = await self._resolve_user(subject_id)
        cache_key = assessments_cache_key(user.subject_id)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"CACHE HIT: Assessments for {user.subject_id}")
            return cached
        logger.info(f"CACHE MISS: Assessments for {user.subject_id}")

        try:
            rows = await list_assessments_for_user(self.db, user)
        except Exception as e:
            logger.error(f"Error fetching assessments: {e}", exc_info=True)
            raise PersistenceError("Failed to fetch assessments") from e

        assessments = [serialize_assessment(a) for a in rows]
        await self.cache.set(cache_key, assessments, self.cache_ttl)
        return assessments

    async def get_assessment(self, subject_id: Optional[str], assessment_id: int) -> dict:
        user = await self._resolve_user(subject_id)
        assessment = await get_assessment_for_user(self.db, user, assessment_id)
        if not assessment:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")
        data = serialize_assessment(assessment)
        data["feedback_available"] = feedback_available(assessment)
        return data

    async def get_dashboard(self, subject_id: Optional[str]) -> dict:
        assessments = await self.get_assessments(subject_id)
        quiz = [a for a in assessments if a.get("type") in (ASSESSMENT_TYPE_QUIZ, None)]
        voice = [a for a in assessments if a.get("type") == ASSESSMENT_TYPE_VOICE]
        total = len(assessments)
        average = sum(a.get("quiz_score") or 0 for a in assessments) / total if total else 0
        return {
            "total_assessments": total,
            "average_score": average,
            "quiz_assessments": quiz,
            "voice_assessments": voice,
        }
