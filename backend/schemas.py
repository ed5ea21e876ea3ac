from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ── Generation output ────────────────────────────────────


class InterviewQuestion(BaseModel):
    question: str
    followUp: str


class InterviewQuestionSet(BaseModel):
    questions: list[InterviewQuestion]


class QuestionFeedback(BaseModel):
    model_config = ConfigDict(extra="allow")

    question: str = ""
    answer: str = ""
    feedback: str = ""
    score: float = 0


class InterviewFeedback(BaseModel):
    totalScore: float
    finalAssessment: str
    individualFeedback: list[QuestionFeedback] = Field(default_factory=list)


class QuizQuestion(BaseModel):
    question: str
    options: list[str]
    correctAnswer: str
    explanation: str = ""


class Quiz(BaseModel):
    questions: list[QuizQuestion]


# ── Requests ─────────────────────────────────────────────


class StartVoiceInterviewRequest(BaseModel):
    topic: Optional[str] = None


class VoiceFeedbackRequest(BaseModel):
    # Left loose so that a malformed transcript reaches the action's own validation.
    transcript: Any = None


class QuizResultRequest(BaseModel):
    questions: list[dict]
    answers: list[Optional[str]]
    score: float
