from sqlalchemy import Column, Integer, String, Float, Text, DateTime, JSON, ForeignKey, func
from sqlalchemy.orm import DeclarativeBase, relationship

ASSESSMENT_TYPE_QUIZ = "QUIZ"
ASSESSMENT_TYPE_VOICE = "VOICE"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String, unique=True, nullable=False, index=True)  # identity provider subject
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)
    industry = Column(String, nullable=True)
    skills = Column(JSON, nullable=False, default=list)  # list of strings
    created_at = Column(DateTime, default=func.now())

    assessments = relationship("Assessment", back_populates="user")


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, default=ASSESSMENT_TYPE_QUIZ)  # QUIZ, VOICE
    category = Column(String, nullable=False)
    questions = Column(JSON, nullable=False, default=list)  # list of question objects
    quiz_score = Column(Float, nullable=False, default=0.0)
    improvement_tip = Column(Text, nullable=True)
    transcript = Column(JSON, nullable=False, default=list)  # list of {role, message}
    feedback = Column(JSON, nullable=False, default=dict)  # {totalScore, finalAssessment, individualFeedback}
    created_at = Column(DateTime, default=func.now())

    user = relationship("User", back_populates="assessments")
