from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Assessment, User


async def get_user_by_subject(db: AsyncSession, subject_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.subject_id == subject_id))
    return result.scalar_one_or_none()


async def upsert_user(
    db: AsyncSession,
    subject_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    industry: Optional[str] = None,
    skills: Optional[list[str]] = None,
) -> User:
    user = await get_user_by_subject(db, subject_id)
    if not user:
        user = User(subject_id=subject_id, skills=[])
        db.add(user)
    if email is not None:
        user.email = email
    if name is not None:
        user.name = name
    if industry is not None:
        user.industry = industry
    if skills is not None:
        user.skills = list(skills)
    await db.flush()
    return user


async def create_assessment(db: AsyncSession, user: User, **fields) -> Assessment:
    assessment = Assessment(user_id=user.id, **fields)
    db.add(assessment)
    await db.commit()
    await db.refresh(assessment)
    return assessment


async def get_assessment_for_user(
    db: AsyncSession, user: User, assessment_id: int
) -> Optional[Assessment]:
    result = await db.execute(
        select(Assessment)
        .where(Assessment.id == assessment_id, Assessment.user_id == user.id)
    )
    return result.scalar_one_or_none()


async def update_assessment(db: AsyncSession, assessment: Assessment, **fields) -> Assessment:
    for key, value in fields.items():
        setattr(assessment, key, value)
    await db.commit()
    return assessment


async def update_assessment_by_id(db: AsyncSession, assessment_id: int, **fields) -> None:
    result = await db.execute(select(Assessment).where(Assessment.id == assessment_id))
    assessment = result.scalar_one_or_none()
    if not assessment:
        return
    await update_assessment(db, assessment, **fields)


async def list_assessments_for_user(db: AsyncSession, user: User) -> list[Assessment]:
    result = await db.execute(
        select(Assessment)
        .where(Assessment.user_id == user.id)
        .order_by(Assessment.created_at.asc(), Assessment.id.asc())
    )
    return list(result.scalars().all())


def serialize_assessment(a: Assessment) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "type": a.type,
        "category": a.category,
        "questions": a.questions or [],
        "quiz_score": a.quiz_score,
        "improvement_tip": a.improvement_tip,
        "transcript": a.transcript or [],
        "feedback": a.feedback or {},
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }
