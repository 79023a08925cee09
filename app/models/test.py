from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import TestStatusEnum, GradingTypeEnum

class Test(Base):
    __tablename__ = "tests"
    __test__ = False

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    pass_score = Column(Float, nullable=False, default=50.0)
    max_attempts = Column(Integer, nullable=False, default=1)
    negative_marking = Column(Boolean, nullable=False, default=False)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    show_correct_answers = Column(Boolean, nullable=False, default=False)
    show_explanations = Column(Boolean, nullable=False, default=False)
    results_released = Column(Boolean, nullable=False, default=False)
    results_release_date = Column(DateTime(timezone=True), nullable=True)
    grading_type = Column(Enum(GradingTypeEnum), nullable=False, default=GradingTypeEnum.AUTO_GRADED)
    status = Column(Enum(TestStatusEnum), nullable=False, default=TestStatusEnum.DRAFT)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    questions = relationship(
        "Question", back_populates="test", cascade="all, delete-orphan", order_by="Question.order_index"
    )
    attempts = relationship("Attempt", back_populates="test", cascade="all, delete-orphan")
