from app.models.test import Test
from app.models.question import Question, QuestionOption
from app.models.attempt import Attempt
from app.models.attempt_answer import AttemptAnswer

__all__ = ["Test", "Question", "QuestionOption", "Attempt", "AttemptAnswer"]
