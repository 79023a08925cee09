class GradingError(Exception):
    """Base class for failures of the scoring core. Carries no HTTP semantics."""


class AttemptNotFoundError(GradingError):
    def __init__(self, attempt_id: int):
        super().__init__(f"Attempt {attempt_id} not found")
        self.attempt_id = attempt_id


class QuestionNotFoundError(GradingError):
    def __init__(self, question_ids):
        super().__init__(f"Answered question(s) no longer exist: {sorted(question_ids)}")
        self.question_ids = list(question_ids)


class AnswerKeyError(GradingError):
    def __init__(self, question_id: int, reason: str):
        super().__init__(f"Corrupt answer key for question {question_id}: {reason}")
        self.question_id = question_id


class AttemptStateError(GradingError):
    pass
