from enum import Enum


class RoleEnum(str, Enum):
    ADMIN = "admin"
    USER = "user"

class TestStatusEnum(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class GradingTypeEnum(str, Enum):
    AUTO_GRADED = "auto_graded"
    MANUAL_GRADED = "manual_graded"

class QuestionTypeEnum(str, Enum):
    MCQ_SINGLE = "mcq_single"
    MCQ_MULTI = "mcq_multi"
    TRUE_FALSE = "true_false"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    NUMBER = "number"

AUTO_GRADED_TYPES = frozenset({
    QuestionTypeEnum.MCQ_SINGLE,
    QuestionTypeEnum.MCQ_MULTI,
    QuestionTypeEnum.TRUE_FALSE,
    QuestionTypeEnum.NUMBER,
})

MANUAL_GRADED_TYPES = frozenset({
    QuestionTypeEnum.SHORT_TEXT,
    QuestionTypeEnum.LONG_TEXT,
})

class AttemptStatusEnum(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"

class JobStateEnum(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

GRADING_JOB_PREFIX = "grade-"
MAX_TIME_SPENT_SECONDS = 36000
