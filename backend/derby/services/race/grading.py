from derby.models import Question, QuestionType
from .parser import canonical_join


ORDER_INSENSITIVE = frozenset({QuestionType.MSQ, QuestionType.MATCH, QuestionType.SORT})


def _normalize(value) -> str:
    return str(value if value is not None else '').lower().strip()


def normalize_submission(question_type: QuestionType, raw) -> str:
    """Bring a submitted answer into the same shape as the canonical key.

    Multi-part answers are compared piecewise: msq, match and sort ignore
    the order of their comma-separated parts, rank keeps it.
    """
    value = _normalize(raw)
    if question_type in ORDER_INSENSITIVE:
        return canonical_join(part.strip() for part in value.split(','))
    if question_type is QuestionType.RANK:
        return ','.join(part.strip() for part in value.split(','))
    return value


def is_correct(question: Question, raw) -> bool:
    expected = normalize_submission(question.type, question.answer)
    return normalize_submission(question.type, raw) == expected
