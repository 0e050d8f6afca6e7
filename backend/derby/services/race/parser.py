"""Decode the compact question strings kept in the question sheet.

A question looks like ``[type|prompt|item|item*|...|feedback]`` (``:`` is
also accepted after the type tag). Items ending in ``*`` are the marked
answers; each type reads its items in its own ``_parse_*`` helper.
"""

import logging
import re
from typing import List, Optional

from derby.errors import ParseFailure
from derby.models import (
    MatchQuestion,
    McqQuestion,
    MsqQuestion,
    Question,
    QuestionType,
    RankQuestion,
    SortQuestion,
    TextQuestion,
)

logger = logging.getLogger(__name__)

ANSWER_MARKER = '*'
_SORT_TAG = re.compile(r'^(?P<name>.+?)\s+\((?P<bucket>\d+)\)$')


def canonical_join(parts) -> str:
    """Sorted, comma-joined form used for order-insensitive answers."""
    return ','.join(sorted(parts))


def _split_marked(items: List[str]):
    choices, marked = [], []
    for item in items:
        if item.endswith(ANSWER_MARKER):
            clean = item[:-len(ANSWER_MARKER)].strip()
            choices.append(clean)
            marked.append(clean)
        else:
            choices.append(item)
    return choices, marked


def _parse_mcq(prompt, items, feedback):
    choices, marked = _split_marked(items)
    if len(marked) != 1:
        raise ParseFailure(f'mcq needs exactly one marked answer, found {len(marked)}')
    return McqQuestion(prompt=prompt, answer=marked[0], feedback=feedback, choices=tuple(choices))


def _parse_msq(prompt, items, feedback):
    choices, marked = _split_marked(items)
    if not marked:
        raise ParseFailure('msq needs at least one marked answer')
    return MsqQuestion(prompt=prompt, answer=canonical_join(marked), feedback=feedback, choices=tuple(choices))


def _parse_text(prompt, items, feedback):
    if len(items) != 1 or not items[0].endswith(ANSWER_MARKER):
        raise ParseFailure('text needs exactly one marked answer')
    answer = items[0][:-len(ANSWER_MARKER)].strip()
    if not answer:
        raise ParseFailure('text answer is empty')
    return TextQuestion(prompt=prompt, answer=answer, feedback=feedback)


def _parse_rank(prompt, items, feedback):
    ordered = [i.rstrip(ANSWER_MARKER).strip() for i in items]
    if len(ordered) < 2:
        raise ParseFailure('rank needs at least two items')
    return RankQuestion(prompt=prompt, answer=','.join(ordered), feedback=feedback, items=tuple(ordered))


def _parse_match(prompt, items, feedback):
    if not items or len(items) % 2:
        raise ParseFailure(f'match needs stem/target pairs, got {len(items)} items')
    stems = items[0::2]
    targets = items[1::2]
    pairs = [f'{s}-{t}' for s, t in zip(stems, targets)]
    return MatchQuestion(
        prompt=prompt,
        answer=canonical_join(pairs),
        feedback=feedback,
        stems=tuple(stems),
        targets=tuple(targets),
    )


def _parse_sort(prompt, items, feedback):
    buckets, names, pairs = [], [], []
    for item in items:
        m = _SORT_TAG.match(item)
        if m:
            name = m.group('name').strip()
            names.append(name)
            pairs.append(f"{name}-{int(m.group('bucket'))}")
        else:
            buckets.append(item)
    if not buckets or not pairs:
        raise ParseFailure('sort needs bucket labels and tagged items')
    return SortQuestion(
        prompt=prompt,
        answer=canonical_join(pairs),
        feedback=feedback,
        buckets=tuple(buckets),
        items=tuple(names),
    )


_PARSERS = {
    QuestionType.MCQ: _parse_mcq,
    QuestionType.MSQ: _parse_msq,
    QuestionType.TEXT: _parse_text,
    QuestionType.RANK: _parse_rank,
    QuestionType.MATCH: _parse_match,
    QuestionType.SORT: _parse_sort,
}


def decode_question(encoded: str) -> Question:
    """Decode one question string, raising ``ParseFailure`` on bad input."""
    if not isinstance(encoded, str):
        raise ParseFailure('question is not a string')
    start = encoded.find('[')
    end = encoded.rfind(']')
    if start == -1 or end == -1 or end < start:
        raise ParseFailure('missing brackets')
    content = encoded[start + 1:end]

    seps = [i for i in (content.find(':'), content.find('|')) if i != -1]
    if not seps:
        raise ParseFailure('missing separator after type tag')
    cut = min(seps)
    tag = content[:cut].strip().lower()
    try:
        qtype = QuestionType(tag)
    except ValueError:
        raise ParseFailure(f'unknown question type {tag!r}')

    fields = [f.strip() for f in content[cut + 1:].split('|')]
    if len(fields) < 2:
        raise ParseFailure('too few fields')
    prompt, feedback, items = fields[0], fields[-1], fields[1:-1]
    if not prompt:
        raise ParseFailure('empty prompt')
    return _PARSERS[qtype](prompt, items, feedback)


def parse_question(encoded: str) -> Optional[Question]:
    """Return the decoded question, or None when the string is malformed."""
    try:
        return decode_question(encoded)
    except ParseFailure as exc:
        logger.debug(f"[parse-fail] {exc}: {encoded!r}")
        return None
