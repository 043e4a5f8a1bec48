"""Answer normalization, edit distance and character-level diff markup.

All comparisons work on *normalized graphemes*: each user-perceived character
of the input with whitespace, punctuation and symbols removed and the rest
lowercased. Graphemes that normalize to nothing (spaces, "!", "・") take no
part in matching but are kept as plain segments when markup is rendered, so
the user sees their answer exactly as typed.
"""
from __future__ import annotations

import html
import unicodedata
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from Levenshtein import distance as lev_distance

ROMAJI = "romaji"
CJK = "cjk"

# Alignment operations, in backtrack preference order
MATCH = "match"
SUBSTITUTION = "substitution"
USER_EXTRA = "user-extra"
USER_MISSING = "user-missing"

# Segment statuses used in rendered markup
CORRECT = "correct"
INCORRECT = "incorrect"
EXTRA = "extra"
PLAIN = "plain"

PLACEHOLDER = "*"
ZERO_WIDTH_JOINER = "\u200d"


def _is_ignorable(ch: str) -> bool:
    category = unicodedata.category(ch)
    return ch.isspace() or category[0] in ("P", "S", "Z")


def normalize(text: str) -> str:
    """Drop whitespace, punctuation and symbols, then lowercase."""
    if not text:
        return ""
    return "".join(ch for ch in text if not _is_ignorable(ch)).lower()


def graphemes(text: str) -> Iterator[str]:
    """Yield user-perceived characters.

    Combining marks, variation selectors and zero-width-joiner sequences stay
    attached to the base character before them.
    """
    cluster = ""
    join_next = False
    for ch in text:
        attach = bool(cluster) and (
            join_next
            or ch == ZERO_WIDTH_JOINER
            or unicodedata.category(ch).startswith("M")
            or 0xFE00 <= ord(ch) <= 0xFE0F
        )
        if attach:
            cluster += ch
        else:
            if cluster:
                yield cluster
            cluster = ch
        join_next = ch == ZERO_WIDTH_JOINER
    if cluster:
        yield cluster


def normalized_tokens(text: str) -> List[str]:
    tokens = []
    for grapheme in graphemes(text or ""):
        token = normalize(grapheme)
        if token:
            tokens.append(token)
    return tokens


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between the normalized forms of a and b."""
    return lev_distance(normalized_tokens(a), normalized_tokens(b))


def detect_script_family(text: str) -> str:
    """Classify text as 'romaji' (ASCII letters) or 'cjk' (kanji/kana) by majority."""
    romaji_count = 0
    cjk_count = 0
    for ch in normalize(text):
        code = ord(ch)
        if 0x41 <= code <= 0x5A or 0x61 <= code <= 0x7A:
            romaji_count += 1
        elif 0x4E00 <= code <= 0x9FFF or 0x3040 <= code <= 0x309F or 0x30A0 <= code <= 0x30FF:
            cjk_count += 1
    return ROMAJI if romaji_count >= cjk_count else CJK


def is_accepted(user_input: str, answers: Sequence[str]) -> bool:
    submitted = normalize(user_input)
    if not submitted:
        return False
    return any(normalize(answer) == submitted for answer in answers)


def closest_answer(user_input: str, answers: Sequence[str]) -> str:
    """Pick the accepted answer nearest to the input, preferring the input's script."""
    candidates = list(answers[1:]) or list(answers)
    if not candidates:
        return ""
    user_family = detect_script_family(user_input)
    same_family = [answer for answer in candidates if detect_script_family(answer) == user_family]
    pool = same_family or candidates
    return min(pool, key=lambda answer: edit_distance(user_input, answer))


@dataclass(frozen=True)
class Segment:
    text: str
    status: str


@dataclass
class HighlightResult:
    user: List[Segment] = field(default_factory=list)
    reference: List[Segment] = field(default_factory=list)
    operations: List[str] = field(default_factory=list)

    @property
    def user_html(self) -> str:
        return render_markup(self.user)

    @property
    def reference_html(self) -> str:
        return render_markup(self.reference)

    def to_dict(self) -> dict:
        return {
            "user": [{"text": s.text, "status": s.status} for s in self.user],
            "reference": [{"text": s.text, "status": s.status} for s in self.reference],
            "operations": list(self.operations),
            "user_html": self.user_html,
            "reference_html": self.reference_html,
        }


def _distance_table(user: List[str], reference: List[str]) -> List[List[int]]:
    m, n = len(user), len(reference)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m + 1):
        dp[i][0] = i
    for j in range(n + 1):
        dp[0][j] = j
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if user[i - 1] == reference[j - 1]:
                dp[i][j] = dp[i - 1][j - 1]
            else:
                dp[i][j] = 1 + min(dp[i - 1][j], dp[i][j - 1], dp[i - 1][j - 1])
    return dp


def align(user: List[str], reference: List[str]) -> List[str]:
    """Backtrack the edit-distance table into a list of operations, origin first."""
    dp = _distance_table(user, reference)
    i, j = len(user), len(reference)
    operations: List[str] = []
    while i > 0 or j > 0:
        if i > 0 and j > 0 and user[i - 1] == reference[j - 1]:
            operations.append(MATCH)
            i -= 1
            j -= 1
        elif i > 0 and j > 0 and dp[i][j] == dp[i - 1][j - 1] + 1:
            operations.append(SUBSTITUTION)
            i -= 1
            j -= 1
        elif i > 0 and (j == 0 or dp[i][j] == dp[i - 1][j] + 1):
            operations.append(USER_EXTRA)
            i -= 1
        else:
            operations.append(USER_MISSING)
            j -= 1
    operations.reverse()
    return operations


def highlight_differences(user_input: str, reference_answer: str) -> HighlightResult:
    """Mark each character of both strings against their edit-distance alignment."""
    operations = align(normalized_tokens(user_input), normalized_tokens(reference_answer))
    result = HighlightResult(operations=operations)

    user_ops = iter([op for op in operations if op != USER_MISSING])
    for grapheme in graphemes(user_input or ""):
        if not normalize(grapheme):
            result.user.append(Segment(grapheme, PLAIN))
            continue
        op = next(user_ops)
        status = {MATCH: CORRECT, USER_EXTRA: EXTRA}.get(op, INCORRECT)
        result.user.append(Segment(grapheme, status))

    position = 0
    for grapheme in graphemes(reference_answer or ""):
        if not normalize(grapheme):
            result.reference.append(Segment(grapheme, PLAIN))
            continue
        while position < len(operations) and operations[position] == USER_EXTRA:
            result.reference.append(Segment(PLACEHOLDER, EXTRA))
            position += 1
        op = operations[position]
        position += 1
        result.reference.append(Segment(grapheme, CORRECT if op == MATCH else INCORRECT))
    for op in operations[position:]:
        if op == USER_EXTRA:
            result.reference.append(Segment(PLACEHOLDER, EXTRA))
    return result


def render_markup(segments: Sequence[Segment]) -> str:
    parts = []
    for segment in segments:
        text = html.escape(segment.text)
        if segment.status == PLAIN:
            parts.append(text)
        else:
            parts.append(f'<span class="answer-char-{segment.status}">{text}</span>')
    return "".join(parts)
