"""Per-business cache of answered questions.

Businesses get the same questions over and over (hours, prices, delivery), so
an answer generated once is reused for later questions that normalize to the
same text or are lexically close enough. The similarity test is a cheap
bag-of-words heuristic, not semantic search: unrelated questions that share
most of their words can collide, which is an accepted tradeoff.

Rows never expire.
"""

import logging
import re
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from bizchat.core.config import Settings
from bizchat.db.upsert import insert_for
from bizchat.models.cached_response import CachedResponse

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_question(question: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    text = _PUNCTUATION.sub("", (question or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    sign = "-" if n < 0 else ""
    n = abs(n)
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def hash_question(question: str) -> str:
    """
    Order-dependent 32-bit rolling hash (h * 31 + char) of the normalized
    question, as signed base-36. Cheap key for the exact-match lookup.
    """
    h = 0
    for ch in normalize_question(question):
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


def word_jaccard(a: str, b: str) -> float:
    """Jaccard similarity of the word sets of two normalized strings."""
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_similar_question(a: str, b: str, threshold: float = 0.7) -> bool:
    """
    Lexical equivalence of two questions.

    Equal after normalization, one contained in the other, or word-set
    Jaccard similarity of at least threshold.
    """
    n1 = normalize_question(a)
    n2 = normalize_question(b)
    if not n1 or not n2:
        return False
    if n1 == n2:
        return True
    if n1 in n2 or n2 in n1:
        return True
    # Inclusive: exactly 70% word overlap counts as the same question
    return word_jaccard(n1, n2) >= threshold


def find_cached_response(
    db: Session,
    business_id: UUID,
    question: str,
    settings: Settings,
) -> CachedResponse | None:
    """
    Look up a stored answer for question.

    Exact hash match first, then a similarity scan over the business's most
    used entries (at most settings.cache_scan_limit rows).
    """
    normalized = normalize_question(question)
    if not normalized:
        return None

    question_hash = hash_question(normalized)
    exact = (
        db.query(CachedResponse)
        .filter(CachedResponse.business_id == business_id, CachedResponse.question_hash == question_hash)
        .first()
    )
    if exact is not None and exact.question == normalized:
        logger.info("Cache exact hit for business %s hash=%s", business_id, question_hash)
        return exact

    candidates = (
        db.query(CachedResponse)
        .filter(CachedResponse.business_id == business_id)
        .order_by(CachedResponse.hit_count.desc(), CachedResponse.updated_at.desc())
        .limit(settings.cache_scan_limit)
        .all()
    )
    for candidate in candidates:
        if is_similar_question(candidate.question, normalized, settings.cache_similarity_threshold):
            logger.info(
                "Cache similar hit for business %s: %r ~ %r",
                business_id,
                normalized[:50],
                candidate.question[:50],
            )
            return candidate

    logger.info("Cache miss for business %s hash=%s", business_id, question_hash)
    return None


def record_hit(db: Session, cached: CachedResponse) -> None:
    """Atomically bump the hit counter of a cache row."""
    db.query(CachedResponse).filter(CachedResponse.id == cached.id).update(
        {CachedResponse.hit_count: CachedResponse.hit_count + 1},
        synchronize_session=False,
    )
    db.expire(cached, ["hit_count"])


def store_response(db: Session, business_id: UUID, question: str, response: str) -> None:
    """
    Cache a freshly generated answer.

    Upsert on (business_id, question_hash): concurrent identical questions
    never fail on the unique key; the last writer's answer wins and the
    existing hit_count is kept.
    """
    normalized = normalize_question(question)
    if not normalized or not response.strip():
        return
    stmt = insert_for(db, CachedResponse).values(
        id=uuid4(),
        business_id=business_id,
        question_hash=hash_question(normalized),
        question=normalized,
        response=response,
        hit_count=0,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["business_id", "question_hash"],
        set_={
            "question": stmt.excluded.question,
            "response": stmt.excluded.response,
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)
    logger.info("Cached response for business %s (%d chars)", business_id, len(response))
