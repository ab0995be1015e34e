from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from .types import BoundingBox, RecognizedCandidate, strip_romanized


# Score a candidate must reach to be reported as a road name
ACCEPT_THRESHOLD = 15.0

# "<name>로", "<name>대로", "<name>길", optionally "<n>길" / "<n>번길" / "<n>가"
ROAD_SHAPE = re.compile(r"[가-힣0-9]+(?:대로|로|길)(?:\d+(?:번길|길|가)?)?")

# Fallback eligibility when the text does not end in a road suffix
ROAD_KEYWORDS = ("고속도로", "국도", "번길", "대로", "거리")

# Strongest keyword present wins; more specific road types weigh more
KEYWORD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("고속도로", 40.0),  # expressway
    ("번길", 30.0),  # numbered lane
    ("대로", 25.0),  # avenue / boulevard
    ("국도", 20.0),  # national road
    ("길", 15.0),
    ("거리", 15.0),
    ("로", 10.0),
)

CURRENCY = re.compile(r"\d+(?:원|₩|won|달러)", re.I)

BLACKLIST = (
    # sale / discount
    "세일", "할인", "sale",
    # open / business hours
    "영업", "오픈", "open", "시간", "hours",
    # parking
    "주차", "parking",
    # no smoking
    "금연", "nosmoking",
    # caution
    "주의", "위험", "caution",
    # info / guidance
    "안내", "info",
    # reservation
    "예약", "reservation",
    # advertisement
    "광고", "임대", "분양",
    # free / paid
    "무료", "유료", "free",
    # phone / call
    "전화", "문의", "tel", "call",
)


@dataclass
class ScoredCandidate:
    candidate: RecognizedCandidate
    score: float

    @property
    def name(self) -> str:
        return road_name_of(self.candidate.cleaned_text)


def _compact(text: str) -> str:
    return "".join(text.split())


def _is_hangul(ch: str) -> bool:
    return "가" <= ch <= "힣" or "ㄱ" <= ch <= "ㆎ"


def _road_token(text: str) -> Optional[str]:
    for token in text.split():
        if ROAD_SHAPE.fullmatch(token):
            return token
    return None


def is_eligible(candidate: RecognizedCandidate) -> bool:
    text = _compact(candidate.cleaned_text)
    if not text:
        return False
    if ROAD_SHAPE.fullmatch(text) or _road_token(candidate.cleaned_text):
        return True
    return any(k in text for k in ROAD_KEYWORDS)


def road_name_of(cleaned: str) -> str:
    """The road part of a cleaned line: "테헤란로 강남역" -> "테헤란로"."""
    if ROAD_SHAPE.fullmatch(_compact(cleaned)):
        return cleaned
    return _road_token(cleaned) or cleaned


def is_blacklisted(candidate: RecognizedCandidate) -> bool:
    text = _compact(candidate.raw_text).lower()
    if CURRENCY.search(text):
        return True
    return any(word in text for word in BLACKLIST)


def keyword_score(text: str) -> float:
    best = 0.0
    for keyword, weight in KEYWORD_WEIGHTS:
        if keyword in text and weight > best:
            best = weight
    return best


def length_score(text: str) -> float:
    n = len(text)
    if n <= 3:
        return -15.0
    if n > 30:
        return -25.0
    if 4 <= n <= 18:
        return 15.0
    return -5.0


def density_score(raw: str) -> float:
    """Reward Hangul-heavy text, penalize digit and symbol noise."""
    chars = [ch for ch in raw if not ch.isspace()]
    if not chars:
        return 0.0
    total = float(len(chars))
    hangul = sum(1 for ch in chars if _is_hangul(ch)) / total
    digits = sum(1 for ch in chars if ch.isdigit()) / total
    special = sum(1 for ch in chars if not (ch.isalnum() or _is_hangul(ch))) / total

    score = 0.0
    if hangul >= 0.8:
        score += 15.0
    elif hangul >= 0.5:
        score += 5.0
    elif hangul < 0.3:
        score -= 15.0

    if digits > 0.5:
        score -= 15.0
    elif digits > 0.3:
        score -= 5.0

    if special > 0.25:
        score -= 15.0
    elif special > 0.1:
        score -= 5.0
    return score


def bbox_score(bbox: Optional[BoundingBox]) -> float:
    if bbox is None:
        return 0.0
    score = 0.0
    if bbox.h > 0:
        aspect = bbox.w / bbox.h
        if aspect >= 3.0:
            score += 10.0
        elif aspect >= 2.0:
            score += 5.0
    if bbox.w * bbox.h < 0.002:
        score -= 10.0
    cx = bbox.x + bbox.w / 2
    cy = bbox.y + bbox.h / 2
    dist = abs(cx - 0.5) + abs(cy - 0.5)
    score += 10.0 * max(0.0, 1.0 - dist)
    return score


def score(candidate: RecognizedCandidate) -> float:
    """Additive road-name score; -inf for text that can never be a road name."""
    text = candidate.cleaned_text.strip()
    if not text or not is_eligible(candidate) or is_blacklisted(candidate):
        return -math.inf

    total = keyword_score(_compact(text))
    total += length_score(text)
    total += density_score(strip_romanized(candidate.raw_text))
    if candidate.has_digit or any(ch.isdigit() for ch in candidate.raw_text):
        total += 3.0
    total += bbox_score(candidate.bbox)
    # tie-breaker only
    total += 5.0 * candidate.confidence
    return total


class RoadNameClassifier:
    def __init__(self, threshold: float = ACCEPT_THRESHOLD) -> None:
        self.threshold = threshold

    def select(self, candidates: Sequence[RecognizedCandidate]) -> Optional[ScoredCandidate]:
        best: Optional[ScoredCandidate] = None
        for c in candidates:
            s = score(c)
            if s == -math.inf:
                continue
            if best is None or s > best.score:
                best = ScoredCandidate(candidate=c, score=s)
        if best is None or best.score < self.threshold:
            return None
        return best

    def classify(self, candidates: Sequence[RecognizedCandidate]) -> Optional[str]:
        best = self.select(candidates)
        return best.name if best else None
