"""
기사 열람 권한 계산

구독자는 effective_start 이후 발행된 기사 전부 + 그 이전 기사 중 최신 N개를 본다.
목록 조회와 단건 열람 체크는 반드시 같은 계산(accessible_articles)을 사용한다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

ARTICLE_FUTURE = "future"
ARTICLE_HISTORICAL = "historical"


@dataclass(frozen=True)
class AccessibleArticle:
    article: object
    article_type: str  # future | historical

    @property
    def id(self):
        return self.article.id

    @property
    def created_at(self) -> datetime:
        return self.article.created_at


def _is_candidate(article) -> bool:
    return bool(getattr(article, "is_active", False)) and getattr(article, "created_at", None) is not None


def accessible_articles(
    articles: Optional[Iterable],
    effective_start_date: Optional[datetime],
    historical_limit: int,
) -> List[AccessibleArticle]:
    """열람 가능한 기사 목록 (최신순)"""
    if not articles or effective_start_date is None:
        return []

    candidates = [a for a in articles if _is_candidate(a)]
    future = [a for a in candidates if a.created_at > effective_start_date]
    historical = sorted(
        (a for a in candidates if a.created_at <= effective_start_date),
        key=lambda a: a.created_at,
        reverse=True,
    )[: max(0, historical_limit or 0)]

    result = [AccessibleArticle(a, ARTICLE_FUTURE) for a in future]
    result += [AccessibleArticle(a, ARTICLE_HISTORICAL) for a in historical]
    result.sort(key=lambda item: item.created_at, reverse=True)
    return result


def can_access_article(
    articles: Optional[Iterable],
    article_id,
    effective_start_date: Optional[datetime],
    historical_limit: int,
) -> bool:
    """단건 열람 가능 여부 (잘못된 참조는 열람 불가로 처리)"""
    if article_id is None:
        return False
    try:
        accessible = accessible_articles(articles, effective_start_date, historical_limit)
    except (TypeError, AttributeError) as e:
        logger.warning(f"[article_access] malformed article data: {e}")
        return False
    target = str(article_id)
    return any(str(item.id) == target for item in accessible)
