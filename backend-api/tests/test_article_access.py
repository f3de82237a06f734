"""
기사 열람 권한 테스트
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from app.services.article_access import (
    ARTICLE_FUTURE,
    ARTICLE_HISTORICAL,
    accessible_articles,
    can_access_article,
)

EFFECTIVE_START = datetime(2025, 3, 1)


def article(n: int, days: float, is_active: bool = True):
    return SimpleNamespace(id=f"a{n}", created_at=EFFECTIVE_START + timedelta(days=days), is_active=is_active)


def product_articles():
    historical = [article(i, -i) for i in range(1, 9)]   # a1(가장 최근) ~ a8(가장 오래됨)
    future = [article(100 + i, i) for i in range(1, 4)]
    return historical + future


def test_recent_historical_plus_all_future():
    result = accessible_articles(product_articles(), EFFECTIVE_START, 5)
    ids = [item.id for item in result]

    assert {"a101", "a102", "a103"} <= set(ids)
    assert {"a1", "a2", "a3", "a4", "a5"} <= set(ids)
    assert not {"a6", "a7", "a8"} & set(ids)
    assert len(ids) == 8

    # 최신순 정렬
    created = [item.created_at for item in result]
    assert created == sorted(created, reverse=True)

    kinds = {item.id: item.article_type for item in result}
    assert kinds["a101"] == ARTICLE_FUTURE
    assert kinds["a1"] == ARTICLE_HISTORICAL


def test_article_at_effective_start_is_historical():
    items = [SimpleNamespace(id="x", created_at=EFFECTIVE_START, is_active=True)]
    result = accessible_articles(items, EFFECTIVE_START, 1)
    assert result[0].article_type == ARTICLE_HISTORICAL
    assert accessible_articles(items, EFFECTIVE_START, 0) == []


def test_inactive_articles_are_skipped():
    items = product_articles() + [article(200, 5, is_active=False)]
    ids = {item.id for item in accessible_articles(items, EFFECTIVE_START, 5)}
    assert "a200" not in ids


def test_increasing_historical_limit_never_removes_articles():
    articles = product_articles()
    previous = set()
    for limit in range(0, 10):
        current = {item.id for item in accessible_articles(articles, EFFECTIVE_START, limit)}
        assert previous <= current
        previous = current


def test_single_check_agrees_with_listing():
    articles = product_articles()
    listed = {item.id for item in accessible_articles(articles, EFFECTIVE_START, 5)}
    for a in articles:
        assert can_access_article(articles, a.id, EFFECTIVE_START, 5) == (a.id in listed)


def test_bad_references_are_not_accessible():
    articles = product_articles()
    assert not can_access_article(articles, None, EFFECTIVE_START, 5)
    assert not can_access_article(articles, "missing", EFFECTIVE_START, 5)
    assert not can_access_article(None, "a1", EFFECTIVE_START, 5)
    assert not can_access_article(articles, "a1", None, 5)
    # created_at 누락 같은 깨진 데이터도 열람 불가
    broken = [SimpleNamespace(id="b", created_at=None, is_active=True)]
    assert not can_access_article(broken, "b", EFFECTIVE_START, 5)
