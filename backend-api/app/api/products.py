"""
상품 기사 열람 API

목록과 단건 모두 SubscriptionService의 같은 열람 계산을 사용한다.
"""

from fastapi import APIRouter, Depends, HTTPException
import uuid
import logging

from app.core.security import get_current_user
from app.dependencies import get_subscription_service
from app.models.user import User
from app.schemas.product import AccessibleArticleResponse, ArticleDetailResponse, ProductArticlesResponse
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{product_id}/articles", response_model=ProductArticlesResponse)
async def list_accessible_articles(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """열람 가능한 기사 목록 (최신순)"""
    subscription, items = await service.accessible_articles_for(current_user.id, product_id)
    if subscription is None:
        raise HTTPException(status_code=403, detail="구독 중인 상품이 아닙니다.")

    effective_start = await service.chain_effective_start(subscription)
    return ProductArticlesResponse(
        product_id=product_id,
        subscription_id=subscription.id,
        effective_start_date=effective_start,
        historical_article_limit=subscription.historical_article_limit,
        articles=[
            AccessibleArticleResponse(
                id=item.article.id,
                title=item.article.title,
                summary=item.article.summary,
                created_at=item.created_at,
                article_type=item.article_type,
            )
            for item in items
        ],
    )


@router.get("/{product_id}/articles/{article_id}", response_model=ArticleDetailResponse)
async def get_article(
    product_id: uuid.UUID,
    article_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """기사 단건 열람"""
    if not await service.can_read_article(current_user.id, product_id, article_id):
        raise HTTPException(status_code=403, detail="열람 권한이 없는 기사입니다.")

    articles = await service.store.load_product_articles(product_id)
    article = next((a for a in articles if a.id == article_id), None)
    if article is None:
        raise HTTPException(status_code=404, detail="기사를 찾을 수 없습니다.")
    return ArticleDetailResponse(
        id=article.id,
        product_id=article.product_id,
        title=article.title,
        summary=article.summary,
        created_at=article.created_at,
    )
