"""
상품/기사 Pydantic 스키마
"""

from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
import uuid


class AccessibleArticleResponse(BaseModel):
    id: uuid.UUID
    title: str
    summary: Optional[str] = None
    created_at: datetime
    article_type: str  # future | historical


class ProductArticlesResponse(BaseModel):
    product_id: uuid.UUID
    subscription_id: uuid.UUID
    effective_start_date: datetime
    historical_article_limit: int
    articles: List[AccessibleArticleResponse]


class ArticleDetailResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    title: str
    summary: Optional[str] = None
    created_at: datetime
