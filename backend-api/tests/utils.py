"""
테스트 공용 헬퍼
"""

from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import select

from app.core.security import create_access_token
from app.models import Product, ProductVariant, User

T0 = datetime(2025, 1, 1, 9, 0, 0)


class RecordingSink:
    """발행된 실시간 이벤트를 기록"""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        self.events.append((user_id, event))


async def first_variant(db, product: Product) -> ProductVariant:
    res = await db.execute(
        select(ProductVariant).where(ProductVariant.product_id == product.id).order_by(ProductVariant.sort_order)
    )
    return res.scalars().first()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
