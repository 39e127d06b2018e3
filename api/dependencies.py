"""
API依赖项 - 支付会话服务装配
"""
from typing import AsyncIterator

from application.services.payment_service import PaymentService
from infrastructure.external.payments import get_payment_provider


async def get_payment_service() -> AsyncIterator[PaymentService]:
    """按配置的默认渠道构建服务，请求结束后关闭底层 HTTP 客户端"""
    service = PaymentService(provider=get_payment_provider())
    try:
        yield service
    finally:
        await service.aclose()
