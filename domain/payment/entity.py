"""
支付会话领域规则 - 状态枚举、金额换算、网关状态映射
"""
from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import InvalidAmountException
from shared.codes.payment_codes import (
    DEFAULT_HOST_STATUS,
    DEFAULT_WEBHOOK_ACTION,
    PROVIDER_STATUS_TO_INTERNAL,
    WEBHOOK_EVENT_TO_ACTION,
)


DEFAULT_CURRENCY = "INR"
# 小数单位换算（卢比 -> 派萨）
SUBUNIT_FACTOR = Decimal(100)


class PaymentSessionStatus(str, Enum):
    """对宿主系统暴露的支付会话状态"""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    CANCELED = "canceled"


class WebhookAction(str, Enum):
    """Webhook 处理结果动作"""
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    CANCELED = "canceled"
    FAILED = "failed"
    NOT_SUPPORTED = "not_supported"


def to_subunits(amount: Any) -> int:
    """
    将宿主的十进制金额换算为网关最小货币单位（整数）。

    业务规则：
    1. 金额必须是有限的正数（bool 不视为数字）
    2. 乘以 100 后四舍五入到整数（ROUND_HALF_UP，即远离零方向）
    """
    if isinstance(amount, bool) or amount is None:
        raise InvalidAmountException(amount)
    if isinstance(amount, float) and not math.isfinite(amount):
        raise InvalidAmountException(amount, "amount must be a finite number")
    try:
        # str() first so floats like 0.1 keep their shortest repr instead of binary noise
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmountException(amount) from exc
    if not value.is_finite() or value <= 0:
        raise InvalidAmountException(amount)
    subunits = int((value * SUBUNIT_FACTOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if subunits <= 0:
        raise InvalidAmountException(amount, "amount is smaller than one subunit")
    return subunits


def normalize_currency(currency_code: Optional[str]) -> str:
    """默认 INR，统一大写"""
    code = (currency_code or "").strip()
    return code.upper() if code else DEFAULT_CURRENCY


def resolve_host_status(resource: str, provider_status: Any) -> PaymentSessionStatus:
    """按映射表将网关资源状态转换为宿主状态，未知值一律 pending"""
    mapping = PROVIDER_STATUS_TO_INTERNAL.get(resource, {})
    value = mapping.get(str(provider_status or ""), DEFAULT_HOST_STATUS)
    return PaymentSessionStatus(value)


def resolve_webhook_action(provider: str, event: Any) -> WebhookAction:
    """按映射表将 webhook 事件名转换为动作，未知事件为 not_supported"""
    mapping = WEBHOOK_EVENT_TO_ACTION.get(provider, {})
    value = mapping.get(str(event or ""), DEFAULT_WEBHOOK_ACTION)
    return WebhookAction(value)
