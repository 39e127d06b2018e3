"""领域层异常定义：会话金额等输入校验失败时抛出。

支付适配器将其包装为 PaymentInvalidInputError，HTTP 映射由 core.exceptions 负责。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidAmountException(DomainValidationException):
    """金额无法换算为正整数的最小货币单位"""

    def __init__(self, amount: object, reason: str = "amount must be a positive number"):
        super().__init__(
            reason,
            field="amount",
            details={"amount": str(amount)},
        )
        self.error_type = "InvalidAmount"
