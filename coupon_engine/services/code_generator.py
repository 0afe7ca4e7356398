"""
优惠码生成器
"""

import secrets
from typing import Awaitable, Callable, Optional

import structlog

from coupon_engine.core.config import settings
from coupon_engine.core.exceptions import CodeSpaceExhausted

logger = structlog.get_logger()

CodeTakenCheck = Callable[[str], Awaitable[bool]]


class CouponCodeGenerator:
    """生成定长大写字母数字优惠码，冲突时重新生成"""

    def __init__(
        self,
        length: Optional[int] = None,
        alphabet: Optional[str] = None,
        max_attempts: Optional[int] = None,
        choice: Callable[[str], str] = secrets.choice
    ):
        self.length = length or settings.coupon_code_length
        self.alphabet = alphabet or settings.coupon_code_alphabet
        self.max_attempts = max_attempts or settings.coupon_code_max_attempts
        self._choice = choice

        if self.length <= 0:
            raise ValueError("优惠码长度必须大于0")
        if not self.alphabet:
            raise ValueError("优惠码字符集不能为空")

    def candidate(self) -> str:
        """生成一个候选优惠码（未检查唯一性）"""
        return "".join(self._choice(self.alphabet) for _ in range(self.length))

    async def generate(self, is_taken: CodeTakenCheck) -> str:
        """生成未被占用的优惠码"""
        for attempt in range(1, self.max_attempts + 1):
            code = self.candidate()
            if not await is_taken(code):
                return code
            logger.debug("优惠码冲突，重新生成", attempt=attempt)

        logger.error("优惠码生成次数耗尽", max_attempts=self.max_attempts, length=self.length)
        raise CodeSpaceExhausted(
            f"Unable to generate a unique coupon code after {self.max_attempts} attempts"
        )
