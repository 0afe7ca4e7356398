"""
优惠券核销引擎
负责发券、校验、核销和停用

核销的全部检查都在写事务内重新执行，不依赖之前的校验结果：
优惠券行加锁后，再通过条件更新推进核销标记/使用次数，
并追加带序号的核销流水，三者同时提交或同时回滚。
"""

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterator, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coupon_engine.core.clock import Clock, system_clock
from coupon_engine.core.config import settings
from coupon_engine.core.database import session_scope
from coupon_engine.core.exceptions import (
    CodeSpaceExhausted,
    CouponNotFound,
    InvalidInput,
    RecipientNotFound,
    RedemptionRejected,
    StoreUnavailable,
)
from coupon_engine.models.coupon import (
    ELIGIBLE_MESSAGE,
    Coupon,
    CouponVariant,
    Decision,
    Discount,
    IssueSingleRecipientRequest,
    IssueWindowedRequest,
    RedeemRequest,
    Redemption,
    RejectionReason,
    ValidateRequest,
    ValidationResult,
    normalize_code,
)
from coupon_engine.models.database.coupon_db import CouponDB, SingleRecipientPolicyDB, WindowedPolicyDB
from coupon_engine.repositories.coupon_repository import CouponRepository, PolicyDB
from coupon_engine.repositories.redemption_repository import RedemptionRepository
from coupon_engine.services.code_generator import CouponCodeGenerator
from coupon_engine.services.common_cache import SimpleCache, coupon_code_key
from coupon_engine.services.recipient_directory import RecipientDirectory

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

# 视为存储层暂时不可用的异常
STORE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError, ConnectionError)

PolicyFactory = Callable[[CouponRepository, str], Awaitable[PolicyDB]]


def parse_input(model: Type[M], **data: Any) -> M:
    """构建请求模型，校验失败转换为 InvalidInput"""
    try:
        return model(**data)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        summary = "; ".join(f"{item['field'] or 'request'}: {item['message']}" for item in errors)
        raise InvalidInput(summary, {"errors": errors}) from e


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """把数据库连接/超时类异常转换为 StoreUnavailable"""
    try:
        yield
    except STORE_ERRORS as e:
        logger.error("存储层不可用", operation=operation, error=str(e))
        raise StoreUnavailable("Coupon store is unavailable, retry later") from e


@dataclass
class Assessment:
    """一次资格检查的结论"""

    reason: Optional[RejectionReason]
    policy: Optional[PolicyDB] = None
    prior_redemptions: int = 0


class RedemptionEngine:
    """优惠券核销引擎"""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        recipient_directory: RecipientDirectory,
        clock: Optional[Clock] = None,
        code_generator: Optional[CouponCodeGenerator] = None,
        cache: Optional[SimpleCache] = None,
        conflict_retries: Optional[int] = None
    ):
        self.session_maker = session_maker
        self.recipient_directory = recipient_directory
        self.clock = clock or system_clock
        self.code_generator = code_generator or CouponCodeGenerator()
        self.cache = cache
        self.conflict_retries = settings.redeem_conflict_retries if conflict_retries is None else conflict_retries

    # ---- 发券 ----

    async def issue_single_recipient(
        self,
        recipient_id: str,
        discount: Union[Discount, dict],
        issuer: str
    ) -> Coupon:
        """发放指定领取人的一次性优惠券"""
        request = parse_input(
            IssueSingleRecipientRequest,
            recipient_id=recipient_id,
            discount=discount,
            issuer=issuer
        )

        with translate_store_errors("issue_single_recipient"):
            recipient_exists = await self.recipient_directory.exists(request.recipient_id)
        if not recipient_exists:
            raise RecipientNotFound(request.recipient_id)

        async def create_policy(repo: CouponRepository, coupon_id: str) -> PolicyDB:
            return await repo.create_single_recipient_policy(coupon_id, request.recipient_id)

        coupon = await self._issue(CouponVariant.SINGLE_RECIPIENT, request.discount, request.issuer, create_policy)
        logger.info(
            "指定领取人优惠券发放成功",
            code=coupon.code,
            recipient_id=request.recipient_id,
            issuer=request.issuer
        )
        return coupon

    async def issue_windowed(
        self,
        discount: Union[Discount, dict],
        valid_from: datetime,
        valid_until: datetime,
        max_uses_per_recipient: int,
        total_usage_limit: Optional[int] = None,
        *,
        issuer: str
    ) -> Coupon:
        """发放时间窗口内可多次使用的优惠券"""
        request = parse_input(
            IssueWindowedRequest,
            discount=discount,
            valid_from=valid_from,
            valid_until=valid_until,
            max_uses_per_recipient=max_uses_per_recipient,
            total_usage_limit=total_usage_limit,
            issuer=issuer
        )

        async def create_policy(repo: CouponRepository, coupon_id: str) -> PolicyDB:
            return await repo.create_windowed_policy(
                coupon_id,
                valid_from=request.valid_from,
                valid_until=request.valid_until,
                max_uses_per_recipient=request.max_uses_per_recipient,
                total_usage_limit=request.total_usage_limit
            )

        coupon = await self._issue(CouponVariant.WINDOWED, request.discount, request.issuer, create_policy)
        logger.info(
            "时间窗口优惠券发放成功",
            code=coupon.code,
            valid_from=request.valid_from.isoformat(),
            valid_until=request.valid_until.isoformat(),
            max_uses_per_recipient=request.max_uses_per_recipient,
            total_usage_limit=request.total_usage_limit,
            issuer=request.issuer
        )
        return coupon

    async def _issue(
        self,
        variant: CouponVariant,
        discount: Discount,
        issuer: str,
        create_policy: PolicyFactory
    ) -> Coupon:
        """在同一事务内创建优惠券和策略记录，优惠码并发冲突时整体重试"""
        max_attempts = self.code_generator.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                with translate_store_errors("issue"):
                    async with session_scope(self.session_maker) as session:
                        repo = CouponRepository(session)
                        code = await self.code_generator.generate(repo.code_exists)
                        db_coupon = await repo.create_coupon(code, variant, discount, issuer, self.clock.now())
                        db_policy = await create_policy(repo, db_coupon.coupon_id)
                        coupon = repo.to_model(db_coupon, db_policy)
            except IntegrityError as e:
                logger.warning("发券唯一约束冲突，重新生成优惠码", attempt=attempt, error=str(e.orig))
                continue
            return coupon

        raise CodeSpaceExhausted(f"Unable to issue a coupon with a unique code after {max_attempts} attempts")

    # ---- 校验 ----

    async def validate(self, code: str, recipient_id: str) -> ValidationResult:
        """
        只读校验优惠券对领取人是否可用

        结果仅供展示，核销时会在事务内重新检查
        """
        request = parse_input(ValidateRequest, code=code, recipient_id=recipient_id)

        with translate_store_errors("validate"):
            async with self.session_maker() as session:
                db_coupon = await CouponRepository(session).get_active_by_code(request.code)
                if db_coupon is None:
                    raise CouponNotFound(request.code)

                assessment = await self._assess(
                    session, db_coupon, request.recipient_id, self.clock.now(), redeeming=False
                )

        eligible = assessment.reason is None
        return ValidationResult(
            coupon_id=db_coupon.coupon_id,
            code=db_coupon.code,
            variant=CouponVariant(db_coupon.variant),
            discount=Discount(kind=db_coupon.discount_kind, value=db_coupon.discount_value),
            decision=Decision.ELIGIBLE if eligible else Decision.INELIGIBLE,
            reason=ELIGIBLE_MESSAGE if eligible else assessment.reason.value
        )

    async def _assess(
        self,
        session: AsyncSession,
        db_coupon: CouponDB,
        recipient_id: str,
        now: datetime,
        redeeming: bool
    ) -> Assessment:
        """按策略类型检查资格，核销时对策略行加锁"""
        coupon_repo = CouponRepository(session)
        variant = CouponVariant(db_coupon.variant)

        if variant == CouponVariant.SINGLE_RECIPIENT:
            db_policy = await coupon_repo.get_single_recipient_policy(
                db_coupon.coupon_id, recipient_id, for_update=redeeming
            )
            if db_policy is None:
                if redeeming:
                    return Assessment(RejectionReason.INVALID_RECIPIENT)
                return Assessment(RejectionReason.NOT_AVAILABLE_FOR_RECIPIENT)
            if db_policy.redeemed:
                return Assessment(RejectionReason.ALREADY_REDEEMED, db_policy)
            return Assessment(None, db_policy)

        elif variant == CouponVariant.WINDOWED:
            db_policy = await coupon_repo.get_windowed_policy(db_coupon.coupon_id, for_update=redeeming)
            if db_policy is None:
                return Assessment(RejectionReason.CONFIGURATION_NOT_FOUND)

            policy = coupon_repo.to_model(db_coupon, db_policy).policy
            reason = policy.window_status(now)
            if reason is None and policy.is_used_up():
                reason = RejectionReason.USAGE_LIMIT_EXCEEDED
            if reason is not None:
                return Assessment(reason, db_policy)

            prior = await RedemptionRepository(session).count_for_recipient(db_coupon.coupon_id, recipient_id)
            if prior >= policy.max_uses_per_recipient:
                return Assessment(RejectionReason.PER_RECIPIENT_LIMIT_EXCEEDED, db_policy, prior)
            return Assessment(None, db_policy, prior)

        raise ValueError(f"未知的优惠券策略类型: {db_coupon.variant}")

    # ---- 核销 ----

    async def redeem(self, code: str, recipient_id: str, order_reference: Optional[str] = None) -> Redemption:
        """
        核销优惠券

        Raises:
            CouponNotFound: 优惠码不存在或已停用
            RedemptionRejected: 业务规则不满足，不应重试
            StoreUnavailable: 存储层故障，未产生任何写入，可整体重试
        """
        request = parse_input(
            RedeemRequest,
            code=code,
            recipient_id=recipient_id,
            order_reference=order_reference
        )

        for attempt in range(1, self.conflict_retries + 2):
            try:
                with translate_store_errors("redeem"):
                    async with session_scope(self.session_maker) as session:
                        redemption = await self._redeem_once(session, request)
            except IntegrityError as e:
                # 同一领取人的并发核销先提交，流水序号冲突，重新执行会看到最新状态
                logger.warning(
                    "核销流水冲突，重新执行核销",
                    code=request.code,
                    recipient_id=request.recipient_id,
                    attempt=attempt,
                    error=str(e.orig)
                )
                continue
            except RedemptionRejected as e:
                logger.info("核销被拒绝", code=request.code, recipient_id=request.recipient_id, reason=e.reason)
                raise

            logger.info(
                "优惠券核销成功",
                code=redemption.code,
                recipient_id=redemption.recipient_id,
                sequence=redemption.sequence,
                order_reference=redemption.order_reference
            )
            await self._invalidate(redemption.code)
            return redemption

        logger.error("核销冲突重试次数耗尽", code=request.code, recipient_id=request.recipient_id)
        raise StoreUnavailable("Redemption conflicted with concurrent redemptions, retry later")

    async def _redeem_once(self, session: AsyncSession, request: RedeemRequest) -> Redemption:
        coupon_repo = CouponRepository(session)
        redemption_repo = RedemptionRepository(session)

        db_coupon = await coupon_repo.get_active_by_code(request.code, for_update=True)
        if db_coupon is None:
            raise CouponNotFound(request.code)

        now = self.clock.now()
        assessment = await self._assess(session, db_coupon, request.recipient_id, now, redeeming=True)
        if assessment.reason is not None:
            raise RedemptionRejected(assessment.reason.value)

        if isinstance(assessment.policy, SingleRecipientPolicyDB):
            if not await coupon_repo.mark_redeemed(assessment.policy.policy_id, now):
                raise RedemptionRejected(RejectionReason.ALREADY_REDEEMED.value)
            sequence = 1
        elif isinstance(assessment.policy, WindowedPolicyDB):
            if not await coupon_repo.increment_usage(db_coupon.coupon_id):
                raise RedemptionRejected(RejectionReason.USAGE_LIMIT_EXCEEDED.value)
            sequence = assessment.prior_redemptions + 1
        else:
            raise ValueError(f"未知的优惠券策略类型: {db_coupon.variant}")

        db_redemption = await redemption_repo.append(
            db_coupon,
            request.recipient_id,
            sequence=sequence,
            redeemed_at=now,
            order_reference=request.order_reference
        )
        return redemption_repo.to_model(db_redemption, db_coupon.code)

    # ---- 停用 ----

    async def deactivate(self, code: str) -> Coupon:
        """停用优惠券，与核销共用优惠券行锁"""
        normalized = normalize_code(code or "")
        if not normalized:
            raise InvalidInput("code: code must not be blank")

        with translate_store_errors("deactivate"):
            async with session_scope(self.session_maker) as session:
                repo = CouponRepository(session)
                db_coupon = await repo.get_active_by_code(normalized, for_update=True)
                if db_coupon is None:
                    raise CouponNotFound(normalized)

                await repo.deactivate(db_coupon, self.clock.now())
                coupon = await repo.load_model(db_coupon)

        logger.info("优惠券已停用", code=normalized)
        await self._invalidate(normalized)
        return coupon

    async def _invalidate(self, code: str) -> None:
        if self.cache is not None:
            await self.cache.delete(coupon_code_key(code))
