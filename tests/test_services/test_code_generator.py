"""
CouponCodeGenerator 测试
"""

import string
from unittest.mock import AsyncMock

import pytest

from coupon_engine.core.exceptions import CodeSpaceExhausted
from coupon_engine.services.code_generator import CouponCodeGenerator


def scripted_choice(characters):
    """按顺序返回字符的 choice 替身"""
    iterator = iter(characters)
    return lambda alphabet: next(iterator)


class TestCandidate:
    """候选优惠码测试"""

    def test_default_format(self):
        generator = CouponCodeGenerator()

        for _ in range(50):
            code = generator.candidate()
            assert len(code) == 6
            assert set(code) <= set(string.ascii_uppercase + string.digits)

    def test_custom_length_and_alphabet(self):
        generator = CouponCodeGenerator(length=10, alphabet="XY")

        code = generator.candidate()

        assert len(code) == 10
        assert set(code) <= {"X", "Y"}

    @pytest.mark.parametrize("length,alphabet", [(-1, "AB"), (4, None)])
    def test_invalid_configuration(self, length, alphabet, monkeypatch):
        from coupon_engine.core.config import settings

        monkeypatch.setattr(settings, "coupon_code_alphabet", "")
        with pytest.raises(ValueError):
            CouponCodeGenerator(length=length, alphabet=alphabet)


@pytest.mark.asyncio
class TestGenerate:
    """唯一优惠码生成测试"""

    async def test_returns_first_free_code(self):
        generator = CouponCodeGenerator(length=3, choice=scripted_choice("ABC"))
        is_taken = AsyncMock(return_value=False)

        code = await generator.generate(is_taken)

        assert code == "ABC"
        is_taken.assert_awaited_once_with("ABC")

    async def test_regenerates_on_collision(self):
        generator = CouponCodeGenerator(length=3, choice=scripted_choice("AAABBB"))
        is_taken = AsyncMock(side_effect=[True, False])

        code = await generator.generate(is_taken)

        assert code == "BBB"
        assert is_taken.await_count == 2

    async def test_exhausted(self):
        generator = CouponCodeGenerator(length=2, alphabet="A", max_attempts=4)
        is_taken = AsyncMock(return_value=True)

        with pytest.raises(CodeSpaceExhausted) as exc_info:
            await generator.generate(is_taken)

        assert is_taken.await_count == 4
        assert exc_info.value.status_code == 500
