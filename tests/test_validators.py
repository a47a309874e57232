"""Tests for input validators, plans, the role hierarchy and rate limiting."""

import pytest
from fastapi import HTTPException
from pydantic import BaseModel, ValidationError

from school_erp.core.permissions import Role, can_assign_role, has_min_role
from school_erp.core.plans import (
    Plan,
    SchoolModule,
    is_downgrade,
    is_module_enabled,
    next_plan,
    plan_limits,
    plan_modules,
)
from school_erp.core.rate_limit import AUTH_LIMIT, CLEANUP_INTERVAL, GENERAL_LIMIT, RateLimiter
from school_erp.schemas.validators import Email, MobileNumber, Month


class ContactModel(BaseModel):
    mobile: MobileNumber | None = None
    email: Email | None = None
    month: Month | None = None


class TestMobileValidator:
    """Tests for mobile number validation."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("9876543210", "9876543210"),
            ("+91 98765 43210", "+919876543210"),
            ("+91-98765-43210", "+919876543210"),
            ("(+1) 415 555 0100", "+14155550100"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert ContactModel(mobile=raw).mobile == expected

    @pytest.mark.parametrize("raw", ["98765", "+91 98765 4321x", "1234567890123456"])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            ContactModel(mobile=raw)


class TestEmailAndMonth:
    def test_email_lowercased(self):
        assert ContactModel(email="  Office@School.Test ").email == "office@school.test"

    def test_invalid_email(self):
        with pytest.raises(ValidationError) as exc_info:
            ContactModel(email="not-an-email")
        assert "Invalid email address" in str(exc_info.value)

    def test_month(self):
        assert ContactModel(month="2030-06").month == "2030-06"
        with pytest.raises(ValidationError):
            ContactModel(month="2030-6")


class TestPlans:
    def test_basic_plan_modules(self):
        modules = plan_modules(Plan.BASIC)

        assert modules["fees"] is True
        assert modules["exam"] is False
        assert modules["online_payments"] is False

    def test_limits(self):
        assert plan_limits("STANDARD") == {"student_limit": 2000, "teacher_limit": 150, "storage_limit_gb": 10}

    def test_plan_order(self):
        assert is_downgrade(Plan.PREMIUM, Plan.BASIC)
        assert not is_downgrade(Plan.BASIC, Plan.STANDARD)
        assert next_plan(Plan.BASIC) == Plan.STANDARD
        assert next_plan(Plan.PREMIUM) is None

    def test_missing_module_counts_as_enabled(self):
        assert is_module_enabled({}, SchoolModule.HOSTEL)
        assert is_module_enabled(None, "videos")
        assert not is_module_enabled({"hostel": False}, SchoolModule.HOSTEL)


class TestRoles:
    def test_hierarchy(self):
        assert has_min_role(Role.PRINCIPAL, Role.OPERATOR)
        assert not has_min_role(Role.TEACHER, Role.OPERATOR)
        assert not has_min_role("NOT_A_ROLE", Role.PARENT)

    def test_assign_strictly_below(self):
        assert can_assign_role(Role.PRINCIPAL, Role.OPERATOR)
        assert not can_assign_role(Role.OPERATOR, Role.OPERATOR)
        assert not can_assign_role(Role.TEACHER, Role.PRINCIPAL)


class TestRateLimiter:
    def test_blocks_after_limit(self):
        limiter = RateLimiter()
        for expected in range(4, -1, -1):
            remaining, _ = limiter.hit("auth:1.2.3.4:/login", AUTH_LIMIT, now=1000.0)
            assert remaining == expected

        with pytest.raises(HTTPException) as exc_info:
            limiter.hit("auth:1.2.3.4:/login", AUTH_LIMIT, now=1001.0)
        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == str(AUTH_LIMIT.window - 1)

    def test_window_resets(self):
        limiter = RateLimiter()
        for _ in range(AUTH_LIMIT.max_requests):
            limiter.hit("key", AUTH_LIMIT, now=0.0)

        remaining, _ = limiter.hit("key", AUTH_LIMIT, now=float(AUTH_LIMIT.window))

        assert remaining == AUTH_LIMIT.max_requests - 1

    def test_keys_are_independent(self):
        limiter = RateLimiter()
        for _ in range(AUTH_LIMIT.max_requests):
            limiter.hit("a", AUTH_LIMIT, now=0.0)

        remaining, _ = limiter.hit("b", AUTH_LIMIT, now=0.0)

        assert remaining == AUTH_LIMIT.max_requests - 1

    def test_expired_windows_are_dropped(self):
        limiter = RateLimiter()
        for i in range(50):
            limiter.hit(f"general:1.2.3.4:/api/students/{i}", GENERAL_LIMIT, now=0.0)

        limiter.hit("general:1.2.3.4:/api/students", GENERAL_LIMIT, now=float(GENERAL_LIMIT.window * 10))

        assert list(limiter.windows) == ["general:1.2.3.4:/api/students"]

    def test_live_windows_survive_cleanup(self):
        limiter = RateLimiter()
        limiter.hit("auth:a", AUTH_LIMIT, now=0.0)
        limiter.hit("auth:b", AUTH_LIMIT, now=float(AUTH_LIMIT.window - CLEANUP_INTERVAL))

        limiter.hit("auth:c", AUTH_LIMIT, now=float(AUTH_LIMIT.window))

        assert set(limiter.windows) == {"auth:b", "auth:c"}
