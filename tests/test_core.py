import uuid

import pytest
from fastapi import HTTPException

from core.breaker import CircuitBreaker, CircuitOpenError
from core.paginate import PaginatePage
from core.validators import ACCESS, REFRESH, create_token, decode_token
from models.utils import contains_ci, normalize_phone


class TestCircuitBreaker:
    async def test_client_errors_do_not_trip_the_circuit(self):
        breaker = CircuitBreaker(name="test", failure_threshold=2)

        async def not_found():
            raise HTTPException(status_code=404)

        for _ in range(5):
            with pytest.raises(HTTPException):
                await breaker.call(not_found)
        assert breaker.state == "CLOSED"
        assert breaker.failure_count == 0

    async def test_repeated_failures_open_the_circuit(self):
        breaker = CircuitBreaker(name="test", failure_threshold=2)

        async def boom():
            raise RuntimeError("database down")

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(boom)
        assert breaker.state == "OPEN"

        async def fine():
            return "ok"

        with pytest.raises(CircuitOpenError):
            await breaker.call(fine)


class TestPaginate:
    def test_no_page_returns_everything(self):
        pager = PaginatePage()
        assert pager.paginate([1, 2, 3], None, None) == [1, 2, 3]
        assert pager.meta(3, None, None) == {"total": 3, "page": None, "per_page": None}

    def test_slices(self):
        pager = PaginatePage()
        assert pager.paginate(list(range(5)), 2, 2) == [2, 3]
        assert pager.paginate(list(range(5)), 4, 2) == []


class TestTokens:
    def test_round_trip(self):
        user_id = uuid.uuid4()
        assert decode_token(create_token(user_id, ACCESS)) == user_id
        assert decode_token(create_token(user_id, REFRESH), expected_type=REFRESH) == user_id

    def test_type_is_enforced(self):
        with pytest.raises(ValueError, match="Invalid token type"):
            decode_token(create_token(uuid.uuid4(), REFRESH))

    def test_garbage_is_invalid(self):
        with pytest.raises(ValueError, match="Invalid token"):
            decode_token("not-a-jwt")


class TestHelpers:
    def test_phone_defaults_to_nepal(self):
        assert normalize_phone("9812345678") == "+9779812345678"
        assert normalize_phone("+977 981-234-5678") == "+9779812345678"

    def test_invalid_phone(self):
        with pytest.raises(Exception):
            normalize_phone("123")

    def test_contains_ci(self):
        assert contains_ci("Kathmandu", "MANDU")
        assert not contains_ci(None, "x")
        assert not contains_ci("Pokhara", "lalit")
