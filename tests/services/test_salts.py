# tests/services/test_salts.py
"""Tests for the per-subject salt registry."""

import pytest

from upsuider.core.errors import SaltInvalidError
from upsuider.services.salts import MemorySaltStore, SaltRegistry, is_valid_salt
from upsuider.utils.poseidon import FIELD_MODULUS


def _fixed_draw(value: int):
    """Return a random-bytes source that always yields ``value``."""

    def _draw(size: int) -> bytes:
        return value.to_bytes(size, "big")

    return _draw


class TestGenerateSalt:
    def test_random_draws_stay_inside_field(self):
        registry = SaltRegistry(MemorySaltStore())
        for _ in range(200):
            salt = int(registry.generate_salt())
            assert 0 < salt < FIELD_MODULUS

    def test_draw_equal_to_modulus_is_remapped_to_one(self):
        registry = SaltRegistry(MemorySaltStore(), random_bytes=_fixed_draw(FIELD_MODULUS))
        assert registry.generate_salt() == "1"

    def test_draw_equal_to_multiple_of_modulus_is_remapped_to_one(self):
        registry = SaltRegistry(MemorySaltStore(), random_bytes=_fixed_draw(FIELD_MODULUS * 3))
        assert registry.generate_salt() == "1"

    def test_draw_is_reduced_modulo_field(self):
        registry = SaltRegistry(MemorySaltStore(), random_bytes=_fixed_draw(FIELD_MODULUS + 42))
        assert registry.generate_salt() == "42"


class TestIsValid:
    @pytest.mark.parametrize(
        "salt",
        ["0", str(FIELD_MODULUS), str(FIELD_MODULUS + 1), "-1", "", "abc", " 5", "1.5", "٣"],
    )
    def test_rejects(self, salt):
        assert not SaltRegistry.is_valid(salt)

    @pytest.mark.parametrize("salt", ["1", "42", str(FIELD_MODULUS - 1)])
    def test_accepts(self, salt):
        assert is_valid_salt(salt)

    @pytest.mark.parametrize("salt", ["1" * 5000, "9" * 78, "0" * 100 + "1"])
    def test_overlong_digit_strings_are_rejected_without_parsing(self, salt):
        assert is_valid_salt(salt) is False


class TestEnsureSalt:
    def test_second_call_returns_same_salt_without_creating(self):
        registry = SaltRegistry(MemorySaltStore())

        first, created_first = registry.ensure_salt("u1")
        second, created_second = registry.ensure_salt("u1")

        assert first == second
        assert created_first is True
        assert created_second is False

    def test_distinct_subjects_get_independent_salts(self):
        draws = iter([5, 6])
        registry = SaltRegistry(
            MemorySaltStore(),
            random_bytes=lambda size: next(draws).to_bytes(size, "big"),
        )
        assert registry.ensure_salt("u1") == ("5", True)
        assert registry.ensure_salt("u2") == ("6", True)

    def test_invalid_stored_salt_is_flagged_not_regenerated(self):
        store = MemorySaltStore({"u1": "0"})
        registry = SaltRegistry(store)

        with pytest.raises(SaltInvalidError) as exc_info:
            registry.ensure_salt("u1")

        assert exc_info.value.kind == "salt_invalid"
        assert store.get("u1") == "0"

    def test_overlong_stored_salt_is_flagged(self):
        registry = SaltRegistry(MemorySaltStore({"u1": "7" * 5000}))
        with pytest.raises(SaltInvalidError):
            registry.ensure_salt("u1")

    def test_replace_salt_recovers_invalid_record(self):
        store = MemorySaltStore({"u1": str(FIELD_MODULUS)})
        registry = SaltRegistry(store)

        assert registry.replace_salt("u1", "42") is False
        assert registry.ensure_salt("u1") == ("42", False)

    def test_replace_salt_rejects_out_of_range_value(self):
        registry = SaltRegistry(MemorySaltStore())
        with pytest.raises(ValueError):
            registry.replace_salt("u1", "0")
        assert not registry.exists("u1")


class TestVerify:
    def test_exact_match_only(self):
        registry = SaltRegistry(MemorySaltStore({"u1": "42"}))
        assert registry.verify("u1", "42")
        assert not registry.verify("u1", "042")
        assert not registry.verify("u1", "43")

    def test_unknown_subject(self):
        registry = SaltRegistry(MemorySaltStore())
        assert not registry.verify("nobody", "42")
