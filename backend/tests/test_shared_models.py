"""Tests for shared model utilities."""

import uuid
from datetime import UTC, datetime, timedelta, timezone

from backoffice.models.shared import (
    UUIDType,
    as_utc,
    generate_legacy_id,
    generate_uuid,
    utc_now,
)


class TestIdentifiers:
    def test_generate_uuid_is_uuid4(self):
        assert generate_uuid().version == 4

    def test_legacy_id_is_opaque_hex(self):
        value = generate_legacy_id()
        assert isinstance(value, str)
        assert len(value) == 32
        int(value, 16)

    def test_legacy_ids_unique(self):
        assert len({generate_legacy_id() for _ in range(10)}) == 10


class TestUtcHelpers:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == UTC

    def test_as_utc_naive(self):
        result = as_utc(datetime(2026, 3, 1, 12, 0))
        assert result == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_as_utc_keeps_aware(self):
        value = datetime(2026, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=3)))
        assert as_utc(value) is value


class TestUUIDType:
    def test_bind_accepts_uuid_and_string(self):
        t = UUIDType()
        val = uuid.uuid4()
        assert t.process_bind_param(val, None) == str(val)
        assert t.process_bind_param(str(val), None) == str(val)
        assert t.process_bind_param(None, None) is None

    def test_result_returns_uuid(self):
        t = UUIDType()
        val = "12345678-1234-5678-1234-567812345678"
        result = t.process_result_value(val, None)
        assert isinstance(result, uuid.UUID)
        assert str(result) == val
        assert t.process_result_value(None, None) is None
