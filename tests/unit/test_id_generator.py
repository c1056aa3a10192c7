"""Tests for fm_common.id_generator and fm_common.datetime_utils."""

from datetime import UTC, datetime, timedelta

import pytest

from src.fm_common.datetime_utils import utc_after, utc_now
from src.fm_common.id_generator import SnowflakeIdGenerator, generate_id, generate_transaction_id


class TestSnowflakeIdGenerator:
    def test_returns_digit_string(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        result = gen.next_id()
        assert isinstance(result, str)
        assert result.isdigit()

    def test_unique_ids(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        ids = {gen.next_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_monotonically_increasing(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        prev = int(gen.next_id())
        for _ in range(100):
            current = int(gen.next_id())
            assert current > prev
            prev = current

    def test_machine_id_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(machine_id=1024)


class TestModuleHelpers:
    def test_generate_id_usable_as_cursor(self) -> None:
        # Withdrawal cursors are raw ids and must stay numeric
        assert generate_id().isdigit()

    def test_transaction_id_prefix(self) -> None:
        tx_id = generate_transaction_id()
        assert tx_id.startswith("txn_")
        assert tx_id[4:].isdigit()


class TestUtc:
    def test_now_is_aware_utc(self) -> None:
        now = utc_now()
        assert isinstance(now, datetime)
        assert now.tzinfo == UTC

    def test_after_is_in_the_future(self) -> None:
        before = utc_now()
        later = utc_after(30)
        assert later - before >= timedelta(seconds=30)
