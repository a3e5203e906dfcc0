import pytest

from alignzo.exceptions import UpstreamError
from alignzo.services.waterfall import StrategySkipped, run_waterfall


def returning(items, calls, name):
    async def strategy(*args, **kwargs):
        calls.append((name, args, kwargs))
        return items

    return strategy


def skipping(calls, name):
    async def strategy(*args, **kwargs):
        calls.append((name, args, kwargs))
        raise StrategySkipped(name)

    return strategy


def raising(calls, name):
    async def strategy(*args, **kwargs):
        calls.append((name, args, kwargs))
        raise RuntimeError(f"{name} exploded")

    return strategy


class TestRunWaterfall:
    async def test_first_non_empty_wins(self):
        calls = []
        result = await run_waterfall(
            [
                ("a", returning([], calls, "a")),
                ("b", returning(["hit"], calls, "b")),
                ("c", returning(["never"], calls, "c")),
            ],
            "ABC",
            term="x",
        )

        assert result.items == ["hit"]
        assert result.strategy == "b"
        assert result.attempted == ["a", "b"]
        assert [c[0] for c in calls] == ["a", "b"]
        assert calls[0][1:] == (("ABC",), {"term": "x"})

    async def test_failures_are_skipped(self):
        calls = []
        result = await run_waterfall(
            [("a", raising(calls, "a")), ("b", returning([1, 2], calls, "b"))]
        )

        assert result.strategy == "b"
        assert result.items == [1, 2]
        assert result.failed == {"a": "a exploded"}

    async def test_all_empty_returns_empty_result(self):
        calls = []
        result = await run_waterfall(
            [("a", raising(calls, "a")), ("b", returning([], calls, "b"))]
        )

        assert result.items == []
        assert result.strategy is None
        assert result.attempted == ["a", "b"]
        assert list(result.failed) == ["a"]

    async def test_all_failed_raises(self):
        calls = []
        with pytest.raises(UpstreamError) as exc_info:
            await run_waterfall(
                [("a", raising(calls, "a")), ("b", raising(calls, "b"))],
                service="jira",
            )

        assert exc_info.value.service == "jira"
        assert len(calls) == 2

    async def test_skipped_strategies_are_not_attempted(self):
        calls = []
        result = await run_waterfall(
            [("a", skipping(calls, "a")), ("b", returning(["hit"], calls, "b"))]
        )

        assert result.strategy == "b"
        assert result.attempted == ["b"]
        assert result.failed == {}

    async def test_skips_do_not_hide_failures(self):
        calls = []
        with pytest.raises(UpstreamError):
            await run_waterfall(
                [("a", skipping(calls, "a")), ("b", raising(calls, "b"))],
                service="jira",
            )

        assert [c[0] for c in calls] == ["a", "b"]

    async def test_all_skipped_is_empty(self):
        calls = []
        result = await run_waterfall([("a", skipping(calls, "a"))])

        assert result.items == []
        assert result.strategy is None
        assert result.attempted == []

    async def test_no_strategies(self):
        result = await run_waterfall([])
        assert result.items == []
        assert result.strategy is None
