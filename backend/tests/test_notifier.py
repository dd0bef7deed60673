"""Tests for Discord notifications."""

import json

import httpx
import pytest

from app.services.notifier import DISCORD_MESSAGE_LIMIT, DiscordNotifier, _chunks
from core.analysis import AnalysisMessage
from core.models import IndicatorSet, RankingRecord
from core.models.ranking import CoefficientOfVariation, LastValues, RankingRatio


def make_record(pair_id, rank):
    return RankingRecord(
        pair_id=pair_id,
        rank=rank,
        data_points=48,
        ratio=RankingRatio(rating=1.2, close=1.1, diff=1.3, volume=1.0),
        indicators=IndicatorSet(sma={12: 1.0}),
        last=LastValues(
            volume=1.0, volume_avg=1.0, close=1.0, close_avg=1.0, high=1.0, low=1.0,
            coefficient_of_variation=CoefficientOfVariation(close=0.0, volume=0.0),
        ),
        timestamp=0.0,
    )


class Recorder:
    """Mock webhook endpoint collecting posted contents."""

    def __init__(self, status_code=204):
        self.status_code = status_code
        self.posts: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.posts.append((str(request.url), json.loads(request.content)["content"]))
        return httpx.Response(self.status_code)


def make_notifier(recorder, **kwargs):
    return DiscordNotifier(
        ranking_webhook="https://discord.test/ranking",
        analysis_webhook="https://discord.test/analysis",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


class TestDiscordNotifier:
    """Tests for DiscordNotifier."""

    @pytest.mark.asyncio
    async def test_disabled_channel_sends_nothing(self):
        recorder = Recorder()
        notifier = make_notifier(recorder)

        assert await notifier.send("changes", "hello") is False
        assert recorder.posts == []
        assert notifier.enabled

    def test_not_enabled_without_webhooks(self):
        assert not DiscordNotifier().enabled

    @pytest.mark.asyncio
    async def test_publish_ranking(self):
        """Top records one per message, then the summary."""
        recorder = Recorder()
        notifier = make_notifier(recorder, max_ranking_messages=2)
        records = [make_record(f"P{i}-USD", i) for i in range(1, 4)]

        await notifier.publish_ranking(records, total_pairs=10, total_data_points=4800, cycle_id="abcd1234")
        await notifier.close()

        assert len(recorder.posts) == 3
        assert all(url.endswith("/ranking") for url, _ in recorder.posts)
        assert recorder.posts[0][1].startswith("```json\nUpdate ID: abcd1234")
        assert '"pair_id": "P1-USD"' in recorder.posts[0][1]
        summary = recorder.posts[-1][1]
        assert "Processed 10 products and 4,800 candles, filtered 7 rankings." in summary
        assert "Close: 50%, Diff: 35%, Volume: 15%" in summary

    @pytest.mark.asyncio
    async def test_publish_analysis_splits_long_output(self):
        recorder = Recorder()
        notifier = make_notifier(recorder)
        messages = [
            AnalysisMessage(f"P{i}-USD", "sma", "golden", f"P{i}-USD-12-26-SMA: " + "x" * 80)
            for i in range(60)
        ]

        await notifier.publish_analysis("sma", messages, "abcd1234")

        assert len(recorder.posts) > 1
        assert all(len(content) <= DISCORD_MESSAGE_LIMIT for _, content in recorder.posts)
        joined = "".join(content for _, content in recorder.posts)
        assert all(m.text in joined for m in messages)

    @pytest.mark.asyncio
    async def test_no_messages_sends_nothing(self):
        recorder = Recorder()
        await make_notifier(recorder).publish_analysis("rsi", [], "abcd1234")
        assert recorder.posts == []

    @pytest.mark.asyncio
    async def test_http_error_does_not_raise(self):
        notifier = make_notifier(Recorder(status_code=500))
        assert await notifier.send("ranking", "hello") is False

    @pytest.mark.asyncio
    async def test_network_error_does_not_raise(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        notifier = DiscordNotifier(ranking_webhook="https://discord.test/ranking", transport=httpx.MockTransport(handler))
        assert await notifier.send("ranking", "hello") is False


class TestChunks:
    def test_lines_packed_under_limit(self):
        assert _chunks(["aaa", "bbb", "ccc"], 7) == ["aaa\nbbb", "ccc"]

    def test_long_line_truncated(self):
        assert _chunks(["a" * 20], 5) == ["aaaaa"]
