"""Discord webhook notifications for rankings, analysis and listing changes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
import orjson

from core.analysis import AnalysisMessage
from core.models import RankingRecord
from core.ranking import CLOSE_WEIGHT, DIFF_WEIGHT, VOLUME_WEIGHT

logger = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000
MAX_RANKING_MESSAGES = 5


def code_block(language: str, text: str) -> str:
    return f"```{language}\n{text}\n```"


def _chunks(lines: list[str], limit: int) -> list[str]:
    """Join lines into pieces that fit in ``limit`` characters."""
    pieces: list[str] = []
    current = ""
    for line in lines:
        line = line[:limit]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            pieces.append(current)
            current = line
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def _updated_stamp(now: datetime) -> str:
    return f"+ Updated @ISO-8601: {now.isoformat()}"


class DiscordNotifier:
    """Posts to Discord webhooks. Never raises; failures are logged.

    A channel with an empty webhook URL is disabled.
    """

    def __init__(
        self,
        ranking_webhook: str = "",
        analysis_webhook: str = "",
        changes_webhook: str = "",
        max_ranking_messages: int = MAX_RANKING_MESSAGES,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhooks = {
            "ranking": ranking_webhook,
            "analysis": analysis_webhook,
            "changes": changes_webhook,
        }
        self.max_ranking_messages = max_ranking_messages
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return any(self.webhooks.values())

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, channel: str, content: str) -> bool:
        """Post one message to a channel's webhook."""
        url = self.webhooks.get(channel)
        if not url:
            logger.debug(f"[Discord] ({channel} disabled) Would send: {content[:100]}...")
            return False

        try:
            client = await self._get_client()
            resp = await client.post(url, json={"content": content[:DISCORD_MESSAGE_LIMIT]})
            if resp.is_error:
                logger.warning(f"[Discord] Send failed ({resp.status_code}): {resp.text[:200]}")
                return False
            logger.debug(f"[Discord] Sent to {channel}: {content[:80]}...")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"[Discord] Error sending to {channel}: {e}")
            return False

    async def publish_ranking(
        self,
        records: list[RankingRecord],
        total_pairs: int,
        total_data_points: int,
        cycle_id: str,
    ) -> None:
        """Top ranked records, one message each, then a summary."""
        for record in records[:self.max_ranking_messages]:
            body = orjson.dumps(
                record.model_dump(mode="json"),
                option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS,
            ).decode()
            text = f"Update ID: {cycle_id}\n{body}"
            limit = DISCORD_MESSAGE_LIMIT - len("```json\n\n```")
            await self.send("ranking", code_block("json", text[:limit]))

        now = datetime.now(timezone.utc)
        filtered = max(total_pairs - len(records), 0)
        summary = (
            f"Processed {total_pairs} products and {total_data_points:,} candles, "
            f"filtered {filtered} rankings.\n"
            f"{_updated_stamp(now)}\n"
            f"\nKey:\n"
            f"+ 'SMA/EMA' - Simple / Exponential Moving Averages.\n"
            f"+ 'data_points' - Amount of candles available and processed.\n"
            f"+ 'movement' - Buy orders versus sell orders in the order book.\n"
            f"+ 'ratio' - Close/Diff/Volume ratios. Last candle versus the bucket average.\n"
            f"+ 'ratio => rating' - Weighted ratios. "
            f"Close: {CLOSE_WEIGHT * 100:g}%, Diff: {DIFF_WEIGHT * 100:g}%, "
            f"Volume: {VOLUME_WEIGHT * 100:g}%\n"
            f"+ 'last => coefficient_of_variation' - Dispersion within the last bucket.\n"
        )
        await self.send("ranking", code_block("markdown", summary))

    async def publish_analysis(
        self,
        kind: str,
        messages: list[AnalysisMessage] | list[str],
        cycle_id: str,
    ) -> None:
        """Detected transitions, split to fit Discord's message limit."""
        await self._publish_lines("analysis", f"Analysis ({kind}):", messages, cycle_id)

    async def publish_changes(self, kind: str, messages: list[str], cycle_id: str) -> None:
        """Product or currency listing changes."""
        await self._publish_lines("changes", f"Changes ({kind}):", messages, cycle_id)

    async def _publish_lines(self, channel: str, title: str, messages, cycle_id: str) -> None:
        if not messages:
            return

        now = datetime.now(timezone.utc)
        header = f"Update Id: {cycle_id}\n{_updated_stamp(now)}\n\n{title}"
        lines = [header] + [f"+ {message}" for message in messages]
        limit = DISCORD_MESSAGE_LIMIT - len("```markdown\n\n```")
        for piece in _chunks(lines, limit):
            await self.send(channel, code_block("markdown", piece))
