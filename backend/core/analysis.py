"""Detection of indicator transitions between two ranking snapshots.

Compares a pair's previous and current ranking records and reports
moving-average crossovers, MACD line crossings and RSI entering the
overbought or oversold zone.
"""

from dataclasses import dataclass
from typing import Literal

from core.models.ranking import RankingRecord

AnalysisKind = Literal["sma", "ema", "macd", "rsi"]

# (short window, long window) pairs checked for crossovers
CROSS_PAIRS: tuple[tuple[int, int], ...] = (
    (12, 26),
    (12, 50),
    (26, 50),
    (26, 200),
    (50, 200),
)

RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0


@dataclass(frozen=True, slots=True)
class AnalysisMessage:
    """One detected transition.

    ``signal`` is a short tag such as ``golden``, ``death``,
    ``base_up`` or ``overbought``.
    """

    pair_id: str
    kind: AnalysisKind
    signal: str
    text: str

    def __str__(self) -> str:
        return self.text


def _positive(*values: float | None) -> bool:
    return all(value is not None and value > 0 for value in values)


def cross_analysis(
    previous: RankingRecord,
    current: RankingRecord,
    kind: Literal["sma", "ema"],
    pairs: tuple[tuple[int, int], ...] = CROSS_PAIRS,
) -> list[AnalysisMessage]:
    """Moving-average crossovers between two snapshots.

    A golden cross is the short/long ratio rising from below 1 to 1 or
    above; a death cross is the reverse. A window pair with a missing
    or non-positive value in either snapshot is skipped.
    """
    prev_values = getattr(previous.indicators, kind)
    cur_values = getattr(current.indicators, kind)
    label = kind.upper()
    pair_id = current.pair_id

    messages = []
    for short, long in pairs:
        l1, l2 = prev_values.get(short), prev_values.get(long)
        c1, c2 = cur_values.get(short), cur_values.get(long)
        if not _positive(l1, l2, c1, c2):
            continue

        prev_ratio = l1 / l2
        cur_ratio = c1 / c2
        if prev_ratio < 1 <= cur_ratio:
            signal = "golden"
        elif prev_ratio >= 1 > cur_ratio:
            signal = "death"
        else:
            continue

        messages.append(AnalysisMessage(
            pair_id=pair_id,
            kind=kind,
            signal=signal,
            text=(
                f"{pair_id}-{short}-{long}-{label}: '{signal}' cross occurred "
                f"between {short}-{label} and {long}-{label}."
            ),
        ))
    return messages


def macd_analysis(previous: RankingRecord, current: RankingRecord) -> list[AnalysisMessage]:
    """MACD crossing the zero line and crossing its signal line."""
    prev, cur = previous.indicators.macd, current.indicators.macd
    pair_id = current.pair_id
    messages = []

    if prev.value is not None and cur.value is not None:
        if prev.value < 0 <= cur.value:
            direction = "UP"
        elif prev.value >= 0 > cur.value:
            direction = "DOWN"
        else:
            direction = None
        if direction:
            messages.append(AnalysisMessage(
                pair_id=pair_id,
                kind="macd",
                signal=f"base_{direction.lower()}",
                text=f"{pair_id}-MACD: crossed the BASE line moving {direction}.",
            ))

    if None not in (prev.value, prev.signal, cur.value, cur.signal):
        prev_spread = prev.value - prev.signal
        cur_spread = cur.value - cur.signal
        if prev_spread < 0 <= cur_spread:
            direction = "UP"
        elif prev_spread >= 0 > cur_spread:
            direction = "DOWN"
        else:
            direction = None
        if direction:
            messages.append(AnalysisMessage(
                pair_id=pair_id,
                kind="macd",
                signal=f"signal_{direction.lower()}",
                text=f"{pair_id}-MACD: crossed the SIGNAL line moving {direction}.",
            ))
    return messages


def rsi_analysis(
    previous: RankingRecord,
    current: RankingRecord,
    last_close: float,
    overbought: float = RSI_OVERBOUGHT,
    oversold: float = RSI_OVERSOLD,
) -> list[AnalysisMessage]:
    """RSI entering overbought or oversold from inside the range."""
    prev, cur = previous.indicators.rsi, current.indicators.rsi
    if prev is None or cur is None:
        return []

    if not oversold <= prev <= overbought:
        return []

    pair_id = current.pair_id
    if cur > overbought:
        zone = "overbought"
    elif cur < oversold:
        zone = "oversold"
    else:
        return []

    return [AnalysisMessage(
        pair_id=pair_id,
        kind="rsi",
        signal=zone,
        text=f"{pair_id}-RSI: now {zone} starting @${last_close}, RSI: {cur}.",
    )]


def analyze(
    previous: RankingRecord | None,
    current: RankingRecord,
    last_close: float | None = None,
    overbought: float = RSI_OVERBOUGHT,
    oversold: float = RSI_OVERSOLD,
) -> list[AnalysisMessage]:
    """All transitions for one pair; empty on the first snapshot."""
    if previous is None:
        return []
    if last_close is None:
        last_close = current.last.close
    return [
        *cross_analysis(previous, current, "sma"),
        *cross_analysis(previous, current, "ema"),
        *macd_analysis(previous, current),
        *rsi_analysis(previous, current, last_close, overbought, oversold),
    ]
