"""
Headline ingestion: turns a plain-text file of headlines (one per line) into
per-symbol sentiment samples.

Scoring is a keyword count: +0.5 per positive keyword, -0.5 per negative one,
clamped to [-1, 1].
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from core.errors import DataUnavailable
from core.sentiment import day_window

POSITIVE_KEYWORDS = (
    "profit", "profits", "growth", "growing", "acquires", "acquisition",
    "upgrade", "record high", "wins", "secured",
)
NEGATIVE_KEYWORDS = ("loss", "losses", "fraud", "cut", "downgrade", "lawsuit", "penalty")

KEYWORD_WEIGHT = 0.5


def score_headline(
    headline: str,
    positive: Sequence[str] = POSITIVE_KEYWORDS,
    negative: Sequence[str] = NEGATIVE_KEYWORDS,
) -> float:
    text = headline.lower()
    score = 0.0
    for word in positive:
        if word in text:
            score += KEYWORD_WEIGHT
    for word in negative:
        if word in text:
            score -= KEYWORD_WEIGHT
    return max(-1.0, min(1.0, score))


def extract_symbol(headline: str, watchlist: Iterable[str]) -> Optional[str]:
    """First watched symbol named in the headline as a whole word."""
    for symbol in watchlist:
        if re.search(rf"(?<![A-Za-z0-9]){re.escape(symbol)}(?![A-Za-z0-9])", headline):
            return symbol
    return None


def process_news_file(store, path, watchlist: Sequence[str], now: datetime) -> int:
    """
    Replace today's stored headlines with the ones in `path`.

    Headlines that name no watched symbol are dropped. Returns the number of
    samples stored; a missing or empty file leaves the store untouched, and
    an unreadable one raises DataUnavailable.
    """
    path = Path(path)
    if not path.exists():
        logging.warning("News file %s not found – skipping news ingestion.", path)
        return 0

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DataUnavailable(f"cannot read news file {path}: {e}") from e

    headlines = [line.strip() for line in text.splitlines() if line.strip()]
    if not headlines:
        logging.warning("No headlines found in %s", path)
        return 0

    rows: List = []
    for headline in headlines:
        symbol = extract_symbol(headline, watchlist)
        if symbol is None:
            logging.debug("No watched symbol in headline: %s", headline)
            continue
        score = score_headline(headline)
        logging.debug("%s: %+.1f | %s", symbol, score, headline)
        rows.append((symbol, headline, score, now))

    start, end = day_window(now.date())
    store.replace_news(start, end, rows)
    logging.info("Processed %d news items (%d headlines read)", len(rows), len(headlines))
    return len(rows)
