"""Octopus Agile price feed."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
import logging
from typing import Any

import aiohttp
from homeassistant.util import dt as dt_util

from ..const import OCTOPUS_URL, REQUEST_TIMEOUT
from ..decision_engine.common import SLOT_DURATION, Slot

_LOGGER = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised when rates cannot be retrieved."""


def split_rates(rates: list[dict[str, Any]], now: datetime) -> list[Slot]:
    """Split rates into 30 minute slots, dropping those already finished."""
    slots: dict[datetime, Slot] = {}

    for rate in rates:
        valid_from = dt_util.parse_datetime(str(rate.get("valid_from") or ""))
        if valid_from is None:
            continue
        valid_to = dt_util.parse_datetime(str(rate.get("valid_to") or ""))
        if valid_to is None:
            valid_to = valid_from + SLOT_DURATION
        try:
            price = float(rate["value_inc_vat"])
        except (KeyError, ValueError, TypeError):
            continue

        start = dt_util.as_utc(valid_from)
        end = dt_util.as_utc(valid_to)
        while start < end:
            slots[start] = Slot(start=start, end=start + SLOT_DURATION, price=price)
            start += SLOT_DURATION

    now_utc = dt_util.as_utc(now)
    return [slots[start] for start in sorted(slots) if slots[start].end > now_utc]


async def async_fetch_agile_slots(
    session: aiohttp.ClientSession,
    product_code: str,
    tariff_code: str,
    now: datetime,
) -> list[Slot]:
    """Fetch Agile unit rates around now and return upcoming slots."""
    url = (
        f"{OCTOPUS_URL}/v1/products/{product_code}/electricity-tariffs/"
        f"{tariff_code}/standard-unit-rates/"
    )
    params = {
        "period_from": (now - timedelta(days=1)).isoformat(),
        "period_to": (now + timedelta(days=2)).isoformat(),
        "page_size": "1500",
    }

    try:
        async with session.get(
            url, params=params, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
        ) as resp:
            if resp.status != 200:
                raise PriceFeedError(f"Octopus API returned status {resp.status}")
            data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
        raise PriceFeedError(f"Error fetching Octopus rates: {err}") from err

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list):
        raise PriceFeedError("No rates in Octopus API response")

    slots = split_rates(results, now)
    _LOGGER.debug(
        "Retrieved %d Octopus rates for %s, %d upcoming slots",
        len(results),
        tariff_code,
        len(slots),
    )
    return slots
