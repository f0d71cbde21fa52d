"""Financial snapshot collaborator.

The runtime only ever reads balances. Sources must never raise: on any
transport failure they return an empty snapshot, which evaluates to the
``dead`` tier, so a broken backend degrades the automaton instead of
crashing the cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx
from loguru import logger


@dataclass(frozen=True)
class FinancialSnapshot:
    credits_cents: int = 0
    usdc_balance: float = 0.0
    sol_balance: float = 0.0  # gas only; not counted towards survival

    @property
    def total_usd(self) -> float:
        return self.credits_cents / 100 + self.usdc_balance

    @classmethod
    def empty(cls) -> "FinancialSnapshot":
        return cls()


class FundingSource(Protocol):
    async def get_snapshot(self) -> FinancialSnapshot: ...


class StaticFundingSource:
    """Fixed balances. Used offline and in tests."""

    def __init__(self, snapshot: FinancialSnapshot | None = None):
        self.snapshot = snapshot or FinancialSnapshot.empty()
        self.calls = 0

    async def get_snapshot(self) -> FinancialSnapshot:
        self.calls += 1
        return self.snapshot


class CreditsFundingSource:
    """Reads the compute-credit balance from an HTTP endpoint.

    The endpoint is expected to return JSON with ``balance_cents`` (or
    ``credits_cents``) and optionally ``usdc_balance`` / ``sol_balance``.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def get_snapshot(self) -> FinancialSnapshot:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            if self._client is not None:
                resp = await self._client.get(self.api_url, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(self.api_url, headers=headers)
            resp.raise_for_status()
            data = resp.json()
            cents = data.get("balance_cents", data.get("credits_cents", 0))
            return FinancialSnapshot(
                credits_cents=int(cents or 0),
                usdc_balance=float(data.get("usdc_balance", 0) or 0),
                sol_balance=float(data.get("sol_balance", 0) or 0),
            )
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Funding snapshot unavailable ({self.api_url}): {e}")
            return FinancialSnapshot.empty()


def create_funding_source(config) -> FundingSource:
    """Build the funding source described by ``config.funding``."""
    funding = config.funding
    if funding.static_credits_cents is not None:
        return StaticFundingSource(FinancialSnapshot(credits_cents=funding.static_credits_cents))
    if funding.credits_api_url:
        return CreditsFundingSource(
            funding.credits_api_url,
            api_key=funding.credits_api_key,
            timeout=funding.request_timeout,
        )
    logger.warning("No funding source configured; balances will read as zero")
    return StaticFundingSource()
