from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from vault_paths.core.utils.receipts import ReceiptStatus, ReceiptWaiter

TX = "0x" + "ab" * 32


def _waiter(fetch_receipt, *, timeout: float = 1.0, **kwargs) -> ReceiptWaiter:
    return ReceiptWaiter(
        8453,
        poll_interval=0.01,
        timeout=timeout,
        fetch_receipt=fetch_receipt,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_check_pending_without_receipt():
    waiter = _waiter(AsyncMock(return_value=None))
    result = await waiter.check(TX)
    assert result.status is ReceiptStatus.PENDING
    assert not result.is_terminal


@pytest.mark.asyncio
async def test_check_reverted_on_status_zero():
    waiter = _waiter(AsyncMock(return_value={"status": 0, "blockNumber": 10}))
    result = await waiter.check(TX)
    assert result.status is ReceiptStatus.REVERTED
    assert TX in (result.reason or "")


@pytest.mark.asyncio
async def test_check_normalizes_hash_prefix():
    fetch = AsyncMock(return_value={"status": 1, "blockNumber": 10})
    waiter = _waiter(fetch)
    result = await waiter.check("ab" * 32)
    assert result.txn_hash == TX
    fetch.assert_awaited_once_with(TX)


@pytest.mark.asyncio
async def test_check_waits_for_confirmations():
    waiter = _waiter(
        AsyncMock(return_value={"status": 1, "blockNumber": 100}),
        confirmations=3,
        fetch_block_number=AsyncMock(return_value=101),
    )
    assert (await waiter.check(TX)).status is ReceiptStatus.PENDING

    waiter._fetch_block_number = AsyncMock(return_value=102)
    assert (await waiter.check(TX)).status is ReceiptStatus.CONFIRMED


@pytest.mark.asyncio
async def test_wait_polls_until_confirmed():
    fetch = AsyncMock(side_effect=[None, None, {"status": 1, "blockNumber": 5}])
    waiter = _waiter(fetch)
    result = await waiter.wait(TX)
    assert result.status is ReceiptStatus.CONFIRMED
    assert fetch.await_count == 3


@pytest.mark.asyncio
async def test_wait_survives_transient_poll_errors():
    fetch = AsyncMock(
        side_effect=[RuntimeError("rpc hiccup"), {"status": 1, "blockNumber": 5}]
    )
    result = await _waiter(fetch).wait(TX)
    assert result.status is ReceiptStatus.CONFIRMED


@pytest.mark.asyncio
async def test_wait_times_out_as_pending():
    result = await _waiter(AsyncMock(return_value=None), timeout=0.05).wait(TX)
    assert result.status is ReceiptStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_stops_in_flight_wait():
    waiter = _waiter(AsyncMock(return_value=None), timeout=5.0)
    task = asyncio.create_task(waiter.wait(TX))
    await asyncio.sleep(0.03)
    waiter.cancel()
    result = await asyncio.wait_for(task, timeout=1.0)
    assert result.status is ReceiptStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_does_not_affect_later_waits():
    waiter = _waiter(AsyncMock(return_value={"status": 1, "blockNumber": 1}))
    waiter.cancel()
    result = await waiter.wait(TX)
    assert result.status is ReceiptStatus.CONFIRMED
