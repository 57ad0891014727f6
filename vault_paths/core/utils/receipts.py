from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger
from web3.exceptions import TransactionNotFound

from vault_paths.core.constants.base import (
    DEFAULT_RECEIPT_CONFIRMATIONS,
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_TRANSACTION_TIMEOUT,
)
from vault_paths.core.utils.transaction import normalize_tx_hash
from vault_paths.core.utils.web3 import web3s_from_chain_id

ReceiptFetcher = Callable[[str], Awaitable[dict[str, Any] | None]]
BlockNumberFetcher = Callable[[], Awaitable[int]]


class ReceiptStatus(StrEnum):
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReceiptResult:
    status: ReceiptStatus
    txn_hash: str
    receipt: dict[str, Any] | None = None
    reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not ReceiptStatus.PENDING


class ReceiptWaiter:
    """Resolve a submitted transaction to confirmed, reverted or pending.

    ``wait`` polls until a terminal state or the timeout; ``cancel`` makes
    every in-flight ``wait`` return ``cancelled`` without raising.
    """

    def __init__(
        self,
        chain_id: int,
        *,
        poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
        timeout: float = DEFAULT_TRANSACTION_TIMEOUT,
        confirmations: int = DEFAULT_RECEIPT_CONFIRMATIONS,
        fetch_receipt: ReceiptFetcher | None = None,
        fetch_block_number: BlockNumberFetcher | None = None,
    ) -> None:
        self.chain_id = int(chain_id)
        self.poll_interval = float(poll_interval)
        self.timeout = float(timeout)
        self.confirmations = max(1, int(confirmations))
        self._fetch_receipt = fetch_receipt or self._rpc_receipt
        self._fetch_block_number = fetch_block_number or self._rpc_block_number
        self._cancel_event = asyncio.Event()
        self.logger = logger.bind(component="ReceiptWaiter", chain_id=self.chain_id)

    async def _rpc_receipt(self, txn_hash: str) -> dict[str, Any] | None:
        async def _get(web3) -> dict[str, Any] | None:
            try:
                return dict(await web3.eth.get_transaction_receipt(txn_hash))
            except TransactionNotFound:
                return None

        async with web3s_from_chain_id(self.chain_id) as web3s:
            receipts = await asyncio.gather(*[_get(w) for w in web3s])
        return next((r for r in receipts if r is not None), None)

    async def _rpc_block_number(self) -> int:
        async with web3s_from_chain_id(self.chain_id) as web3s:
            numbers = await asyncio.gather(*[w.eth.block_number for w in web3s])
        return max(numbers)

    async def check(self, txn_hash: str) -> ReceiptResult:
        txn_hash = normalize_tx_hash(txn_hash)
        receipt = await self._fetch_receipt(txn_hash)
        if receipt is None:
            return ReceiptResult(ReceiptStatus.PENDING, txn_hash)

        if int(receipt.get("status", 1)) == 0:
            return ReceiptResult(
                ReceiptStatus.REVERTED,
                txn_hash,
                receipt=receipt,
                reason=f"Transaction reverted (status=0): {txn_hash}",
            )

        if self.confirmations > 1:
            target_block = int(receipt.get("blockNumber") or 0) + self.confirmations - 1
            if await self._fetch_block_number() < target_block:
                return ReceiptResult(ReceiptStatus.PENDING, txn_hash, receipt=receipt)

        return ReceiptResult(ReceiptStatus.CONFIRMED, txn_hash, receipt=receipt)

    async def wait(
        self, txn_hash: str, *, cancel_event: asyncio.Event | None = None
    ) -> ReceiptResult:
        """Poll until terminal, the timeout, or a cancel.

        ``cancel_event`` replaces the waiter's own event so a caller can
        cancel one flow without touching other waits.
        """
        txn_hash = normalize_tx_hash(txn_hash)
        cancelled = self._cancel_event if cancel_event is None else cancel_event
        deadline = time.monotonic() + self.timeout
        last = ReceiptResult(ReceiptStatus.PENDING, txn_hash)

        while not cancelled.is_set():
            try:
                last = await self.check(txn_hash)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(f"Receipt poll failed for {txn_hash}: {exc}")
            if last.is_terminal:
                return last

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.warning(
                    f"Timed out after {self.timeout}s waiting for {txn_hash}"
                )
                return last
            try:
                await asyncio.wait_for(
                    cancelled.wait(), timeout=min(self.poll_interval, remaining)
                )
            except TimeoutError:
                continue

        self.logger.info(f"Stopped waiting for {txn_hash}")
        return ReceiptResult(ReceiptStatus.CANCELLED, txn_hash)

    def cancel(self) -> None:
        self._cancel_event.set()
        self._cancel_event = asyncio.Event()
