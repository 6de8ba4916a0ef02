"""Revoke tool session state."""

import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .epoch import Epoch
from ..core.constants import SUPPORTED_CHAIN_IDS
from ..core.models import (
    ApprovalsResponse,
    ExecutionStrategy,
    RevokeBatchResult,
    RevokeFilter,
    RevokeItem,
    RevokeRisk,
    RevokeStatus,
)
from ..core.revoke import RevokeOrchestrator
from ..services.approvals import ApprovalScanService, calculate_total_value_at_risk, to_revoke_items


logger = logging.getLogger(__name__)


class RevokeSession:
    def __init__(self, scanner: ApprovalScanService, orchestrator: RevokeOrchestrator):
        self.scanner = scanner
        self.orchestrator = orchestrator
        self.scan_epoch = Epoch()
        self.filter = RevokeFilter()
        self.strategy = ExecutionStrategy.LEGACY
        self._clear()

    def _clear(self) -> None:
        self.status = RevokeStatus.IDLE
        self.approvals: List[ApprovalsResponse] = []
        self.items: List[RevokeItem] = []
        self.error: Optional[str] = None
        self.last_scan_time: Optional[float] = None
        self.progress: Optional[Tuple[int, int]] = None
        self.last_result: Optional[RevokeBatchResult] = None

    # -- derived ---------------------------------------------------------

    @property
    def selected_items(self) -> List[RevokeItem]:
        return [item for item in self.items if item.selected]

    @property
    def total_value_at_risk(self) -> float:
        return calculate_total_value_at_risk(self.approvals)

    @property
    def selected_value_at_risk(self) -> float:
        return sum(item.value_at_risk_usd for item in self.selected_items)

    @property
    def filtered_items(self) -> List[RevokeItem]:
        f = self.filter
        result = []
        for item in self.items:
            if item.chain_id not in f.selected_chains:
                continue
            if not f.show_unlimited and item.is_unlimited:
                continue
            if not f.show_high_risk and item.risk == RevokeRisk.HIGH:
                continue
            if item.value_at_risk_usd < f.min_value_at_risk:
                continue
            result.append(item)
        return result

    @property
    def items_by_chain(self) -> Dict[int, List[RevokeItem]]:
        grouped: Dict[int, List[RevokeItem]] = {chain_id: [] for chain_id in sorted(SUPPORTED_CHAIN_IDS)}
        for item in self.items:
            if item.chain_id in grouped:
                grouped[item.chain_id].append(item)
        return grouped

    @property
    def chain_stats(self) -> List[Dict[str, Any]]:
        return [
            {
                "chain_id": chain_id,
                "count": len(items),
                "value_at_risk": sum(i.value_at_risk_usd for i in items),
                "unlimited_count": sum(1 for i in items if i.is_unlimited),
                "high_risk_count": sum(1 for i in items if i.risk == RevokeRisk.HIGH),
            }
            for chain_id, items in self.items_by_chain.items()
        ]

    # -- actions ---------------------------------------------------------

    async def scan_approvals(self, address: str, chain_ids: Optional[Sequence[int]] = None) -> None:
        epoch = self.scan_epoch.begin()
        self.status = RevokeStatus.SCANNING
        self.error = None
        self.items = []
        self.approvals = []

        try:
            results = await self.scanner.get_all_approvals(address, list(chain_ids or self.filter.selected_chains))
        except Exception as exc:
            if self.scan_epoch.is_current(epoch):
                logger.error(f"Approval scan failed: {exc}")
                self.error = getattr(exc, "message", None) or str(exc)
                self.status = RevokeStatus.FAILED
            return

        if not self.scan_epoch.is_current(epoch):
            return

        self.approvals = results
        self.items = to_revoke_items(results)
        self.last_scan_time = time.time()
        self.status = RevokeStatus.IDLE

    def _select(self, predicate) -> None:
        self.items = [dataclasses.replace(item, selected=bool(predicate(item))) for item in self.items]

    def toggle_item(self, item_id: str) -> None:
        self.items = [
            dataclasses.replace(item, selected=not item.selected) if item.id == item_id else item
            for item in self.items
        ]

    def select_all(self) -> None:
        self._select(lambda item: True)

    def select_none(self) -> None:
        self._select(lambda item: False)

    def select_high_risk(self) -> None:
        self._select(lambda item: item.risk == RevokeRisk.HIGH)

    def select_unlimited(self) -> None:
        self._select(lambda item: item.is_unlimited)

    def select_by_chain(self, chain_id: int) -> None:
        self._select(lambda item: item.chain_id == chain_id)

    def set_filter(self, **changes: Any) -> None:
        self.filter = dataclasses.replace(self.filter, **changes)

    def set_strategy(self, strategy: ExecutionStrategy) -> None:
        self.strategy = strategy

    async def execute_revoke(self, owner: str, chain_id: int) -> Optional[RevokeBatchResult]:
        """Revoke the selected items on one chain and drop the ones that went through."""
        to_revoke = [item for item in self.selected_items if item.chain_id == chain_id]
        if not to_revoke:
            self.error = "No items selected for this chain"
            return None

        self.status = RevokeStatus.REVOKING
        self.error = None
        self.last_result = None
        self.progress = (0, len(to_revoke))

        def on_progress(current: int, total: int) -> None:
            self.progress = (current, total)

        try:
            result = await self.orchestrator.execute_revoke(
                to_revoke, owner, chain_id, self.strategy, on_progress
            )
        except Exception as exc:
            logger.error(f"Revoke run failed: {exc}")
            self.error = getattr(exc, "message", None) or str(exc)
            self.status = RevokeStatus.FAILED
            raise
        finally:
            self.progress = None

        self.last_result = result
        if result.revoked_ids:
            revoked = set(result.revoked_ids)
            self.items = [item for item in self.items if item.id not in revoked]

        self.status = RevokeStatus.COMPLETED if result.success else RevokeStatus.FAILED
        if not result.success and result.errors:
            self.error = " | ".join(result.errors)
        return result

    async def revoke_single(self, item: RevokeItem, owner: str) -> bool:
        self.status = RevokeStatus.REVOKING
        self.error = None

        result = await self.orchestrator.execute_single_revoke(item, owner, item.chain_id)
        if result.success:
            self.items = [i for i in self.items if i.id != item.id]
            self.status = RevokeStatus.COMPLETED
            return True

        self.error = result.error or "Failed to revoke"
        self.status = RevokeStatus.FAILED
        return False

    def reset(self) -> None:
        self.scan_epoch.reset()
        self._clear()
