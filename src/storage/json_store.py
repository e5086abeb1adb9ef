# src/storage/json_store.py
"""JSON file implementation of the trading store."""
import asyncio
import json
import logging
import os
from dataclasses import fields
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os

from src.models.records import (
    DailySnapshot,
    DecisionRecord,
    OrderType,
    RiskEvent,
    RiskEventType,
    RiskSeverity,
    StrategyScore,
    TradeRecord,
    TradeStatus,
)
from src.models.trading import Direction, PortfolioState, PositionState, PositionStatus, Side
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


def _encode(value: Any) -> Any:
    """Convert a field value into something json.dumps accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_encode(v) for v in value]
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    return value


def _record_to_dict(record: Any) -> dict:
    """Convert a dataclass row to a JSON-ready dict."""
    return {f.name: _encode(getattr(record, f.name)) for f in fields(record)}


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class JsonFileStore(TradingStore):
    """Stores every table as one JSON document under data_dir.

    Tables are cached in memory and reloaded when the file's mtime or size changes,
    so several service processes can share one data_dir. Every mutation
    rewrites the whole table. All mutations go through one asyncio.Lock,
    which makes transition_trade an atomic compare-and-set within the process.
    """

    def __init__(self, data_dir: Path = Path("data/store")) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory holding one JSON file per table.
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, dict] = {}
        self._signatures: dict[str, tuple[int, int]] = {}
        self._lock = asyncio.Lock()

    def _get_file_path(self, table: str) -> Path:
        return self._data_dir / f"{table}.json"

    def _signature(self, file_path: Path) -> tuple[int, int]:
        if not file_path.exists():
            return (0, 0)
        stat = file_path.stat()
        return (stat.st_mtime_ns, stat.st_size)

    async def _read_table(self, table: str) -> dict:
        """Read a table from cache or disk. Missing tables are empty."""
        file_path = self._get_file_path(table)
        signature = self._signature(file_path)
        if table in self._cache and self._signatures.get(table) == signature:
            return self._cache[table]

        data: dict = {}
        if signature != (0, 0):
            async with aiofiles.open(file_path, "r") as f:
                content = await f.read()
            if content.strip():
                data = json.loads(content)
            logger.debug(f"Loaded {len(data)} rows from {file_path}")

        self._cache[table] = data
        self._signatures[table] = signature
        return data

    async def _write_table(self, table: str, data: dict) -> None:
        """Write a table to disk and refresh the cache.

        The document goes to a temp file in data_dir first and is swapped in
        with os.replace, so readers in other processes see either the old or
        the new table, never a truncated one.
        """
        file_path = self._get_file_path(table)
        tmp_path = file_path.with_name(f".{file_path.name}.{os.getpid()}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(json.dumps(data, indent=2))
            await aiofiles.os.replace(tmp_path, file_path)
        finally:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
        self._cache[table] = data
        self._signatures[table] = self._signature(file_path)

    # Row converters

    def _trade_from_dict(self, data: dict) -> TradeRecord:
        return TradeRecord(
            id=data["id"],
            market_id=data["market_id"],
            token_id=data["token_id"],
            side=Side(data["side"]),
            direction=Direction(data["direction"]),
            size_usd=data["size_usd"],
            price=data["price"],
            order_type=OrderType(data.get("order_type", OrderType.MARKET.value)),
            status=TradeStatus(data["status"]),
            retry_count=data.get("retry_count", 0),
            tx_hash=data.get("tx_hash"),
            filled_price=data.get("filled_price"),
            filled_size_usd=data.get("filled_size_usd"),
            slippage=data.get("slippage"),
            gas_used=data.get("gas_used"),
            error_message=data.get("error_message"),
            realized_pnl=data.get("realized_pnl"),
            strategy_id=data.get("strategy_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            executed_at=_parse_datetime(data.get("executed_at")),
        )

    def _score_from_dict(self, data: dict) -> StrategyScore:
        return StrategyScore(
            strategy_id=data["strategy_id"],
            weight=data.get("weight", 1.0),
            win_rate=data.get("win_rate", 0.5),
            total_trades=data.get("total_trades", 0),
            total_pnl=data.get("total_pnl", 0.0),
            active=data.get("active", True),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def _decision_from_dict(self, data: dict) -> DecisionRecord:
        return DecisionRecord(
            id=data["id"],
            market_id=data["market_id"],
            strategy_ids=list(data.get("strategy_ids", [])),
            should_trade=data["should_trade"],
            side=Side(data["side"]),
            direction=Direction(data["direction"]),
            confidence=data["confidence"],
            position_size_usd=data["position_size_usd"],
            consensus_method=data["consensus_method"],
            reasoning=data.get("reasoning", ""),
            approved=data.get("approved"),
            executed=data.get("executed", False),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def _event_from_dict(self, data: dict) -> RiskEvent:
        return RiskEvent(
            id=data["id"],
            event_type=RiskEventType(data["event_type"]),
            severity=RiskSeverity(data["severity"]),
            message=data["message"],
            details=data.get("details", {}),
            resolved=data.get("resolved", False),
            created_at=datetime.fromisoformat(data["created_at"]),
            resolved_at=_parse_datetime(data.get("resolved_at")),
        )

    def _snapshot_from_dict(self, data: dict) -> DailySnapshot:
        return DailySnapshot(
            date=date.fromisoformat(data["date"]),
            portfolio_value=data["portfolio_value"],
            daily_pnl=data["daily_pnl"],
            daily_pnl_percent=data["daily_pnl_percent"],
            trade_count=data.get("trade_count", 0),
        )

    # Strategy scores

    async def get_active_strategy_scores(self) -> list[StrategyScore]:
        table = await self._read_table("strategy_scores")
        scores = [self._score_from_dict(row) for row in table.values()]
        return [s for s in scores if s.active]

    async def get_strategy_score(self, strategy_id: str) -> Optional[StrategyScore]:
        table = await self._read_table("strategy_scores")
        row = table.get(strategy_id)
        return self._score_from_dict(row) if row else None

    async def save_strategy_score(self, score: StrategyScore) -> None:
        async with self._lock:
            table = dict(await self._read_table("strategy_scores"))
            score.updated_at = datetime.now()
            table[score.strategy_id] = _record_to_dict(score)
            await self._write_table("strategy_scores", table)

    # Consensus decisions

    async def record_decision(self, decision: DecisionRecord) -> None:
        async with self._lock:
            table = dict(await self._read_table("decisions"))
            table[decision.id] = _record_to_dict(decision)
            await self._write_table("decisions", table)

    async def update_decision(self, decision_id: str, **fields) -> Optional[DecisionRecord]:
        async with self._lock:
            table = dict(await self._read_table("decisions"))
            row = table.get(decision_id)
            if row is None:
                return None
            row = {**row, **{k: _encode(v) for k, v in fields.items()}}
            table[decision_id] = row
            await self._write_table("decisions", table)
        return self._decision_from_dict(row)

    async def get_decisions_since(self, since: datetime, limit: int) -> list[DecisionRecord]:
        table = await self._read_table("decisions")
        decisions = [self._decision_from_dict(row) for row in table.values()]
        decisions = [d for d in decisions if d.created_at >= since]
        decisions.sort(key=lambda d: d.created_at, reverse=True)
        return decisions[:limit]

    # Kill switch

    async def is_kill_switch_active(self) -> bool:
        state = await self._read_table("state")
        return bool(state.get("kill_switch_active", False))

    async def set_kill_switch(self, active: bool) -> None:
        async with self._lock:
            state = dict(await self._read_table("state"))
            state["kill_switch_active"] = active
            state["kill_switch_updated_at"] = datetime.now().isoformat()
            await self._write_table("state", state)

    # Risk events

    async def record_risk_event(self, event: RiskEvent) -> None:
        async with self._lock:
            table = dict(await self._read_table("risk_events"))
            table[event.id] = _record_to_dict(event)
            await self._write_table("risk_events", table)

    async def get_risk_events(self, limit: int = 50) -> list[RiskEvent]:
        table = await self._read_table("risk_events")
        events = [self._event_from_dict(row) for row in table.values()]
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events[:limit]

    async def resolve_risk_events(self, event_type: RiskEventType) -> int:
        async with self._lock:
            table = dict(await self._read_table("risk_events"))
            now = datetime.now().isoformat()
            resolved = 0
            for event_id, row in table.items():
                if row["event_type"] == event_type.value and not row.get("resolved"):
                    table[event_id] = {**row, "resolved": True, "resolved_at": now}
                    resolved += 1
            await self._write_table("risk_events", table)
        return resolved

    # Positions

    async def get_open_positions(self, market_id: Optional[str] = None) -> list[PositionState]:
        table = await self._read_table("positions")
        positions = [PositionState.model_validate(row) for row in table.values()]
        return [
            p for p in positions
            if p.status == PositionStatus.OPEN and (market_id is None or p.market_id == market_id)
        ]

    async def save_position(self, position: PositionState) -> None:
        async with self._lock:
            table = dict(await self._read_table("positions"))
            table[position.id] = position.model_dump(mode="json")
            await self._write_table("positions", table)

    # Trades

    async def create_trade(self, trade: TradeRecord) -> None:
        async with self._lock:
            table = dict(await self._read_table("trades"))
            if trade.id in table:
                raise ValueError(f"Trade {trade.id} already exists")
            table[trade.id] = _record_to_dict(trade)
            await self._write_table("trades", table)

    async def get_trade(self, trade_id: str) -> Optional[TradeRecord]:
        table = await self._read_table("trades")
        row = table.get(trade_id)
        return self._trade_from_dict(row) if row else None

    async def update_trade(self, trade_id: str, **fields) -> Optional[TradeRecord]:
        if "status" in fields:
            raise ValueError("Use transition_trade to change trade status")

        async with self._lock:
            table = dict(await self._read_table("trades"))
            row = table.get(trade_id)
            if row is None:
                return None
            row = {**row, **{k: _encode(v) for k, v in fields.items()}}
            row["updated_at"] = datetime.now().isoformat()
            table[trade_id] = row
            await self._write_table("trades", table)
        return self._trade_from_dict(row)

    async def transition_trade(
        self,
        trade_id: str,
        expected: TradeStatus,
        new: TradeStatus,
        **fields,
    ) -> bool:
        async with self._lock:
            table = dict(await self._read_table("trades"))
            row = table.get(trade_id)
            if row is None or row["status"] != expected.value:
                return False
            row = {**row, **{k: _encode(v) for k, v in fields.items()}}
            row["status"] = new.value
            row["updated_at"] = datetime.now().isoformat()
            table[trade_id] = row
            await self._write_table("trades", table)
        return True

    async def get_filled_trades(
        self,
        since: Optional[datetime] = None,
        market_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[TradeRecord]:
        table = await self._read_table("trades")
        trades = [self._trade_from_dict(row) for row in table.values()]
        trades = [
            t for t in trades
            if t.status == TradeStatus.FILLED
            and (market_id is None or t.market_id == market_id)
            and (since is None or (t.executed_at or t.created_at) >= since)
        ]
        trades.sort(key=lambda t: t.executed_at or t.created_at, reverse=True)
        return trades[:limit] if limit is not None else trades

    # Portfolio

    async def get_portfolio(self) -> Optional[PortfolioState]:
        table = await self._read_table("portfolio")
        if not table:
            return None
        return PortfolioState.model_validate(table)

    async def save_portfolio(self, portfolio: PortfolioState) -> None:
        async with self._lock:
            data = portfolio.model_dump(mode="json", exclude={"positions"})
            await self._write_table("portfolio", data)

    async def record_daily_snapshot(self, snapshot: DailySnapshot) -> None:
        async with self._lock:
            table = dict(await self._read_table("daily_snapshots"))
            table[snapshot.date.isoformat()] = _record_to_dict(snapshot)
            await self._write_table("daily_snapshots", table)

    async def get_daily_snapshots(self, limit: int) -> list[DailySnapshot]:
        table = await self._read_table("daily_snapshots")
        snapshots = sorted(
            (self._snapshot_from_dict(row) for row in table.values()),
            key=lambda s: s.date,
        )
        return snapshots[-limit:] if limit > 0 else []
