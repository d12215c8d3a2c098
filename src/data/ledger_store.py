"""
Ledger store: traders, positions, trades, decisions, snapshots (SQLite).

One connection per operation; every mutation is a single-row statement so
SQLite's own atomicity is the only transactional guarantee relied upon.
Timestamps are stored as UTC ISO strings.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

from arena_core.contracts import (
    DUST_EPSILON,
    Action,
    DecisionRecord,
    MarketSnapshot,
    PerformanceSnapshot,
    Position,
    Trade,
    Trader,
    TradeSide,
)
from arena_core.errors import PersistenceConflict


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _iso(ts: datetime | None) -> str | None:
    return _utc(ts).isoformat() if ts is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return _utc(ts)


def _now() -> datetime:
    return datetime.now(timezone.utc)


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS traders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        provider TEXT NOT NULL,
        initial_balance REAL NOT NULL,
        current_balance REAL NOT NULL,
        total_pnl REAL NOT NULL DEFAULT 0,
        total_trades INTEGER NOT NULL DEFAULT 0,
        winning_trades INTEGER NOT NULL DEFAULT 0,
        losing_trades INTEGER NOT NULL DEFAULT 0,
        total_api_cost REAL NOT NULL DEFAULT 0,
        total_trading_fees REAL NOT NULL DEFAULT 0,
        total_slippage_cost REAL NOT NULL DEFAULT 0,
        call_count INTEGER NOT NULL DEFAULT 0,
        total_tokens INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS positions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trader_id INTEGER NOT NULL REFERENCES traders(id),
        asset TEXT NOT NULL,
        quantity REAL NOT NULL CHECK (quantity >= 0),
        entry_price REAL NOT NULL,
        current_price REAL NOT NULL,
        invested_value REAL NOT NULL,
        current_value REAL NOT NULL,
        unrealized_pnl REAL NOT NULL DEFAULT 0,
        pnl_pct REAL NOT NULL DEFAULT 0,
        realized_pnl REAL NOT NULL DEFAULT 0,
        stop_loss REAL,
        profit_target REAL,
        invalidation_condition TEXT,
        confidence REAL,
        is_active INTEGER NOT NULL DEFAULT 1,
        opened_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    # At most one active position per (trader, asset).
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_positions_one_active
    ON positions (trader_id, asset) WHERE is_active = 1
    """,
    """
    CREATE TABLE IF NOT EXISTS trades (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trader_id INTEGER NOT NULL REFERENCES traders(id),
        position_id INTEGER REFERENCES positions(id),
        side TEXT NOT NULL,
        asset TEXT NOT NULL,
        price REAL NOT NULL,
        quantity REAL NOT NULL,
        gross_amount REAL NOT NULL,
        net_amount REAL NOT NULL,
        total_value REAL NOT NULL,
        fee REAL NOT NULL,
        slippage REAL NOT NULL,
        pnl REAL,
        pnl_pct REAL,
        reasoning TEXT NOT NULL,
        is_paper INTEGER NOT NULL,
        executed_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS decisions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trader_id INTEGER NOT NULL REFERENCES traders(id),
        action TEXT NOT NULL,
        asset TEXT,
        amount REAL,
        reasoning TEXT NOT NULL,
        confidence REAL,
        profit_target REAL,
        stop_loss REAL,
        invalidation_condition TEXT,
        risk_usd REAL,
        api_cost REAL NOT NULL DEFAULT 0,
        token_count INTEGER NOT NULL DEFAULT 0,
        market_data TEXT,
        portfolio_state TEXT,
        executed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS market_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        asset TEXT NOT NULL,
        price REAL NOT NULL,
        volume_24h REAL NOT NULL,
        price_change_24h REAL NOT NULL,
        indicators TEXT NOT NULL,
        captured_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS performance_history (
        ts_utc TEXT PRIMARY KEY,
        trader_values TEXT NOT NULL,
        benchmark_value REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trading_status (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        is_running INTEGER NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cost_settings (
        key TEXT PRIMARY KEY,
        value REAL NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS benchmark (
        strategy TEXT PRIMARY KEY,
        asset TEXT NOT NULL,
        initial_balance REAL NOT NULL,
        current_value REAL NOT NULL,
        holdings TEXT NOT NULL,
        total_pnl REAL NOT NULL DEFAULT 0,
        pnl_pct REAL NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL
    )
    """,
]

_TRADER_COLUMNS = (
    "id, name, provider, initial_balance, current_balance, total_pnl, total_trades, "
    "winning_trades, losing_trades, total_api_cost, total_trading_fees, total_slippage_cost, "
    "call_count, total_tokens, created_at, updated_at"
)

_POSITION_COLUMNS = (
    "id, trader_id, asset, quantity, entry_price, current_price, invested_value, current_value, "
    "unrealized_pnl, pnl_pct, realized_pnl, stop_loss, profit_target, invalidation_condition, "
    "confidence, is_active, opened_at, updated_at"
)

_TRADE_COLUMNS = (
    "id, trader_id, position_id, side, asset, price, quantity, gross_amount, net_amount, "
    "total_value, fee, slippage, pnl, pnl_pct, reasoning, is_paper, executed_at"
)

_DECISION_COLUMNS = (
    "id, trader_id, action, asset, amount, reasoning, confidence, profit_target, stop_loss, "
    "invalidation_condition, risk_usd, api_cost, token_count, executed, created_at"
)

_POSITION_UPDATABLE = {
    "quantity", "current_price", "invested_value", "current_value", "unrealized_pnl",
    "pnl_pct", "realized_pnl", "stop_loss", "profit_target", "is_active",
}


class LedgerStore:
    """SQLite-backed durable store. One file per path; safe to share across threads."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._conn() as c:
            for stmt in _SCHEMA:
                c.execute(stmt)
            c.execute(
                "INSERT OR IGNORE INTO trading_status (id, is_running, updated_at) VALUES (1, 0, ?)",
                (_iso(_now()),),
            )

    def reset(self) -> None:
        """Drop all experiment rows. Cost settings survive a reset."""
        with self._conn() as c:
            for table in ("trades", "decisions", "positions", "market_snapshots",
                          "performance_history", "benchmark", "traders"):
                c.execute(f"DELETE FROM {table}")
            c.execute("UPDATE trading_status SET is_running = 0, updated_at = ? WHERE id = 1", (_iso(_now()),))

    # ---------- traders ----------

    def create_trader(self, name: str, provider: str, initial_balance: float) -> Trader:
        ts = _iso(_now())
        with self._conn() as c:
            try:
                cur = c.execute(
                    """INSERT INTO traders (name, provider, initial_balance, current_balance, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (name, provider, initial_balance, initial_balance, ts, ts),
                )
            except sqlite3.IntegrityError as exc:
                raise PersistenceConflict(f"Trader {name!r} already exists") from exc
            trader_id = cur.lastrowid
        trader = self.get_trader(trader_id)
        assert trader is not None
        return trader

    def get_trader(self, trader_id: int) -> Trader | None:
        with self._conn() as c:
            row = c.execute(f"SELECT {_TRADER_COLUMNS} FROM traders WHERE id = ?", (trader_id,)).fetchone()
        return self._row_to_trader(row) if row else None

    def get_trader_by_name(self, name: str) -> Trader | None:
        with self._conn() as c:
            row = c.execute(f"SELECT {_TRADER_COLUMNS} FROM traders WHERE name = ?", (name,)).fetchone()
        return self._row_to_trader(row) if row else None

    def list_traders(self) -> list[Trader]:
        with self._conn() as c:
            rows = c.execute(f"SELECT {_TRADER_COLUMNS} FROM traders ORDER BY name").fetchall()
        return [self._row_to_trader(r) for r in rows]

    def apply_trader_delta(
        self,
        trader_id: int,
        *,
        balance: float = 0.0,
        pnl: float = 0.0,
        trades: int = 0,
        wins: int = 0,
        losses: int = 0,
        api_cost: float = 0.0,
        fees: float = 0.0,
        slippage: float = 0.0,
        calls: int = 0,
        tokens: int = 0,
        floor_balance_at_zero: bool = False,
    ) -> None:
        """Increment trader aggregates in one UPDATE."""
        balance_expr = "MAX(0, current_balance + ?)" if floor_balance_at_zero else "current_balance + ?"
        with self._conn() as c:
            c.execute(
                f"""UPDATE traders SET
                        current_balance = {balance_expr},
                        total_pnl = total_pnl + ?,
                        total_trades = total_trades + ?,
                        winning_trades = winning_trades + ?,
                        losing_trades = losing_trades + ?,
                        total_api_cost = total_api_cost + ?,
                        total_trading_fees = total_trading_fees + ?,
                        total_slippage_cost = total_slippage_cost + ?,
                        call_count = call_count + ?,
                        total_tokens = total_tokens + ?,
                        updated_at = ?
                    WHERE id = ?""",
                (balance, pnl, trades, wins, losses, api_cost, fees, slippage, calls, tokens,
                 _iso(_now()), trader_id),
            )

    # ---------- positions ----------

    def insert_position(self, pos: Position) -> Position:
        now = _now()
        opened = pos.opened_at or now
        with self._conn() as c:
            try:
                cur = c.execute(
                    f"""INSERT INTO positions ({_POSITION_COLUMNS})
                        VALUES (NULL, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        pos.trader_id, pos.asset, pos.quantity, pos.entry_price, pos.current_price,
                        pos.invested_value, pos.current_value, pos.unrealized_pnl, pos.pnl_pct,
                        pos.realized_pnl, pos.stop_loss, pos.profit_target, pos.invalidation_condition,
                        pos.confidence, int(pos.is_active), _iso(opened), _iso(pos.updated_at or opened),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise PersistenceConflict(
                    f"Active position already exists for trader {pos.trader_id} in {pos.asset}"
                ) from exc
            position_id = cur.lastrowid
        stored = self.get_position(position_id)
        assert stored is not None
        return stored

    def get_position(self, position_id: int) -> Position | None:
        with self._conn() as c:
            row = c.execute(f"SELECT {_POSITION_COLUMNS} FROM positions WHERE id = ?", (position_id,)).fetchone()
        return self._row_to_position(row) if row else None

    def get_active_position(self, trader_id: int, asset: str) -> Position | None:
        """Active, non-dust position for (trader, asset), if any."""
        with self._conn() as c:
            row = c.execute(
                f"""SELECT {_POSITION_COLUMNS} FROM positions
                    WHERE trader_id = ? AND asset = ? AND is_active = 1 AND quantity > ?""",
                (trader_id, asset, DUST_EPSILON),
            ).fetchone()
        return self._row_to_position(row) if row else None

    def list_active_positions(self, trader_id: int | None = None) -> list[Position]:
        q = f"SELECT {_POSITION_COLUMNS} FROM positions WHERE is_active = 1 AND quantity > ?"
        params: list[Any] = [DUST_EPSILON]
        if trader_id is not None:
            q += " AND trader_id = ?"
            params.append(trader_id)
        q += " ORDER BY id ASC"
        with self._conn() as c:
            rows = c.execute(q, params).fetchall()
        return [self._row_to_position(r) for r in rows]

    def list_closed_positions(self, trader_id: int) -> list[Position]:
        with self._conn() as c:
            rows = c.execute(
                f"SELECT {_POSITION_COLUMNS} FROM positions WHERE trader_id = ? AND is_active = 0 ORDER BY id ASC",
                (trader_id,),
            ).fetchall()
        return [self._row_to_position(r) for r in rows]

    def update_position(self, position_id: int, **fields: Any) -> None:
        unknown = set(fields) - _POSITION_UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update position fields: {sorted(unknown)}")
        if "is_active" in fields:
            fields["is_active"] = int(fields["is_active"])
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._conn() as c:
            c.execute(
                f"UPDATE positions SET {assignments}, updated_at = ? WHERE id = ?",
                (*fields.values(), _iso(_now()), position_id),
            )

    # ---------- trades ----------

    def insert_trade(self, trade: Trade) -> int:
        with self._conn() as c:
            cur = c.execute(
                f"""INSERT INTO trades ({_TRADE_COLUMNS})
                    VALUES (NULL, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    trade.trader_id, trade.position_id, trade.side.value, trade.asset, trade.price,
                    trade.quantity, trade.gross_amount, trade.net_amount, trade.total_value, trade.fee,
                    trade.slippage, trade.pnl, trade.pnl_pct, trade.reasoning, int(trade.is_paper),
                    _iso(trade.executed_at),
                ),
            )
            return int(cur.lastrowid)

    def list_trades(self, trader_id: int | None = None, side: TradeSide | None = None) -> list[Trade]:
        q = f"SELECT {_TRADE_COLUMNS} FROM trades WHERE 1 = 1"
        params: list[Any] = []
        if trader_id is not None:
            q += " AND trader_id = ?"
            params.append(trader_id)
        if side is not None:
            q += " AND side = ?"
            params.append(side.value)
        q += " ORDER BY executed_at ASC, id ASC"
        with self._conn() as c:
            rows = c.execute(q, params).fetchall()
        return [self._row_to_trade(r) for r in rows]

    # ---------- decisions ----------

    def insert_decision(
        self,
        record: DecisionRecord,
        *,
        market_data: Sequence[MarketSnapshot] = (),
        portfolio_state: dict[str, Any] | None = None,
    ) -> int:
        market_json = json.dumps([
            {"asset": m.asset, "price": m.price, "volume_24h": m.volume_24h,
             "price_change_24h": m.price_change_24h, "indicators": m.indicators}
            for m in market_data
        ])
        with self._conn() as c:
            cur = c.execute(
                """INSERT INTO decisions (trader_id, action, asset, amount, reasoning, confidence,
                       profit_target, stop_loss, invalidation_condition, risk_usd, api_cost, token_count,
                       market_data, portfolio_state, executed, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.trader_id, record.action.value, record.asset, record.amount, record.reasoning,
                    record.confidence, record.profit_target, record.stop_loss,
                    record.invalidation_condition, record.risk_usd, record.api_cost, record.token_count,
                    market_json, json.dumps(portfolio_state or {}), int(record.executed),
                    _iso(record.created_at),
                ),
            )
            return int(cur.lastrowid)

    def mark_decision_executed(self, decision_id: int) -> None:
        with self._conn() as c:
            c.execute("UPDATE decisions SET executed = 1 WHERE id = ?", (decision_id,))

    def list_decisions(self, trader_id: int | None = None, limit: int = 100) -> list[DecisionRecord]:
        """Most recent first."""
        q = f"SELECT {_DECISION_COLUMNS} FROM decisions"
        params: list[Any] = []
        if trader_id is not None:
            q += " WHERE trader_id = ?"
            params.append(trader_id)
        q += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._conn() as c:
            rows = c.execute(q, params).fetchall()
        return [self._row_to_decision(r) for r in rows]

    # ---------- market / performance snapshots ----------

    def insert_market_snapshots(self, snapshots: Iterable[MarketSnapshot], captured_at: datetime | None = None) -> int:
        ts = _iso(captured_at or _now())
        rows = [
            (m.asset, m.price, m.volume_24h, m.price_change_24h, json.dumps(m.indicators), ts)
            for m in snapshots
        ]
        with self._conn() as c:
            c.executemany(
                """INSERT INTO market_snapshots (asset, price, volume_24h, price_change_24h, indicators, captured_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                rows,
            )
        return len(rows)

    def count_market_snapshots(self, asset: str | None = None) -> int:
        with self._conn() as c:
            if asset:
                row = c.execute("SELECT COUNT(*) FROM market_snapshots WHERE asset = ?", (asset,)).fetchone()
            else:
                row = c.execute("SELECT COUNT(*) FROM market_snapshots").fetchone()
        return row[0] if row else 0

    def insert_performance_snapshot(self, snapshot: PerformanceSnapshot) -> None:
        """Append one valuation row. Duplicate timestamps raise PersistenceConflict."""
        with self._conn() as c:
            try:
                c.execute(
                    "INSERT INTO performance_history (ts_utc, trader_values, benchmark_value) VALUES (?, ?, ?)",
                    (_iso(snapshot.timestamp), json.dumps(snapshot.values), snapshot.benchmark_value),
                )
            except sqlite3.IntegrityError as exc:
                raise PersistenceConflict(f"Performance snapshot already recorded at {snapshot.timestamp}") from exc

    def list_performance_snapshots(self, limit: int | None = None) -> list[PerformanceSnapshot]:
        q = "SELECT ts_utc, trader_values, benchmark_value FROM performance_history ORDER BY ts_utc ASC"
        params: list[Any] = []
        if limit is not None:
            q += " LIMIT ?"
            params.append(limit)
        with self._conn() as c:
            rows = c.execute(q, params).fetchall()
        return [
            PerformanceSnapshot(
                timestamp=_parse_ts(r["ts_utc"]),
                values=json.loads(r["trader_values"]),
                benchmark_value=r["benchmark_value"],
            )
            for r in rows
        ]

    # ---------- running flag ----------

    def get_running_flag(self) -> bool:
        with self._conn() as c:
            row = c.execute("SELECT is_running FROM trading_status WHERE id = 1").fetchone()
        return bool(row[0]) if row else False

    def set_running_flag(self, running: bool) -> None:
        with self._conn() as c:
            c.execute(
                "UPDATE trading_status SET is_running = ?, updated_at = ? WHERE id = 1",
                (int(running), _iso(_now())),
            )

    # ---------- cost settings ----------

    def get_cost_settings(self) -> dict[str, float]:
        with self._conn() as c:
            rows = c.execute("SELECT key, value FROM cost_settings").fetchall()
        return {r["key"]: r["value"] for r in rows}

    def set_cost_setting(self, key: str, value: float) -> None:
        with self._conn() as c:
            c.execute(
                """INSERT INTO cost_settings (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
                (key, value, _iso(_now())),
            )

    # ---------- benchmark ----------

    def get_benchmark(self, strategy: str) -> dict[str, Any] | None:
        with self._conn() as c:
            row = c.execute(
                """SELECT strategy, asset, initial_balance, current_value, holdings, total_pnl, pnl_pct, updated_at
                   FROM benchmark WHERE strategy = ?""",
                (strategy,),
            ).fetchone()
        if not row:
            return None
        out = dict(row)
        out["holdings"] = json.loads(out["holdings"])
        return out

    def insert_benchmark(self, strategy: str, asset: str, initial_balance: float) -> bool:
        """Create an empty benchmark row. Returns False if it already existed."""
        with self._conn() as c:
            cur = c.execute(
                """INSERT OR IGNORE INTO benchmark (strategy, asset, initial_balance, current_value, holdings, updated_at)
                   VALUES (?, ?, ?, ?, '{}', ?)""",
                (strategy, asset, initial_balance, initial_balance, _iso(_now())),
            )
            return cur.rowcount == 1

    def update_benchmark(
        self,
        strategy: str,
        *,
        current_value: float,
        holdings: dict[str, float] | None = None,
        total_pnl: float | None = None,
        pnl_pct: float | None = None,
    ) -> None:
        with self._conn() as c:
            c.execute(
                """UPDATE benchmark SET current_value = ?,
                       holdings = COALESCE(?, holdings),
                       total_pnl = COALESCE(?, total_pnl),
                       pnl_pct = COALESCE(?, pnl_pct),
                       updated_at = ?
                   WHERE strategy = ?""",
                (
                    current_value,
                    json.dumps(holdings) if holdings is not None else None,
                    total_pnl,
                    pnl_pct,
                    _iso(_now()),
                    strategy,
                ),
            )

    # ---------- row mapping ----------

    @staticmethod
    def _row_to_trader(r: sqlite3.Row) -> Trader:
        return Trader(
            id=r["id"],
            name=r["name"],
            provider=r["provider"],
            initial_balance=r["initial_balance"],
            current_balance=r["current_balance"],
            total_pnl=r["total_pnl"],
            total_trades=r["total_trades"],
            winning_trades=r["winning_trades"],
            losing_trades=r["losing_trades"],
            total_api_cost=r["total_api_cost"],
            total_trading_fees=r["total_trading_fees"],
            total_slippage_cost=r["total_slippage_cost"],
            call_count=r["call_count"],
            total_tokens=r["total_tokens"],
            created_at=_parse_ts(r["created_at"]),
            updated_at=_parse_ts(r["updated_at"]),
        )

    @staticmethod
    def _row_to_position(r: sqlite3.Row) -> Position:
        return Position(
            id=r["id"],
            trader_id=r["trader_id"],
            asset=r["asset"],
            quantity=r["quantity"],
            entry_price=r["entry_price"],
            current_price=r["current_price"],
            invested_value=r["invested_value"],
            current_value=r["current_value"],
            unrealized_pnl=r["unrealized_pnl"],
            pnl_pct=r["pnl_pct"],
            realized_pnl=r["realized_pnl"],
            stop_loss=r["stop_loss"],
            profit_target=r["profit_target"],
            invalidation_condition=r["invalidation_condition"],
            confidence=r["confidence"],
            is_active=bool(r["is_active"]),
            opened_at=_parse_ts(r["opened_at"]),
            updated_at=_parse_ts(r["updated_at"]),
        )

    @staticmethod
    def _row_to_trade(r: sqlite3.Row) -> Trade:
        return Trade(
            id=r["id"],
            trader_id=r["trader_id"],
            position_id=r["position_id"],
            side=TradeSide(r["side"]),
            asset=r["asset"],
            price=r["price"],
            quantity=r["quantity"],
            gross_amount=r["gross_amount"],
            net_amount=r["net_amount"],
            total_value=r["total_value"],
            fee=r["fee"],
            slippage=r["slippage"],
            pnl=r["pnl"],
            pnl_pct=r["pnl_pct"],
            reasoning=r["reasoning"],
            is_paper=bool(r["is_paper"]),
            executed_at=_parse_ts(r["executed_at"]),
        )

    @staticmethod
    def _row_to_decision(r: sqlite3.Row) -> DecisionRecord:
        return DecisionRecord(
            id=r["id"],
            trader_id=r["trader_id"],
            action=Action(r["action"]),
            asset=r["asset"],
            amount=r["amount"],
            reasoning=r["reasoning"],
            confidence=r["confidence"],
            profit_target=r["profit_target"],
            stop_loss=r["stop_loss"],
            invalidation_condition=r["invalidation_condition"],
            risk_usd=r["risk_usd"],
            api_cost=r["api_cost"],
            token_count=r["token_count"],
            executed=bool(r["executed"]),
            created_at=_parse_ts(r["created_at"]),
        )
