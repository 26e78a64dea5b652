"""
Trade file loading and export.

Backtest input can be a JSON document or a CSV file. JSON may be a bare
list of trades or an object:

    {
        "initial_capital": 10000,
        "period_start": "2024-01-01T00:00:00Z",
        "period_end": "2024-03-31T00:00:00Z",
        "trades": [...],
        "equity_curve": [{"timestamp": ..., "balance": ...}, ...]
    }

CSV files hold one trade per row with a header naming the trade fields.
"""

import csv
import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
import logging

from ..exceptions import InvalidInputError
from ..sessions.session_classifier import to_utc
from .models import BacktestTrade, EquityPoint, to_float

logger = logging.getLogger(__name__)

TRADE_CSV_FIELDS = [
    'trade_id', 'symbol', 'entry_time', 'exit_time', 'direction',
    'entry_price', 'exit_price', 'pnl', 'pnl_percent', 'exit_type',
    'quantity', 'commission', 'risk_amount',
]


@dataclass
class BacktestDataset:
    """Everything read from a backtest input file."""
    trades: List[BacktestTrade]
    initial_capital: Optional[float] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    equity_curve: List[EquityPoint] = field(default_factory=list)


def json_safe(value: Any) -> Any:
    """
    Copy of ``value`` that strict JSON can hold.

    Non-finite floats (``profit_factor`` and ``recovery_factor`` are ``inf``
    when there are no losses) become the strings ``"inf"``, ``"-inf"`` and
    ``"nan"``.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return 'nan' if math.isnan(value) else ('inf' if value > 0 else '-inf')
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def _parse_trades(records: Sequence[Dict[str, Any]], source: Path) -> List[BacktestTrade]:
    trades = []
    for index, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise InvalidInputError(
                f"Trade #{index} in {source} is not an object", field='trades', value=record
            )
        try:
            trades.append(BacktestTrade.from_dict(record))
        except InvalidInputError as e:
            raise InvalidInputError(
                f"Trade #{index} in {source}: {e.message}",
                field=e.field, value=e.value, details={'row': index}
            ) from e
    return trades


def _parse_equity_curve(records: Sequence[Dict[str, Any]]) -> List[EquityPoint]:
    points = []
    for record in records:
        try:
            points.append(EquityPoint(
                timestamp=to_utc(record['timestamp']),
                balance=float(record['balance']),
                drawdown_percent=float(record.get('drawdown_percent', 0.0))
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid equity point: {record!r}", field='equity_curve') from e
    return points


def _load_json(path: Path) -> BacktestDataset:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in {path}: {e}", field='path', value=str(path)) from e

    if isinstance(data, list):
        return BacktestDataset(trades=_parse_trades(data, path))

    if not isinstance(data, dict) or 'trades' not in data:
        raise InvalidInputError(
            f"{path} must hold a list of trades or an object with 'trades'",
            field='path', value=str(path)
        )

    initial_capital = data.get('initial_capital')
    return BacktestDataset(
        trades=_parse_trades(data['trades'], path),
        initial_capital=to_float(initial_capital, 'initial_capital') if initial_capital is not None else None,
        period_start=to_utc(data['period_start']) if data.get('period_start') else None,
        period_end=to_utc(data['period_end']) if data.get('period_end') else None,
        equity_curve=_parse_equity_curve(data.get('equity_curve') or []),
    )


def _load_csv(path: Path) -> BacktestDataset:
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.DictReader(f)
        rows = [
            {key.strip(): (value.strip() if isinstance(value, str) else value)
             for key, value in row.items() if key}
            for row in reader
        ]
    return BacktestDataset(trades=_parse_trades(rows, path))


def load_backtest_file(path: Union[str, Path]) -> BacktestDataset:
    """
    Load a backtest input file.

    Args:
        path: .json or .csv file

    Returns:
        BacktestDataset

    Raises:
        InvalidInputError: If the file is missing, of an unknown type, or
            holds a record that is not a valid trade
    """
    path = Path(path)
    if not path.exists():
        raise InvalidInputError(f"Trade file not found: {path}", field='path', value=str(path))

    suffix = path.suffix.lower()
    if suffix == '.json':
        dataset = _load_json(path)
    elif suffix == '.csv':
        dataset = _load_csv(path)
    else:
        raise InvalidInputError(
            f"Unsupported trade file format: {suffix}. Use .json or .csv",
            field='path', value=str(path)
        )

    logger.info(f"Loaded {len(dataset.trades)} trades from {path}")
    return dataset


def load_trades(path: Union[str, Path]) -> List[BacktestTrade]:
    """Load only the trades from a backtest input file."""
    return load_backtest_file(path).trades


def export_trades_csv(trades: Sequence[BacktestTrade], path: Union[str, Path]) -> Path:
    """
    Write trades to CSV in the format ``load_trades`` reads.

    Args:
        trades: Trades to export
        path: Output file

    Returns:
        Path to the created file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=TRADE_CSV_FIELDS)
        writer.writeheader()
        for trade in trades:
            row = trade.to_dict()
            writer.writerow({name: '' if row[name] is None else row[name] for name in TRADE_CSV_FIELDS})

    logger.info(f"Exported {len(trades)} trades to {path}")
    return path


def export_report_json(report_dict: Dict[str, Any], path: Union[str, Path]) -> Path:
    """Write a report dictionary as JSON; infinite metrics are written as ``"inf"``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(json_safe(report_dict), f, indent=2, default=str, allow_nan=False)

    logger.info(f"Exported report to {path}")
    return path
