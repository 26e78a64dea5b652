"""Unit tests for trade file loading and export."""

import csv
import json
import math

import pytest

from riskdesk.backtest import (
    ExitType,
    export_report_json,
    export_trades_csv,
    json_safe,
    load_backtest_file,
    load_trades,
)
from riskdesk.exceptions import InvalidInputError
from tests.factories import TRADE_RECORD, utc


def test_load_json_list(tmp_path):
    path = tmp_path / 'trades.json'
    path.write_text(json.dumps([TRADE_RECORD]), encoding='utf-8')

    trades = load_trades(path)

    assert len(trades) == 1
    assert trades[0].entry_time == utc(2024, 1, 1, 13)
    assert trades[0].exit_type == ExitType.TAKE_PROFIT
    assert trades[0].trade_id == 't-1'


def test_load_json_document(tmp_path):
    """Test the object form carries capital, period and equity curve."""
    path = tmp_path / 'backtest.json'
    path.write_text(json.dumps({
        'initial_capital': 10000,
        'period_start': '2024-01-01T00:00:00Z',
        'period_end': '2024-01-31T00:00:00Z',
        'trades': [TRADE_RECORD],
        'equity_curve': [
            {'timestamp': '2024-01-01T00:00:00Z', 'balance': 10000},
            {'timestamp': '2024-01-01T15:00:00Z', 'balance': 10050},
        ],
    }), encoding='utf-8')

    dataset = load_backtest_file(path)

    assert dataset.initial_capital == 10000
    assert dataset.period_start == utc(2024, 1, 1)
    assert dataset.period_end == utc(2024, 1, 31)
    assert [p.balance for p in dataset.equity_curve] == [10000, 10050]


def test_load_csv(tmp_path):
    path = tmp_path / 'trades.csv'
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=list(TRADE_RECORD) + ['risk_amount'])
        writer.writeheader()
        writer.writerow({**TRADE_RECORD, 'risk_amount': ''})
        writer.writerow({**TRADE_RECORD, 'trade_id': 't-2', 'pnl': '-25', 'exit_type': 'stop_loss',
                         'risk_amount': '25'})

    trades = load_trades(path)

    assert [t.pnl for t in trades] == [50.0, -25.0]
    assert trades[0].risk_amount is None
    assert trades[1].r_multiple == pytest.approx(-1)


def test_invalid_row_reports_position(tmp_path):
    path = tmp_path / 'trades.json'
    bad = dict(TRADE_RECORD, entry_price='abc')
    path.write_text(json.dumps([TRADE_RECORD, bad]), encoding='utf-8')

    with pytest.raises(InvalidInputError) as exc:
        load_trades(path)

    assert 'Trade #2' in exc.value.message
    assert exc.value.details['row'] == 2


@pytest.mark.parametrize(
    'name, content',
    [
        ('trades.txt', 'whatever'),
        ('trades.json', '{not json'),
        ('trades.json', '{"initial_capital": 5}'),
        ('trades.json', '[1, 2]'),
    ],
)
def test_bad_files(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding='utf-8')

    with pytest.raises(InvalidInputError):
        load_backtest_file(path)


def test_missing_file(tmp_path):
    with pytest.raises(InvalidInputError):
        load_trades(tmp_path / 'nope.json')


def test_export_trades_csv_is_loadable(tmp_path):
    """Test exported CSV reads back into equal trades."""
    source = tmp_path / 'trades.json'
    source.write_text(json.dumps([TRADE_RECORD]), encoding='utf-8')
    trades = load_trades(source)

    exported = export_trades_csv(trades, tmp_path / 'out' / 'trades.csv')

    assert exported.exists()
    assert load_trades(exported) == trades


def test_export_report_json(tmp_path, engine):
    source = tmp_path / 'trades.json'
    source.write_text(json.dumps([TRADE_RECORD]), encoding='utf-8')
    report = engine.build_report(load_trades(source), 10000)

    path = export_report_json(report.to_dict(), tmp_path / 'report.json')

    data = json.loads(path.read_text(encoding='utf-8'))
    assert data['metrics']['total_trades'] == 1


def test_non_numeric_initial_capital_is_invalid_input(tmp_path):
    path = tmp_path / 'backtest.json'
    path.write_text(json.dumps({'initial_capital': 'ten thousand', 'trades': [TRADE_RECORD]}), encoding='utf-8')

    with pytest.raises(InvalidInputError) as exc:
        load_backtest_file(path)

    assert exc.value.field == 'initial_capital'


def test_nan_quantity_in_csv_rejected(tmp_path):
    path = tmp_path / 'trades.csv'
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=list(TRADE_RECORD) + ['quantity'])
        writer.writeheader()
        writer.writerow(dict(TRADE_RECORD, quantity='nan'))

    with pytest.raises(InvalidInputError) as exc:
        load_trades(path)

    assert exc.value.field == 'quantity'
    assert exc.value.details == {'row': 1}


def test_json_safe_replaces_non_finite_floats():
    data = {'profit_factor': math.inf, 'nested': [-math.inf, math.nan, 1.5], 'name': 'x'}

    assert json_safe(data) == {'profit_factor': 'inf', 'nested': ['-inf', 'nan', 1.5], 'name': 'x'}


def test_report_json_is_strict_with_infinite_metrics(tmp_path, engine):
    """Test an all-wins report exports inf metrics as strings, not Infinity tokens."""
    source = tmp_path / 'trades.json'
    source.write_text(json.dumps([TRADE_RECORD]), encoding='utf-8')
    report = engine.build_report(load_trades(source), 10000)

    path = export_report_json(report.to_dict(), tmp_path / 'report.json')

    text = path.read_text(encoding='utf-8')
    assert 'Infinity' not in text
    assert json.loads(text)['metrics']['profit_factor'] == 'inf'
