"""
Command line entry point for the riskdesk engine.

Usage:
    riskdesk size --balance 10000 --entry 50000 --stop 49000
    riskdesk gate --balance 10000 --pnl -720 --open-positions 2
    riskdesk correlation BTCUSDT ETHUSDT SOLUSDT
    riskdesk session 2024-03-01T13:30:00Z --offset 2
    riskdesk --json backtest trades.json --capital 10000 --output report.json

Results go to stdout (text, or JSON with --json); logs go to stderr.
Infinite metrics such as an all-wins profit factor appear in JSON as "inf".
Exit codes: 0 success, 1 configuration error, 2 invalid input.
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import __version__
from .backtest import (
    BacktestMetricsEngine, export_report_json, export_trades_csv, json_safe, load_backtest_file
)
from .config import EngineConfig, load_config
from .correlation import CorrelationAdvisor
from .exceptions import ConfigurationError, InvalidInputError
from .risk import PositionSizer, RiskGate, can_open_position, evaluate_weekly_drawdown
from .sessions import SessionClassifier, session_label, to_utc
from .utils import get_logger, log_context, setup_logging, shutdown_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='riskdesk',
        description='Risk-gated position sizing and backtest analytics'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (YAML or JSON); defaults are used when omitted'
    )
    parser.add_argument(
        '--env-file',
        type=str,
        default=None,
        help='Optional .env file with RISKDESK_ overrides'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print results as JSON'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', required=True)

    size = subparsers.add_parser('size', help='Calculate position size from risk')
    size.add_argument('--balance', type=float, required=True, help='Account balance')
    size.add_argument(
        '--risk', type=float, default=None,
        help='Risk percent per trade (default: risk profile value)'
    )
    size.add_argument('--entry', type=float, required=True, help='Entry price')
    size.add_argument('--stop', type=float, required=True, help='Stop loss price')
    size.add_argument('--leverage', type=float, default=1.0, help='Leverage multiplier (default: 1)')

    gate = subparsers.add_parser('gate', help='Evaluate the daily loss gate')
    gate.add_argument('--balance', type=float, required=True, help="Day's starting balance")
    gate.add_argument('--pnl', type=float, required=True, help='Day P&L so far')
    gate.add_argument('--open-positions', type=int, default=None, help='Currently open positions')
    gate.add_argument('--week-balance', type=float, default=None, help="Week's starting balance")
    gate.add_argument('--week-pnl', type=float, default=None, help='Week P&L so far')
    gate.add_argument('--user', type=str, default='cli', help='User id for risk events')

    correlation = subparsers.add_parser('correlation', help='Analyze correlation of open positions')
    correlation.add_argument('symbols', nargs='*', help='Symbols of open positions')

    session = subparsers.add_parser('session', help='Classify timestamps into trading sessions')
    session.add_argument(
        'timestamps', nargs='*',
        help='ISO-8601 timestamps or epoch seconds (default: now)'
    )
    session.add_argument(
        '--offset', type=int, default=0,
        help='UTC offset in hours used to display session windows'
    )

    backtest = subparsers.add_parser('backtest', help='Compute metrics for backtest trades')
    backtest.add_argument('trades_file', help='Trades file (.json or .csv)')
    backtest.add_argument('--capital', type=float, default=None, help='Initial capital')
    backtest.add_argument('--start', type=str, default=None, help='Backtest period start')
    backtest.add_argument('--end', type=str, default=None, help='Backtest period end')
    backtest.add_argument('--output', type=str, default=None, help='Write the full report as JSON')
    backtest.add_argument('--export-trades', type=str, default=None, help='Write trades as CSV')

    return parser


def _emit(data: Dict[str, Any], text: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps(json_safe(data), indent=2, default=str, allow_nan=False))
    else:
        print(text)


def _parse_timestamp(value: str):
    try:
        return to_utc(float(value))
    except ValueError:
        return to_utc(value)


def cmd_size(args, config: EngineConfig) -> int:
    sizer = PositionSizer(config.position_sizing)
    risk_percent = args.risk if args.risk is not None else config.risk_profile.risk_per_trade_percent

    result = sizer.calculate_position_size(
        account_balance=args.balance,
        risk_percent=risk_percent,
        entry_price=args.entry,
        stop_loss_price=args.stop,
        leverage=args.leverage,
        risk_profile=config.risk_profile
    )

    data = {
        'position_size': result.position_size,
        'position_value': result.position_value,
        'capital_deployment_percent': result.capital_deployment_percent,
        'stop_distance': result.stop_distance,
        'stop_distance_percent': result.stop_distance_percent,
        'potential_loss': result.potential_loss,
        'potential_profit_1r': result.potential_profit_1r,
        'potential_profit_2r': result.potential_profit_2r,
        'potential_profit_3r': result.potential_profit_3r,
        'direction': result.direction.value,
        'leverage': result.leverage,
        'r_targets': [
            {'multiple': t.multiple, 'price': t.price, 'profit': t.profit, 'reachable': t.reachable}
            for t in result.r_targets
        ],
        'warnings': result.warnings,
    }

    lines = [
        f"Direction: {result.direction.value}",
        f"Position Size: {result.position_size:.8f}",
        f"Position Value: ${result.position_value:,.2f} ({result.capital_deployment_percent:.2f}% of capital)",
        f"Stop Distance: {result.stop_distance:.8f} ({result.stop_distance_percent:.3f}%)",
        f"Potential Loss: ${result.potential_loss:,.2f}",
    ]
    for target in result.r_targets:
        price = f"{target.price:.8f}" if target.reachable else "unreachable"
        lines.append(f"{target.multiple:g}R: {price} (+${target.profit:,.2f})")
    for warning in result.warnings:
        lines.append(f"WARNING: {warning}")

    _emit(data, "\n".join(lines), args.json)
    return EXIT_OK


def cmd_gate(args, config: EngineConfig) -> int:
    gate = RiskGate(config.risk_gate)
    trading_day = datetime.now(timezone.utc).date()
    status, events = gate.evaluate(
        args.user, trading_day, args.balance, args.pnl, config.risk_profile
    )

    data = {'daily': status.to_dict(), 'events': [event.to_dict() for event in events]}
    lines = [
        f"Status: {status.status.value} ({status.severity.value})",
        f"Trading Allowed: {'yes' if status.trading_allowed else 'no'}",
        f"Loss Limit: ${status.loss_limit:,.2f}",
        f"Loss Used: {status.loss_used_percent:.2f}%",
        f"Remaining Budget: ${status.remaining_budget:,.2f}",
    ]
    if status.reason:
        lines.append(f"Reason: {status.reason}")

    if args.open_positions is not None:
        check = can_open_position(status, args.open_positions, config.risk_profile)
        data['position_check'] = {
            'can_trade': check.can_trade,
            'status': check.status.value,
            'reason': check.reason,
            'open_positions': check.open_positions,
            'max_positions': check.max_positions,
        }
        lines.append(
            f"Can Open Position: {'yes' if check.can_trade else 'no'} "
            f"({check.open_positions}/{check.max_positions})"
        )

    if args.week_balance is not None and args.week_pnl is not None:
        weekly = evaluate_weekly_drawdown(args.week_balance, args.week_pnl, config.risk_profile)
        data['weekly'] = {
            'limit_amount': weekly.limit_amount,
            'drawdown_used_percent': weekly.drawdown_used_percent,
            'remaining': weekly.remaining,
            'limit_breached': weekly.limit_breached,
        }
        lines.append(
            f"Weekly Drawdown Used: {weekly.drawdown_used_percent:.2f}%"
            f"{' (LIMIT BREACHED)' if weekly.limit_breached else ''}"
        )

    _emit(data, "\n".join(lines), args.json)
    return EXIT_OK


def cmd_correlation(args, config: EngineConfig) -> int:
    advisor = CorrelationAdvisor(config.correlation)
    report = advisor.analyze(args.symbols, risk_profile=config.risk_profile)

    data = report.to_dict()
    data['concentrated'] = [pair.to_dict() for pair in report.concentrated_pairs]

    lines = [f"Status: {report.status.value}"]
    for pair in report.pairs:
        flag = " !" if pair.is_warning else ""
        lines.append(
            f"{pair.asset1}/{pair.asset2}: {pair.correlation:.2f} ({pair.level.value}, {pair.source.value}){flag}"
        )
    if report.concentrated_pairs:
        lines.append(
            f"Concentrated exposure: {len(report.concentrated_pairs)} pair(s) above "
            f"{config.risk_profile.max_correlated_exposure:.2f}"
        )

    _emit(data, "\n".join(lines), args.json)
    return EXIT_OK


def cmd_session(args, config: EngineConfig) -> int:
    classifier = SessionClassifier(config.sessions)
    raw = args.timestamps or [datetime.now(timezone.utc).isoformat()]

    results: List[Dict[str, Any]] = []
    lines = []
    for value in raw:
        timestamp = _parse_timestamp(value)
        session = classifier.classify(timestamp)
        overlap = classifier.active_overlaps(timestamp)
        window = classifier.format_session_window(session, args.offset)
        results.append({
            'timestamp': timestamp.isoformat(),
            'session': session.value,
            'label': session_label(session),
            'overlap': overlap,
            'window': window,
        })
        suffix = f" [{overlap}]" if overlap else ""
        lines.append(f"{timestamp.isoformat()}: {session_label(session)} {window}{suffix}")

    _emit({'sessions': results}, "\n".join(lines), args.json)
    return EXIT_OK


def cmd_backtest(args, config: EngineConfig) -> int:
    dataset = load_backtest_file(args.trades_file)
    initial_capital = args.capital if args.capital is not None else dataset.initial_capital
    if initial_capital is None:
        raise InvalidInputError(
            "Initial capital is required: pass --capital or set initial_capital in the file",
            field='initial_capital'
        )

    engine = BacktestMetricsEngine(config.backtest, SessionClassifier(config.sessions))
    report = engine.build_report(
        dataset.trades,
        initial_capital,
        period_start=args.start or dataset.period_start,
        period_end=args.end or dataset.period_end,
        equity_curve=dataset.equity_curve or None
    )

    if args.output:
        export_report_json(report.to_dict(), args.output)
    if args.export_trades:
        export_trades_csv(dataset.trades, args.export_trades)

    _emit(report.to_dict(), report.generate_summary(), args.json)
    return EXIT_OK


COMMANDS = {
    'size': cmd_size,
    'gate': cmd_gate,
    'correlation': cmd_correlation,
    'session': cmd_session,
    'backtest': cmd_backtest,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the riskdesk command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config, env_file=args.env_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    log_settings = config.logging.model_dump(mode='json')
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    setup_logging(log_settings)

    try:
        with log_context(command=args.command) as log:
            log.debug(f"Running {args.command} with config {args.config or 'defaults'}")
            return COMMANDS[args.command](args, config)
    except InvalidInputError as e:
        logger.error(f"Invalid input: {e.message}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    finally:
        shutdown_logging()


if __name__ == '__main__':
    sys.exit(main())
