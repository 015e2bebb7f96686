"""
CLI entry point: groundwork replay | show-config | volumetric.

Every command loads the app config from --config (default config.yaml) and
the engine config it points at, then prints labelled, human-readable output.
Structured JSON events go to stderr when enabled in the app config.
"""

import logging
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from config import AppConfig, EngineConfigError, load_config, load_engine_config
from config.loader import ENGINE_CONFIG_ENV

load_dotenv()

logger = logging.getLogger("groundwork")


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load_app_config(config_path: str) -> AppConfig:
    """Load config.yaml; a missing default file falls back to built-in defaults."""
    if not Path(config_path).exists() and config_path == "config.yaml":
        logger.info("No config.yaml found, using defaults")
        return AppConfig(symbol="ES", engine_config_path=os.environ.get(ENGINE_CONFIG_ENV, ""))
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _load_engine(cfg: AppConfig, symbol: str | None = None):
    try:
        return load_engine_config(cfg.engine_config_path or None, symbol=symbol or cfg.symbol)
    except EngineConfigError as exc:
        raise click.ClickException(f"Engine config error: {exc}") from exc


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """groundwork: order-flow feature engineering and deterministic entry/exit signals."""
    cfg = _load_app_config(config_path)
    _setup_logging(cfg.logging.level)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["app_config"] = cfg


# ---------- groundwork replay ----------


@cli.command()
@click.argument("replay_file", type=click.Path(dir_okay=False))
@click.option(
    "--position-aware/--flat",
    default=True,
    help="Track a simulated position so exits are evaluated (default), or stay flat and only report entries.",
)
@click.option("--quiet", is_flag=True, default=False, help="Only print signals and the summary.")
@click.pass_context
def replay(ctx: click.Context, replay_file: str, position_aware: bool, quiet: bool) -> None:
    """Replay a JSON-lines file of closed bars through the feature engine.

    Each record is turned into a VolumetricBar, buffered per timeframe, and
    once the timeframe is warmed up its FeatureVector is printed together
    with the entry (and, with an open position, exit) evaluation. Primary
    closes are also checked against the running breakout levels.
    """
    cfg: AppConfig = ctx.obj["app_config"]
    from cli.output import format_breakout, format_pipeline_result, format_replay_summary, format_signal
    from cli.structured_log import StructuredEventLogger
    from data.replay import ReplayFormatError, read_replay
    from orderflow_core import BreakoutLevels, FeatureEngine, FeatureSignalEvaluator, Timeframe, VolumetricBarBuilder
    from orderflow_core.pipeline import process_bar

    engine_cfg = _load_engine(cfg)
    events = StructuredEventLogger(cfg.symbol, enabled=cfg.logging.structured_logs)

    try:
        records = read_replay(replay_file)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    except ReplayFormatError as exc:
        events.error("replay file rejected", str(exc))
        raise click.ClickException(f"Invalid replay file: {exc}") from exc

    if not records:
        click.echo("Replay file contains no bars.")
        return

    builder = VolumetricBarBuilder(engine_cfg.volumetric, engine_cfg.features.tick_size)
    engine = FeatureEngine(engine_cfg.features)
    evaluator = FeatureSignalEvaluator(engine_cfg.signal)
    breakout = BreakoutLevels()

    events.replay_start(replay_file, len(records))
    click.echo(f"Replaying {len(records)} bars for {cfg.symbol} ({'position-aware' if position_aware else 'flat'}) ...")

    position = 0
    feature_rows = entries = exits = breakouts = 0
    for record in records:
        tf = record.timeframe
        bar = record.bar
        previous_day = engine.buffers(tf).last_day

        if tf is Timeframe.PRIMARY:
            # Levels come from earlier closed bars; the current bar updates them afterwards.
            levels = breakout.snapshot()
            above, below = breakout.check_breakout(bar.close)
            for side, hit, level in (
                ("above_bearish_high", above, levels.last_bearish_high),
                ("below_bullish_low", below, levels.last_bullish_low),
            ):
                if hit:
                    breakouts += 1
                    events.breakout_detected(side, level, bar.close, bar.time, bar.day)
                    if not quiet:
                        click.echo(format_breakout(bar, side, level))
            breakout.add_bar(bar)

        volumetric_bar = builder.build(record.order_flow, bar.high, bar.low)
        result = process_bar(engine, evaluator, tf, bar, volumetric_bar, position_direction=position)

        if previous_day is not None and previous_day != bar.day:
            events.session_reset(tf.value, bar.day)
        if result.features is None:
            continue

        feature_rows += 1
        events.features_emitted(tf.value, bar.time, bar.day, result.features.as_record())
        if not quiet:
            click.echo(format_pipeline_result(result))

        if result.exit_signal is not None and result.exit_signal.has_signal:
            exits += 1
            events.exit_detected(position, result.exit_signal.reason)
            if quiet:
                click.echo(f"[{bar.day} {bar.time:06d}]" + format_signal(result.exit_signal, "Exit"))
            position = 0
        elif position == 0 and result.entry_signal is not None and result.entry_signal.has_signal:
            # Entries while a position is open are ignored, not counted.
            entry = result.entry_signal
            entries += 1
            events.signal_detected(entry.direction, entry.strength, entry.confidence, entry.reason)
            if quiet:
                click.echo(f"[{bar.day} {bar.time:06d}]" + format_signal(entry, "Entry"))
            if position_aware:
                position = entry.direction

    events.replay_complete(len(records), feature_rows, entries, exits, breakouts)
    click.echo(format_replay_summary(len(records), feature_rows, entries, exits, breakouts))


# ---------- groundwork show-config ----------


@cli.command("show-config")
@click.option("--symbol", default=None, help="Apply the per-symbol override for this symbol (default: config symbol).")
@click.pass_context
def show_config(ctx: click.Context, symbol: str | None) -> None:
    """Print the resolved engine configuration."""
    cfg: AppConfig = ctx.obj["app_config"]
    from cli.output import format_engine_config

    engine_cfg = _load_engine(cfg, symbol)
    click.echo(f"Symbol: {(symbol or cfg.symbol).upper()}")
    click.echo(f"Timeframes: primary={cfg.timeframes.primary} secondary={cfg.timeframes.secondary}")
    click.echo(format_engine_config(engine_cfg))


# ---------- groundwork volumetric ----------


@cli.command()
@click.argument("replay_file", type=click.Path(dir_okay=False))
@click.option("--index", "index", default=0, type=int, help="Zero-based record index in the replay file (negative counts from the end).")
@click.pass_context
def volumetric(ctx: click.Context, replay_file: str, index: int) -> None:
    """Build and print the VolumetricBar for one record of a replay file."""
    cfg: AppConfig = ctx.obj["app_config"]
    from cli.output import format_volumetric_bar
    from data.replay import ReplayFormatError, read_replay
    from orderflow_core import VolumetricBarBuilder

    engine_cfg = _load_engine(cfg)
    try:
        records = read_replay(replay_file)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    except ReplayFormatError as exc:
        raise click.ClickException(f"Invalid replay file: {exc}") from exc

    try:
        record = records[index]
    except IndexError:
        raise click.ClickException(f"Index {index} out of range ({len(records)} records)") from None

    builder = VolumetricBarBuilder(engine_cfg.volumetric, engine_cfg.features.tick_size)
    bar = record.bar
    click.echo(f"[{record.timeframe.value}] day {bar.day} time {bar.time:06d}  H {bar.high:.2f}  L {bar.low:.2f}")
    click.echo(format_volumetric_bar(builder.build(record.order_flow, bar.high, bar.low)))


if __name__ == "__main__":
    cli()
