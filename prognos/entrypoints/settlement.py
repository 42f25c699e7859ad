"""Settlement entrypoint.

``run`` keeps the resolution scheduler going until SIGINT/SIGTERM; the other
subcommands perform one operation and print the result as JSON.
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any, Optional, Sequence

from dotenv import load_dotenv

from prognos.config import Settings, load_settings, sanitize_dict
from prognos.config.db_url import ensure_env_database_url
from prognos.database.init import initialize
from prognos.settlement.errors import SettlementError
from prognos.settlement.service import SettlementService
from prognos.shared.logging import configure_logging, setup_events_logger


logger = logging.getLogger("prognos.settlement.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="prognos-settlement", description="Prognos settlement engine")
    parser.add_argument("--config", type=str, default=None, help="YAML settings file")
    parser.add_argument("--log-level", type=str, default=None)
    parser.add_argument("--json-logs", action="store_true", default=None)

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="run the resolution scheduler until interrupted")
    sub.add_parser("sweep", help="resolve every expired pool once")
    sub.add_parser("status", help="scheduler configuration")

    resolve = sub.add_parser("resolve", help="resolve a pool with an explicit outcome")
    resolve.add_argument("pool_id")
    resolve.add_argument("outcome", type=float)
    resolve.add_argument("--mode", choices=["linear", "quadratic"], default=None)

    rewards = sub.add_parser("rewards", help="reward breakdown of a pool")
    rewards.add_argument("pool_id")
    rewards.add_argument("--mode", choices=["linear", "quadratic"], default=None)

    claim = sub.add_parser("claim", help="claim a subject's reward")
    claim.add_argument("pool_id")
    claim.add_argument("subject_id")
    claim.add_argument("--check", action="store_true", help="only report whether the claim would succeed")

    repair = sub.add_parser("repair", help="fill missing rewards of a resolved pool")
    repair.add_argument("pool_id")
    repair.add_argument("--mode", choices=["linear", "quadratic"], default=None)
    return parser


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, default=str, indent=2) + "\n")
    sys.stdout.flush()


async def _run_forever(service: SettlementService) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info({"settlement": "shutdown_signal_received"})
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

    service.start()
    _emit({"status": service.scheduler_status().to_dict()})
    await stop.wait()


async def _dispatch(args: argparse.Namespace, settings: Settings) -> Any:
    async with SettlementService.from_settings(settings) as service:
        if args.command == "run":
            await _run_forever(service)
            return {"stopped": True}
        if args.command == "sweep":
            report = await service.trigger_sweep_now()
            return report.to_dict()
        if args.command == "status":
            return {
                "scheduler": service.scheduler_status().to_dict(),
                "enabled": settings.scheduler.enabled,
                "database": sanitize_dict(settings.database.model_dump()),
            }
        if args.command == "resolve":
            result = await service.resolve_pool(args.pool_id, args.outcome, args.mode)
            return result.to_dict()
        if args.command == "rewards":
            summary = await service.get_reward_summary(args.pool_id, args.mode)
            return summary.to_dict()
        if args.command == "claim":
            if args.check:
                check = await service.check_claim(args.pool_id, args.subject_id)
                return check.to_dict()
            receipt = await service.claim(args.pool_id, args.subject_id)
            return receipt.to_dict()
        if args.command == "repair":
            written = await service.repair_rewards(args.pool_id, args.mode)
            return {"pool_id": args.pool_id, "written": written}
    raise ValueError(f"unknown command {args.command!r}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    if os.environ.get("PROGNOS_TEST_MODE") != "true":
        load_dotenv()

    args = build_parser().parse_args(argv)
    ensure_env_database_url()
    settings = load_settings(args.config)

    log_cfg = settings.logging
    configure_logging(
        args.log_level or log_cfg.level,
        json_logs=log_cfg.json_logs if args.json_logs is None else args.json_logs,
    )
    if log_cfg.directory:
        setup_events_logger(log_cfg.directory, log_cfg.events_retention_bytes)
    logger.debug({"settlement_config": sanitize_dict(settings.model_dump())})

    initialize(settings)

    try:
        payload = asyncio.run(_dispatch(args, settings))
    except SettlementError as exc:
        _emit({"error": type(exc).__name__, "message": str(exc)})
        return 1
    except KeyboardInterrupt:
        logger.info({"settlement": "keyboard_interrupt"})
        return 130
    _emit(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
