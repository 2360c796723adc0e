"""Command line for listing and running named swap scenarios."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from ledger_wallets.node import LedgerError
from protocol_client.client import ProtocolClientError, UnexpectedResponse
from scenarios.config import HarnessConfig
from scenarios.harness import ScenarioResult
from scenarios.library import SCENARIOS, get_scenario, run_scenario
from step_engine.executor import ActionNotAvailable, StepFailedError
from step_engine.poller import PollTimeout
from swap_actor.actor import ActorStateError, BalanceMismatchError

SCENARIO_FAILURES = (
    StepFailedError,
    ActionNotAvailable,
    PollTimeout,
    UnexpectedResponse,
    BalanceMismatchError,
)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="swap-harness")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list")
    list_parser.set_defaults(func=_list_scenarios)

    run_parser = subparsers.add_parser("run")
    run_parser.add_argument("--scenario", required=True)
    run_parser.add_argument("--simulated", action="store_true")
    run_parser.add_argument("--poll-interval", type=float)
    run_parser.add_argument("--poll-deadline", type=float)
    run_parser.add_argument("--balance-tolerance", type=int)
    run_parser.add_argument("--propagation-delay", type=float)
    run_parser.add_argument("--alice-url")
    run_parser.add_argument("--bob-url")
    run_parser.add_argument("--bitcoind-url")
    run_parser.add_argument("--ethereum-url")
    run_parser.set_defaults(func=_run_scenario)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except SCENARIO_FAILURES as exc:
        print(f"FAILED: {exc}", file=sys.stderr)
        return 1
    except (ValueError, ActorStateError, ProtocolClientError, LedgerError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _list_scenarios(args: argparse.Namespace) -> int:
    for name in sorted(SCENARIOS):
        print(f"{name}  {SCENARIOS[name].description}")
    return 0


def _run_scenario(args: argparse.Namespace) -> int:
    scenario = get_scenario(args.scenario)
    config = _build_config(args)
    result = asyncio.run(run_scenario(scenario, config))
    print(json.dumps(_result_to_dict(result), indent=2))
    return 0


def _build_config(args: argparse.Namespace) -> HarnessConfig:
    config = HarnessConfig.from_env(os.environ).with_overrides(
        poll_interval=args.poll_interval,
        poll_deadline=args.poll_deadline,
        balance_tolerance=args.balance_tolerance,
        propagation_delay=args.propagation_delay,
        alice_url=args.alice_url,
        bob_url=args.bob_url,
        bitcoind_url=args.bitcoind_url,
        ethereum_url=args.ethereum_url,
    )
    if args.simulated:
        config = HarnessConfig(
            poll_interval=config.poll_interval,
            poll_deadline=config.poll_deadline,
            http_timeout=config.http_timeout,
            balance_tolerance=config.balance_tolerance,
            propagation_delay=config.propagation_delay,
            block_interval=config.block_interval,
        )
    return config


def _result_to_dict(result: ScenarioResult) -> dict:
    return {
        "scenario": result.name,
        "steps": [
            {
                "index": outcome.index,
                "actor": outcome.actor_name,
                "action": outcome.kind.value,
                "status_code": outcome.response.status_code,
            }
            for outcome in result.outcomes
        ],
        "balances": {
            actor: {ledger: str(amount) for ledger, amount in balances.items()}
            for actor, balances in result.balances.items()
        },
    }


if __name__ == "__main__":
    sys.exit(main())
