#!/usr/bin/env python3
"""
Agent8004 CLI Tool

Browse agents and feedback on ERC-8004 registries, and submit ratings.

Usage:
    agent8004 networks                      # List supported networks
    agent8004 use 84532                     # Select and remember a network
    agent8004 agents                        # Discover agents (JSON)
    agent8004 agents --chain 11155420
    agent8004 feedback 7                    # Feedback history of agent 7 (JSON)
    agent8004 rate 7 90 --tag1 fast         # Submit a rating

Environment:
    AGENT8004_PRIVATE_KEY: signing key for "rate"
    AGENT8004_STATE_FILE: selected-network file (default ~/.agent8004/state.json)
    See ClientConfig.from_env for the remaining variables.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .client import AgentRegistryClient, ClientConfig
from .exceptions import SDKError
from .networks import list_networks
from .signer import LocalAccountSigner
from .utils import compute_feedback_hash

DEFAULT_STATE_FILE = "~/.agent8004/state.json"


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _build_config() -> ClientConfig:
    config = ClientConfig.from_env()
    if config.state_path is None:
        config.state_path = os.path.expanduser(DEFAULT_STATE_FILE)
    return config


def cmd_networks(client: AgentRegistryClient, args) -> int:
    """List supported networks"""
    current = client.chain_id
    for network in list_networks():
        marker = "*" if network.id == current else " "
        rpc_url = client.config.rpc_url_for(network)
        print(f"{marker} {network.id:>9}  {network.name:<18} {rpc_url}")
    return 0


def cmd_use(client: AgentRegistryClient, args) -> int:
    """Select and persist a network"""
    try:
        network = client.switch_network(args.chain_id)
    except SDKError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    print(f"✅ Using {network.name} (chain {network.id})")
    return 0


async def cmd_agents(client: AgentRegistryClient, args) -> int:
    """Discover agents"""
    result = await client.discover_agents(args.chain)
    _print_json(result.to_dict())
    return 1 if result.error else 0


async def cmd_feedback(client: AgentRegistryClient, args) -> int:
    """Show feedback history"""
    result = await client.get_feedback(args.agent_id, args.chain)
    _print_json(result.to_dict())
    return 1 if result.error else 0


def _load_feedback_hash(args) -> Optional[str]:
    if args.feedback_hash:
        return args.feedback_hash
    if args.feedback_file:
        return compute_feedback_hash(Path(args.feedback_file).read_bytes())
    return None


async def cmd_rate(client: AgentRegistryClient, args) -> int:
    """Submit a rating"""
    private_key = os.getenv("AGENT8004_PRIVATE_KEY")
    if not private_key:
        print("❌ Missing environment variable: AGENT8004_PRIVATE_KEY", file=sys.stderr)
        return 1

    try:
        client.signer = LocalAccountSigner(private_key)
        feedback_hash = _load_feedback_hash(args)
    except (SDKError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    result = await client.submit_feedback(
        args.agent_id,
        args.score,
        tag1=args.tag1,
        tag2=args.tag2,
        endpoint=args.endpoint,
        feedback_uri=args.feedback_uri,
        feedback_hash=feedback_hash,
        chain_id=args.chain,
    )
    _print_json(result.to_dict())
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent8004",
        description="ERC-8004 agent explorer",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("networks", help="List supported networks")

    use_parser = subparsers.add_parser("use", help="Select a network")
    use_parser.add_argument("chain_id", type=int, help="Chain ID")

    agents_parser = subparsers.add_parser("agents", help="Discover agents")
    agents_parser.add_argument("--chain", "-c", type=int, help="Chain ID (default: selected network)")

    feedback_parser = subparsers.add_parser("feedback", help="Show feedback history of an agent")
    feedback_parser.add_argument("agent_id", type=int, help="Agent ID")
    feedback_parser.add_argument("--chain", "-c", type=int, help="Chain ID (default: selected network)")

    rate_parser = subparsers.add_parser("rate", help="Submit a rating")
    rate_parser.add_argument("agent_id", type=int, help="Agent ID")
    rate_parser.add_argument("score", type=float, help="Score 0-100")
    rate_parser.add_argument("--tag1", default="", help="First tag")
    rate_parser.add_argument("--tag2", default="", help="Second tag")
    rate_parser.add_argument("--endpoint", default="", help="Endpoint being rated")
    rate_parser.add_argument("--feedback-uri", default="", help="Feedback document URI")
    hash_group = rate_parser.add_mutually_exclusive_group()
    hash_group.add_argument("--feedback-hash", help="Feedback document hash (bytes32 hex)")
    hash_group.add_argument("--feedback-file", help="Hash this local file as the feedback hash")
    rate_parser.add_argument("--chain", "-c", type=int, help="Chain ID (default: selected network)")

    return parser


async def _run_async(handler, args) -> int:
    async with AgentRegistryClient(config=_build_config()) as client:
        return await handler(client, args)


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "networks":
        return cmd_networks(AgentRegistryClient(config=_build_config()), args)
    elif args.command == "use":
        return cmd_use(AgentRegistryClient(config=_build_config()), args)
    elif args.command == "agents":
        return asyncio.run(_run_async(cmd_agents, args))
    elif args.command == "feedback":
        return asyncio.run(_run_async(cmd_feedback, args))
    elif args.command == "rate":
        return asyncio.run(_run_async(cmd_rate, args))
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
