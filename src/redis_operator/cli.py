#!/usr/bin/env python3
"""CLI for the Redis cluster operator."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

from redis_operator.config import OperatorConfig, get_config
from redis_operator.errors import RedisOperatorError
from redis_operator.logging_config import get_uvicorn_log_config, setup_logging
from redis_operator.platform import KubernetesPlatform
from redis_operator.reconciler import ClusterReconciler, ReconcileLoop
from redis_operator.resources import render_manifests
from redis_operator.state import DesiredTopology, LifecyclePhase

PHASE_ICONS = {
    LifecyclePhase.READY.value: "🟢",
    LifecyclePhase.INITIALIZING.value: "🟡",
    LifecyclePhase.NOT_EXISTS.value: "⚪",
    LifecyclePhase.UNKNOWN.value: "🔴",
}


def print_result(result: dict, format_type: str = "text") -> None:
    """Print one reconcile result."""
    if format_type == "json":
        print(json.dumps(result, indent=2))
        return

    icon = PHASE_ICONS.get(result["phase"], "?")
    print(f"{icon} {result['cluster']} - {result['phase']}")
    print(f"   Leaders: {result['leaders']}  Followers: {result['followers']}")
    print(f"   Latched phase: {result['previous_phase']}")
    if result["bootstrapped"]:
        print("   Bootstrap: resources created")
    if result["error"]:
        print(f"   ✗ Error: {result['error']}")


def print_plan(topology: DesiredTopology, steps: list[str], format_type: str = "text") -> None:
    """Print the bootstrap steps that would run."""
    if format_type == "json":
        print(json.dumps({"cluster": str(topology.key), "steps": steps}, indent=2))
        return

    print(f"\n=== Bootstrap Plan for {topology.key} ===")
    for step in steps:
        print(f"  → CREATE {step}")
    print("(dry run, pass --apply to create)")


def load_topology(path: str) -> DesiredTopology | None:
    if not Path(path).exists():
        print(f"Error: Desired state file not found: {path}", file=sys.stderr)
        return None
    try:
        return DesiredTopology.from_yaml(path)
    except (KeyError, ValueError, yaml.YAMLError) as e:
        print(f"Error: Invalid desired state in {path}: {e}", file=sys.stderr)
        return None


def build_reconciler(config: OperatorConfig) -> ClusterReconciler:
    platform = KubernetesPlatform(
        request_timeout=config.request_timeout, context=config.kube_context
    )
    return ClusterReconciler(platform, create_namespace=config.create_namespace)


async def cmd_state(args: argparse.Namespace, config: OperatorConfig) -> int:
    """Classify the current cluster phase."""
    topology = load_topology(args.desired)
    if topology is None:
        return 1

    reconciler = build_reconciler(config)
    try:
        result = await asyncio.wait_for(
            reconciler.current_phase(topology), timeout=config.reconcile_timeout
        )
    except (RedisOperatorError, asyncio.TimeoutError) as e:
        print(f"Error: {str(e) or 'timed out'}", file=sys.stderr)
        return 1

    print_result(result.to_dict(), args.format)
    return 0 if result.phase == LifecyclePhase.READY else 2


async def cmd_reconcile(args: argparse.Namespace, config: OperatorConfig) -> int:
    """Reconcile a cluster once."""
    topology = load_topology(args.desired)
    if topology is None:
        return 1

    reconciler = build_reconciler(config)

    if not args.apply:
        try:
            result = await asyncio.wait_for(
                reconciler.current_phase(topology), timeout=config.reconcile_timeout
            )
        except (RedisOperatorError, asyncio.TimeoutError) as e:
            print(f"Error: {str(e) or 'timed out'}", file=sys.stderr)
            return 1
        print_result(result.to_dict(), args.format)
        if result.phase == LifecyclePhase.NOT_EXISTS:
            steps = [step.name for step in reconciler.orchestrator.steps(topology)]
            print_plan(topology, steps, args.format)
        return 0

    try:
        result = await reconciler.reconcile(topology, timeout=config.reconcile_timeout)
    except (RedisOperatorError, asyncio.TimeoutError) as e:
        print(f"Error: {str(e) or 'timed out'}", file=sys.stderr)
        return 1

    print_result(result.to_dict(), args.format)
    return 0


async def cmd_watch(args: argparse.Namespace, config: OperatorConfig) -> int:
    """Reconcile clusters continuously."""
    topologies = []
    for path in args.desired:
        topology = load_topology(path)
        if topology is None:
            return 1
        topologies.append(topology)

    interval = args.interval or config.watch_interval
    loop = ReconcileLoop(
        build_reconciler(config), topologies, interval=interval, timeout=config.reconcile_timeout
    )

    try:
        while True:
            for result in await loop.run_once():
                print_result(result.to_dict(), args.format)
            if args.format == "text":
                print(f"\n(Reconciling every {interval}s, Ctrl+C to exit)")
            await asyncio.sleep(interval)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nStopped watching.")

    return 0


async def cmd_render(args: argparse.Namespace, config: OperatorConfig) -> int:
    """Print the manifests a bootstrap would create."""
    topology = load_topology(args.desired)
    if topology is None:
        return 1

    manifests = render_manifests(topology, include_namespace=config.create_namespace)
    if args.format == "json":
        print(json.dumps(manifests, indent=2))
    else:
        print(yaml.safe_dump_all(manifests, sort_keys=False), end="")
    return 0


def cmd_serve(args: argparse.Namespace, config: OperatorConfig) -> int:
    """Run the reconcile loop behind the health/metrics API."""
    import uvicorn

    from redis_operator.server import create_app

    topologies = []
    for path in args.desired:
        topology = load_topology(path)
        if topology is None:
            return 1
        topologies.append(topology)

    loop = ReconcileLoop(
        build_reconciler(config),
        topologies,
        interval=config.watch_interval,
        timeout=config.reconcile_timeout,
    )
    app = create_app(loop)
    uvicorn.run(
        app,
        host=args.host or config.server_host,
        port=args.port or config.server_port,
        log_config=get_uvicorn_log_config(config.log_json),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Redis cluster operator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  redis-operator state -d cluster.yaml              # Classify the cluster phase
  redis-operator reconcile -d cluster.yaml          # Show what would be created (dry run)
  redis-operator reconcile -d cluster.yaml --apply  # Bootstrap the cluster if absent
  redis-operator watch -d cluster.yaml              # Reconcile continuously
  redis-operator render -d cluster.yaml             # Print bootstrap manifests
  redis-operator serve -d cluster.yaml              # Reconcile loop + health/metrics API
        """,
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: REDIS_OPERATOR_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    state_parser = subparsers.add_parser("state", help="Classify the current cluster phase")
    state_parser.add_argument("-d", "--desired", required=True, help="Path to desired state YAML file")
    state_parser.set_defaults(func=cmd_state)

    reconcile_parser = subparsers.add_parser("reconcile", help="Reconcile a cluster once")
    reconcile_parser.add_argument(
        "-d", "--desired", required=True, help="Path to desired state YAML file"
    )
    reconcile_parser.add_argument(
        "--apply",
        action="store_true",
        help="Actually create resources (default is dry-run)",
    )
    reconcile_parser.set_defaults(func=cmd_reconcile)

    watch_parser = subparsers.add_parser("watch", help="Reconcile clusters continuously")
    watch_parser.add_argument(
        "-d",
        "--desired",
        required=True,
        action="append",
        help="Path to desired state YAML file (repeatable)",
    )
    watch_parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=None,
        help="Reconcile interval in seconds (default: 30)",
    )
    watch_parser.set_defaults(func=cmd_watch)

    render_parser = subparsers.add_parser("render", help="Print bootstrap manifests")
    render_parser.add_argument("-d", "--desired", required=True, help="Path to desired state YAML file")
    render_parser.set_defaults(func=cmd_render)

    serve_parser = subparsers.add_parser("serve", help="Run reconcile loop with health API")
    serve_parser.add_argument(
        "-d",
        "--desired",
        required=True,
        action="append",
        help="Path to desired state YAML file (repeatable)",
    )
    serve_parser.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: 8080)")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(args.log_level or config.log_level, config.log_json)

    if args.func is cmd_serve:
        return cmd_serve(args, config)
    return asyncio.run(args.func(args, config))


if __name__ == "__main__":
    sys.exit(main())
