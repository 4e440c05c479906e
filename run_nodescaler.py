# run_nodescaler.py
import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from nodescaler.api.server import app, attach_runner
from nodescaler.backend.memory import InMemoryCluster
from nodescaler.config import load_config_from_env, load_runner_config_from_env, setup_logging
from nodescaler.errors import NodeScalerError
from nodescaler.runner import TickRunner
from nodescaler.scaling.controller import ScalingController, TickOutcome
from nodescaler.snapshot.cluster import build_snapshot
from nodescaler.snapshot.io import load_snapshot_from_file, save_snapshot_to_file

log = logging.getLogger("launcher")


def build_backends(args, cfg):
    """
    (source, pool): либо живой кластер + ASG, либо кластер в памяти из файла.
    """
    if args.dry_run:
        snap = load_snapshot_from_file(Path(args.dry_run), cfg.protected_label)
        log.info(f"Dry run against {args.dry_run}: {len(snap.nodes)} nodes, {len(snap.pods)} pods")
        cluster = InMemoryCluster.from_snapshot(snap)
        return cluster, cluster

    from nodescaler.backend.aws_asg import AwsAutoScalingNodePool
    from nodescaler.backend.kube import KubeClusterSource, load_core_api

    if not args.asg_name:
        raise SystemExit("--asg-name is required unless --dry-run is used")

    source = KubeClusterSource(
        load_core_api(args.kube_context),
        protected_label=cfg.protected_label,
        cordon_annotation=cfg.cordon_annotation,
    )
    pool = AwsAutoScalingNodePool(args.asg_name, region=args.aws_region, profile=args.aws_profile)
    return source, pool


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Node pool buffer scaler")

    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument("--dry-run", metavar="SNAPSHOT", help="Use a saved snapshot file instead of a live cluster")
    parser.add_argument("--dump-snapshot", metavar="PATH", help="Save the current cluster snapshot to PATH and exit")
    parser.add_argument("--kube-context", default=None, help="kubeconfig context (default: in-cluster)")
    parser.add_argument("--asg-name", default=None, help="Auto Scaling Group backing the node pool")
    parser.add_argument("--aws-region", default=None)
    parser.add_argument("--aws-profile", default=None)

    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8080, help="Bind port")
    parser.add_argument("--no-server", action="store_true", help="Run the tick loop without the HTTP API")

    args = parser.parse_args(argv)

    setup_logging()
    try:
        cfg = load_config_from_env()
        runner_cfg = load_runner_config_from_env()
    except NodeScalerError as e:
        log.error(f"Invalid configuration: {e}")
        return 2

    source, pool = build_backends(args, cfg)

    if args.dump_snapshot:
        try:
            snap = build_snapshot(source)
        except NodeScalerError as e:
            log.error(f"Failed to capture snapshot: {e}")
            return 1
        save_snapshot_to_file(snap, Path(args.dump_snapshot))
        log.info(f"Snapshot successfully saved to: {args.dump_snapshot}")
        return 0

    controller = ScalingController(source, pool, cfg)
    runner = TickRunner(controller, runner_cfg.tick_interval)

    if args.once:
        report = runner.run_once()
        return 1 if report.outcome == TickOutcome.FAILED else 0

    if args.no_server:
        try:
            runner.run_forever()
        except KeyboardInterrupt:
            pass
        return 0

    attach_runner(runner)
    runner.start()
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        runner.stop(timeout=runner_cfg.tick_interval.total_seconds() + 5)
    return 0


if __name__ == "__main__":
    sys.exit(main())
