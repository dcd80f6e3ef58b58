import argparse
import sys

from kubectl_topology_skew.config import OUTPUT_FORMATS, SkewOptions, load_settings, validate_output
from kubectl_topology_skew.engine import build_result
from kubectl_topology_skew.errors import InvalidInputError, TopologySkewError
from kubectl_topology_skew.kube import ClusterClient, fetch_snapshot, load_kube_client
from kubectl_topology_skew.log import get_logger, setup_logging
from kubectl_topology_skew.output import output_result
from kubectl_topology_skew.resources import ResourceKind
from kubectl_topology_skew.selector import parse_selector
from kubectl_topology_skew.snapshot import load_snapshot

log = get_logger("cli")


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {n}")
    return n


def _common_flags() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--context", help="Kubeconfig context to use")
    common.add_argument("--cluster", help="Kubeconfig cluster to use")
    common.add_argument("--user", help="Kubeconfig user to use")
    common.add_argument("--kubeconfig", help="Path to the kubeconfig file")
    common.add_argument(
        "-o",
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: text)",
    )
    common.add_argument(
        "--request-timeout",
        type=_positive_int,
        default=None,
        help="Seconds to wait for each API request",
    )
    common.add_argument(
        "--snapshot",
        metavar="PATH",
        help="Read objects from a JSON/YAML file instead of the cluster",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return common


def _selection_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t",
        "--topology-key",
        default=None,
        help="Node label that defines the topology domain "
        "(default: topology.kubernetes.io/zone)",
    )
    parser.add_argument("-l", "--selector", default=None, help="Label selector, e.g. app=web,tier!=db")
    parser.add_argument(
        "--include-inactive",
        action="store_true",
        help="Also count pods that are not Running (nodes that are not Ready)",
    )


def _namespace_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-n", "--namespace", help="Namespace to inspect")
    group.add_argument(
        "-A",
        "--all-namespaces",
        action="store_true",
        help="Inspect every namespace",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubectl-topology_skew",
        description="Show how pods and nodes are spread across topology domains",
    )
    common = _common_flags()
    subparsers = parser.add_subparsers(dest="command", metavar="RESOURCE", required=True)

    for mode in ResourceKind:
        sub = subparsers.add_parser(
            mode.command,
            aliases=list(mode.aliases),
            parents=[common],
            help=f"Skew of {mode.command} resources" if mode.is_workload else f"Skew of {mode.command}s",
        )
        sub.set_defaults(mode=mode)
        _selection_flags(sub)

        if mode is ResourceKind.NODE:
            continue
        _namespace_flags(sub)

        if mode.is_workload:
            if mode is not ResourceKind.ALL:
                sub.add_argument("name", nargs="?", metavar="NAME", help=f"Only this {mode.kind}")
            sub.add_argument(
                "--max-owner-hops",
                type=_positive_int,
                default=None,
                help="Stop walking owner references after this many hops",
            )

    return parser


def _namespace(args: argparse.Namespace, context_namespace: str | None) -> str | None:
    if args.mode is ResourceKind.NODE or getattr(args, "all_namespaces", False):
        return None
    if getattr(args, "namespace", None):
        return args.namespace
    # Offline snapshots have no current context: report every namespace.
    return context_namespace


def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    setup_logging("debug" if args.verbose else settings.log_level)

    fmt = validate_output(args.output or settings.output)
    selector = parse_selector(args.selector)

    if args.snapshot and any((args.context, args.cluster, args.user, args.kubeconfig)):
        raise InvalidInputError("--snapshot cannot be combined with --context, --cluster, --user or --kubeconfig")

    options_kwargs = dict(
        mode=args.mode,
        topology_key=args.topology_key or settings.topology_key,
        selector=selector,
        name=getattr(args, "name", None),
        include_inactive=args.include_inactive,
        max_hops=getattr(args, "max_owner_hops", None),
    )

    if args.snapshot:
        options = SkewOptions(namespace=_namespace(args, None), **options_kwargs)
        snapshot = load_snapshot(args.snapshot)
    else:
        api_client, default_namespace = load_kube_client(args.kubeconfig, args.context, args.cluster, args.user)
        options = SkewOptions(namespace=_namespace(args, default_namespace), **options_kwargs)
        cluster = ClusterClient(api_client, args.request_timeout or settings.request_timeout)
        snapshot = fetch_snapshot(cluster, options, settings.max_workers)

    log.debug("options", mode=options.mode.command, namespace=options.namespace, selector=str(selector))
    output_result(build_result(snapshot, options), fmt)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except TopologySkewError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
