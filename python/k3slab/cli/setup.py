#!/usr/bin/env python3
"""
k3slab/cli/setup.py

Provision Multipass VMs and bootstrap a 1 control-plane + 1 worker K3s
cluster, then optionally export its kubeconfig and put an NGINX reverse proxy
in front of it on the host:

    k3slab-setup
    k3slab-setup --cpus 2 --memory 10G --disk 50G
    python -m k3slab.cli.setup --no-nginx-proxy

Flag defaults come from K3SLAB_* environment variables (see LabSettings).
Exit codes: 0 on success, 1 on any error (including unknown flags).
"""

from __future__ import annotations

import sys
import asyncio
import argparse
import logging
from typing import List, NoReturn, Optional, Tuple

from pydantic import ValidationError

from k3slab.deployment.pipeline import run_pipeline
from k3slab.errors import LabError
from k3slab.host.environment import detect_host_environment
from k3slab.host.shell import HostShell
from k3slab.models.run_config import LabTiming, RunConfig, VmSizing, WaitPolicy
from k3slab.models.settings import LabSettings
from k3slab.providers.k3s import K3sInstaller
from k3slab.providers.multipass import MultipassProvider
from k3slab.utils.async_command_runner import CommandError


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors exit with 1 rather than 2."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser(settings: LabSettings) -> _ArgumentParser:
    parser = _ArgumentParser(
        prog="k3slab-setup",
        description=(
            "Provision Multipass VMs and bootstrap a 1 control-plane + 1 worker "
            "K3s cluster."
        ),
        epilog=(
            "Examples:\n"
            "  k3slab-setup\n"
            "  k3slab-setup --cpus 2 --memory 10G --disk 50G"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--master-name",
        default=settings.master_name,
        metavar="NAME",
        help=f"Master VM name (default: {settings.master_name})",
    )
    parser.add_argument(
        "--worker-name",
        default=settings.worker_name,
        metavar="NAME",
        help=f"Worker VM name (default: {settings.worker_name})",
    )
    parser.add_argument(
        "--cpus",
        type=int,
        default=settings.cpus,
        metavar="N",
        help=f"CPU count per VM (default: {settings.cpus})",
    )
    parser.add_argument(
        "--memory",
        default=settings.memory,
        metavar="SIZE",
        help=f"RAM per VM, e.g. 4G (default: {settings.memory})",
    )
    parser.add_argument(
        "--disk",
        default=settings.disk,
        metavar="SIZE",
        help=f"Disk per VM, e.g. 30G (default: {settings.disk})",
    )
    parser.add_argument(
        "--image",
        default=settings.image,
        help=f"Multipass image/channel (default: {settings.image})",
    )
    parser.add_argument(
        "--no-host-tools",
        action="store_true",
        help="Skip host kubectl/helm check and install",
    )
    parser.add_argument(
        "--no-kubeconfig",
        action="store_true",
        help="Skip kubeconfig export to ~/.kube/config",
    )
    parser.add_argument(
        "--no-nginx-proxy",
        action="store_true",
        help="Skip NGINX reverse-proxy setup on host (80/443)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def resolve_run_config(
    argv: Optional[List[str]] = None, settings: Optional[LabSettings] = None
) -> Tuple[RunConfig, argparse.Namespace]:
    """
    Parse `argv` into a RunConfig. Invalid values are reported like any other
    usage error (exit 1).
    """
    if settings is None:
        try:
            settings = LabSettings()
        except ValidationError as ve:
            _ArgumentParser(prog="k3slab-setup").error(
                f"invalid K3SLAB_* environment setting: {ve}"
            )
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    try:
        config = RunConfig(
            master_name=args.master_name,
            worker_name=args.worker_name,
            sizing=VmSizing(cpus=args.cpus, memory=args.memory, disk=args.disk),
            image=args.image,
            ensure_host_tools=not args.no_host_tools,
            configure_kubeconfig=not args.no_kubeconfig,
            setup_proxy=not args.no_nginx_proxy,
            timing=LabTiming(
                address=WaitPolicy(
                    attempts=settings.address_attempts,
                    interval=settings.address_interval_seconds,
                ),
                ready=WaitPolicy.from_timeout(
                    settings.ready_timeout_seconds, settings.ready_interval_seconds
                ),
            ),
        )
    except ValidationError as ve:
        parser.error(str(ve))
    return config, args


async def _run(config: RunConfig, provider: MultipassProvider) -> None:
    shell = HostShell()
    host_env = await detect_host_environment(shell)
    await run_pipeline(
        config=config,
        provider=provider,
        installer=K3sInstaller(provider),
        host_env=host_env,
        shell=shell,
    )


def main(argv: Optional[List[str]] = None) -> int:
    config, args = resolve_run_config(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    provider = MultipassProvider()
    try:
        provider.check_installed()
        asyncio.run(_run(config, provider))
    except (LabError, CommandError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
