"""CLI entrypoint for airnode-deployer.

Commands:

- ``deploy``: upload a new deployment version and apply the terraform recipes
- ``remove-with-receipt``: remove the deployment described by a receipt file
- ``remove-with-deployment-details``: remove a deployment given its address,
  stage and cloud provider
- ``list``: list the deployments stored in the Airnode buckets
- ``info``: show one deployment and its versions
- ``fetch-files``: download the configuration and secrets of a deployment version
"""

import argparse
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from deployer._version import __version__
from deployer.config import AirnodeWallet, load_config, load_secrets, load_settings
from deployer.exceptions import AggregateError, ConfigValidationError, DeployerError
from deployer.logging_config import LOG_FORMATS, mask_secrets, register_secrets, setup_logging
from deployer.orchestrator import DeploymentInfo, Orchestrator
from deployer.providers import CloudProviderType, parse_cloud_provider

logger = logging.getLogger(__name__)

ADDRESS_REGEX = re.compile(r"^0x[0-9a-fA-F]{40}$")
# Wallet identity read from secrets.env, printed in logs and receipts
PUBLIC_SECRET_NAMES = ("AIRNODE_ADDRESS", "AIRNODE_XPUB")


def _add_deployment_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--airnode-address", "-a", required=True, help="Airnode address")
    parser.add_argument("--stage", "-s", required=True, help="Stage (environment)")
    parser.add_argument(
        "--cloud-provider", "-c",
        required=True,
        choices=CloudProviderType.choices(),
        help="Cloud provider",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airnode-deployer",
        description="Deploy and remove serverless Airnode instances on AWS and GCP",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run in debug mode (show every command and storage call)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Console log format (default: human). Can also set via DEPLOYER_LOG_FORMAT env var",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write a JSON debug log to this file. Can also set via DEPLOYER_LOG_FILE env var",
    )
    parser.add_argument(
        "--settings",
        help="Path to a deployer settings YAML file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"airnode-deployer {__version__}",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser(
        "deploy", help="Executes Airnode deployments specified in the config file"
    )
    deploy.add_argument(
        "--configuration", "-c", "--config",
        default="config/config.json",
        help="Path to configuration file (default: config/config.json)",
    )
    deploy.add_argument(
        "--secrets", "-s",
        default="config/secrets.env",
        help="Path to secrets file (default: config/secrets.env)",
    )
    deploy.add_argument(
        "--receipt", "-r",
        default="output/receipt.json",
        help="Output path for receipt file (default: output/receipt.json)",
    )
    deploy.add_argument(
        "--airnode-address",
        help="Airnode address. Defaults to AIRNODE_ADDRESS from the secrets file",
    )
    deploy.add_argument(
        "--airnode-xpub",
        help="Airnode extended public key. Defaults to AIRNODE_XPUB from the secrets file",
    )
    deploy.add_argument(
        "--no-auto-remove",
        dest="auto_remove",
        action="store_false",
        default=None,
        help="Keep the resources of a failed deployment instead of removing them",
    )

    remove_receipt = subparsers.add_parser(
        "remove-with-receipt", help="Removes a deployed Airnode instance described by a receipt file"
    )
    remove_receipt.add_argument(
        "--receipt", "-r",
        default="output/receipt.json",
        help="Path to receipt file (default: output/receipt.json)",
    )

    remove_details = subparsers.add_parser(
        "remove-with-deployment-details", help="Removes a deployed Airnode instance"
    )
    _add_deployment_arguments(remove_details)
    remove_details.add_argument("--region", "-e", required=True, help="Region")
    remove_details.add_argument("--project-id", "-p", help="Project ID (GCP only)")

    list_parser = subparsers.add_parser(
        "list",
        help="Lists deployed Airnode instances (GCP uses the Application Default Credentials project)",
    )
    list_parser.add_argument(
        "--cloud-provider", "-c",
        nargs="+",
        choices=CloudProviderType.choices(),
        default=CloudProviderType.choices(),
        help="Cloud providers to list (default: all)",
    )

    info = subparsers.add_parser("info", help="Displays info about a deployed Airnode instance")
    _add_deployment_arguments(info)

    fetch_files = subparsers.add_parser(
        "fetch-files", help="Downloads the configuration and secrets of a deployed Airnode instance"
    )
    _add_deployment_arguments(fetch_files)
    fetch_files.add_argument(
        "--output-dir", "-o",
        default=".",
        help="Directory for the downloaded zip file (default: current directory)",
    )
    fetch_files.add_argument(
        "--deployment-version", "-v",
        help="Version to download (default: latest)",
    )

    return parser


def resolve_wallet(
    secrets: Dict[str, str], address: Optional[str] = None, xpub: Optional[str] = None
) -> AirnodeWallet:
    """Build the Airnode wallet from CLI arguments, falling back to the secrets file.

    Raises:
        ConfigValidationError: no address given or the address is malformed
    """
    address = address or secrets.get("AIRNODE_ADDRESS")
    xpub = xpub or secrets.get("AIRNODE_XPUB")
    if not address:
        raise ConfigValidationError(
            "Airnode address is required: pass --airnode-address or set AIRNODE_ADDRESS in the secrets file",
            key="AIRNODE_ADDRESS",
        )
    if not ADDRESS_REGEX.match(address):
        raise ConfigValidationError(f"Invalid Airnode address '{address}'", key="AIRNODE_ADDRESS")
    return AirnodeWallet(address=address, xpub=xpub)


def _check_address(address: str) -> None:
    if not ADDRESS_REGEX.match(address):
        raise ConfigValidationError(f"Invalid Airnode address '{address}'")


def readable_timestamp(version: str) -> str:
    """Render a millisecond version name as a UTC time; other names are returned as is."""
    if not version.isdigit():
        return version
    moment = datetime.fromtimestamp(int(version) / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")


def readable_cloud_provider(info: DeploymentInfo) -> str:
    provider = info.cloud_provider
    if provider.type == CloudProviderType.gcp.value:
        return f"GCP ({provider.region}, {provider.project_id})"
    return f"{provider.type.upper()} ({provider.region})"


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[str]:
    widths = [len(header) for header in headers]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]
    return [
        "  ".join(cell.ljust(width) for cell, width in zip(line, widths)).rstrip()
        for line in [list(headers), *rows]
    ]


def _deploy(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    secrets = load_secrets(args.secrets)
    register_secrets(value for name, value in secrets.items() if name not in PUBLIC_SECRET_NAMES)
    config = load_config(args.configuration, secrets)
    wallet = resolve_wallet(secrets, args.airnode_address, args.airnode_xpub)

    logger.debug(
        "Deploying Airnode %s with configuration %s",
        wallet.address,
        args.configuration,
        extra={"airnode_address": wallet.address, "stage": config.node_settings.stage},
    )

    outcome = orchestrator.deploy(
        config, wallet, args.configuration, args.secrets, receipt_path=args.receipt
    )
    for name, url in sorted(outcome.output.items()):
        print(f"{name}: {url}")
    print(f"Receipt file written to {args.receipt}")
    return 0


def _remove_with_receipt(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    orchestrator.remove_with_receipt(args.receipt)
    return 0


def _remove_with_details(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    _check_address(args.airnode_address)

    provider_data = {"type": args.cloud_provider, "region": args.region}
    if args.cloud_provider == CloudProviderType.gcp.value:
        if not args.project_id:
            raise ConfigValidationError("Missing argument, must provide '--project-id' for GCP")
        provider_data["projectId"] = args.project_id

    orchestrator.remove(args.airnode_address, args.stage, parse_cloud_provider(provider_data))
    return 0


def _list(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    deployments: List[DeploymentInfo] = []
    exit_code = 0
    for provider_type in dict.fromkeys(args.cloud_provider):
        try:
            deployments.extend(orchestrator.list_deployments(provider_type))
        except DeployerError as exc:
            _report_error(exc, prefix=f"Failed to fetch deployments from {provider_type.upper()}: ")
            exit_code = 1

    if not deployments:
        print("No Airnode deployments found")
        return exit_code

    rows = [
        [
            info.airnode_address,
            info.stage,
            readable_cloud_provider(info),
            info.node_version or "unknown",
            readable_timestamp(info.last_update),
        ]
        for info in deployments
    ]
    headers = ["Airnode address", "Stage", "Cloud provider", "Airnode version", "Last update"]
    for line in format_table(headers, rows):
        print(line)
    return exit_code


def _info(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    _check_address(args.airnode_address)
    info = orchestrator.deployment_info(args.airnode_address, args.stage, args.cloud_provider)

    print(f"Cloud provider: {readable_cloud_provider(info)}")
    print(f"Airnode address: {info.airnode_address}")
    print(f"Stage: {info.stage}")
    print(f"Airnode version: {info.node_version or 'unknown'}")
    rows = [
        [version, readable_timestamp(version) + (" (current)" if version == info.last_update else "")]
        for version in info.versions
    ]
    for line in format_table(["Version", "Deployment time"], rows):
        print(line)
    return 0


def _fetch_files(args: argparse.Namespace, orchestrator: Orchestrator) -> int:
    _check_address(args.airnode_address)
    archive_path = orchestrator.fetch_files(
        args.airnode_address,
        args.stage,
        args.cloud_provider,
        args.output_dir,
        version=args.deployment_version,
    )
    print(f"Files downloaded to {archive_path}")
    return 0


COMMANDS = {
    "deploy": _deploy,
    "remove-with-receipt": _remove_with_receipt,
    "remove-with-deployment-details": _remove_with_details,
    "list": _list,
    "info": _info,
    "fetch-files": _fetch_files,
}


def _report_error(exc: Exception, prefix: str = "") -> None:
    if isinstance(exc, AggregateError):
        lines: List[str] = exc.messages
    else:
        lines = [f"{prefix}{exc}"]
    for line in lines:
        print(mask_secrets(line), file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        debug=args.debug,
        log_format=args.log_format,
        log_file=args.log_file,
        use_colors=True,
    )
    logger.debug("Running command %s with arguments %s", args.command, vars(args))

    try:
        settings = load_settings(args.settings)
        if getattr(args, "auto_remove", None) is not None:
            settings = settings.model_copy(update={"auto_remove": args.auto_remove})
        orchestrator = Orchestrator(settings=settings)
        return COMMANDS[args.command](args, orchestrator)
    except DeployerError as exc:
        _report_error(exc)
        return 1
    except Exception as exc:
        logger.debug("Unexpected error", exc_info=True)
        _report_error(exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
