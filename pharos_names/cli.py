import argparse
import asyncio
import functools
import logging
import sys

from colorama import Fore, Style

from . import __version__
from .chain import Web3ChainClient
from .config import load_settings
from .errors import ConfigurationError
from .log import LOG_LEVELS, setup_logging
from .orchestrator import Orchestrator

logger = logging.getLogger("pharos_names.cli")


def print_banner(settings):
    print(f"{Style.BRIGHT}{Fore.CYAN}{'=' * 60}")
    print(f"{Style.BRIGHT}{Fore.CYAN}Pharos Name Registrar v{__version__} | Commit-Reveal Batch")
    print(f"{Fore.CYAN}Controller: {settings.network.controller}")
    print(f"{Fore.CYAN}Wallets: {len(settings.wallets)} | Attempts per wallet: {settings.registration.attempts}")
    print(f"{Style.BRIGHT}{Fore.CYAN}{'=' * 60}")


def build_parser():
    parser = argparse.ArgumentParser(description="Bulk commit-reveal name registration")
    parser.add_argument("count", nargs="?", type=int, default=None, help="Attempts per wallet (overrides HOW_MANY)")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--keys-file", default=None, help="File with one private key per line (default pkey.txt)")
    parser.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS, help="Log level (default INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    return parser


async def run_batch(settings):
    client_factory = functools.partial(Web3ChainClient.connect, network=settings.network)
    orchestrator = Orchestrator(
        settings.wallets,
        settings.registration,
        client_factory,
        explorer_url=settings.network.explorer_url,
    )
    return await orchestrator.run()


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(env_file=args.env_file, keys_file=args.keys_file, attempts=args.count)
    except ConfigurationError as e:
        setup_logging(args.log_level or "INFO", args.log_file)
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(args.log_level or settings.log_level, args.log_file or settings.log_file)
    print_banner(settings)

    try:
        outcome = asyncio.run(run_batch(settings))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Cancelled by user")
        return 0

    print(f"\n{Style.BRIGHT}{Fore.MAGENTA}{'=' * 60}")
    print(f"{Style.BRIGHT}{Fore.MAGENTA}Registration Summary:")
    for line in outcome.summary_lines():
        print(f"   {line}")
    print(f"{Style.BRIGHT}{Fore.MAGENTA}{'=' * 60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
