# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from entitlekit.app import ProviderType, build_subscription_provider
from entitlekit.config import ConfigurationError, configure_logging
from entitlekit.domain.errors import EntitlementError
from entitlekit.domain.model import PurchaseOutcomeKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from entitlekit.domain.model import SubscriptionStatus
    from entitlekit.domain.provider import SubscriptionProvider

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect and manage subscription entitlements")
    parser.add_argument(
        "--provider",
        choices=[member.value for member in ProviderType],
        default=ProviderType.STOREFRONT.value,
        help="Purchase backend to use (default: %(default)s)",
    )
    parser.add_argument(
        "--manifest",
        type=str,
        help="Path to the product manifest (defaults to ENTITLEKIT_MANIFEST)",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        help="App user id to reconcile (defaults to ENTITLEKIT_APP_USER_ID)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show the current subscription status")
    status.add_argument(
        "--watch",
        type=float,
        metavar="SECONDS",
        help="Keep printing status changes for this many seconds",
    )

    subparsers.add_parser("products", help="List the configured products with prices")

    purchase = subparsers.add_parser("purchase", help="Purchase a subscription product")
    purchase.add_argument("product_id", type=str, help="Product id from the manifest")

    subparsers.add_parser("restore", help="Restore previous purchases")
    subparsers.add_parser("manage", help="Open the subscription management page")

    args = parser.parse_args(list(argv))
    if getattr(args, "watch", None) is not None and args.watch <= 0:
        parser.error("--watch must be positive")
    return args


def _print_status(status: SubscriptionStatus | None) -> None:
    print(f"Subscription status: {status if status is not None else 'pending'}")


async def _watch(provider: SubscriptionProvider, seconds: float) -> None:
    async def printer() -> None:
        async for status in provider.subscription_status.subscribe():
            _print_status(status)

    try:
        await asyncio.wait_for(printer(), timeout=seconds)
    except TimeoutError:
        pass


async def _run(args: argparse.Namespace) -> int:
    provider = build_subscription_provider(
        ProviderType(args.provider),
        manifest_path=args.manifest,
        app_user_id=args.user_id,
    )
    async with provider:
        status = await provider.wait_until_settled()
        if args.command == "status":
            if args.watch is not None:
                await _watch(provider, args.watch)
            else:
                _print_status(status)
        elif args.command == "products":
            for product in await provider.fetch_products():
                print(
                    f"{product.product_id}\t{product.display_name}\t"
                    f"{product.display_price}\t{product.billing_recurrence}\t{product.tier.name}"
                )
        elif args.command == "purchase":
            outcome = await provider.purchase(args.product_id)
            if outcome.kind is PurchaseOutcomeKind.COMPLETED:
                print(f"Purchased {args.product_id}")
            else:
                print(f"Purchase not completed: {outcome.kind}")
            _print_status(provider.current_status)
        elif args.command == "restore":
            await provider.restore_purchases()
            _print_status(provider.current_status)
        elif args.command == "manage":
            provider.show_manage_subscriptions()
        else:
            raise ValueError(f"Unsupported command: {args.command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        exit_code = asyncio.run(_run(parsed_args))
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except EntitlementError as exc:
        log.error("%s", exc)
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
