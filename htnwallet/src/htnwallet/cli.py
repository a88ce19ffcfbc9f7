"""
Hoosat transaction CLI - price, build, sign and send transactions.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Coroutine
from typing import Any

import httpx
import typer
from loguru import logger

from htncore.amounts import format_htn, htn_to_sompi
from htncore.constants import MAX_RECIPIENT_OUTPUTS
from htncore.errors import HoosatTxError
from htncore.mass import compute_mass, compute_min_fee
from htncore.models import FeePriority, NetworkType
from htnwallet.backends.rest_proxy import RestProxyBackend
from htnwallet.config import Settings, get_settings
from htnwallet.wallet.fee_estimator import FeeEstimator
from htnwallet.wallet.keys import generate_key_pair, import_key_pair
from htnwallet.wallet.service import WalletService
from htnwallet.wallet.signing import get_transaction_id

app = typer.Typer(
    name="htn-tx",
    help="Hoosat transaction construction and fee engine",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _load_settings(
    network: NetworkType | None, proxy_url: str | None, log_level: str | None
) -> Settings:
    settings = get_settings()
    overrides = {
        "network": network,
        "proxy_url": proxy_url,
        "log_level": log_level,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    setup_logging(settings.log_level)
    return settings


def _create_service(settings: Settings) -> WalletService:
    backend = RestProxyBackend(base_url=settings.proxy_url, timeout=settings.request_timeout)
    estimator = FeeEstimator(
        backend,
        cache_ttl=settings.fee_cache_ttl,
        min_samples=settings.fee_min_samples,
        iqr_multiplier=settings.fee_iqr_multiplier,
    )
    return WalletService(
        backend=backend,
        network=settings.network,
        fee_estimator=estimator,
        coinbase_maturity=settings.coinbase_maturity,
        selection_policy=settings.selection_policy,
    )


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except HoosatTxError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    except httpx.HTTPError as e:
        logger.error(f"Node unreachable: {e}")
        raise typer.Exit(1)


@app.command()
def mass(
    inputs: int = typer.Option(1, "--inputs", "-i", help="Number of inputs"),
    outputs: int = typer.Option(2, "--outputs", "-o", help="Number of outputs"),
    payload: int = typer.Option(0, "--payload", "-p", help="Payload size in bytes"),
) -> None:
    """Compute the mass and minimum fee of a transaction shape."""
    setup_logging("WARNING")
    try:
        tx_mass = compute_mass(inputs, outputs, payload)
    except HoosatTxError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    fee = compute_min_fee(inputs, outputs, payload)
    typer.echo(f"Mass:    {tx_mass:,}")
    typer.echo(f"Min fee: {fee:,} sompi ({format_htn(fee)} HTN)")


@app.command()
def fees(
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the fee cache"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
    network: NetworkType | None = typer.Option(None, "--network", "-n"),
    proxy_url: str | None = typer.Option(None, "--proxy-url"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show fee recommendations from the current mempool."""
    settings = _load_settings(network, proxy_url, log_level)
    _run(_show_fees(settings, refresh, as_json))


async def _show_fees(settings: Settings, refresh: bool, as_json: bool) -> None:
    service = _create_service(settings)
    try:
        recommendations = await service.fee_estimator.get_recommendations(force_refresh=refresh)
    finally:
        await service.close()

    if as_json:
        typer.echo(json.dumps(recommendations.to_api_dict(), indent=2))
        return

    source = "fallback table" if recommendations.is_fallback else (
        f"{recommendations.sample_size} mempool sample(s)"
    )
    typer.echo(f"\nFee recommendations ({source}):")
    for priority in FeePriority:
        estimate = recommendations.for_priority(priority)
        typer.echo(
            f"  {priority.value:<7} {estimate.fee_rate:>10} sompi/mass  "
            f"{estimate.total_fee:>10,} sompi (1 in / 2 out)"
        )


@app.command()
def balance(
    address: str = typer.Argument(..., help="Hoosat address"),
    network: NetworkType | None = typer.Option(None, "--network", "-n"),
    proxy_url: str | None = typer.Option(None, "--proxy-url"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show spendable and pending balance of an address."""
    settings = _load_settings(network, proxy_url, log_level)
    _run(_show_balance(settings, address))


async def _show_balance(settings: Settings, address: str) -> None:
    service = _create_service(settings)
    try:
        result = await service.get_balance(address)
    finally:
        await service.close()

    typer.echo(f"\nAddress:   {address}")
    typer.echo(f"Spendable: {result.spendable:>20,} sompi ({format_htn(result.spendable)} HTN)")
    typer.echo(f"Pending:   {result.pending:>20,} sompi ({format_htn(result.pending)} HTN)")
    typer.echo(f"UTXOs:     {result.utxo_count}")


@app.command()
def send(
    to: list[str] = typer.Option(..., "--to", "-t", help="Recipient address (repeatable)"),
    amount: list[str] = typer.Option(..., "--amount", "-a", help="Amount in HTN (repeatable)"),
    private_key: str = typer.Option(
        ..., "--private-key", envvar="HTN_PRIVATE_KEY", help="Hex private key"
    ),
    priority: FeePriority = typer.Option(FeePriority.NORMAL, "--priority"),
    change_address: str | None = typer.Option(None, "--change-address"),
    schnorr: bool = typer.Option(False, "--schnorr", help="Spend from the Schnorr address"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the signed tx, do not submit"),
    network: NetworkType | None = typer.Option(None, "--network", "-n"),
    proxy_url: str | None = typer.Option(None, "--proxy-url"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Send HTN. More than two recipients are split into several transactions."""
    settings = _load_settings(network, proxy_url, log_level)

    if len(to) != len(amount):
        logger.error("Each --to needs a matching --amount")
        raise typer.Exit(1)

    try:
        recipients = [(addr, htn_to_sompi(value)) for addr, value in zip(to, amount)]
    except HoosatTxError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    _run(_send(settings, recipients, private_key, priority, change_address, schnorr, dry_run))


async def _send(
    settings: Settings,
    recipients: list[tuple[str, int]],
    private_key: str,
    priority: FeePriority,
    change_address: str | None,
    schnorr: bool,
    dry_run: bool,
) -> None:
    key_pair = import_key_pair(private_key, settings.network, schnorr=schnorr)
    service = _create_service(settings)

    try:
        if dry_run:
            if len(recipients) > MAX_RECIPIENT_OUTPUTS:
                logger.error(f"--dry-run supports at most {MAX_RECIPIENT_OUTPUTS} recipients")
                raise typer.Exit(1)
            tx = await service.prepare_payment(
                key_pair.address, key_pair.private_key, recipients, priority, change_address
            )
            typer.echo(json.dumps(tx.to_api_dict(), indent=2))
            typer.echo(f"\nTransaction ID: {get_transaction_id(tx)}")
            return

        if len(recipients) > MAX_RECIPIENT_OUTPUTS:
            txids = await service.send_batch(
                key_pair.address, key_pair.private_key, recipients, priority, change_address
            )
        else:
            txids = [
                await service.send(
                    key_pair.address, key_pair.private_key, recipients, priority, change_address
                )
            ]
    finally:
        await service.close()

    for txid in txids:
        typer.echo(f"Submitted: {txid}")


@app.command("generate-key")
def generate_key(
    network: NetworkType = typer.Option(NetworkType.MAINNET, "--network", "-n"),
    schnorr: bool = typer.Option(False, "--schnorr", help="Schnorr address instead of ECDSA"),
) -> None:
    """Generate a new private key and its address."""
    setup_logging("WARNING")
    key_pair = generate_key_pair(network, schnorr=schnorr)

    typer.echo("\n" + "=" * 80)
    typer.echo("GENERATED KEY - KEEP THE PRIVATE KEY SECRET!")
    typer.echo("=" * 80)
    typer.echo(f"Private key: {key_pair.private_key_hex}")
    typer.echo(f"Public key:  {key_pair.public_key_hex}")
    typer.echo(f"Address:     {key_pair.address}")
    typer.echo("=" * 80 + "\n")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
