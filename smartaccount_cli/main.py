"""
smartaccount - inspect and operate an ERC-4337 smart account from the shell.

The owner's private key is read from SMARTACCOUNT_PRIVATE_KEY and never
accepted as a command line argument.
"""
import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import typer

from smartaccount_sdk import (
    NATIVE_ASSET,
    InsufficientPrefund,
    NetworkConfig,
    OperationResult,
    OperationStatus,
    SmartAccountClient,
    SmartAccountError,
    __version__,
)
from smartaccount_sdk.utils import format_units, parse_units

PRIVATE_KEY_ENV = "SMARTACCOUNT_PRIVATE_KEY"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FUNDING_REQUIRED = 2
EXIT_PENDING = 3

app = typer.Typer(
    name="smartaccount",
    help="ERC-4337 smart account tool",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass
class ConnectionOptions:
    """Settings shared by every command that talks to a chain."""
    network: str
    rpc_url: Optional[str] = None
    bundler_url: Optional[str] = None
    paymaster_url: Optional[str] = None
    factory: Optional[str] = None
    poll_attempts: int = 30


def should_use_color(stream=None) -> bool:
    """Color only on a TTY and only when NO_COLOR is unset"""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _say(message: str, fg: Optional[str] = None, err: bool = False) -> None:
    stream = sys.stderr if err else sys.stdout
    typer.secho(message, fg=fg, err=err, color=should_use_color(stream))


def _fail(message: str, code: int = EXIT_ERROR) -> None:
    _say(f"ERROR: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Turn SDK errors into messages and the documented exit codes."""
    try:
        yield
    except InsufficientPrefund as e:
        _say("Smart account needs native tokens for gas fees.", fg=typer.colors.YELLOW, err=True)
        _say(f"Send {e.native_symbol} to {e.funding_address} and retry.", err=True)
        raise typer.Exit(code=EXIT_FUNDING_REQUIRED)
    except (SmartAccountError, ValueError) as e:
        _fail(str(e))


def _build_client(ctx: typer.Context) -> SmartAccountClient:
    options: ConnectionOptions = ctx.obj
    private_key = os.environ.get(PRIVATE_KEY_ENV)
    if not private_key:
        _fail(f"{PRIVATE_KEY_ENV} environment variable is required")
    with _reporting_errors():
        return SmartAccountClient.from_network(
            options.network,
            private_key=private_key,
            rpc_url=options.rpc_url,
            bundler_url=options.bundler_url,
            paymaster_url=options.paymaster_url,
            factory_address=options.factory,
            poll_attempts=options.poll_attempts,
        )


def _report_result(result: OperationResult) -> None:
    typer.echo(f"UserOp hash: {result.user_op_hash}")
    if result.status == OperationStatus.CONFIRMED:
        _say("Confirmed", fg=typer.colors.GREEN)
        if result.transaction_hash:
            typer.echo(f"Transaction: {result.transaction_hash}")
        if result.explorer_url:
            typer.echo(f"Explorer:    {result.explorer_url}")
        if result.deployed_account:
            typer.echo("Account deployed")
        return
    if result.status == OperationStatus.FAILED:
        reason = result.receipt.reason if result.receipt else None
        _say(f"Failed on-chain{': ' + reason if reason else ''}", fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_ERROR)
    _say("Pending. Look the operation up later with its hash.", fg=typer.colors.YELLOW)
    raise typer.Exit(code=EXIT_PENDING)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"smartaccount {__version__}")
        raise typer.Exit()


@app.callback()
def cli(
    ctx: typer.Context,
    network: str = typer.Option("monad", "--network", "-n", help="Network key (see 'networks')"),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="Override the chain RPC URL"),
    bundler_url: Optional[str] = typer.Option(None, "--bundler-url", help="Override the bundler URL"),
    paymaster_url: Optional[str] = typer.Option(None, "--paymaster-url", help="Paymaster URL for gas sponsorship"),
    factory: Optional[str] = typer.Option(None, "--factory", help="Override the account factory address"),
    poll_attempts: int = typer.Option(30, "--poll-attempts", min=1, help="Receipt polls before giving up"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Inspect and operate an ERC-4337 smart account."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = ConnectionOptions(
        network=network,
        rpc_url=rpc_url,
        bundler_url=bundler_url,
        paymaster_url=paymaster_url,
        factory=factory,
        poll_attempts=poll_attempts,
    )


@app.command()
def networks() -> None:
    """List supported networks."""
    for key, cfg in NetworkConfig.load_networks().items():
        typer.echo(f"{key:<10} {cfg['chainId']:>6}  {cfg['name']} ({cfg['nativeCurrency']['symbol']})")


@app.command()
def derive(ctx: typer.Context) -> None:
    """Derive the smart account address."""
    client = _build_client(ctx)
    with _reporting_errors():
        account = client.get_account()
    typer.echo(f"Owner:         {account.owner}")
    typer.echo(f"Factory:       {account.factory}")
    typer.echo(f"Smart account: {account.address}")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show deployment status and balances."""
    client = _build_client(ctx)
    profile = client.profile
    with _reporting_errors():
        account = client.get_account()
        asset_balance = client.get_asset_balance(account.address)
        native_balance = client.get_native_balance(account.address)
    typer.echo(f"Smart account: {account.address}")
    typer.echo(f"Deployment:    {account.status.value}")
    typer.echo(f"{profile.asset_symbol + ':':<15}{format_units(asset_balance, profile.asset_decimals)}")
    typer.echo(f"{profile.native_symbol + ':':<15}{format_units(native_balance, profile.native_decimals, precision=6)}")


@app.command()
def deploy(
    ctx: typer.Context,
    no_wait: bool = typer.Option(False, "--no-wait", help="Do not poll for the receipt"),
) -> None:
    """Deploy the smart account."""
    client = _build_client(ctx)
    with _reporting_errors():
        result = client.deploy(wait=not no_wait)
    _report_result(result)


@app.command()
def transfer(
    ctx: typer.Context,
    recipient: str = typer.Argument(..., help="Recipient address"),
    amount: str = typer.Argument(..., help="Human-readable amount, e.g. 12.5"),
    native: bool = typer.Option(False, "--native", help="Send native currency"),
    token: Optional[str] = typer.Option(None, "--token", help="ERC-20 token address (default: network USDC)"),
    decimals: Optional[int] = typer.Option(None, "--decimals", min=0, help="Decimals of --token"),
    no_wait: bool = typer.Option(False, "--no-wait", help="Do not poll for the receipt"),
) -> None:
    """Send tokens from the smart account."""
    if native and token:
        _fail("--native and --token cannot be combined")
    if token and decimals is None:
        _fail("--decimals is required with --token")
    client = _build_client(ctx)
    profile = client.profile
    if native:
        asset, asset_decimals = NATIVE_ASSET, profile.native_decimals
    elif token:
        asset, asset_decimals = token, decimals
    else:
        asset, asset_decimals = profile.asset_address, profile.asset_decimals
    with _reporting_errors():
        value = parse_units(amount, asset_decimals)
        result = client.transfer(recipient, value, asset=asset, wait=not no_wait)
    _report_result(result)


@app.command()
def recover(
    ctx: typer.Context,
    recipient: str = typer.Argument(..., help="Recipient address"),
    no_wait: bool = typer.Option(False, "--no-wait", help="Do not poll for the receipt"),
) -> None:
    """Move the whole USDC balance to a recipient."""
    client = _build_client(ctx)
    with _reporting_errors():
        result = client.recover(recipient, wait=not no_wait)
    _report_result(result)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
