"""python-tapo cli tool."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from functools import singledispatch
from typing import Any

import asyncclick as click

from tapo import ApiClient, EncryptionType, TapoPlug
from tapo.json import dumps as json_dumps

echo = click.echo

ENCRYPTION_TYPES = ["auto"] + [e.name.lower() for e in EncryptionType]

click.anyio_backend = "asyncio"

pass_plug = click.make_pass_decorator(TapoPlug)


def CatchAllExceptions(cls):
    """Capture all exceptions and print them as a single line."""

    def _handle_exception(debug, exc):
        if isinstance(exc, (click.ClickException, click.exceptions.Exit)):
            raise
        click.echo(f"Raised error: {exc}", err=True)
        if debug:
            raise
        sys.exit(1)

    class _CommandCls(cls):
        _debug = False

        async def make_context(self, info_name, args, parent=None, **extra):
            self._debug = any(arg for arg in args if arg in ["--debug", "-d"])
            try:
                return await super().make_context(
                    info_name, args, parent=parent, **extra
                )
            except Exception as exc:
                _handle_exception(self._debug, exc)

        async def invoke(self, ctx):
            try:
                return await super().invoke(ctx)
            except Exception as exc:
                _handle_exception(self._debug, exc)

    return _CommandCls


def json_formatter_cb(result, **kwargs):
    """Format and output the result as JSON, if requested."""
    if not kwargs.get("json"):
        return

    @singledispatch
    def to_serializable(val):
        return str(val)

    @to_serializable.register(TapoPlug)
    def _plug_to_serializable(val: TapoPlug):
        return val.internal_state

    json_content = json_dumps(result, indent=True, default=to_serializable)
    print(json_content)


@click.group(
    invoke_without_command=True,
    cls=CatchAllExceptions(click.Group),
    result_callback=json_formatter_cb,
)
@click.option(
    "--host",
    envvar="TAPO_HOST",
    required=True,
    help="The host name or IP address of the device to connect to.",
)
@click.option(
    "--username",
    envvar="TAPO_USERNAME",
    required=True,
    help="Username/email address of the Tapo account.",
)
@click.option(
    "--password",
    envvar="TAPO_PASSWORD",
    required=True,
    help="Password of the Tapo account.",
)
@click.option(
    "--encryption",
    envvar="TAPO_ENCRYPTION",
    default="auto",
    show_default=True,
    type=click.Choice(ENCRYPTION_TYPES, case_sensitive=False),
    help="Encryption to use, auto negotiates with the device.",
)
@click.option(
    "--timeout",
    envvar="TAPO_TIMEOUT",
    default=30,
    show_default=True,
    type=int,
    help="Timeout for device communications in seconds.",
)
@click.option(
    "-d",
    "--debug",
    envvar="TAPO_DEBUG",
    default=False,
    is_flag=True,
    help="Print debug output",
)
@click.option(
    "--json/--no-json",
    envvar="TAPO_JSON",
    default=False,
    is_flag=True,
    help="Output raw device response as JSON.",
)
@click.version_option(package_name="python-tapo")
@click.pass_context
async def cli(ctx, host, username, password, encryption, timeout, debug, json):
    """A tool for controlling TP-Link Tapo smart plugs."""  # noqa
    global echo
    if json:

        def _nop_echo(*args, **kwargs):
            pass

        echo = _nop_echo
    else:
        # Reset after a previous --json invocation in the same process
        echo = click.echo

    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)

    encryption_type = (
        None if encryption.lower() == "auto" else EncryptionType[encryption.title()]
    )
    client = ApiClient(
        username, password, timeout=timeout, encryption_type=encryption_type
    )

    @asynccontextmanager
    async def async_wrapped_client(client: ApiClient):
        try:
            yield client
        finally:
            await client.close()

    await ctx.with_async_resource(async_wrapped_client(client))

    plug = await client.p100(host)

    @asynccontextmanager
    async def async_wrapped_plug(plug: TapoPlug):
        try:
            yield plug
        finally:
            await plug.close()

    ctx.obj = await ctx.with_async_resource(async_wrapped_plug(plug))

    if ctx.invoked_subcommand is None:
        return await ctx.invoke(state)


@cli.command()
@pass_plug
async def state(plug: TapoPlug) -> Any:
    """Print out device state."""
    await plug.update()
    echo(f"== {plug.alias} - {plug.model} ==")
    echo(f"\tHost: {plug.host}")
    echo(f"\tEncryption: {plug.protocol.encryption_type.value}")
    echo(f"\tDevice state: {'ON' if plug.is_on else 'OFF'}")
    echo(f"\tFirmware: {plug.fw_ver}")
    echo(f"\tRSSI: {plug.rssi}")
    return plug.internal_state


@cli.command()
@pass_plug
async def on(plug: TapoPlug) -> Any:
    """Turn the device on."""
    echo(f"Turning on {plug.host}")
    await plug.turn_on()
    return {"device_on": True}


@cli.command()
@pass_plug
async def off(plug: TapoPlug) -> Any:
    """Turn the device off."""
    echo(f"Turning off {plug.host}")
    await plug.turn_off()
    return {"device_on": False}


if __name__ == "__main__":
    cli()
