"""
Command-line interface for Papyrus.

Usage:
    papyrus states
    papyrus validate
    papyrus dry-run --ticks 50 --player Steve --player Alex --nether Alex
    papyrus run --player Steve --seconds 30
"""

import argparse
import asyncio
import sys
import uuid

from papyrus.bot import CommandOutput, PapyrusBot, PlayerListAction, PlayerListEntry
from papyrus.bot.workflow import build_papyrus_graph
from papyrus.config import BotConfig
from papyrus.graph import CommandNode, StatefulCommandGraph
from papyrus.observability import configure_logging
from papyrus.runtime import BotRuntime, BroadcastServer, BroadcastServerConfig, LoopbackTransport


def _format_tree(node: CommandNode, depth: int = 0) -> list[str]:
    lines = [f"{'  ' * depth}{node!r}"]
    for child in node.children():
        lines.extend(_format_tree(child, depth + 1))
    return lines


def _build_graph(config: BotConfig) -> StatefulCommandGraph:
    return build_papyrus_graph(LoopbackTransport(), config)


def cmd_states(args: argparse.Namespace, config: BotConfig) -> int:
    graph = _build_graph(config)
    for name in graph.states:
        marker = "*" if name == graph.current_state else " "
        print(f"{marker} {name}")
        for line in _format_tree(graph.get_state(name), depth=2):
            print(line)
    return 0


def cmd_validate(args: argparse.Namespace, config: BotConfig) -> int:
    result = _build_graph(config).validate()
    for warning in result.warnings:
        print(f"warning: {warning}")
    if not result.success:
        for error in result.errors:
            print(f"error: {error}", file=sys.stderr)
        return 1
    print("OK")
    return 0


async def _join(bot: PapyrusBot, players: list[str] | None) -> None:
    """Put the bot and the named players on the roster, then spawn the bot."""
    entries = [PlayerListEntry(uuid=str(uuid.uuid4()), name=bot.name)]
    entries += [PlayerListEntry(uuid=str(uuid.uuid4()), name=name) for name in players or []]
    await bot.on_player_list(PlayerListAction.ADD, entries)
    await bot.on_respawn()


def _reply_sink(bot: PapyrusBot):
    def deliver(key: str, success: bool, payload: dict) -> None:
        output = CommandOutput(origin_id=key, success_count=1 if success else 0)
        bot.on_command_output(output)

    return deliver


async def _dry_run(args: argparse.Namespace, config: BotConfig) -> int:
    nether = set(args.nether or [])

    def responder(command: str) -> bool:
        # The dimension test fails for players we pretend are in the nether.
        if command.startswith("scoreboard players test"):
            return not any(f'"{name}"' in command for name in nether)
        return True

    transport = LoopbackTransport(responder=responder)
    bot = PapyrusBot(transport, config=config)
    await _join(bot, args.player)
    deliver = _reply_sink(bot)

    state = bot.graph.current_state
    print(f"tick 0: {state}")
    for tick in range(1, args.ticks + 1):
        issued_before = len(transport.issued)
        result = bot.update()
        for issued in transport.issued[issued_before:]:
            print(f"tick {tick}: > {issued.command}")
        transport.drain(deliver)
        if bot.graph.current_state != state:
            state = bot.graph.current_state
            print(f"tick {tick}: {result} -> {state}")

    print(f"{len(transport.issued)} command(s) issued, final state: {bot.graph.current_state}")
    return 0


def cmd_dry_run(args: argparse.Namespace, config: BotConfig) -> int:
    return asyncio.run(_dry_run(args, config))


async def _run(args: argparse.Namespace, config: BotConfig) -> int:
    transport = LoopbackTransport()
    bot = PapyrusBot(transport, config=config)
    server = BroadcastServer(
        bot.event_bus,
        snapshot=bot.position_snapshot,
        config=BroadcastServerConfig.from_bot_config(config),
    )
    runtime = BotRuntime(bot)
    deliver = _reply_sink(bot)

    await server.start()
    print(f"Broadcasting on ws://{config.broadcast_host}:{server.port}")
    try:
        await _join(bot, args.player)
        await runtime.start()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.seconds if args.seconds else None
        while deadline is None or loop.time() < deadline:
            transport.drain(deliver)
            await asyncio.sleep(runtime.interval)
    finally:
        await runtime.stop()
        await server.stop()

    print(f"{len(transport.issued)} command(s) issued, final state: {bot.graph.current_state}")
    return 0


def cmd_run(args: argparse.Namespace, config: BotConfig) -> int:
    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        return 0


def main():
    parser = argparse.ArgumentParser(
        prog="papyrus",
        description="Papyrus - asynchronous command graph for a scouting bot",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    parser.add_argument("--log-format", default="auto", choices=["auto", "json", "human"])

    subparsers = parser.add_subparsers(dest="command", required=True)

    states = subparsers.add_parser("states", help="Print the registered states and their trees")
    states.set_defaults(func=cmd_states)

    validate = subparsers.add_parser("validate", help="Check state change targets")
    validate.set_defaults(func=cmd_validate)

    dry_run = subparsers.add_parser("dry-run", help="Run the workflow against a loopback session")
    dry_run.add_argument("--ticks", type=int, default=20)
    dry_run.add_argument("--player", action="append", help="Add a player to the roster")
    dry_run.add_argument("--nether", action="append", help="Pretend this player is in the nether")
    dry_run.set_defaults(func=cmd_dry_run)

    run = subparsers.add_parser(
        "run", help="Run the bot on a loopback session with the broadcast server"
    )
    run.add_argument("--seconds", type=float, default=None, help="Stop after this long")
    run.add_argument("--player", action="append", help="Add a player to the roster")
    run.set_defaults(func=cmd_run)

    args = parser.parse_args()
    config = BotConfig()
    configure_logging(level=args.log_level or config.log_level, format=args.log_format)

    sys.exit(args.func(args, config))


if __name__ == "__main__":
    main()
