"""
Terminal client. Creates or joins a shared counter and keeps it in sync.

Press Enter to count, type "r" + Enter to reset (creator only), "q" to quit.
"""

import argparse
import asyncio
import logging
import sys
import threading

import structlog

from tasbih.client import (
    ClientSyncAgent,
    HttpCounterTransport,
    ProfileStore,
    SyncListener,
)
from tasbih.config import config
from tasbih.errors import CounterError
from tasbih.share import build_join_url, parse_join_code

logging.basicConfig(format="%(message)s", level=getattr(logging, config.log_level, logging.INFO))

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

log = structlog.get_logger()

MEDALS = ["1.", "2.", "3."]


class ConsolePresenter(SyncListener):
    def __init__(self, out=sys.stdout):
        self.out = out

    def _say(self, text):
        print(text, file=self.out, flush=True)

    def on_progress(self, update):
        self._say(f"[{update.current_count}/{update.goal}] {update.percent}% - mine: {update.my_count}")
        for i, p in enumerate(update.participants[:3]):
            self._say(f"   {MEDALS[i]} {p.name}: {p.count}")

    def on_completed(self, snapshot):
        self._say("Goal reached! May it be accepted.")

    def on_tap_ack(self, vibrate):
        self._say("*" if not vibrate else "* (bzz)")

    def on_notice(self, code, message):
        self._say(f"note: {message}")

    def on_error(self, error):
        self._say(f"error: {error}")

    def on_terminated(self, reason):
        self._say(f"session ended: {reason}")


def _pump_stdin(loop, queue, stdin):
    while True:
        line = stdin.readline()
        try:
            loop.call_soon_threadsafe(queue.put_nowait, line)
        except RuntimeError:
            return  # loop closed
        if not line:
            return


async def _read_commands(agent, stdin=None):
    loop = asyncio.get_running_loop()
    lines = asyncio.Queue()
    # daemon: a blocked readline must not hold up interpreter exit
    threading.Thread(
        target=_pump_stdin, args=(loop, lines, stdin or sys.stdin), name="stdin-reader", daemon=True
    ).start()
    while True:
        line = await lines.get()
        if not line:
            break
        command = line.strip().lower()
        if command == "q":
            break
        try:
            if command == "r":
                await agent.reset()
            elif command == "":
                await agent.increment()
        except RuntimeError as error:
            log.warning("command_ignored", command=command, error=str(error))
    agent.stop()


async def run_session(counter_id, profile, transport):
    presenter = ConsolePresenter()
    agent = ClientSyncAgent.from_config(config, transport, counter_id, profile, listener=presenter)

    print(f"code: {counter_id}")
    print(f"link: {build_join_url(config.join_base_url, counter_id)}")

    await agent.join()
    reader = asyncio.ensure_future(_read_commands(agent))
    try:
        await agent.run()
    finally:
        reader.cancel()


async def main(argv=None):
    args = parse_args(argv)
    profiles = ProfileStore(config.profile_path)

    if args.command == "vibration":
        profile = profiles.set_vibration(args.state == "on")
        print(f"vibration {'on' if profile.vibration_enabled else 'off'}")
        return 0

    profile = profiles.load()
    if args.name:
        profile = profiles.remember_name(args.name)
    if not profile.is_identified:
        print("a name is required the first time: pass --name", file=sys.stderr)
        return 2

    async with HttpCounterTransport.from_config(config) as transport:
        try:
            if args.command == "create":
                snapshot = await transport.create(args.goal, profile.participant_name)
                counter_id = snapshot.id
            else:
                counter_id = parse_join_code(args.code)
                if not counter_id:
                    print("no counter code found", file=sys.stderr)
                    return 2
                await transport.get_state(counter_id)
        except CounterError as error:
            print(f"error: {error.message}", file=sys.stderr)
            return 1

        await run_session(counter_id, profile, transport)
    return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Shared tasbih counter client")
    parser.add_argument("--name", help="display name, remembered on this device")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="start a new shared counter")
    create.add_argument("--goal", type=int, required=True, help="target count")

    join = sub.add_parser("join", help="join by code or join link")
    join.add_argument("code", help="counter code or a link containing ?join=<code>")

    vibration = sub.add_parser("vibration", help="toggle haptic feedback")
    vibration.add_argument("state", choices=["on", "off"])

    return parser.parse_args(argv)


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
