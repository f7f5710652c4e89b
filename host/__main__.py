import argparse
import asyncio
import logging

from holdem.models import TableConfig
from .server import TableHost

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Texas Hold'em table host")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--seats", type=int, default=9)
    parser.add_argument("--starting-stack", type=int, default=1_000)
    parser.add_argument("--sb", type=int, default=10)
    parser.add_argument("--bb", type=int, default=20)
    parser.add_argument(
        "--move-time",
        type=int,
        default=30_000,
        help="Move time in milliseconds (0 disables the turn timer)",
    )
    parser.add_argument("--bot-delay", type=int, default=1_000, help="Pause before a bot acts, in milliseconds")
    parser.add_argument("--bots", type=int, default=0, help="Bots to seat before anyone connects")
    args = parser.parse_args()

    config = TableConfig(
        seats=args.seats,
        starting_stack=args.starting_stack,
        sb=args.sb,
        bb=args.bb,
        move_time_ms=args.move_time,
        bot_delay_ms=args.bot_delay,
    )

    host = TableHost(config)
    for _ in range(min(args.bots, config.seats)):
        host.engine.add_bot()
    asyncio.run(host.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
