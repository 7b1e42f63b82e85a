import argparse
import asyncio
import sys

from rich.console import Console

from hnbot.bot import run_bot
from hnbot.config import get_token as get_saved_token, load_settings, save_config
from hnbot.errors import ConfigError, SlackError
from hnbot.logging_config import configure_logging

console = Console()


async def main(args) -> int:
    token = args.token or get_saved_token()

    if not token:
        console.print(
            "[red]Error: Slack bot token not provided. Provide it once with --save-token to keep it.[/]"
        )
        console.print("Usage: hn-slackbot <slack-bot-token>")
        return 1

    if args.token and args.save_token:
        save_config("token", token)

    try:
        settings = load_settings(
            token=token,
            worker_count=args.workers,
            score_threshold=args.threshold,
            refresh_interval=args.refresh_interval,
            story_timeout=args.story_timeout,
            allowed_channels=args.channels,
            log_level=args.log_level,
        )
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {e}[/]")
        return 1

    configure_logging(settings.log_level)
    console.print(
        f"[bold green]hn-slackbot starting[/] [dim]({settings.worker_count} workers, "
        f"threshold {settings.score_threshold}), ^C exits[/]"
    )

    try:
        await run_bot(settings)
    except SlackError as e:
        console.print(f"[red]Slack connection lost: {e}[/]")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hacker News Slack bot")
    parser.add_argument(
        "token", nargs="?", help="Slack bot token (optional if saved)"
    )
    parser.add_argument(
        "--save-token", action="store_true", help="Remember the token for next time"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent story fetch workers (default: 100)",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Minimum score for a story to qualify as top news (default: 500)",
    )
    parser.add_argument(
        "--refresh-interval",
        type=float,
        default=None,
        help="Seconds between background cache refreshes (default: 900)",
    )
    parser.add_argument(
        "--story-timeout",
        type=float,
        default=None,
        help="Per-story fetch timeout in seconds (default: 2)",
    )
    parser.add_argument(
        "--channels",
        type=str,
        default=None,
        help="Comma separated channel allow-list (default: random,test-chamber)",
    )
    parser.add_argument(
        "--log-level", type=str, default=None, help="Log level (default: INFO)"
    )
    return parser


def run() -> None:
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
