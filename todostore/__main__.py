import argparse
import asyncio
import logging
import os
import sys

from todostore.config import StoreConfig
from todostore.driver import Driver
from todostore.models.exceptions import StoreError
from todostore.shared import SharedDriver
from todostore.todos import TodoNotFoundError, TodoRepository

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="todostore", description="Manage todos on disk.")
    parser.add_argument("--path", help="store directory (default: $TODOSTORE_PATH or ./db)")
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="create a todo")
    add.add_argument("title")

    commands.add_parser("list", help="list todos")

    toggle = commands.add_parser("toggle", help="flip a todo's completion flag")
    toggle.add_argument("id", type=int)

    remove = commands.add_parser("remove", help="delete a todo")
    remove.add_argument("id", type=int)

    return parser


def format_todo(todo) -> str:
    mark = "x" if todo.completed else " "
    return f"[{mark}] {todo.id}: {todo.title}"


async def run(args: argparse.Namespace) -> int:
    config = StoreConfig.from_env(path=args.path)
    async with SharedDriver(Driver.open(config=config)) as shared:
        todos = TodoRepository(shared)

        if args.command == "add":
            print(format_todo(await todos.create(args.title)))
        elif args.command == "list":
            for todo in await todos.list_todos():
                print(format_todo(todo))
        elif args.command == "toggle":
            print(format_todo(await todos.toggle(args.id)))
        elif args.command == "remove":
            await todos.remove(args.id)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except TodoNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except StoreError as e:
        logger.debug("Store failure", exc_info=e)
        print("error: internal storage error", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
