from __future__ import annotations

from typing import Protocol

from loguru import logger
from rich.console import ConsoleRenderable


class ConsoleLike(Protocol):
    def print(self, msg: ConsoleRenderable | str | None = None) -> None: ...

    def info(self, msg: str) -> None: ...

    def warn(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...

    def ok(self, msg: str) -> None: ...


class LogConsole:
    """Console fallback that only writes to the log.

    Keeps installer components usable without the CLI console, e.g. when
    driven from tests or another program.
    """

    def print(self, msg: ConsoleRenderable | str | None = None) -> None:
        if isinstance(msg, str):
            logger.info(msg)

    def info(self, msg: str) -> None:
        logger.info(msg)

    def warn(self, msg: str) -> None:
        logger.warning(msg)

    def error(self, msg: str) -> None:
        logger.error(msg)

    def ok(self, msg: str) -> None:
        logger.info(msg)


def coalesce_console(console: ConsoleLike | None) -> ConsoleLike:
    return console if console is not None else LogConsole()
