# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Administrative commands in management CLI operation syntax.

A command looks like::

    /subsystem=logging/console-handler=CONSOLE:write-attribute(name=level,value=DEBUG)
    :reload
    /system-property=foo:add(value="bar baz")

i.e. an optional address of ``/type=name`` segments, a colon, the operation
name and an optional parenthesised parameter list. Parameter values may be
quoted strings, booleans, integers, ``[lists]`` or ``{key=value}`` objects.
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from loguru import logger

from asrun.core.exceptions import CommandError, CommandParseError, ManagementError
from asrun.core.types import CommandBatch


if TYPE_CHECKING:
    from asrun.management.client import ManagementClient


_INT_RE = re.compile(r"^-?\d+$")


class _Parser:
    """Recursive-descent parser for a single command string."""

    def __init__(self, command: str) -> None:
        self.command = command
        self.text = command.strip()
        self.pos = 0

    def error(self, reason: str) -> CommandParseError:
        return CommandParseError(self.command, f"{reason} at position {self.pos}")

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_ws(self) -> None:
        while self.peek().isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        self.skip_ws()
        if self.peek() != char:
            raise self.error(f"expected '{char}'")
        self.pos += 1

    def read_until(self, stops: str) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in stops:
            self.pos += 1
        return self.text[start:self.pos].strip()

    def read_name(self, stops: str, what: str) -> str:
        self.skip_ws()
        if self.peek() == '"':
            return self.read_quoted()
        name = self.read_until(stops)
        if not name:
            raise self.error(f"missing {what}")
        return name

    def read_quoted(self) -> str:
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\" and self.pos + 1 < len(self.text):
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char == '"':
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        raise self.error("unterminated string")

    def parse(self) -> dict[str, Any]:
        address: list[dict[str, str]] = []
        self.skip_ws()
        while self.peek() == "/":
            self.pos += 1
            self.skip_ws()
            if self.peek() in (":", ""):
                break
            key = self.read_name("=:/", "address type")
            self.expect("=")
            value = self.read_name("/:", "address name")
            address.append({key: value})

        self.expect(":")
        operation = self.read_name("(", "operation name")
        request: dict[str, Any] = {"operation": operation, "address": address}

        self.skip_ws()
        if self.peek() == "(":
            self.pos += 1
            request.update(self.parse_params(")"))

        self.skip_ws()
        if self.pos != len(self.text):
            raise self.error("unexpected trailing input")
        return request

    def parse_params(self, close: str) -> dict[str, Any]:
        params: dict[str, Any] = {}
        while True:
            self.skip_ws()
            if self.peek() == close:
                self.pos += 1
                return params
            name = self.read_name("=" + close, "parameter name")
            self.expect("=")
            params[name] = self.parse_value("," + close)
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != close:
                raise self.error(f"expected ',' or '{close}'")

    def parse_value(self, stops: str) -> Any:
        self.skip_ws()
        char = self.peek()
        if char == '"':
            return self.read_quoted()
        if char == "[":
            self.pos += 1
            items: list[Any] = []
            while True:
                self.skip_ws()
                if self.peek() == "]":
                    self.pos += 1
                    return items
                items.append(self.parse_value(",]"))
                self.skip_ws()
                if self.peek() == ",":
                    self.pos += 1
                elif self.peek() != "]":
                    raise self.error("expected ',' or ']'")
        if char == "{":
            self.pos += 1
            return self.parse_params("}")

        token = self.read_until(stops)
        if not token:
            raise self.error("missing value")
        if token in ("true", "false"):
            return token == "true"
        if _INT_RE.match(token):
            return int(token)
        return token


def parse_command(command: str) -> dict[str, Any]:
    """Parse a CLI-syntax command into a management operation request.

    Args:
        command: Command string, e.g. ``/subsystem=logging:read-resource``.

    Returns:
        Operation request with ``operation``, ``address`` and parameters.

    Raises:
        CommandParseError: If the command is not valid operation syntax.
    """
    return _Parser(command).parse()


def composite(steps: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap operations into one atomic composite request."""
    return {"operation": "composite", "address": [], "steps": steps}


async def execute_commands(client: "ManagementClient", batch: CommandBatch) -> None:
    """Run a command batch against a started server.

    Commands run sequentially and stop at the first failure. With
    ``batch.batch`` set, all commands are parsed up front and sent as a single
    composite operation, so either all or none take effect.

    Args:
        client: Management client of the started server.
        batch: Commands to run.

    Raises:
        CommandError: If a command cannot be parsed or the server rejects it.
    """
    if not batch:
        return

    requests = [(command, parse_command(command)) for command in batch.commands]

    if batch.batch:
        logger.info("Executing command batch", count=len(requests))
        try:
            await client.execute(composite([request for _, request in requests]))
        except ManagementError as e:
            raise CommandError("; ".join(batch.commands), e.description) from e
        return

    for command, request in requests:
        logger.info("Executing command", command=command)
        try:
            result = await client.execute(request)
        except ManagementError as e:
            raise CommandError(command, e.description) from e
        logger.debug("Command result", command=command, result=result)
