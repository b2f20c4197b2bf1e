"""Management protocol client and administrative commands."""
from asrun.management.client import HttpManagementClient, ManagementClient
from asrun.management.commands import execute_commands, parse_command


__all__ = [
    "HttpManagementClient",
    "ManagementClient",
    "execute_commands",
    "parse_command",
]
