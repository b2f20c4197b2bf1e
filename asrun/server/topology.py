# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Server construction per configured topology."""
from typing import Any

from loguru import logger

from asrun.core.types import InstallationInfo, ServerTopology
from asrun.server.process import ServerProcess, StandaloneServer


def create_server(
    topology: ServerTopology,
    info: InstallationInfo,
    **kwargs: Any,
) -> ServerProcess:
    """Build the ServerProcess for a topology.

    Domain mode is not supported for a single-host run; a standalone server
    is started instead and a warning is logged.

    Args:
        topology: Configured server topology.
        info: Resolved installation.
        **kwargs: Passed to the ServerProcess constructor.

    Returns:
        A ServerProcess in NotStarted state.
    """
    if topology is ServerTopology.DOMAIN:
        logger.warning("Domain is not supported for the run command, a standalone server will be started")
    return StandaloneServer(info, **kwargs)
