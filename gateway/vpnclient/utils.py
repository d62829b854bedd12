"""Utility functions for VPN client management."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple

from .exceptions import ExternalCommandFailure
from ..logging_utility import logger


CommandRunner = Callable[..., Awaitable[Tuple[str, str]]]


async def run_command(cmd: list[str], check: bool = True) -> Tuple[str, str]:
    """
    Run shell command and return output.

    Args:
        cmd: Command as list of strings
        check: Whether to raise exception on error

    Returns:
        Tuple of (stdout, stderr)
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        if check:
            raise ExternalCommandFailure(cmd, 127, str(e))
        return "", str(e)

    stdout, stderr = await proc.communicate()
    out, err = stdout.decode(errors="replace"), stderr.decode(errors="replace")
    if proc.returncode != 0 and check:
        raise ExternalCommandFailure(cmd, proc.returncode, err)
    return out, err


def parse_remote_ip(output: str) -> Optional[str]:
    """
    Find the remote gateway in ``ip -4 -o addr show`` output.

    Point-to-point lines look like ``inet 10.8.0.6 peer 10.8.0.5/32``. The
    ``.1`` address belongs to the tunnel's own local side and is skipped.

    Args:
        output: stdout of the address listing

    Returns:
        str: peer address of the first client assignment, or None
    """
    for line in output.splitlines():
        tokens = line.split()
        if "inet" not in tokens or "peer" not in tokens:
            continue
        try:
            local = tokens[tokens.index("inet") + 1].split("/")[0]
            peer = tokens[tokens.index("peer") + 1].split("/")[0]
        except IndexError:
            continue
        if local.split(".")[-1] != "1":
            return peer
    return None
