"""OpenVPN profile inspection and version compatibility rewriting."""

import re
from pathlib import Path

from .exceptions import ConfigurationError


REFERENCED_FILE_DIRECTIVES = ('ca', 'cert', 'key', 'tls-auth', 'tls-crypt')

DUMMY_PASSWORD = "dummy_ovpn_password"


def parse_version(output: str) -> str:
    """Extract ``2.4.7`` from the first line of ``openvpn --version``."""
    lines = output.strip().splitlines()
    if not lines:
        return ""
    parts = lines[0].split()
    return parts[1] if len(parts) > 1 else ""


def revise_profile(content: str, version: str, interface: str) -> str:
    """
    Rewrite profile content for the installed OpenVPN version.

    The tunnel device is pinned to ``interface``. OpenVPN 2.3 does not know
    ``compress`` and 2.4 deprecates ``comp-lzo``.

    Raises:
        ConfigurationError: for a compress algorithm 2.3 cannot handle
    """
    revised = re.sub(r'^dev[ \t]+tun.*$', f'dev {interface}', content, flags=re.MULTILINE)

    if version.startswith("2.3."):
        for line in content.split("\n"):
            options = line.split()
            if not options or options[0] != "compress":
                continue
            if len(options) > 1:
                if options[1] != "lzo":
                    raise ConfigurationError(f"Unsupported compress algorithm for OpenVPN 2.3: {options[1]}")
                revised = re.sub(r'^compress[ \t]+lzo', 'comp-lzo', revised, flags=re.MULTILINE)
            else:
                # no algorithm means compression framing without compression
                revised = re.sub(r'^compress[ \t]*$', 'comp-lzo no', revised, flags=re.MULTILINE)

    if version.startswith("2.4."):
        revised = re.sub(r'^comp-lzo[ \t]+no[ \t]*$', 'compress', revised, flags=re.MULTILINE)
        revised = re.sub(r'^comp-lzo\b.*$', 'compress lzo', revised, flags=re.MULTILINE)

    return revised


def referenced_files(content: str, base_dir: Path) -> list[Path]:
    """List certificate and key files a profile refers to."""
    files = []
    for line in content.splitlines():
        parts = line.strip().split()
        if len(parts) > 1 and parts[0] in REFERENCED_FILE_DIRECTIVES and parts[1] != "[inline]":
            path = Path(parts[1])
            files.append(path if path.is_absolute() else base_dir / path)
    return files
