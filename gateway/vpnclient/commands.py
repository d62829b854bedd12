"""Command templates and builders for VPN client management."""

from typing import List, Optional, Dict
from dataclasses import dataclass


class CommandError(Exception):
    """Base exception for command-related errors."""
    pass


class ValidationError(CommandError):
    """Raised when command validation fails."""
    pass


@dataclass
class Command:
    """Command builder with validation."""
    base_cmd: List[str]
    use_sudo: bool = False
    _valid_options: Optional[Dict[str, type]] = None

    def _validate_option(self, opt: str, value: Optional[str]) -> None:
        """Validate option and its value if validation rules exist."""
        if self._valid_options is not None:
            opt_name = opt.lstrip('-').replace('-', '_')

            if opt_name not in self._valid_options:
                valid_opts = ", ".join(sorted(self._valid_options.keys()))
                raise ValidationError(
                    f"Invalid option '{opt}' for command {self.base_cmd[0]}. "
                    f"Valid options are: {valid_opts}"
                )

            expected_type = self._valid_options[opt_name]
            if value is None:
                if expected_type is not type(None):
                    raise ValidationError(f"Option '{opt}' requires a value")
                return
            if not value or any(c.isspace() for c in value):
                raise ValidationError(f"Invalid value '{value}' for option '{opt}'")
            try:
                expected_type(value)
            except (ValueError, TypeError):
                raise ValidationError(
                    f"Invalid value '{value}' for option '{opt}'. Expected {expected_type.__name__}"
                )

    def _validate_executable(self) -> None:
        """Validate that base command exists."""
        if not self.base_cmd:
            raise ValidationError("Command cannot be empty")

    @classmethod
    def from_str(cls, cmd: str, use_sudo: bool = False, valid_options: Optional[Dict[str, type]] = None) -> 'Command':
        """Create command from string with optional validation rules."""
        command = cls(cmd.split(), use_sudo, valid_options)
        command._validate_executable()
        return command

    def with_arg(self, arg: str) -> 'Command':
        """Add single argument."""
        return Command(self.base_cmd + [arg], self.use_sudo, self._valid_options)

    def with_args(self, *args: str) -> 'Command':
        """Add multiple arguments."""
        return Command(self.base_cmd + list(args), self.use_sudo, self._valid_options)

    def with_option(self, opt: str, value: Optional[str] = None) -> 'Command':
        """Add a ``--option [value]`` pair with validation."""
        opt_clean = opt.lstrip('-')
        self._validate_option(opt_clean, value)
        cmd = self.base_cmd.copy()
        cmd.append(f"--{opt_clean.replace('_', '-')}")
        if value is not None:
            cmd.append(str(value))
        return Command(cmd, self.use_sudo, self._valid_options)

    def with_keywords(self, **kwargs: str) -> 'Command':
        """Add iproute2 style ``keyword value`` pairs with validation.

        A trailing underscore is stripped so reserved words can be passed,
        e.g. ``from_="10.0.0.2"`` becomes ``from 10.0.0.2``.
        """
        cmd = self.base_cmd.copy()
        for key, value in kwargs.items():
            key = key.rstrip('_')
            self._validate_option(key, str(value))
            cmd.extend([key, str(value)])
        return Command(cmd, self.use_sudo, self._valid_options)

    def as_sudo(self, enabled: bool = True) -> 'Command':
        """Mark command to be executed with sudo."""
        return Command(self.base_cmd, enabled, self._valid_options)

    def build(self) -> List[str]:
        """Get final command list."""
        self._validate_executable()
        return ["sudo"] + self.base_cmd if self.use_sudo else self.base_cmd


IP_OPTIONS = {
    'via': str,
    'dev': str,
    'table': str,
    'from': str,
}

OPENVPN_OPTIONS = {
    'version': type(None),
}

SYSTEMCTL_OPTIONS = {
    'quiet': type(None),
}

BASH = Command.from_str("bash")

CAT = Command.from_str("cat")

IP = Command.from_str("ip", valid_options=IP_OPTIONS)
IP_ADDR = IP.with_args("-4", "-o", "addr")
IP_ROUTE = IP.with_arg("route")
IP_RULE = IP.with_arg("rule")

IP_ADDR_SHOW = IP_ADDR.with_arg("show")
IP_ROUTE_LIST = IP_ROUTE.with_arg("list")
IP_ROUTE_ADD = IP_ROUTE.with_arg("add")
IP_ROUTE_DEL = IP_ROUTE.with_arg("del")
IP_ROUTE_FLUSH = IP_ROUTE.with_arg("flush")
IP_RULE_ADD = IP_RULE.with_arg("add")
IP_RULE_DEL = IP_RULE.with_arg("del")

OPENVPN = Command.from_str("openvpn", valid_options=OPENVPN_OPTIONS)
OPENVPN_VERSION = OPENVPN.with_option("version")

SYSTEMCTL = Command.from_str("systemctl", valid_options=SYSTEMCTL_OPTIONS)
SYSTEMCTL_START = SYSTEMCTL.with_arg("start")
SYSTEMCTL_STOP = SYSTEMCTL.with_arg("stop")
SYSTEMCTL_DISABLE = SYSTEMCTL.with_arg("disable")
SYSTEMCTL_IS_ACTIVE = SYSTEMCTL.with_option("quiet").with_arg("is-active")
