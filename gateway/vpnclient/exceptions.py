"""Custom exceptions for VPN client management."""


class VPNError(Exception):
    """Base exception for VPN-related errors."""
    pass


class ConfigurationError(VPNError):
    """Raised when a VPN profile or its credentials cannot be set up"""
    pass


class InterfaceError(VPNError):
    """Raised when there's an issue with network interfaces"""
    pass


class DeviceNotFoundError(VPNError):
    """Raised when the device directory has no record for a MAC address"""
    pass


class DirectoryError(VPNError):
    """Raised when the device directory cannot be read or is malformed"""
    pass


class UnsupportedModeError(VPNError):
    """Raised when a VPN access mode is not supported"""
    pass


class ExternalCommandFailure(VPNError):
    """Raised when an external command exits with a non-zero status"""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(cmd)}\n{stderr.strip()}")


class TransientRouteError(ExternalCommandFailure):
    """Raised when removing a route or rule that is already absent"""
    pass
