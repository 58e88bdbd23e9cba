"""
Local identity for announcements.

Collects who and what this machine is (real name, user, host, OS,
distribution, CPU count) once per session.
"""

import getpass
import logging
import os
import platform
import socket
from typing import Optional

from .discovery.models import DeviceDescriptor

try:
    import pwd
except ImportError:  # Windows
    pwd = None

logger = logging.getLogger(__name__)


class LocalDescriptorProvider:
    """Describes the machine this process runs on."""

    def __init__(self, display_name: Optional[str] = None):
        """
        Args:
            display_name: Name shown to peers (defaults to the account's real name)
        """
        self.display_name = display_name
        self._descriptor: Optional[DeviceDescriptor] = None

    def current(self) -> DeviceDescriptor:
        """Build the descriptor on first use, then return the cached one."""
        if self._descriptor is None:
            user_name = _user_name()
            self._descriptor = DeviceDescriptor(
                display_name=self.display_name or _real_name(user_name),
                user_name=user_name,
                host_name=socket.gethostname(),
                platform=platform.system() or 'Unknown',
                distro=_distro(),
                concurrency_hint=os.cpu_count() or 1,
            )
            logger.debug(f"Local descriptor: {self._descriptor}")
        return self._descriptor


def _user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return 'unknown'


def _real_name(user_name: str) -> str:
    """Real name from the passwd GECOS field, falling back to the user name."""
    if pwd is None:
        return user_name
    try:
        gecos = pwd.getpwuid(os.getuid()).pw_gecos
    except KeyError:
        return user_name
    return gecos.split(',')[0].strip() or user_name


def _distro() -> str:
    system = platform.system()
    if system == 'Linux':
        try:
            release = platform.freedesktop_os_release()
        except OSError:
            return 'Linux'
        return release.get('PRETTY_NAME') or release.get('NAME', 'Linux')
    if system == 'Darwin':
        return f"macOS {platform.mac_ver()[0]}".strip()
    if system == 'Windows':
        return f"Windows {platform.release()}".strip()
    return platform.platform()

