"""Running the OVS and OVN command-line utilities."""

from __future__ import annotations

import enum
import itertools
import logging
import os
import platform
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

OVS_COMMAND_TIMEOUT = 15
OVS_VSCTL_COMMAND = "ovs-vsctl"
OVS_OFCTL_COMMAND = "ovs-ofctl"
OVN_NBCTL_COMMAND = "ovn-nbctl"
OVN_SBCTL_COMMAND = "ovn-sbctl"
IP_COMMAND = "ip"
POWERSHELL_COMMAND = "powershell"
NETSH_COMMAND = "netsh"
ROUTE_COMMAND = "route"
OS_RELEASE = "/etc/os-release"
RHEL = "RHEL"
UBUNTU = "Ubuntu"
PHOTON = "Photon"
WINDOWS_OS = "windows"

_run_counter = itertools.count(1)


class CommandError(Exception):
    """A command failed; carries what it wrote to stdout and stderr."""

    def __init__(
        self,
        message: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


class DbScheme(enum.Enum):
    """How the OVN databases are reached."""

    UNIX = "unix"
    TCP = "tcp"
    SSL = "ssl"


@dataclass(frozen=True)
class OvnDbConfig:
    """Connection settings for one OVN database."""

    scheme: DbScheme = DbScheme.UNIX
    url: str = ""
    private_key: str = ""
    certificate: str = ""
    ca_cert: str = ""

    def connection_args(self) -> list[str]:
        """Command-line options that point a ctl utility at this database."""
        if self.scheme is DbScheme.SSL:
            return [
                f"--private-key={self.private_key}",
                f"--certificate={self.certificate}",
                f"--bootstrap-ca-cert={self.ca_cert}",
                f"--db={self.url}",
            ]
        if self.scheme is DbScheme.TCP:
            return [f"--db={self.url}"]
        return []


class Executor(Protocol):
    def look_path(self, name: str) -> str: ...

    def run(self, path: str, args: Sequence[str]) -> tuple[str, str]: ...


class SubprocessExecutor:
    """Runs commands as child processes."""

    def look_path(self, name: str) -> str:
        """Return the full path of an executable found on PATH."""
        found = shutil.which(name)
        if found is None:
            raise FileNotFoundError(f"executable file not found in $PATH: {name}")
        return found

    def run(self, path: str, args: Sequence[str]) -> tuple[str, str]:
        """Run a command and return its stdout and stderr."""
        proc = subprocess.run([path, *args], capture_output=True, text=True)
        if proc.returncode != 0:
            raise CommandError(
                f"exit status {proc.returncode}",
                proc.stdout,
                proc.stderr,
                proc.returncode,
            )
        return proc.stdout, proc.stderr


def _default_system() -> str:
    return platform.system().lower()


class OvsCommands:
    """Resolved paths to the OVS/OVN utilities and helpers to run them."""

    def __init__(
        self,
        executor: Executor | None = None,
        north: OvnDbConfig | None = None,
        south: OvnDbConfig | None = None,
        system: str | None = None,
        retries: int = 200,
        retry_interval: float = 2.0,
    ) -> None:
        self.executor: Executor = executor or SubprocessExecutor()
        self.north = north or OvnDbConfig()
        self.south = south or OvnDbConfig()
        self.system = system if system is not None else _default_system()
        self.retries = retries
        self.retry_interval = retry_interval

        look = self.executor.look_path
        self.ofctl_path = look(OVS_OFCTL_COMMAND)
        self.vsctl_path = look(OVS_VSCTL_COMMAND)
        self.nbctl_path = look(OVN_NBCTL_COMMAND)
        self.sbctl_path = look(OVN_SBCTL_COMMAND)
        self.ip_path = ""
        self.powershell_path = ""
        self.netsh_path = ""
        self.route_path = ""
        if self.system == WINDOWS_OS:
            self.powershell_path = look(POWERSHELL_COMMAND)
            self.netsh_path = look(NETSH_COMMAND)
            self.route_path = look(ROUTE_COMMAND)
        else:
            self.ip_path = look(IP_COMMAND)

    def _run(self, path: str, args: Sequence[str]) -> tuple[str, str]:
        counter = next(_run_counter)
        logger.debug("exec(%d): %s %s", counter, path, " ".join(args))
        try:
            stdout, stderr = self.executor.run(path, list(args))
        except CommandError as exc:
            logger.debug("exec(%d): stdout: %r", counter, exc.stdout)
            logger.debug("exec(%d): stderr: %r", counter, exc.stderr)
            logger.debug("exec(%d): err: %s", counter, exc)
            raise
        logger.debug("exec(%d): stdout: %r", counter, stdout)
        logger.debug("exec(%d): stderr: %r", counter, stderr)
        return stdout, stderr

    def _run_ovn_retry(self, path: str, args: Sequence[str]) -> tuple[str, str]:
        """Run an OVN ctl command, retrying while the database refuses connections."""
        retries_left = self.retries
        while True:
            try:
                return self._run(path, args)
            except CommandError as exc:
                if "Connection refused" not in exc.stderr:
                    raise CommandError(
                        f"OVN command '{path} {' '.join(args)}' failed: {exc}",
                        exc.stdout,
                        exc.stderr,
                        exc.returncode,
                    ) from exc
                if retries_left == 0:
                    raise
                retries_left -= 1
                time.sleep(self.retry_interval)

    @staticmethod
    def _clean(stdout: str) -> str:
        return stdout.strip().strip('"')

    def run_ovs_ofctl(self, *args: str) -> tuple[str, str]:
        """Run ovs-ofctl."""
        stdout, stderr = self._run(self.ofctl_path, args)
        return stdout.strip('" \n'), stderr

    def run_ovs_vsctl(self, *args: str) -> tuple[str, str]:
        """Run ovs-vsctl."""
        stdout, stderr = self._run(
            self.vsctl_path, [f"--timeout={OVS_COMMAND_TIMEOUT}", *args]
        )
        return self._clean(stdout), stderr

    def run_ovn_nbctl_unix(self, *args: str) -> tuple[str, str]:
        """Run ovn-nbctl over its local unix socket."""
        stdout, stderr = self._run_ovn_retry(
            self.nbctl_path, [f"--timeout={OVS_COMMAND_TIMEOUT}", *args]
        )
        return self._clean(stdout), stderr

    def run_ovn_nbctl_with_timeout(self, timeout: int, *args: str) -> tuple[str, str]:
        """Run ovn-nbctl against the configured northbound database."""
        cmd_args = [*self.north.connection_args(), f"--timeout={timeout}", *args]
        stdout, stderr = self._run_ovn_retry(self.nbctl_path, cmd_args)
        return self._clean(stdout), stderr

    def run_ovn_nbctl(self, *args: str) -> tuple[str, str]:
        """Run ovn-nbctl with the default timeout."""
        return self.run_ovn_nbctl_with_timeout(OVS_COMMAND_TIMEOUT, *args)

    def run_ovn_sbctl_unix(self, *args: str) -> tuple[str, str]:
        """Run ovn-sbctl over its local unix socket."""
        stdout, stderr = self._run_ovn_retry(
            self.sbctl_path, [f"--timeout={OVS_COMMAND_TIMEOUT}", *args]
        )
        return self._clean(stdout), stderr

    def run_ovn_sbctl_with_timeout(self, timeout: int, *args: str) -> tuple[str, str]:
        """Run ovn-sbctl against the configured southbound database."""
        cmd_args = [*self.south.connection_args(), f"--timeout={timeout}", *args]
        stdout, stderr = self._run_ovn_retry(self.sbctl_path, cmd_args)
        return self._clean(stdout), stderr

    def run_ovn_sbctl(self, *args: str) -> tuple[str, str]:
        """Run ovn-sbctl with the default timeout."""
        return self.run_ovn_sbctl_with_timeout(OVS_COMMAND_TIMEOUT, *args)

    def _run_stripped(self, path: str, args: Sequence[str]) -> tuple[str, str]:
        stdout, stderr = self._run(path, args)
        return stdout.strip(), stderr

    def run_ip(self, *args: str) -> tuple[str, str]:
        """Run the iproute2 ip utility."""
        return self._run_stripped(self.ip_path, args)

    def run_powershell(self, *args: str) -> tuple[str, str]:
        """Run powershell."""
        return self._run_stripped(self.powershell_path, args)

    def run_netsh(self, *args: str) -> tuple[str, str]:
        """Run netsh."""
        return self._run_stripped(self.netsh_path, args)

    def run_route(self, *args: str) -> tuple[str, str]:
        """Run the Windows route utility."""
        return self._run_stripped(self.route_path, args)

    def raw_exec(self, cmd_path: str, *args: str) -> tuple[str, str]:
        """Run an arbitrary command, looking it up on PATH if given a bare name."""
        if os.path.basename(cmd_path) == cmd_path:
            cmd_path = self.executor.look_path(cmd_path)
        return self._run_stripped(cmd_path, args)

    def fetch_if_mac_windows(self, interface_name: str) -> str:
        """Ask powershell for an adapter's MAC address, in colon-separated lower case."""
        args = [
            "$(Get-NetAdapter",
            "-IncludeHidden",
            "-InterfaceAlias",
            f'"{interface_name}"',
            ").MacAddress",
        ]
        try:
            stdout, stderr = self.executor.run(POWERSHELL_COMMAND, args)
        except CommandError as exc:
            combined = exc.stdout + exc.stderr
            raise CommandError(
                "Failed to get mac address of ovn-k8s-master, "
                f"stderr: {combined!r}, error: {exc}",
                exc.stdout,
                exc.stderr,
                exc.returncode,
            ) from exc
        combined = stdout + stderr
        return combined.strip().replace("-", ":").lower()


def running_platform(os_release_path: str = OS_RELEASE, system: str | None = None) -> str:
    """Name the platform family this host runs: RHEL, Ubuntu, Photon or windows."""
    if system is None:
        system = _default_system()
    if system == WINDOWS_OS:
        return WINDOWS_OS
    try:
        with open(os_release_path, encoding="utf-8") as fh:
            contents = fh.read()
    except OSError as exc:
        raise OSError(f"failed to parse file {os_release_path} ({exc})") from exc

    name = ""
    for line in contents.split("\n"):
        key_value = line.split("=")
        if len(key_value) == 2 and key_value[0] in ("Name", "NAME"):
            name = key_value[1]
            break

    if not name:
        raise ValueError("failed to find the platform name")

    if any(tag in name for tag in ("Fedora", "Red Hat", "CentOS")):
        return RHEL
    if "Debian" in name or UBUNTU in name:
        return UBUNTU
    if "VMware" in name:
        return PHOTON
    raise ValueError("Unknown platform")