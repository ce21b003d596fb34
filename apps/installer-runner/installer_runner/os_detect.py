"""Operating system detection and package-manager command mapping."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal, Optional

import structlog

from .models import InstallerConfig, StepConfig, StepLog

OSName = Literal["centos", "ubuntu", "debian", "macos", "windows", "unknown"]

LOGGER = structlog.get_logger("installer_runner")

OS_RELEASE = Path("/etc/os-release")
REDHAT_RELEASE = Path("/etc/redhat-release")

_DISPLAY_NAMES: dict[str, str] = {
    "centos": "CentOS",
    "ubuntu": "Ubuntu",
    "debian": "Debian",
    "macos": "macOS",
    "windows": "Windows",
}
_PACKAGE_MANAGERS: dict[str, str] = {
    "centos": "yum",
    "ubuntu": "apt",
    "debian": "apt",
    "macos": "brew",
    "windows": "choco",
}


def detect_os(
    platform: Optional[str] = None,
    os_release: Path = OS_RELEASE,
    redhat_release: Path = REDHAT_RELEASE,
) -> OSName:
    platform = platform or sys.platform
    if platform == "darwin":
        return "macos"
    if platform == "win32":
        return "windows"
    if not platform.startswith("linux"):
        return "unknown"

    try:
        release = os_release.read_text(encoding="utf-8").lower()
    except OSError:
        return _detect_redhat(redhat_release)

    if 'id="centos"' in release or 'id_like="rhel' in release or "centos" in release:
        return "centos"
    if 'id="ubuntu"' in release or "id=ubuntu" in release:
        return "ubuntu"
    if 'id="debian"' in release or "id=debian" in release or 'id_like="debian"' in release:
        return "debian"
    return "unknown"


def _detect_redhat(redhat_release: Path) -> OSName:
    try:
        release = redhat_release.read_text(encoding="utf-8").lower()
    except OSError:
        return "unknown"
    if "centos" in release or "red hat" in release or "rhel" in release:
        return "centos"
    return "unknown"


def get_install_command(os_name: OSName, package: str) -> str:
    if os_name == "centos":
        return f"yum install -y {package}"
    if os_name in ("ubuntu", "debian"):
        if package == "nushell":
            return "export PREFIX=/usr/local && curl -fsSL https://nushell.sh/install.sh | bash"
        return f"apt-get install -y {package}"
    if os_name == "macos":
        return f"brew install {package}"
    if os_name == "windows":
        return f"choco install -y {package}"
    return 'echo "Unsupported OS" && exit 1'


def get_package_manager(os_name: OSName) -> str:
    return _PACKAGE_MANAGERS.get(os_name, "unknown")


def get_os_display_name(os_name: OSName) -> str:
    return _DISPLAY_NAMES.get(os_name, "Unknown OS")


def resolve_install_steps(config: InstallerConfig, os_name: OSName) -> InstallerConfig:
    """Turn ``package`` steps without an explicit command into OS-specific install commands."""

    resolved: list[StepConfig] = []
    for step in config.steps:
        if not step.package or step.command:
            resolved.append(step)
            continue
        command = get_install_command(os_name, step.package)
        logs = [
            StepLog(level="info", message=f"Detected OS: {get_os_display_name(os_name)}"),
            StepLog(level="info", message=f"Installing {step.package} via {get_package_manager(os_name)}"),
            *(step.logs or []),
        ]
        LOGGER.debug("install_step_resolved", step_id=step.id, os=os_name, command=command)
        resolved.append(step.model_copy(update={"command": command, "logs": logs}))
    return config.model_copy(update={"steps": resolved})
