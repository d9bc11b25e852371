import platform
import shutil
import subprocess
from dataclasses import dataclass

from utils.errors import MissingDependencyError
from utils.logger import get_logger

logger = get_logger("deps")

REQUIRED_TOOLS = ("aws", "session-manager-plugin")


@dataclass
class Dependency:
    name: str
    path: str | None
    version: str | None = None

    @property
    def installed(self) -> bool:
        return self.path is not None


def _tool_version(path: str) -> str | None:
    try:
        proc = subprocess.run(
            [path, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Could not get version of %s: %s", path, e)
        return None
    output = (proc.stdout or proc.stderr).strip()
    return output.splitlines()[0] if output else None


def check_dependencies(names=REQUIRED_TOOLS) -> list[Dependency]:
    deps = []
    for name in names:
        path = shutil.which(name)
        deps.append(Dependency(name=name, path=path, version=_tool_version(path) if path else None))
    return deps


def missing_dependencies(names=REQUIRED_TOOLS) -> list[str]:
    return [name for name in names if shutil.which(name) is None]


def require_dependencies(names=REQUIRED_TOOLS) -> None:
    missing = missing_dependencies(names)
    if missing:
        raise MissingDependencyError(missing)


PLUGIN_BASE_URL = "https://s3.amazonaws.com/session-manager-downloads/plugin/latest"

INSTRUCTIONS = {
    "Linux": f"""Session Manager plugin (Debian/Ubuntu):
  curl "{PLUGIN_BASE_URL}/ubuntu_64bit/session-manager-plugin.deb" -o session-manager-plugin.deb
  sudo dpkg -i session-manager-plugin.deb

Session Manager plugin (Amazon Linux/RHEL/Fedora):
  sudo yum install -y {PLUGIN_BASE_URL}/linux_64bit/session-manager-plugin.rpm

AWS CLI v2:
  curl "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip" -o awscliv2.zip
  unzip awscliv2.zip && sudo ./aws/install""",
    "Darwin": f"""Session Manager plugin:
  curl "{PLUGIN_BASE_URL}/mac/sessionmanager-bundle.zip" -o sessionmanager-bundle.zip
  unzip sessionmanager-bundle.zip
  sudo ./sessionmanager-bundle/install -i /usr/local/sessionmanagerplugin -b /usr/local/bin/session-manager-plugin

AWS CLI v2:
  curl "https://awscli.amazonaws.com/AWSCLIV2.pkg" -o AWSCLIV2.pkg
  sudo installer -pkg AWSCLIV2.pkg -target /""",
    "Windows": f"""Session Manager plugin:
  Download and run {PLUGIN_BASE_URL}/windows/SessionManagerPluginSetup.exe

AWS CLI v2:
  msiexec.exe /i https://awscli.amazonaws.com/AWSCLIV2.msi""",
}


def install_instructions(system: str | None = None) -> str:
    """
    Installation steps for the AWS CLI and the Session Manager plugin.

    :param system: platform.system() style name; detected when omitted.
    """
    system = system or platform.system()
    body = INSTRUCTIONS.get(system)
    if body is None:
        return (
            f"No instructions for platform '{system}'. See "
            "https://docs.aws.amazon.com/systems-manager/latest/userguide/session-manager-working-with-install-plugin.html"
        )
    return f"Installation instructions for {system}:\n\n{body}"
