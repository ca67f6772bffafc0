"""Run an exec credential plugin and parse its ExecCredential response."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.models import ExecConfig, ExecCredential, ExecCredentialStatus
from kube_client_config.utils import resolve_path

log = structlog.get_logger()


def _command_path(command: str, base_dir: Path | None) -> str:
    # Bare names go through PATH lookup; relative paths are relative to the kubeconfig.
    if os.sep in command or (os.altsep and os.altsep in command):
        return str(resolve_path(command, base_dir))
    return command


def _plugin_env(exec_config: ExecConfig) -> dict[str, str]:
    env = dict(os.environ)
    env.update({var.name: var.value for var in exec_config.env})
    return env


def _protocol_error(exec_config: ExecConfig, detail: str) -> KubeConfigError:
    msg = f"exec plugin {exec_config.command!r} failed: {detail}"
    if exec_config.install_hint:
        msg += f"\n{exec_config.install_hint}"
    return KubeConfigError(ErrorKind.EXEC_PROTOCOL_ERROR, msg)


async def invoke(exec_config: ExecConfig, base_dir: Path | None = None) -> ExecCredentialStatus:
    """Run the configured plugin once and return the ``status`` of its ExecCredential.

    The plugin inherits the current environment with the configured variables
    merged on top. Expiration is reported but never acted on here; callers
    re-resolve when the credential expires. Failures are never retried.

    Args:
        exec_config: The user's ``exec`` block.
        base_dir: Directory a relative command path is resolved against.

    Raises:
        KubeConfigError: EXEC_PROTOCOL_ERROR if the process cannot be started, exits
            non-zero, or writes something other than an ExecCredential with a status.
    """
    command = _command_path(exec_config.command, base_dir)
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *exec_config.args,
            env=_plugin_env(exec_config),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as err:
        raise _protocol_error(exec_config, f"unable to start process: {err}") from err

    stdout, stderr = await process.communicate()
    stderr_text = stderr.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        detail = f"process exited with code {process.returncode}"
        if stderr_text:
            detail += f"\nstderr: {stderr_text}"
        raise _protocol_error(exec_config, detail)

    if not stdout.strip():
        raise _protocol_error(exec_config, "process produced no output")

    try:
        credential = ExecCredential.model_validate_json(stdout)
    except ValidationError as err:
        raise _protocol_error(exec_config, f"unable to parse ExecCredential output: {err}") from err

    if exec_config.api_version and credential.api_version != exec_config.api_version:
        detail = f"plugin returned apiVersion {credential.api_version!r}, expected {exec_config.api_version!r}"
        raise _protocol_error(exec_config, detail)

    if credential.status is None:
        raise _protocol_error(exec_config, "exec-plugin response did not contain a status")

    status = credential.status
    log.debug(
        "exec_credential_obtained",
        command=exec_config.command,
        has_token=status.token is not None,
        has_client_certificate=status.has_client_certificate,
        expires=status.expiration_timestamp.isoformat() if status.expiration_timestamp else None,
    )
    return status
