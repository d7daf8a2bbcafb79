"""Forwarding rules in the DOCKER-USER iptables chain for the management bridge."""

from __future__ import annotations

import logging
import shlex
import subprocess

log = logging.getLogger(__name__)

_CHECK_CMD = "-vL DOCKER-USER"
_ALLOW_CMD = '-I DOCKER-USER -o {bridge} -j ACCEPT -m comment --comment "set by containerlab"'
_DELETE_CMD = '-D DOCKER-USER -o {bridge} -j ACCEPT -m comment --comment "set by containerlab"'
_MISSING_CHAIN = "missing DOCKER-USER iptables chain"
_DEFAULT_BRIDGE = "docker0"


class IptablesError(RuntimeError):
    """An iptables command failed or the DOCKER-USER chain is missing."""


def _iptables(args: list[str], combine_output: bool) -> tuple[bool, bytes]:
    try:
        proc = subprocess.run(
            ["iptables", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combine_output else subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        return False, str(exc).encode()
    return proc.returncode == 0, proc.stdout or b""


def install_forward_rule(bridge: str, external_access: bool | None) -> bool:
    """Allow traffic towards the management bridge; return True when a rule was added."""
    if not external_access:
        return False
    if bridge == "":
        log.debug("skipping setup of iptables forwarding rules for non-bridged management network")
        return False

    ok, output = _iptables(_CHECK_CMD.split(" "), combine_output=False)
    if bridge.encode() in output:
        log.debug(
            "found iptables forwarding rule targeting the bridge %r. "
            "Skipping creation of the forwarding rule.",
            bridge,
        )
        if not ok:
            raise IptablesError("iptables check command failed")
        return False
    if not ok:
        # usually the DOCKER-USER chain does not exist on old docker installations
        raise IptablesError(_MISSING_CHAIN)

    cmd = shlex.split(_ALLOW_CMD.format(bridge=bridge))
    log.debug("Installing iptables rules for bridge %r", bridge)
    ok, output = _iptables(cmd, combine_output=True)
    if not ok:
        log.warning("Iptables install stdout/stderr result is: %s", output.decode(errors="replace"))
        raise IptablesError(
            f"unable to install iptables rule using '{cmd}' command: "
            f"{output.decode(errors='replace').strip()}"
        )
    return True


def delete_forward_rule(bridge: str, external_access: bool | None, bridge_exists: bool) -> bool:
    """Remove the rule added by install_forward_rule once the bridge is gone.

    Return True when a rule was deleted.
    """
    if not external_access:
        return False
    if bridge == _DEFAULT_BRIDGE:
        log.debug(
            "skipping deletion of iptables forwarding rule for non-bridged "
            "or default management network"
        )
        return False

    ok, output = _iptables(_CHECK_CMD.split(" "), combine_output=False)
    if not ok:
        raise IptablesError(_MISSING_CHAIN)
    if bridge.encode() not in output:
        log.debug("external access iptables rule doesn't exist. Skipping deletion")
        return False
    # the bridge may still be used by a docker network or be managed externally
    if bridge_exists:
        log.debug("bridge %s is still in use, not removing the forwarding rule", bridge)
        return False

    cmd = shlex.split(_DELETE_CMD.format(bridge=bridge))
    log.debug("trying to delete the forwarding rule with cmd: iptables %s", cmd)
    ok, output = _iptables(cmd, combine_output=True)
    if not ok:
        log.warning("Iptables delete stdout/stderr result is: %s", output.decode(errors="replace"))
        raise IptablesError(
            f"unable to delete iptables rules: {output.decode(errors='replace').strip()}"
        )
    return True