"""
Tests for the wg / wg-quick wrapper
"""
from pathlib import Path

import pytest

from revtunnel.core.exceptions import TunnelCommandError
from revtunnel.core.interfaces import CommandResult
from revtunnel.infrastructure.wireguard import WireGuardCli

from .fakes import FakeRunner


def test_genkey_and_pubkey():
    runner = FakeRunner({"wg": CommandResult(stdout="key-material\n")})
    wg = WireGuardCli(runner)

    assert wg.genkey() == "key-material"
    assert wg.pubkey("private") == "key-material"
    assert runner.calls == [["wg", "genkey"], ["wg", "pubkey"]]


def test_apply_and_teardown_argv():
    runner = FakeRunner()
    wg = WireGuardCli(runner)

    wg.apply_interface(Path("/etc/wireguard/wg0.conf"))
    wg.teardown_interface("wg0")

    assert runner.calls == [["wg-quick", "up", "/etc/wireguard/wg0.conf"], ["wg-quick", "down", "wg0"]]


def test_nonzero_exit_raises():
    runner = FakeRunner({"wg-quick": CommandResult(stdout="", stderr="RTNETLINK answers: Operation not permitted", exit_code=1)})
    with pytest.raises(TunnelCommandError, match="Operation not permitted"):
        WireGuardCli(runner).apply_interface(Path("/etc/wireguard/wg0.conf"))


def test_show_status_absent_interface():
    runner = FakeRunner({"wg": CommandResult(stdout="", stderr="No such device", exit_code=1)})
    assert WireGuardCli(runner).show_status("wg0") is None


def test_latest_handshake_picks_newest_peer():
    output = "peerA=\t1700000000\npeerB=\t1700000500\n"
    runner = FakeRunner({"wg": CommandResult(stdout=output)})
    assert WireGuardCli(runner).latest_handshake("wg0") == 1700000500


def test_latest_handshake_zero_means_none():
    runner = FakeRunner({"wg": CommandResult(stdout="peerA=\t0\n")})
    assert WireGuardCli(runner).latest_handshake("wg0") is None
