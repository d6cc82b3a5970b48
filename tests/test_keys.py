"""
Tests for key material management
"""
import stat

import pytest

from revtunnel.core.exceptions import KeyRetrievalError, RemoteExecError
from revtunnel.core.interfaces import CommandResult
from revtunnel.domain.tunnel import KeyMaterialManager
from revtunnel.domain.tunnel.keys import GENERATED_MARKER, remote_ensure_command

from .fakes import CLIENT_PRIV, CLIENT_PUB, SERVER_PUB, FakeRemoteHost, FakeWireGuard

SERVER_KEY = "/etc/wireguard/server_private.key"
SERVER_PUBFILE = "/etc/wireguard/server_public.key"


# ============================================================
# Local keys
# ============================================================

def test_local_pair_generated_once(tmp_path, telemetry):
    wg = FakeWireGuard()
    keys = KeyMaterialManager(wg)
    priv, pub = tmp_path / "k" / "client.key", tmp_path / "k" / "client.pub"

    first = keys.ensure_key_pair(str(priv), str(pub))
    second = keys.ensure_key_pair(str(priv), str(pub))

    assert first == second == CLIENT_PUB
    assert wg.genkey_calls == 1
    assert priv.read_text().strip() == CLIENT_PRIV
    assert stat.S_IMODE(priv.stat().st_mode) == 0o600
    generated = [e.metadata["generated"] for e in telemetry.get_events("keys.ready")]
    assert generated == [True, False]


def test_existing_local_pair_is_kept(tmp_path):
    wg = FakeWireGuard()
    priv, pub = tmp_path / "client.key", tmp_path / "client.pub"
    priv.write_text("existing-private\n")
    pub.write_text("E" * 42 + "E=\n")

    pair = KeyMaterialManager(wg).ensure_local(priv, pub)

    assert pair.public_key == "E" * 42 + "E="
    assert pair.private_key == "existing-private"
    assert wg.genkey_calls == 0


def test_missing_public_half_is_derived(tmp_path):
    wg = FakeWireGuard()
    priv, pub = tmp_path / "client.key", tmp_path / "client.pub"
    priv.write_text(CLIENT_PRIV + "\n")

    pair = KeyMaterialManager(wg).ensure_local(priv, pub)

    assert pair.public_key == CLIENT_PUB
    assert pub.read_text().strip() == CLIENT_PUB
    assert wg.genkey_calls == 0


def test_unwritable_key_dir_is_retrieval_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(KeyRetrievalError):
        KeyMaterialManager(FakeWireGuard()).ensure_local(blocker / "client.key", blocker / "client.pub")


def test_read_local_never_generates(tmp_path):
    wg = FakeWireGuard()
    assert KeyMaterialManager(wg).read_local(tmp_path / "a", tmp_path / "b") is None
    assert wg.genkey_calls == 0


# ============================================================
# Remote keys
# ============================================================

def test_remote_pair_generated_once(telemetry):
    host = FakeRemoteHost()
    keys = KeyMaterialManager(FakeWireGuard())

    first = keys.ensure_key_pair(SERVER_KEY, SERVER_PUBFILE, host)
    second = keys.ensure_key_pair(SERVER_KEY, SERVER_PUBFILE, host)

    assert first == second == SERVER_PUB
    generated = [e.metadata["generated"] for e in telemetry.get_events("keys.ready")]
    assert generated == [True, False]


def test_remote_command_generates_only_when_absent():
    command = remote_ensure_command(SERVER_KEY, SERVER_PUBFILE)

    assert 'if [ ! -f "$KEYFILE" ]; then' in command
    assert "(umask 077 && wg genkey > \"$KEYFILE\")" in command
    assert f"echo {GENERATED_MARKER} >&2" in command
    assert command.rstrip().endswith('cat "$PUBFILE"')


@pytest.mark.parametrize("result", [
    CommandResult(stdout="", stderr="wg: command not found", exit_code=127),
    CommandResult(stdout="\n"),
    CommandResult(stdout="not a key\n"),
])
def test_remote_failures_are_fatal(result):
    host = FakeRemoteHost()
    host.fail_on[GENERATED_MARKER] = result
    with pytest.raises(KeyRetrievalError):
        KeyMaterialManager(FakeWireGuard()).ensure_remote(host, SERVER_KEY, SERVER_PUBFILE)


def test_remote_channel_error_is_fatal():
    host = FakeRemoteHost()
    host.fail_on[GENERATED_MARKER] = RemoteExecError("connection refused", step="connect")
    with pytest.raises(KeyRetrievalError, match="connection refused"):
        KeyMaterialManager(FakeWireGuard()).ensure_remote(host, SERVER_KEY, SERVER_PUBFILE)


def test_read_remote_public_never_generates():
    host = FakeRemoteHost()
    keys = KeyMaterialManager(FakeWireGuard())

    assert keys.read_remote_public(host, SERVER_PUBFILE) is None
    assert host.server_key is None
    host.server_key = SERVER_PUB
    assert keys.read_remote_public(host, SERVER_PUBFILE) == SERVER_PUB
