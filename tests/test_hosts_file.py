"""Unit tests for hosts-file management against a temp file."""
import pytest

from sitebuilder.services import hosts_file
from sitebuilder.services.hosts_file import HostsFileManager, flush_command

ORIGINAL = "127.0.0.1\tlocalhost\n::1\tlocalhost\n# comment\n"


@pytest.fixture
def hosts(tmp_path, monkeypatch):
    path = tmp_path / "hosts"
    path.write_text(ORIGINAL, encoding="utf-8")
    manager = HostsFileManager(hosts_path=str(path))
    flushed = []

    async def fake_flush():
        flushed.append(True)
        return True

    monkeypatch.setattr(manager, "flush_dns_cache", fake_flush)
    manager.flushed = flushed
    return manager


async def test_add_twice_yields_one_line(hosts):
    assert await hosts.create_local_config("example.test") is True
    assert await hosts.create_local_config("example.test") is False

    lines = hosts.hosts_path.read_text(encoding="utf-8").splitlines()
    assert lines.count("127.0.0.1\texample.test") == 1
    assert len(hosts.flushed) == 1


async def test_remove_restores_file_exactly(hosts):
    await hosts.create_local_config("example.test")
    assert await hosts.remove_from_hosts("example.test") is True
    assert hosts.hosts_path.read_text(encoding="utf-8") == ORIGINAL


async def test_remove_only_touches_exact_entry(hosts):
    hosts.hosts_path.write_text(
        ORIGINAL + "127.0.0.1\texampleXtest\n127.0.0.1 example.test.other\n127.0.0.1   example.test  \n",
        encoding="utf-8",
    )
    await hosts.remove_from_hosts("example.test")
    content = hosts.hosts_path.read_text(encoding="utf-8")
    assert "exampleXtest" in content
    assert "example.test.other" in content
    assert "example.test  " not in content


async def test_existing_entry_with_spaces_is_detected(hosts):
    hosts.hosts_path.write_text(ORIGINAL + "127.0.0.1    example.test\n", encoding="utf-8")
    assert await hosts.create_local_config("example.test") is False


async def test_appends_newline_when_file_lacks_one(hosts):
    hosts.hosts_path.write_text("127.0.0.1\tlocalhost", encoding="utf-8")
    await hosts.create_local_config("example.test")
    assert hosts.hosts_path.read_text(encoding="utf-8") == "127.0.0.1\tlocalhost\n127.0.0.1\texample.test\n"


async def test_invalid_domain_is_never_written(hosts):
    assert await hosts.create_local_config("evil.com\n0.0.0.0 bank.com") is False
    assert hosts.hosts_path.read_text(encoding="utf-8") == ORIGINAL


async def test_without_write_access_nothing_happens(hosts, monkeypatch):
    monkeypatch.setattr(hosts, "is_admin", lambda: False)
    assert await hosts.create_local_config("example.test") is False
    assert await hosts.remove_from_hosts("example.test") is False
    assert hosts.hosts_path.read_text(encoding="utf-8") == ORIGINAL


async def test_non_utf8_hosts_file_is_left_untouched(hosts):
    raw = b"127.0.0.1\tlocalhost\n# caf\xe9\n"
    hosts.hosts_path.write_bytes(raw)

    assert await hosts.create_local_config("example.test") is False
    assert await hosts.remove_from_hosts("example.test") is False
    assert hosts.hosts_path.read_bytes() == raw
    assert hosts.flushed == []


def test_is_admin_probe(tmp_path):
    path = tmp_path / "hosts"
    path.write_text("", encoding="utf-8")
    assert HostsFileManager(hosts_path=str(path)).is_admin() is True
    assert list(tmp_path.iterdir()) == [path]


@pytest.mark.parametrize("platform, argv", [
    ("win32", ["ipconfig", "/flushdns"]),
    ("darwin", ["dscacheutil", "-flushcache"]),
    ("linux", ["resolvectl", "flush-caches"]),
])
def test_flush_command_per_platform(platform, argv):
    assert list(flush_command(platform)) == argv


async def test_flush_failure_is_swallowed(tmp_path, monkeypatch):
    async def missing(*argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(hosts_file.asyncio, "create_subprocess_exec", missing)
    assert await HostsFileManager(hosts_path=str(tmp_path / "hosts")).flush_dns_cache() is False
