"""
Hosts-file management for local development.

Outside production/staging there is no DNS provider: a `127.0.0.1 <domain>`
line in the OS hosts file makes the generated site resolvable on the
developer machine.
"""
import asyncio
import logging
import os
import re
import sys
import uuid
from pathlib import Path
from typing import Optional, Sequence

from sitebuilder.config import settings
from sitebuilder.core.security import validate_domain

logger = logging.getLogger("sitebuilder.hosts")


def flush_command(platform: Optional[str] = None) -> Sequence[str]:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ["ipconfig", "/flushdns"]
    if platform == "darwin":
        return ["dscacheutil", "-flushcache"]
    return ["resolvectl", "flush-caches"]


class HostsFileManager:
    def __init__(self, hosts_path: Optional[str] = None, loopback: str = "127.0.0.1"):
        self.hosts_path = Path(hosts_path or settings.HOSTS_FILE_PATH)
        self.loopback = loopback

    def entry(self, domain: str) -> str:
        return f"{self.loopback}\t{domain}"

    def _entry_pattern(self, domain: str) -> re.Pattern:
        # Both parts escaped: a domain like "a.b" must not match "axb"
        return re.compile(
            rf"^[ \t]*{re.escape(self.loopback)}[ \t]+{re.escape(domain)}[ \t]*$"
        )

    def is_admin(self) -> bool:
        """True when the hosts directory is writable by this process."""
        probe = self.hosts_path.parent / f".sitebuilder-probe-{uuid.uuid4().hex[:8]}"
        try:
            probe.write_text("test")
            probe.unlink()
            return True
        except OSError:
            return False

    def has_entry(self, domain: str) -> bool:
        pattern = self._entry_pattern(domain)
        content = self.hosts_path.read_text(encoding="utf-8")
        return any(pattern.match(line) for line in content.splitlines())

    async def flush_dns_cache(self) -> bool:
        argv = flush_command()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await asyncio.wait_for(process.wait(), timeout=10)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Failed to flush DNS cache: %s", e)
            return False
        if returncode != 0:
            logger.warning("DNS cache flush exited with %s", returncode)
            return False
        logger.debug("DNS cache flushed")
        return True

    async def create_local_config(self, domain: str) -> bool:
        """Append the loopback entry for `domain` once. False if present or not writable."""
        validation = validate_domain(domain)
        if not validation.is_valid:
            logger.error("Refusing hosts entry for invalid domain %r", domain)
            return False
        domain = validation.sanitized

        if not self.is_admin():
            logger.warning("Administrator privileges required to edit %s", self.hosts_path)
            return False

        try:
            if self.has_entry(domain):
                logger.info("Domain %s already exists in hosts file", domain)
                return False

            content = self.hosts_path.read_text(encoding="utf-8")
            prefix = "" if content == "" or content.endswith("\n") else "\n"
            with self.hosts_path.open("a", encoding="utf-8") as fh:
                fh.write(f"{prefix}{self.entry(domain)}\n")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error modifying hosts file: %s", e)
            return False

        await self.flush_dns_cache()
        logger.info("Added %s to hosts file", domain)
        return True

    async def remove_from_hosts(self, domain: str) -> bool:
        """Remove every line that is exactly the loopback entry for `domain`."""
        if not self.is_admin():
            logger.warning(
                "Administrator privileges required to remove domain from hosts file. "
                "Please remove the following entry manually: %s", self.entry(domain),
            )
            return False

        pattern = self._entry_pattern(domain.lower().strip())
        try:
            content = self.hosts_path.read_text(encoding="utf-8")
            lines = content.splitlines(keepends=True)
            kept = [line for line in lines if not pattern.match(line.rstrip("\r\n"))]
            if len(kept) != len(lines):
                tmp = self.hosts_path.with_name(self.hosts_path.name + ".tmp")
                tmp.write_text("".join(kept), encoding="utf-8")
                os.replace(tmp, self.hosts_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error removing %s from hosts file: %s", domain, e)
            return False

        await self.flush_dns_cache()
        logger.info("Removed %s from hosts file", domain)
        return True
