"""
Certificate issuance and removal through certbot.

Commands are always spawned from an argv list; the domain is validated again
right before use and is never interpolated into a shell string.
"""
import asyncio
import logging
import shlex
from typing import Optional, Sequence

from sitebuilder.config import settings
from sitebuilder.core.security import validate_domain

logger = logging.getLogger("sitebuilder.ssl")


class CommandError(Exception):
    def __init__(self, argv: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{argv[0]} exited with {returncode}: {stderr.strip()[:500]}")


async def run_command(argv: Sequence[str], timeout: float) -> tuple[str, str]:
    """Run argv without a shell; raise CommandError on non-zero exit or timeout."""
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandError(argv, None, "timed out")

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        raise CommandError(argv, process.returncode, err or out)
    return out, err


class SSLInstaller:
    def __init__(
        self,
        certbot_command: Optional[str] = None,
        live_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.certbot = shlex.split(certbot_command or settings.CERTBOT_COMMAND)
        self.live_dir = (live_dir or settings.LETSENCRYPT_LIVE_DIR).rstrip("/")
        self.timeout = timeout or settings.CERTBOT_TIMEOUT

    def _safe_domain(self, domain: str) -> Optional[str]:
        validation = validate_domain(domain)
        if not validation.is_valid:
            logger.error("Refusing certbot call for invalid domain %r: %s", domain, validation.error)
            return None
        return validation.sanitized

    def install_argv(self, domain: str) -> list[str]:
        return [
            *self.certbot,
            "--nginx",
            "-d", domain,
            "--non-interactive",
            "--agree-tos",
            "--register-unsafely-without-email",
        ]

    async def install_certificate(self, domain: str) -> bool:
        """Issue and install a certificate for `domain`. Never raises."""
        safe_domain = self._safe_domain(domain)
        if safe_domain is None:
            return False

        try:
            stdout, stderr = await run_command(self.install_argv(safe_domain), self.timeout)
        except (CommandError, OSError) as e:
            logger.error("Error installing SSL certificate for %s: %s", safe_domain, e)
            return False

        logger.info("Certbot output for %s: %s %s", safe_domain, stdout.strip(), stderr.strip())
        return True

    async def remove_certificate(self, domain: str) -> bool:
        """Revoke (best effort) then delete the certificate for `domain`."""
        safe_domain = self._safe_domain(domain)
        if safe_domain is None:
            return False

        logger.info("Removing SSL certificate for %s", safe_domain)
        revoke = [
            *self.certbot,
            "revoke",
            "--cert-path", f"{self.live_dir}/{safe_domain}/fullchain.pem",
            "--reason", "cessation_of_operation",
            "--non-interactive",
        ]
        try:
            await run_command(revoke, self.timeout)
            logger.info("Certificate revoked for %s", safe_domain)
        except (CommandError, OSError) as e:
            # Deletion still goes ahead
            logger.warning("Failed to revoke certificate for %s: %s", safe_domain, e)

        delete = [*self.certbot, "delete", "--cert-name", safe_domain, "--non-interactive"]
        try:
            await run_command(delete, self.timeout)
        except (CommandError, OSError) as e:
            logger.error("Error deleting certificate for %s: %s", safe_domain, e)
            return False

        logger.info("SSL certificate removal completed for %s", safe_domain)
        return True
