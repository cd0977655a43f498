"""
Database dump providers.

A provider turns the connection parameters of BackupSettings into a plain
SQL dump file at a given path. PgDumpProvider shells out to pg_dump; other
implementations (for example a driver-based one) only need to honour the
same dump() contract.
"""

import logging
import os
import subprocess
from typing import List

from .errors import DumpError

logger = logging.getLogger(__name__)


class DumpProvider:
    """Interface for dump capabilities."""

    def dump(self, settings, destination: str) -> str:
        """
        Produce a plain-text SQL dump.

        Args:
            settings: BackupSettings with the database connection parameters
            destination: Path of the dump file to create

        Returns:
            Path of the created dump file

        Raises:
            DumpError: If the dump could not be produced
        """
        raise NotImplementedError


class PgDumpProvider(DumpProvider):
    """
    Dump a PostgreSQL database with the pg_dump client.

    The password is handed over through PGPASSWORD in the child environment
    so it never shows up in the process list or in logged commands.
    """

    def __init__(self, executable: str = 'pg_dump'):
        self.executable = executable

    def build_command(self, settings, destination: str) -> List[str]:
        return [
            self.executable,
            '-h', settings.db_host,
            '-p', str(settings.db_port),
            '-U', settings.db_user,
            '-d', settings.db_name,
            '-f', destination,
        ]

    def dump(self, settings, destination: str) -> str:
        command = self.build_command(settings, destination)
        env = os.environ.copy()
        env['PGPASSWORD'] = settings.db_pass

        logger.info("Running %s", ' '.join(command))

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=env,
            )
        except FileNotFoundError as e:
            raise DumpError(f"Dump executable not found: {self.executable}") from e
        except OSError as e:
            raise DumpError(f"Failed to start {self.executable}: {e}") from e

        stderr = _mask(result.stderr.strip(), settings.db_pass)
        if result.returncode != 0:
            raise DumpError(
                f"{self.executable} exited with code {result.returncode}: {stderr}"
            )
        if stderr:
            logger.warning("%s stderr: %s", self.executable, stderr)

        if not os.path.exists(destination):
            raise DumpError(f"{self.executable} did not create {destination}")

        return destination


def _mask(text: str, secret: str) -> str:
    if secret:
        return text.replace(secret, '***')
    return text
