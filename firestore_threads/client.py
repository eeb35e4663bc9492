import os
import logging
from typing import Optional

from google.cloud.firestore_v1 import AsyncClient

logger = logging.getLogger(__name__)

PROJECT_ENV = "GOOGLE_CLOUD_PROJECT"
DATABASE_ENV = "DATABASE"
EMULATOR_ENV = "FIRESTORE_EMULATOR_HOST"


class FirestoreDB:
    """
    Owns the :class:`google.cloud.firestore_v1.AsyncClient` shared by the
    thread, user and community collections.

    The same object can point at:

    * **the Firestore emulator**, for local development and CI;
    * **the real Firestore backend**, the default when no emulator host is set;
    * **a mock client**, for unit tests that must not touch the network.
    """

    def __init__(
        self,
        project_id: str,
        database: Optional[str] = None,
        credentials=None,
        emulator_host: Optional[str] = None,
    ):
        """
        Parameters
        ----------
        project_id :
            Google Cloud project identifier.
        database :
            Firestore database ID; ``None`` selects the default database.
        credentials :
            Explicit credentials object; ``None`` uses the Google default
            credentials chain (``GOOGLE_APPLICATION_CREDENTIALS`` included).
        emulator_host :
            ``host:port`` of a running Firestore emulator.
        """
        self.project_id = project_id
        self.database = database
        self.credentials = credentials
        self._emulator_host = emulator_host

        self.client: AsyncClient = self._init_client()

    @classmethod
    def from_env(cls, credentials=None) -> "FirestoreDB":
        """
        Build an instance from ``GOOGLE_CLOUD_PROJECT``, ``DATABASE`` and
        ``FIRESTORE_EMULATOR_HOST``.

        Empty variables count as unset; the project falls back to
        ``"demo-project"`` only when talking to the emulator.
        """
        emulator_host = os.environ.get(EMULATOR_ENV, "").strip() or None
        project_id = os.environ.get(PROJECT_ENV, "").strip()
        if not project_id:
            if not emulator_host:
                raise ValueError(f"{PROJECT_ENV} must be set to reach Firestore.")
            project_id = "demo-project"
        database = os.environ.get(DATABASE_ENV, "").strip() or None
        return cls(
            project_id=project_id,
            database=database,
            credentials=credentials,
            emulator_host=emulator_host,
        )

    def _init_client(self) -> AsyncClient:
        # The Google client libraries pick the emulator up from the
        # environment, so the variable is exported or cleared to match.
        if self._emulator_host:
            os.environ[EMULATOR_ENV] = self._emulator_host
            logger.info(f"Using Firestore emulator on {self._emulator_host}")
        else:
            os.environ.pop(EMULATOR_ENV, None)
        return AsyncClient(
            project=self.project_id,
            database=self.database,
            credentials=self.credentials,
        )

    @property
    def emulator_host(self) -> Optional[str]:
        return self._emulator_host

    def use_emulator(self, host: str = "localhost:8080"):
        """Point at a local emulator and recreate the client."""
        self._emulator_host = host
        self.client = self._init_client()
        logger.info(f"Emulator enabled on {host}")

    def clear_emulator(self):
        """Reconnect to the production Firestore endpoint."""
        self._emulator_host = None
        self.client = self._init_client()
        logger.info("Emulator disabled, using real Firestore.")

    def mock_firestore_for_tests(self):
        """Replace the client with a :class:`unittest.mock.MagicMock`."""
        from unittest.mock import MagicMock

        self.client = MagicMock()
        logger.info("Firestore client replaced with MagicMock for unit tests.")
