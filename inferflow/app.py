"""InferFlow application controller.

Holds the database, the session manager and the generation service for one
running instance. ``load()`` on startup, ``flush()``/``close()`` on shutdown.
"""

import logging
from collections.abc import Callable

from inferflow.config import AppConfig, LLMConfig
from inferflow.db.connection import Database
from inferflow.generation.service import GenerationService
from inferflow.layout.engine import calculate_auto_layout
from inferflow.models import ConversationNode, Position
from inferflow.providers.base import LLMProvider
from inferflow.providers.registry import resolve_provider
from inferflow.sessions.manager import SessionManager

logger = logging.getLogger(__name__)

LayoutListener = Callable[[dict[str, Position]], None]

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach one stream handler to the ``inferflow`` logger (idempotent)."""
    package_logger = logging.getLogger("inferflow")
    package_logger.setLevel(level)
    if not any(getattr(h, "_inferflow", False) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._inferflow = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)


class Application:
    """Explicit context object for the active session and its tree."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        database: Database | None = None,
        provider: LLMProvider | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self._database = database
        self._provider = provider
        self._sessions: SessionManager | None = None
        self._generation: GenerationService | None = None
        self._layout_listeners: list[LayoutListener] = []

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Application":
        """Application configured from the environment, with logging set up."""
        config = AppConfig.from_env(dotenv_path)
        configure_logging(config.log_level)
        return cls(config)

    @property
    def sessions(self) -> SessionManager:
        if self._sessions is None:
            raise RuntimeError("Application not loaded; call load() first")
        return self._sessions

    def load(self) -> str:
        """Open the database and bootstrap sessions. Returns the active session id."""
        if self._database is None:
            self._database = Database.connect(self.config.resolved_db_path())
        self._sessions = SessionManager(self._database)
        return self._sessions.load()

    def flush(self) -> None:
        if self._sessions is not None:
            self._sessions.flush()

    def close(self) -> None:
        """Best-effort save, then close the database."""
        self.flush()
        if self._database is not None:
            self._database.close()
            self._database = None
        self._sessions = None

    # -- Operations --

    def spawn(
        self,
        question: str,
        parent_id: str | None = None,
        selected_section_index: int | None = None,
    ) -> ConversationNode:
        """Ask a question in the active tree. See GenerationService.spawn."""
        return self._generation_service().spawn(
            self.sessions.tree, question, parent_id, selected_section_index
        )

    def apply_auto_layout(self) -> dict[str, Position]:
        """Lay out the active tree, save it, then notify layout listeners."""
        store = self.sessions.tree
        positions = calculate_auto_layout(store.tree, self.config.layout)
        applied = store.apply_positions(positions)
        logger.debug("Auto-layout applied to %d nodes", applied)
        for listener in list(self._layout_listeners):
            listener(positions)
        return positions

    def add_layout_listener(self, listener: LayoutListener) -> Callable[[], None]:
        """Register a callback fired after auto-layout. Returns an unsubscribe function."""
        self._layout_listeners.append(listener)

        def remove() -> None:
            if listener in self._layout_listeners:
                self._layout_listeners.remove(listener)

        return remove

    def _generation_service(self) -> GenerationService:
        if self._generation is None:
            llm_config = self.config.llm or LLMConfig()
            provider = self._provider or resolve_provider(llm_config)
            self._generation = GenerationService(
                provider, llm_config, layout=self.config.layout
            )
        return self._generation
