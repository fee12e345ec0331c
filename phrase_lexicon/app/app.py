"""Application wiring for the phrase lexicon service."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from phrase_lexicon.core import InvalidArgument, LookupResponse
from phrase_lexicon.utils.logging_config import configure_logging
from phrase_lexicon.utils.observability import get_logger
from phrase_lexicon.utils.settings import LexiconSettings, load_settings
from phrase_lexicon.utils.telemetry import TelemetryLogger

from phrase_lexicon.app.data.database import EntryStore, SQLiteEntryRepository
from phrase_lexicon.app.services.generation import EntryGenerator, HttpEntryGenerator
from phrase_lexicon.app.services.lookup_service import LookupService


class PhraseLexiconApp:
    """High-level application facade bundling dependencies."""

    def __init__(
        self,
        settings: Optional[LexiconSettings] = None,
        *,
        store: Optional[EntryStore] = None,
        generator: Optional[EntryGenerator] = None,
        lookup_service: Optional[LookupService] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._logger = get_logger(__name__).bind(component="app_facade")
        self._logger.info(
            "Initialising application facade",
            context={"db_path": self.settings.db_path},
        )

        if store is None:
            repository = SQLiteEntryRepository(self.settings.db_path)
            try:
                row_count = repository.ensure_database()
            except Exception as exc:
                self._logger.error(
                    "Database initialisation failed",
                    context={"db_path": self.settings.db_path, "error": str(exc)},
                )
                raise
            self._logger.info(
                "Database ready",
                context={"db_path": self.settings.db_path, "row_count": row_count},
            )
            store = repository
        self.store = store

        if generator is None:
            if not self.settings.generator_url:
                raise InvalidArgument(
                    "LEXICON_GENERATOR_URL must be set when no generator is supplied"
                )
            generator = HttpEntryGenerator(
                self.settings.generator_url,
                timeout=self.settings.generator_timeout,
            )
        self.generator = generator

        self.lookup_service = lookup_service or LookupService(
            store=self.store,
            generator=self.generator,
            max_workers=self.settings.max_workers,
            lookup_timeout=self.settings.lookup_timeout,
            listeners=[TelemetryLogger()],
        )
        self._logger.info(
            "Application dependencies wired",
            context={
                "store": type(self.store).__name__,
                "generator": type(self.generator).__name__,
            },
        )

    # Public API ------------------------------------------------------------
    def lookup(self, phrase: str) -> LookupResponse:
        return self.lookup_service.lookup(phrase)

    def handle_request(self, body: Mapping[str, Any] | str | bytes | None) -> Dict[str, Any]:
        return self.lookup_service.handle_request(body)

    def create_gradio_interface(self):
        from phrase_lexicon.app.ui.gradio import create_interface

        return create_interface(self.lookup_service)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    app = PhraseLexiconApp(settings)
    interface = app.create_gradio_interface()
    interface.launch(
        server_name="0.0.0.0",
        server_port=settings.server_port,
        share=settings.share,
    )


__all__ = ["PhraseLexiconApp", "main"]


if __name__ == "__main__":
    main()
