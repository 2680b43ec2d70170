"""Parser registry — maps source identifiers to parser instances."""

import logging
import threading

from namestats.application.interfaces.name_parser import NameParser, ParserMetadata
from namestats.domain.exceptions import ParserNotFoundError

logger = logging.getLogger(__name__)


class ParserRegistry:
    """Thread-safe lookup table of source parsers.

    Built once at startup and injected wherever a parser is needed; there is
    no module-level registry.
    """

    def __init__(self) -> None:
        self._parsers: dict[str, NameParser] = {}
        self._lock = threading.RLock()

    def register(self, source_id: str, parser: NameParser) -> None:
        """Register *parser* for *source_id*.

        Raises:
            ValueError: empty identifier, missing parser, or already registered.
        """
        key = (source_id or "").strip()
        if not key:
            raise ValueError("source identifier cannot be empty")
        if parser is None:
            raise ValueError("parser cannot be None")

        with self._lock:
            if key in self._parsers:
                raise ValueError(f"parser already registered for source: {key}")
            self._parsers[key] = parser
        logger.info("Registered parser for source %s (%s)", key, type(parser).__name__)

    def unregister(self, source_id: str) -> None:
        with self._lock:
            if source_id not in self._parsers:
                raise ParserNotFoundError(source_id)
            del self._parsers[source_id]

    def get(self, source_id: str) -> NameParser:
        with self._lock:
            parser = self._parsers.get(source_id)
        if parser is None:
            raise ParserNotFoundError(source_id)
        return parser

    def metadata(self) -> list[ParserMetadata]:
        with self._lock:
            return [self._parsers[key].metadata for key in sorted(self._parsers)]

    def __contains__(self, source_id: str) -> bool:
        with self._lock:
            return source_id in self._parsers

    def __len__(self) -> int:
        with self._lock:
            return len(self._parsers)

    # Defined last: the name shadows the builtin inside the class body
    def list(self) -> list[str]:
        """Registered source identifiers, sorted."""
        with self._lock:
            return sorted(self._parsers)


def build_default_registry() -> ParserRegistry:
    """Registry with every built-in parser registered under its source id."""
    from namestats.infrastructure.parsers.us_ssa_parser import USSSAParser

    registry = ParserRegistry()
    for parser in (USSSAParser(),):
        registry.register(parser.metadata.source_id, parser)
    return registry
