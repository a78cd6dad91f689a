"""Document producers and artifact consumers.

A producer turns a numeric parameter (the user's maximal bench-press load)
into a spreadsheet for one plan strategy. Producers are registered by
strategy name:

    @register_producer("powerlifting")
    def make_powerlifting_plan(bench_press: float) -> ProducedDocument:
        ...
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Protocol

from .errors import UnknownStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentIdentity:
    """What a rendered plan depends on; equal identities share one artifact."""
    numeric_parameter: float
    template_reference: str


@dataclass(frozen=True)
class ProducedDocument:
    """A spreadsheet handed over by a producer.

    ``disposable`` marks temporary files the pipeline removes after rendering.
    """
    identity: DocumentIdentity
    path: Path
    disposable: bool = False


Producer = Callable[[float], ProducedDocument]

_PRODUCERS: Dict[str, Producer] = {}


def register_producer(name: str) -> Callable[[Producer], Producer]:
    """Decorator registering a producer under a strategy name."""
    def decorator(func: Producer) -> Producer:
        if name in _PRODUCERS:
            logger.warning("Replacing producer registered as %r", name)
        _PRODUCERS[name] = func
        return func
    return decorator


def unregister_producer(name: str) -> None:
    _PRODUCERS.pop(name, None)


def get_producer(name: str) -> Producer:
    """Get producer by strategy name."""
    try:
        return _PRODUCERS[name]
    except KeyError:
        raise UnknownStrategy(
            f"No producer registered for strategy {name!r}; "
            f"available: {', '.join(available_producers()) or 'none'}"
        ) from None


def available_producers() -> List[str]:
    return sorted(_PRODUCERS)


def register_template_file(name: str, path: Path) -> Producer:
    """Register a fixed spreadsheet as the document for a strategy.

    The file is shared between requests, so it is never marked disposable.
    """
    path = Path(path)

    def produce(numeric_parameter: float) -> ProducedDocument:
        return ProducedDocument(
            identity=DocumentIdentity(numeric_parameter, name),
            path=path,
        )

    return register_producer(name)(produce)


class ArtifactConsumer(Protocol):
    """Receives the path of a finished artifact (a chat client, a mailer...)."""

    def deliver(self, path: Path) -> None:
        ...


class DirectoryConsumer:
    """Copies delivered artifacts into a directory."""

    def __init__(self, target_dir: Path):
        self.target_dir = Path(target_dir)
        self.delivered: List[Path] = []

    def deliver(self, path: Path) -> None:
        self.target_dir.mkdir(parents=True, exist_ok=True)
        target = self.target_dir / Path(path).name
        shutil.copyfile(path, target)
        self.delivered.append(target)
        logger.info("Delivered %s to %s", Path(path).name, self.target_dir)
