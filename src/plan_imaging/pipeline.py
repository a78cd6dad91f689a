"""Orchestrates parse -> layout -> render -> persist behind the artifact cache."""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from .artifact_cache import ArtifactCache, CleanupScheduler
from .cache_keys import derive_key
from .config import PipelineConfig
from .errors import RenderFailed
from .layout_engine import GridGeometry, LayoutEngine
from .producers import ArtifactConsumer, DocumentIdentity, get_producer
from .renderer import TableRenderer
from .styles import get_style
from .surfaces import get_backend
from .table_document import TableDocument, parse_document

logger = logging.getLogger(__name__)

Source = Union[str, Path]


class TrainingPlanPipeline:
    """
    Renders training plan spreadsheets to image files, reusing cached
    artifacts for repeated identities.

    Renders of the same cache key are serialised; different keys render in
    parallel. Parsers, surfaces and geometry are created per request.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        cache: Optional[ArtifactCache] = None,
        parser: Callable[[Source], TableDocument] = parse_document,
        now=None,
    ):
        self.config = config or PipelineConfig()
        self.cache = cache if cache is not None else ArtifactCache.from_config(self.config)
        self.style = get_style(self.config.style)
        self._parse = parser
        self._now = now
        self._scheduler: Optional[CleanupScheduler] = None

    def start_cleanup(self) -> Optional[CleanupScheduler]:
        """Start periodic cache sweeps; nothing to sweep when caching is off."""
        if not self.cache.is_cache_enabled():
            return None
        if self._scheduler is None:
            self._scheduler = CleanupScheduler(self.cache, self.config.effective_cleanup_interval)
        self._scheduler.start()
        return self._scheduler

    def close(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
            self._scheduler = None

    def __enter__(self) -> "TrainingPlanPipeline":
        self.start_cleanup()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def render(self, identity: DocumentIdentity, source: Source) -> Path:
        """
        Path of the rendered image for ``identity``.

        Args:
            identity: numeric parameter and template reference of the plan
            source: .xlsx or .xls spreadsheet holding the plan

        Returns:
            Path to the image file under the cache directory

        Raises:
            InvalidKeyInput: identity cannot be turned into a cache key
            RenderFailed: parsing, layout or drawing failed
        """
        key = derive_key(identity.numeric_parameter, identity.template_reference)

        cached = self.cache.lookup(key, self.config.file_extension)
        if cached is not None:
            return cached

        with self.cache.key_lock(key):
            # Another request may have rendered this key while we waited
            cached = self.cache.lookup(key, self.config.file_extension)
            if cached is not None:
                return cached
            return self._render_and_store(key, source)

    def render_from_producer(self, strategy: str, numeric_parameter: float) -> Path:
        """
        Render the plan a registered producer builds for ``numeric_parameter``.

        The artifact is keyed by ``(numeric_parameter, strategy)``, so a
        cached artifact is returned without calling the producer and the
        producer runs at most once per key at a time. A disposable
        spreadsheet is deleted once rendering is over.

        Raises:
            UnknownStrategy: no producer registered under ``strategy``
        """
        producer = get_producer(strategy)
        identity = DocumentIdentity(numeric_parameter, strategy)
        key = derive_key(identity.numeric_parameter, identity.template_reference)

        cached = self.cache.lookup(key, self.config.file_extension)
        if cached is not None:
            return cached

        with self.cache.key_lock(key):
            cached = self.cache.lookup(key, self.config.file_extension)
            if cached is not None:
                return cached

            produced = producer(numeric_parameter)
            logger.info("Producer %r built %s", strategy, produced.path)
            if produced.identity != identity:
                logger.warning(
                    "Producer %r reported %s; caching under %s",
                    strategy, produced.identity, identity,
                )
            try:
                return self._render_and_store(key, produced.path)
            finally:
                if produced.disposable:
                    self._discard(Path(produced.path))

    def render_and_deliver(self, identity: DocumentIdentity, source: Source,
                           consumer: ArtifactConsumer) -> Path:
        """Render (or reuse) the artifact and hand its path to ``consumer``."""
        path = self.render(identity, source)
        consumer.deliver(path)
        return path

    def _render_and_store(self, key: str, source: Source) -> Path:
        """Render under the held key lock and register the artifact."""
        path, geometry = self._render_file(key, source)
        self.cache.store(key, path, geometry.image_width, geometry.image_height)
        return path

    def _render_file(self, key: str, source: Source):
        target = self.cache.artifact_path_for(key, self.config.file_extension)
        logger.info("Rendering %s -> %s", source, target.name)
        try:
            document = self._parse(source)
            backend = get_backend(self.config.output_format, self.style, self.config.font_path)
            engine = LayoutEngine(self.config, backend)
            geometry: GridGeometry = engine.compute_geometry(
                document, engine.default_selection(document)
            )
            renderer = TableRenderer(self.config, self.style, backend, now=self._now)
            renderer.render_to_file(document, geometry, target)
        except Exception as exc:
            logger.error("Rendering %s failed: %s", source, exc)
            raise RenderFailed(f"Could not render {source}: {exc}", cause=exc) from exc
        return target, geometry

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
            logger.debug("Removed temporary spreadsheet %s", path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove temporary spreadsheet %s: %s", path, exc)
