"""
On-device model lifecycle: catalog, installation, selection.

The installed set is whatever the model downloader reports; selection is
held in process. Operations return ``ModelResult`` instead of raising so
callers can surface the failure reason directly.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class ModelStatus(str, Enum):
    READY = "READY"
    DOWNLOADING = "DOWNLOADING"
    CORRUPTED = "CORRUPTED"


class DownloadError(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_MODEL = "UNKNOWN_MODEL"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ModelSpec:
    """A model that can be installed."""

    id: str
    display_name: str
    engine_model: str
    size_bytes: int = 0
    description: str = ""


DEFAULT_CATALOG = [
    ModelSpec("compact", "SmolLM2 135M", "smollm2:135m", 105_000_000, "Fast categorization, minimal storage"),
    ModelSpec("standard", "Gemma 3 270M", "gemma3:270m", 292_000_000, "Balanced performance and accuracy"),
    ModelSpec("pro", "Gemma 3 1B", "gemma3:1b", 806_000_000, "Best accuracy"),
]


@dataclass(frozen=True)
class InstalledModel:
    spec: ModelSpec
    installed_at: datetime
    is_selected: bool = False
    status: ModelStatus = ModelStatus.READY

    @property
    def id(self) -> str:
        return self.spec.id

    @property
    def engine_model(self) -> str:
        return self.spec.engine_model


# Download progress states


@dataclass(frozen=True)
class DownloadProgress:
    """Base class for model download progress."""


@dataclass(frozen=True)
class DownloadIdle(DownloadProgress):
    pass


@dataclass(frozen=True)
class DownloadPreparing(DownloadProgress):
    model_id: str


@dataclass(frozen=True)
class Downloading(DownloadProgress):
    model_id: str
    bytes_downloaded: int
    total_bytes: int

    @property
    def progress(self) -> float:
        return self.bytes_downloaded / self.total_bytes if self.total_bytes > 0 else 0.0


@dataclass(frozen=True)
class DownloadCompleted(DownloadProgress):
    model_id: str
    installed: InstalledModel


@dataclass(frozen=True)
class DownloadFailed(DownloadProgress):
    model_id: str
    error: DownloadError


@dataclass(frozen=True)
class DownloadCancelled(DownloadProgress):
    pass


@dataclass(frozen=True)
class ModelResult:
    success: bool
    model: Optional[InstalledModel] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, model: Optional[InstalledModel] = None) -> "ModelResult":
        return cls(True, model=model)

    @classmethod
    def failure(cls, error: str) -> "ModelResult":
        return cls(False, error=error)


ProgressCallback = Callable[[int, int], None]


def engine_tag(name: str) -> str:
    """Untagged engine references resolve to the 'latest' tag."""
    return name if ":" in name else f"{name}:latest"


def _refers_to(model_id: Optional[str], spec: ModelSpec) -> bool:
    if model_id is None:
        return False
    return model_id == spec.id or engine_tag(model_id) == engine_tag(spec.engine_model)


class ModelDownloader(ABC):
    """Backend that stores model weights."""

    @abstractmethod
    async def list_installed(self) -> list[str]:
        """Engine model references currently installed."""
        pass

    @abstractmethod
    async def download(self, engine_model: str, on_progress: ProgressCallback) -> None:
        """Fetch a model; raises on failure."""
        pass

    @abstractmethod
    async def delete(self, engine_model: str) -> bool:
        pass


class ModelRegistry:
    """
    Tracks installed models, the selected model and download progress.

    Args:
        downloader: Storage backend for model weights
        catalog: Models offered for download
        selected_model_id: Model selected at startup (catalog id or engine tag)
        clock: Time source for installation timestamps
    """

    def __init__(
        self,
        downloader: ModelDownloader,
        catalog: Optional[list[ModelSpec]] = None,
        selected_model_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ):
        self.downloader = downloader
        self.catalog = catalog if catalog is not None else list(DEFAULT_CATALOG)
        self.clock = clock or SystemClock()
        self.download_progress: DownloadProgress = DownloadIdle()
        self._selected_id = selected_model_id
        self._installed: list[InstalledModel] = []
        self._download_task: Optional[asyncio.Task] = None
        self.refreshed = False

    @property
    def installed_models(self) -> list[InstalledModel]:
        return list(self._installed)

    @property
    def current_model(self) -> Optional[InstalledModel]:
        for model in self._installed:
            if model.is_selected:
                return model
        return None

    def find_spec(self, model_id: str) -> Optional[ModelSpec]:
        for spec in self.catalog:
            if _refers_to(model_id, spec):
                return spec
        return None

    async def refresh(self) -> list[InstalledModel]:
        """Re-read the installed set from the downloader."""
        names = await self.downloader.list_installed()
        installed = []
        now = self.clock.now()
        for name in names:
            spec = self.find_spec(name) or ModelSpec(id=name, display_name=name, engine_model=name)
            selected = _refers_to(self._selected_id, spec)
            installed.append(InstalledModel(spec=spec, installed_at=now, is_selected=selected))
        self._installed = installed
        self.refreshed = True
        logger.debug(
            "Installed models: %d, selected=%s",
            len(installed),
            self.current_model.id if self.current_model else None,
        )
        return self.installed_models

    def _find_installed(self, model_id: str) -> Optional[InstalledModel]:
        for model in self._installed:
            if _refers_to(model_id, model.spec):
                return model
        return None

    async def download_model(self, model_id: str) -> ModelResult:
        spec = self.find_spec(model_id)
        if spec is None:
            self.download_progress = DownloadFailed(model_id, DownloadError.UNKNOWN_MODEL)
            return ModelResult.failure(f"Unknown model: {model_id}")

        self.download_progress = DownloadPreparing(model_id)
        logger.info(f"Downloading model {model_id} ({spec.engine_model})")

        def on_progress(downloaded: int, total: int) -> None:
            self.download_progress = Downloading(model_id, downloaded, total)

        self._download_task = asyncio.create_task(self.downloader.download(spec.engine_model, on_progress))
        try:
            await self._download_task
        except asyncio.CancelledError:
            if isinstance(self.download_progress, DownloadCancelled):
                return ModelResult.failure("Download cancelled")
            raise
        except Exception as e:
            logger.warning(f"Model download failed for {model_id}: {e}")
            self.download_progress = DownloadFailed(model_id, DownloadError.NETWORK_ERROR)
            return ModelResult.failure(f"Download failed: {e}")
        finally:
            self._download_task = None

        await self.refresh()
        installed = self._find_installed(model_id) or InstalledModel(spec=spec, installed_at=self.clock.now())
        self.download_progress = DownloadCompleted(model_id, installed)
        logger.info(f"Model {model_id} installed")
        return ModelResult.ok(installed)

    def cancel_download(self) -> None:
        """Cancel an in-flight download; safe to call from any task."""
        self.download_progress = DownloadCancelled()
        if self._download_task is not None and not self._download_task.done():
            self._download_task.cancel()
        logger.info("Model download cancelled")

    async def delete_model(self, model_id: str) -> ModelResult:
        installed = self._find_installed(model_id)
        if installed is None:
            return ModelResult.failure(f"Model not installed: {model_id}")
        if not await self.downloader.delete(installed.engine_model):
            return ModelResult.failure("Failed to delete")
        if installed.is_selected:
            self._selected_id = None
        await self.refresh()
        logger.info(f"Model deleted: {model_id}")
        return ModelResult.ok()

    async def select_model(self, model_id: str) -> ModelResult:
        installed = self._find_installed(model_id)
        if installed is None:
            return ModelResult.failure(f"Model not installed: {model_id}")
        self._selected_id = installed.id
        self._installed = [replace(m, is_selected=m.id == installed.id) for m in self._installed]
        logger.info(f"Model selected: {installed.id}")
        return ModelResult.ok(self.current_model)

    def mark_corrupted(self, model_id: str) -> None:
        self._installed = [
            replace(m, status=ModelStatus.CORRUPTED) if _refers_to(model_id, m.spec) else m
            for m in self._installed
        ]
