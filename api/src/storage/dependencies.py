"""Storage service shared by uploads, courses and lesson content."""

from typing import Annotated

from fastapi import Depends

from src.config.settings import get_settings
from src.storage.service import FirebaseStorageService


_storage_service: FirebaseStorageService | None = None


def set_storage_service(service: FirebaseStorageService | None) -> None:
    """Installed by the app lifespan; tests may install a fake."""
    global _storage_service  # noqa: PLW0603
    _storage_service = service


def get_storage_service() -> FirebaseStorageService:
    # Lazily built when the lifespan has not run (e.g. plain TestClient)
    if _storage_service is None:
        set_storage_service(FirebaseStorageService(get_settings()))
    return _storage_service


StorageServiceDep = Annotated[FirebaseStorageService, Depends(get_storage_service)]
