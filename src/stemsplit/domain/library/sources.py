"""Resolve a stem file to something a player or downloader can open."""

from pathlib import Path
from typing import Optional

from loguru import logger

from stemsplit.core.api import ApiError

from .engine import LibraryEngine
from .models import LOCATOR_BLOB, LOCATOR_CACHE, LOCATOR_REMOTE, StemFile, Track, locators_for


def is_local_source(source: str) -> bool:
    return "://" not in source


async def resolve_source(library: LibraryEngine, track: Track, stem_file: StemFile) -> Optional[str]:
    """Try each content-locator in preference order.

    Returns:
        A local file path, a signed URL or the stable cache route; None when
        no locator resolves
    """
    for locator in locators_for(track, stem_file):
        if locator.kind == LOCATOR_BLOB:
            if Path(locator.value).is_file():
                return locator.value
            logger.debug(f"Blob for {stem_file.filename} is gone: {locator.value}")

        elif locator.kind == LOCATOR_REMOTE:
            try:
                return await library.resolve_playable_url(locator.value, stem_file.filename)
            except ApiError as e:
                logger.warning(f"No signed URL for {stem_file.filename}: {e}")

        elif locator.kind == LOCATOR_CACHE:
            return library.api.stem_route(locator.value, stem_file.filename)

    return None
