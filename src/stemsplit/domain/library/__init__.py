"""Library domain - tracks, reconciliation and optimistic mutations.

This domain handles:
- Track and layer models plus the stem table
- Durable caching of the library (only after the initialized milestone)
- Reconciliation of the cache with the backend listing
- Optimistic add/remove/clear/rename with background confirmation
- Upload validation, archive unpacking and downloads
"""

# Models
from .models import (
    ContentLocator,
    Layer,
    StemFile,
    Track,
    channel_key,
    locators_for,
)

# Layers
from .layers import (
    ORIGINAL_LAYER_ID,
    find_file_for_layer,
    generate_layers_from_files,
    sort_layers,
    stem_basename,
)

# Storage and reconciliation
from .store import LIBRARY_STORAGE_KEY, TrackStore, parse_timestamp
from .reconcile import filter_visible, reconcile, sort_tracks

# Engine
from .engine import BackgroundFailure, LibraryEngine
from .archive import SessionBlobs
from .downloads import DownloadManager
from .sources import resolve_source
from .uploads import StemSelection, validate_stems, validate_upload_file

__all__ = [
    # Models
    "ContentLocator",
    "Layer",
    "StemFile",
    "Track",
    "channel_key",
    "locators_for",
    # Layers
    "ORIGINAL_LAYER_ID",
    "find_file_for_layer",
    "generate_layers_from_files",
    "sort_layers",
    "stem_basename",
    # Storage and reconciliation
    "LIBRARY_STORAGE_KEY",
    "TrackStore",
    "parse_timestamp",
    "filter_visible",
    "reconcile",
    "sort_tracks",
    # Engine
    "BackgroundFailure",
    "LibraryEngine",
    "SessionBlobs",
    "DownloadManager",
    "resolve_source",
    "StemSelection",
    "validate_stems",
    "validate_upload_file",
]
