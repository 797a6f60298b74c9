"""
Upload validation.

Checks run before anything touches the network: size, extension, MP3
content and stem selection.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.mp3 import MP3

from stemsplit.core.config import UploadConfig

from .exceptions import UploadValidationError

# Stem ids the splitter accepts in the upload form
DEFAULT_STEMS = ("vocals", "drums", "bass", "other", "instrumental")
SELECTABLE_STEMS = DEFAULT_STEMS + ("original",)


def validate_stems(stems: Optional[Sequence[str]]) -> List[str]:
    """Normalize a stem selection; an empty selection is rejected."""
    selected = [s.strip().lower() for s in stems or [] if s and s.strip()]
    if not selected:
        raise UploadValidationError("Select at least one stem to split.")

    unknown = [s for s in selected if s not in SELECTABLE_STEMS]
    if unknown:
        raise UploadValidationError(f"Unknown stems: {', '.join(unknown)}")

    # Keep the caller's order, drop repeats
    return list(dict.fromkeys(selected))


def validate_upload_file(path: Union[str, Path], config: Optional[UploadConfig] = None) -> Path:
    """Validate a file before upload.

    Args:
        path: File selected by the user
        config: Upload limits (defaults: 10 MB, .mp3 only)

    Returns:
        The validated path

    Raises:
        UploadValidationError: Missing file, too large, wrong extension, or not MP3 audio
    """
    config = config or UploadConfig()
    path = Path(path)

    if not path.is_file():
        raise UploadValidationError(f"File not found: {path}")

    if path.stat().st_size > config.max_file_size_bytes:
        raise UploadValidationError(
            f"File must be {config.max_file_size_mb} MB or smaller"
        )

    extensions = [e.lower() for e in config.accepted_extensions]
    if path.suffix.lower() not in extensions:
        accepted = ", ".join(e.lstrip(".").upper() for e in extensions)
        raise UploadValidationError(f"Only {accepted} files are accepted")

    try:
        audio = MutagenFile(path)
    except MutagenError as e:
        logger.debug(f"mutagen could not read {path}: {e}")
        audio = None

    if path.suffix.lower() == ".mp3" and not isinstance(audio, MP3):
        raise UploadValidationError(f"{path.name} is not a valid MP3 file")

    return path


# Voice/command vocabulary -> upload form stem ids
STEM_ALIASES = {"percussion": "drums", "original audio": "original"}


class StemSelection:
    """The set of stems requested for the next upload.

    Toggled by the shell and by voice "select ..." commands.
    """

    def __init__(self, initial: Optional[Sequence[str]] = None):
        self.selected: List[str] = list(initial if initial is not None else DEFAULT_STEMS)

    def toggle(self, stem_id: str) -> bool:
        """Toggle one stem ('all' / 'none' select or clear everything).

        Returns:
            True if the stem is selected after the call
        """
        if stem_id == "all":
            self.select_all()
            return True
        if stem_id == "none":
            self.deselect_all()
            return False

        stem_id = STEM_ALIASES.get(stem_id, stem_id)
        if stem_id not in SELECTABLE_STEMS:
            raise UploadValidationError(f"Unknown stem: {stem_id}")

        if stem_id in self.selected:
            self.selected.remove(stem_id)
            return False
        self.selected.append(stem_id)
        return True

    def select_all(self) -> None:
        self.selected = list(DEFAULT_STEMS)

    def deselect_all(self) -> None:
        self.selected = []
