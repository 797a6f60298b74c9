"""
Stem layer classification.

Maps splitter output filenames onto canonical stem layers.
"""

from typing import Iterable, List, NamedTuple, Optional, Union

from .models import Layer, StemFile

ORIGINAL_LAYER_ID = "original"

AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "flac", "aac", "m4a"})

# Extensions allowed for stems that are not in the stem table
AD_HOC_EXTENSIONS = (".mp3", ".wav")


class StemInfo(NamedTuple):
    display_name: str
    icon: str


STEM_TABLE = {
    "original": StemInfo("Original Audio", "Music"),
    "vocals": StemInfo("Vocals", "Mic"),
    "vocal": StemInfo("Vocals", "Mic"),
    "bass": StemInfo("Bass", "Volume2"),
    "drums": StemInfo("Percussion", "Drum"),
    "drum": StemInfo("Percussion", "Drum"),
    "other": StemInfo("Other", "Zap"),
    "instrumental": StemInfo("Instrumental", "Music"),
}


def split_filename(filename: str) -> tuple[str, str]:
    """Return (basename, extension) of the last path segment, lower-cased.

    Handles both / and \\ separators. The basename stops at the first dot.

    >>> split_filename("stems\\\\Vocals.MP3")
    ('vocals', 'mp3')
    """
    last_part = filename.replace("\\", "/").split("/")[-1]
    basename = last_part.split(".")[0].lower()
    extension = last_part.rsplit(".", 1)[-1].lower() if "." in last_part else ""
    return basename, extension


def stem_basename(filename: str) -> str:
    return split_filename(filename)[0]


def is_audio_file(filename: str) -> bool:
    return split_filename(filename)[1] in AUDIO_EXTENSIONS


def _filename_of(item: Union[StemFile, str]) -> str:
    return item if isinstance(item, str) else item.filename


def _classify(filename: str) -> Optional[Layer]:
    basename, extension = split_filename(filename)
    if extension not in AUDIO_EXTENSIONS:
        return None

    info = STEM_TABLE.get(basename)
    if info:
        return Layer(id=basename, display_name=info.display_name, icon=info.icon)

    if filename.lower().endswith(AD_HOC_EXTENSIONS):
        return Layer(id=basename, display_name=basename.capitalize(), icon="Music2")

    return None


def sort_layers(layers: Iterable[Layer]) -> List[Layer]:
    """Original mix first, remainder alphabetical by display name."""
    return sorted(
        layers,
        key=lambda layer: (layer.id != ORIGINAL_LAYER_ID, layer.display_name.lower()),
    )


def generate_layers_from_files(files: Iterable[Union[StemFile, str]]) -> List[Layer]:
    """Derive layers from a track's files.

    Non-audio files are skipped; duplicates (vocals.wav + vocals.mp3) keep the
    first occurrence.

    Args:
        files: StemFile records or bare filenames

    Returns:
        Layers with the original mix first, then alphabetical by display name
    """
    layers: List[Layer] = []
    seen = set()

    for item in files:
        filename = _filename_of(item)
        if not filename:
            continue

        layer = _classify(filename)
        if layer is None or layer.id in seen:
            continue

        seen.add(layer.id)
        layers.append(layer)

    return sort_layers(layers)


def find_file_for_layer(files: Iterable[StemFile], layer_id: str) -> Optional[StemFile]:
    """First file whose basename equals the layer id."""
    for stem_file in files:
        if stem_basename(stem_file.filename) == layer_id.lower():
            return stem_file
    return None
