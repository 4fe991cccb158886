"""Track references and tag probing using mutagen."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from mutagen import File, MutagenError

from privateplayer.logging import get_logger

logger = get_logger(__name__)

# Tag keys tried in order: Vorbis/FLAC, ID3v2, MP4
ARTIST_TAG_KEYS = ('ARTIST', 'artist', 'TPE1', '\xa9ART')


@dataclass(frozen=True)
class Track:
    """One playable item.

    Identity is the ``id`` alone: two references to the same file are the
    same track even if their display names differ.
    """

    id: str
    display_name: str = field(compare=False)
    artist: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_path(cls, file_path) -> 'Track':
        """Build a track for a local file, reading the artist tag if present."""
        path = Path(file_path).expanduser().resolve()
        return cls(
            id=path.as_uri(),
            display_name=path.name,
            artist=read_artist(path),
        )

    @property
    def local_path(self) -> Optional[Path]:
        """Filesystem path for file:// ids, None for anything else."""
        return uri_to_path(self.id)


def uri_to_path(uri: str) -> Optional[Path]:
    parsed = urlparse(uri)
    if parsed.scheme != 'file':
        return None
    return Path(unquote(parsed.path))


def _open(path: Path):
    try:
        return File(str(path))
    except (MutagenError, OSError) as e:
        logger.debug("Could not read tags from %s: %s", path, e)
        return None


def read_artist(path: Path) -> Optional[str]:
    """Return the first artist tag value, or None."""
    audio_file = _open(path)
    if audio_file is None or not audio_file.tags:
        return None
    for key in ARTIST_TAG_KEYS:
        try:
            value = audio_file.tags.get(key)
        except (KeyError, ValueError):
            continue
        if not value:
            continue
        # ID3 frames carry .text, Vorbis/MP4 give lists
        if hasattr(value, 'text'):
            value = value.text
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value:
            return str(value)
    return None


def probe_duration_millis(uri: str) -> Optional[int]:
    """Duration from the file header, used when the engine cannot report one."""
    path = uri_to_path(uri)
    if path is None or not path.is_file():
        return None
    audio_file = _open(path)
    if audio_file is None or audio_file.info is None:
        return None
    length = getattr(audio_file.info, 'length', None)
    if not length or length <= 0:
        return None
    return int(length * 1000)
