"""Turning data URIs into files Gradio can serve."""

import hashlib
import mimetypes
from pathlib import Path

from moonlight.media import parse_data_uri


def save_data_uri(data_uri: str, cache_dir: Path) -> Path:
    """Decode an image data URI into ``cache_dir``, named by content hash.

    Raises:
        ValueError: If the data URI is not a decodable image.
    """
    mime_type, data = parse_data_uri(data_uri)
    if not mime_type.startswith("image/") or not data:
        raise ValueError(f"Not an image: {mime_type}")

    extension = mimetypes.guess_extension(mime_type) or ".img"
    path = Path(cache_dir) / f"{hashlib.sha256(data).hexdigest()[:32]}{extension}"
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return path
