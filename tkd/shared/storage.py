import os
import tempfile
from typing import Optional


def save_image_atomic(image, path: str, fmt: str = "PNG") -> None:
    """Encode a Pillow image next to ``path``, then move it into place.

    The image only appears under its final name once fully written; a failed
    save removes the partial file and re-raises.
    """
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    handle, partial = tempfile.mkstemp(dir=directory, prefix=".render-", suffix=".part")
    os.close(handle)
    try:
        image.save(partial, format=fmt)
        os.replace(partial, path)
    except BaseException:
        remove_file(partial)
        raise


def upload_dir(upload_root: str, kind: str) -> str:
    return os.path.join(upload_root, kind)


def form_url(kind: str, file_name: Optional[str]) -> Optional[str]:
    if not file_name:
        return None
    return f"/uploads/{kind}/{file_name}"


def remove_file(path: str) -> bool:
    """Delete ``path`` if present. Returns True when a file was removed."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
