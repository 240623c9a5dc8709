"""
Writing and removing the rendered template on disk.
"""
import logging
import os

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..errors import RenderError

logger = logging.getLogger(__name__)


def force_file_to_disk(content: str, path: str) -> str:
    """
    Writes ``content`` to ``path`` and makes sure it reached the disk before
    any process is started on it.

    :raises RenderError: If the file cannot be written.
    """
    directory = os.path.dirname(path)
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise RenderError(f"Could not write {path}: {e}") from e
    return path


# A file still held open by a just-killed docker client can refuse deletion
# for a short while on some platforms.
@retry(
    retry=retry_if_exception_type(PermissionError),
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.2),
    reraise=True,
)
def delete_file(path: str) -> bool:
    """
    Removes ``path``. Returns False if it was already gone.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
