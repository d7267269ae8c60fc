import logging
import secrets
import time
from pathlib import Path

from core.errors import ValidationError
from core.services.proof_storage import ProofStorage, StoredFile

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "pdf"}


class LocalProofStorage(ProofStorage):
    """Keeps uploads on local disk under random names; the original filename
    only contributes its extension."""

    def __init__(self, root: str, url_prefix: str = "/uploads", max_bytes: int = 3 * 1024 * 1024):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def _extension(self, filename: str) -> str:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"Unsupported file type, allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
                field="file",
            )
        return ext

    def save(self, filename: str, content: bytes, subdir: str = "") -> StoredFile:
        if not content:
            raise ValidationError("Uploaded file is empty", field="file")
        if len(content) > self.max_bytes:
            raise ValidationError(f"File exceeds {self.max_bytes} bytes", field="file")
        ext = self._extension(filename or "")
        name = f"{int(time.time())}-{secrets.token_hex(8)}.{ext}"
        directory = self.root / subdir if subdir else self.root
        directory.mkdir(parents=True, exist_ok=True)
        (directory / name).write_bytes(content)
        relative = f"{subdir}/{name}" if subdir else name
        return StoredFile(reference=f"{self.url_prefix}/{relative}", size_bytes=len(content))

    def discard(self, reference: str) -> None:
        if not reference.startswith(self.url_prefix + "/"):
            return
        path = self.root / reference[len(self.url_prefix) + 1:]
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Could not remove stored file %s", reference)
