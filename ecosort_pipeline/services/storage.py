from pathlib import Path
import tempfile
import time

import cv2

DEFAULT_DIRNAME = "ecosort_captures"


class CaptureStorage:
    """Persists exported images to a temporary location and hands back paths."""

    def __init__(self, root: str | None = None, jpeg_quality: int = 80):
        self.root = Path(root) if root else Path(tempfile.gettempdir()) / DEFAULT_DIRNAME
        self.jpeg_quality = jpeg_quality
        self.last_path = None
        self._seq = 0

    def begin(self) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        return str(self.root)

    def save_image(self, image, prefix: str = "capture") -> str:
        self.begin()
        self._seq += 1
        p = self.root / f"{prefix}_{time.strftime('%Y%m%d_%H%M%S')}_{self._seq:04d}.jpg"
        ok = cv2.imwrite(str(p), image, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            raise OSError(f"failed to write image: {p}")
        self.last_path = str(p)
        return self.last_path
