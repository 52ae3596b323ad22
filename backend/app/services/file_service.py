"""
SubText Backend — Upload Validation Service
=============================================

What:  Validates the screenshot uploaded to POST /api/ocr.
Why:   The image goes straight to the vision model; reject anything that is
       not an image, is empty, or is larger than MAX_FILE_SIZE before paying
       for a model call.
How:   Checks run cheapest first: presence → declared content type →
       declared size (Content-Length of the part) → actual byte count →
       detected type (python-magic on the leading bytes).
       Uploads are held in memory only and never written to disk.

The detected type, not the client's label, is what the vision model receives.
"""

import logging
from typing import Optional

import magic

from app.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_PREFIX = "image/"

# libmagic only needs the header to identify image formats
SNIFF_BYTES = 2048


class FileService:
    def __init__(self, max_file_size: int):
        self.max_file_size = max_file_size

    @property
    def max_size_mb(self) -> float:
        return self.max_file_size / (1024 * 1024)

    def validate_content_type(self, content_type: Optional[str]) -> str:
        mime = (content_type or "").split(";")[0].strip().lower()
        if not mime.startswith(ALLOWED_MIME_PREFIX):
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"content_type": mime or None},
            )
        return mime

    def validate_size(self, declared_size: Optional[int], actual_size: int) -> None:
        """
        Reject uploads over the configured maximum.

        Args:
            declared_size: Size reported for the multipart part (may be None).
            actual_size: Byte count actually read.
        """
        for size in (declared_size, actual_size):
            if size is not None and size > self.max_file_size:
                raise ValidationError(
                    message=f"File size exceeds maximum of {self.max_size_mb:.0f}MB. "
                            "Please upload a smaller image.",
                    field="image",
                    context={"max_size_mb": self.max_size_mb, "size": size},
                )
        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty", field="image")

    def detect_mime_type(self, content: bytes, declared: str) -> str:
        """
        Identify the upload from its leading bytes.

        Raises:
            ValidationError: the bytes are not an image, whatever the label says.
        """
        try:
            detected = magic.from_buffer(content[:SNIFF_BYTES], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise ValidationError(
                message="Could not verify file type",
                field="image",
                context={"content_type": declared},
            ) from e

        if not detected.startswith(ALLOWED_MIME_PREFIX):
            logger.warning("Upload labelled %s detected as %s", declared, detected)
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"content_type": declared, "detected": detected},
            )
        return detected

    def validate_upload(
        self,
        content: Optional[bytes],
        content_type: Optional[str],
        declared_size: Optional[int] = None,
    ) -> str:
        """
        Validate an uploaded image and return its detected MIME type.

        Raises:
            ValidationError: no file, non-image type or content, too large, or empty.
        """
        if content is None:
            raise ValidationError(message="No image file provided", field="image")
        declared = self.validate_content_type(content_type)
        self.validate_size(declared_size, len(content))
        mime = self.detect_mime_type(content, declared)
        logger.debug("Accepted upload: %s (declared %s), %d bytes", mime, declared, len(content))
        return mime
