"""
OptiTax - Document Encoder
==========================
Turns uploaded files into base64 payloads for the AI request.

All files of a run are read concurrently; the run waits for every read and
fails as soon as one of them fails.
"""

import asyncio
import base64
import logging
from typing import Any, Iterable, List

from errors import DocumentReadError
from models import EncodedPayload
from tax_constants import DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)


async def encode_file(upload: Any) -> EncodedPayload:
    """
    Read one uploaded file completely and base64-encode it.

    Args:
        upload: Object exposing name, type and getvalue() (Streamlit
            UploadedFile or models.UploadedFile)

    Returns:
        EncodedPayload with the declared MIME type, or image/png if none

    Raises:
        DocumentReadError: If the content cannot be read
    """
    name = getattr(upload, "name", "") or "document"
    try:
        content = await asyncio.to_thread(upload.getvalue)
    except OSError as e:
        raise DocumentReadError(name, str(e)) from e

    if content is None:
        raise DocumentReadError(name, "no content")

    mime_type = getattr(upload, "type", None) or DEFAULT_MIME_TYPE
    logger.debug(f"Encoded '{name}' ({mime_type}, {len(content)} bytes)")

    return EncodedPayload(
        data=base64.b64encode(content).decode("ascii"),
        mime_type=mime_type,
        name=name,
    )


async def encode_files(uploads: Iterable[Any]) -> List[EncodedPayload]:
    """Encode every upload concurrently, keeping the selection order."""
    return list(await asyncio.gather(*(encode_file(u) for u in uploads)))
