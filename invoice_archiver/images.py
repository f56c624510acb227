"""Inline image embedding for self-contained archive HTML."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Optional, Sequence

from .models import Attachment
from .utils import to_data_uri

logger = logging.getLogger(__name__)

_CID_SRC = re.compile(r"""src\s*=\s*(?P<quote>["'])cid:(?P<cid>[^"']*)(?P=quote)""", re.IGNORECASE)
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)

APPENDED_IMAGE_BLOCK = (
    '<div style="margin-top:16px"><img src="{src}" alt="{alt}" style="max-width:100%"></div>'
)


def plain_text_html(text: str) -> str:
    """Wrap escaped plain text in a minimal HTML document."""
    escaped = html.escape(text or "")
    return (
        "<html><head><meta charset='UTF-8'></head>"
        f"<body><pre style='white-space:pre-wrap;font-family:sans-serif'>{escaped}</pre></body></html>"
    )


def normalize_cid(value: Optional[str]) -> str:
    return (value or "").strip().strip("<>").strip().lower()


def append_before_body_close(document: str, fragment: str) -> str:
    """Insert a fragment before the last </body> tag, or at the end."""
    closing = None
    for closing in _BODY_CLOSE.finditer(document):
        pass
    if closing is None:
        return document + fragment
    return document[: closing.start()] + fragment + document[closing.start() :]


def _name_variants(name: str) -> list[str]:
    lowered = (name or "").strip().lower()
    stem = PurePath(lowered).stem if lowered else ""
    variants = [lowered, stem, lowered.replace(".", ""), stem.replace(".", "")]
    unique: list[str] = []
    for variant in variants:
        if variant and variant not in unique:
            unique.append(variant)
    return unique


@dataclass
class _EmbedPass:
    """Per-call matching state; never reused between calls."""

    images: Sequence[Attachment]
    data_uris: list[str]
    used: list[bool] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.used = [False] * len(self.images)

    def match(self, cid: str) -> Optional[int]:
        for index, image in enumerate(self.images):
            if not self.used[index] and image.content_id and normalize_cid(image.content_id) == cid:
                return index
        for index, image in enumerate(self.images):
            if self.used[index]:
                continue
            if any(variant in cid or cid in variant for variant in _name_variants(image.name)):
                return index
        return None

    def next_unused(self) -> Optional[int]:
        for index, used in enumerate(self.used):
            if not used:
                return index
        return None


def _substitute(state: _EmbedPass, match: re.Match) -> str:
    cid = normalize_cid(match.group("cid"))
    index = state.match(cid) if cid else None
    if index is None:
        index = state.next_unused()
        if index is None:
            logger.debug("No image left for cid '%s'; leaving reference as is", cid)
            return match.group(0)
        logger.debug(
            "No image matched cid '%s'; substituting '%s'", cid, state.images[index].name
        )
    state.used[index] = True
    quote = match.group("quote")
    return f"src={quote}{state.data_uris[index]}{quote}"


def embed_images(body_html: str, images: Sequence[Attachment], plain_text: str = "") -> str:
    """Replace cid: image references with data URIs and append leftover images.

    Every image ends up visible in the result: references are matched by
    content id, then by file name, then by position; images that no reference
    claimed are appended at the end of the body.
    """
    document = body_html or plain_text_html(plain_text)
    if not images:
        return document

    state = _EmbedPass(
        images=images,
        data_uris=[to_data_uri(image.content, image.mime_type) for image in images],
    )
    document = _CID_SRC.sub(lambda match: _substitute(state, match), document)

    leftovers = [
        APPENDED_IMAGE_BLOCK.format(src=state.data_uris[index], alt=html.escape(image.name, quote=True))
        for index, image in enumerate(images)
        if not state.used[index]
    ]
    if leftovers:
        logger.debug("Appending %d unreferenced image(s)", len(leftovers))
        document = append_before_body_close(document, "".join(leftovers))
    return document
