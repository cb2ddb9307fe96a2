from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Mapping

from flask import current_app
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..errors import RenderIOError, TemplateMissing
from .forms_layout import FORM_TEMPLATES, get_template_layout
from .storage import form_url, save_image_atomic, upload_dir
from .time import epoch_millis, fmt_form_date

_FONT_PATHS = {
    "regular": "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "bold": "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
}
_DEFAULT_FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

log = logging.getLogger("tkd.forms")


@dataclass(frozen=True)
class RenderedForm:
    file_name: str
    file_path: str
    url: str


@lru_cache(maxsize=64)
def _load_font(style: str, size: int):
    path = _FONT_PATHS.get(style, _DEFAULT_FONT_PATH)
    if os.path.exists(path):
        return ImageFont.truetype(path, size)
    log.warning("[FORM] font %s missing; using Pillow default font", path)
    return ImageFont.load_default(size=size)


def template_path(template_id: str) -> str:
    configured = current_app.config.get("FORM_TEMPLATES") or {}
    path = configured.get(template_id)
    if not path:
        filename = FORM_TEMPLATES[template_id]["filename"]
        path = os.path.join(current_app.config["TEMPLATE_DIR"], filename)
    return path


def artifact_file_name(kind: str, entry_id: str, moment: datetime | None = None) -> str:
    return f"{kind}_{entry_id}_{epoch_millis(moment)}.png"


def transform_value(value: Any, transform: str) -> str:
    if value is None:
        return ""
    if transform == "date":
        return fmt_form_date(value)
    if transform == "number":
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    text = str(value).strip()
    if transform == "upper":
        return text.upper()
    return text


def _draw_entry(draw: ImageDraw.ImageDraw, entry: dict, values: Mapping[str, Any]) -> None:
    value = values.get(entry["field"])
    if entry["choices"] is not None:
        if value is None:
            return
        position = entry["choices"].get(str(value))
        if position is None:
            return
        x, y = position
        text = entry["mark"]
    else:
        text = transform_value(value, entry["transform"])
        if not text:
            return
        text = f"{entry['label']}{text}"
        x, y = entry["x"], entry["y"]

    font = _load_font(entry["font"], entry["size"])
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    width = right - left
    height = bottom - top
    if entry["align"] == "center":
        x -= width / 2
    elif entry["align"] == "right":
        x -= width
    # y is the vertical middle of the text
    y = y - top - height / 2
    draw.text((x - left, y), text, font=font, fill=entry["color"])


def render_form(template_id: str, field_values: Mapping[str, Any]) -> RenderedForm:
    """Draw ``field_values`` onto the template image and write the PNG.

    ``field_values`` must carry ``entry_id``; it is printed on the form and
    becomes part of the artifact file name. The file is written atomically so
    a failure never leaves a partial image behind.
    """

    entry_id = field_values["entry_id"]
    path = template_path(template_id)
    layout = get_template_layout(template_id)
    if not os.path.isfile(path):
        current_app.logger.error(
            "[FORM] template missing template=%s path=%s", template_id, path
        )
        raise TemplateMissing()
    try:
        with Image.open(path) as template:
            canvas = template.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        current_app.logger.error(
            "[FORM] template unreadable template=%s path=%s error=%s", template_id, path, exc
        )
        raise TemplateMissing() from exc

    draw = ImageDraw.Draw(canvas)
    for entry in layout:
        _draw_entry(draw, entry, field_values)

    file_name = artifact_file_name(template_id, entry_id)
    out_dir = upload_dir(current_app.config["UPLOAD_ROOT"], template_id)
    file_path = os.path.join(out_dir, file_name)
    try:
        save_image_atomic(canvas, file_path)
    except (OSError, ValueError) as exc:
        current_app.logger.error(
            "[FORM] write failed template=%s entry_id=%s path=%s error=%s",
            template_id,
            entry_id,
            file_path,
            exc,
        )
        raise RenderIOError() from exc

    current_app.logger.info("[FORM] rendered template=%s file=%s", template_id, file_name)
    return RenderedForm(
        file_name=file_name, file_path=file_path, url=form_url(template_id, file_name)
    )


def write_blank_template(template_id: str, path: str, size: tuple[int, int] | None = None) -> str:
    """Write a plain placeholder template so a fresh deployment can render forms."""

    spec = FORM_TEMPLATES[template_id]
    width, height = size or spec["page_size"]
    image = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(image)
    margin = max(10, min(width, height) // 40)
    draw.rectangle(
        (margin, margin, width - margin, height - margin), outline="#1f3a93", width=4
    )
    title = f"{template_id.upper()} FORM"
    font = _load_font("bold", max(12, min(width, height) // 25))
    left, top, right, _ = draw.textbbox((0, 0), title, font=font)
    draw.text(
        ((width - (right - left)) / 2 - left, margin * 3 - top), title, font=font, fill="#1f3a93"
    )
    fmt = "JPEG" if path.lower().endswith((".jpg", ".jpeg")) else "PNG"
    save_image_atomic(image, path, fmt)
    return path
