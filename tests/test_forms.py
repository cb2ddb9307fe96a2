import os
import re
from datetime import date

import pytest
from PIL import Image

from tkd.errors import RenderIOError, TemplateMissing
from tkd.shared import forms
from tkd.shared.fields import CADET_FIELDS, CERTIFICATE_FIELDS, POOMSAE_FIELDS
from tkd.shared.forms import render_form, transform_value, write_blank_template
from tkd.shared.forms_layout import (
    FORM_TEMPLATES,
    get_template_layout,
    sanitize_layout_entry,
)
from tkd.shared.storage import save_image_atomic

CERT_VALUES = {
    "entry_id": "000-000-001",
    "name": "Asha Menon",
    "date": date(2024, 3, 9),
    "grade": "1st Dan",
}


def _full_size_certificate(app, tmp_path):
    path = str(tmp_path / "full-certificate.png")
    write_blank_template("certificate", path)
    app.config["FORM_TEMPLATES"]["certificate"] = path
    return path


def test_render_writes_png_named_after_entry(app):
    rendered = render_form("certificate", CERT_VALUES)
    assert re.fullmatch(r"certificate_000-000-001_\d{13}\.png", rendered.file_name)
    assert rendered.url == f"/uploads/certificate/{rendered.file_name}"
    assert rendered.file_path == os.path.join(
        app.config["UPLOAD_ROOT"], "certificate", rendered.file_name
    )
    with Image.open(rendered.file_path) as image:
        assert image.format == "PNG"


def test_render_draws_text_at_layout_positions(app, tmp_path):
    _full_size_certificate(app, tmp_path)
    rendered = render_form("certificate", CERT_VALUES)
    with Image.open(rendered.file_path) as image:
        rgb = image.convert("RGB")
        name_band = rgb.crop((790, 1040, 1600, 1160))
        empty_band = rgb.crop((100, 1650, 500, 1750))
        assert min(low for low, _ in name_band.getextrema()) < 128
        assert all(low == 255 for low, _ in empty_band.getextrema())


def test_missing_template_raises_and_writes_nothing(app, tmp_path):
    app.config["FORM_TEMPLATES"]["cadet"] = str(tmp_path / "nope.jpg")
    with pytest.raises(TemplateMissing):
        render_form("cadet", {"entry_id": "CAD-000001", "name": "X"})
    assert not os.path.exists(os.path.join(app.config["UPLOAD_ROOT"], "cadet"))


def test_unreadable_template_is_reported_as_missing(app, tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    app.config["FORM_TEMPLATES"]["certificate"] = str(broken)
    with pytest.raises(TemplateMissing):
        render_form("certificate", CERT_VALUES)


def test_write_failure_raises_render_io_error(app, monkeypatch):
    def fail(image, path, fmt="PNG"):
        raise OSError("disk full")

    monkeypatch.setattr(forms, "save_image_atomic", fail)
    with pytest.raises(RenderIOError):
        render_form("certificate", CERT_VALUES)
    out_dir = os.path.join(app.config["UPLOAD_ROOT"], "certificate")
    assert not os.path.isdir(out_dir) or os.listdir(out_dir) == []


def test_interrupted_save_leaves_no_partial_file(tmp_path):
    class HalfWritten:
        def save(self, fp, format=None):
            with open(fp, "wb") as fh:
                fh.write(b"\x89PNG half")
            raise OSError("disk full")

    target = tmp_path / "out" / "form.png"
    with pytest.raises(OSError):
        save_image_atomic(HalfWritten(), str(target))
    assert os.listdir(tmp_path / "out") == []


def test_saved_image_replaces_target_in_one_step(tmp_path):
    target = tmp_path / "out" / "form.png"
    save_image_atomic(Image.new("RGB", (20, 10), "white"), str(target))
    save_image_atomic(Image.new("RGB", (30, 10), "white"), str(target))
    assert os.listdir(tmp_path / "out") == ["form.png"]
    with Image.open(target) as image:
        assert image.size == (30, 10)


def test_transform_value():
    assert transform_value(date(2012, 5, 14), "date") == "14-05-2012"
    assert transform_value("2012-05-14", "date") == "14-05-2012"
    assert transform_value(41.0, "number") == "41"
    assert transform_value(41.5, "number") == "41.5"
    assert transform_value("arjun", "upper") == "ARJUN"
    assert transform_value(None, "none") == ""


def test_layout_entry_defaults_and_validation():
    entry = sanitize_layout_entry({"field": "name", "x": "10", "y": 20.4})
    assert entry["x"] == 10 and entry["y"] == 20
    assert entry["font"] == "regular" and entry["align"] == "left"
    with pytest.raises(ValueError):
        sanitize_layout_entry({"field": "name", "font": "comic"})
    with pytest.raises(ValueError):
        sanitize_layout_entry({"x": 1})


@pytest.mark.parametrize(
    "template_id, specs",
    [("cadet", CADET_FIELDS), ("poomsae", POOMSAE_FIELDS), ("certificate", CERTIFICATE_FIELDS)],
)
def test_layouts_only_reference_known_fields(template_id, specs):
    known = {spec.attr for spec in specs} | {"entry_id"}
    fields = [entry["field"] for entry in get_template_layout(template_id)]
    assert "entry_id" in fields
    assert set(fields) <= known


def test_choice_values_match_field_choices():
    layout = {entry["field"]: entry for entry in get_template_layout("poomsae")}
    divisions = next(spec for spec in POOMSAE_FIELDS if spec.key == "division").choices
    assert set(layout["division"]["choices"]) == set(divisions)
    assert set(FORM_TEMPLATES) == {"cadet", "poomsae", "certificate"}
