from __future__ import annotations

from copy import deepcopy
from typing import Iterable

FONT_CHOICES = ("regular", "bold")
ALIGN_CHOICES = ("left", "center", "right")
TRANSFORM_CHOICES = ("none", "upper", "date", "number")

DEFAULT_MARK = "●"
APPLICATION_LABEL = "Application No: "
APPLICATION_BLUE = "#0000FF"
SERIAL_GRAY = "#666666"

_DEFAULT_ENTRY = {
    "field": "",
    "x": 0,
    "y": 0,
    "font": "regular",
    "size": 80,
    "color": "#000000",
    "align": "left",
    "transform": "none",
    "label": "",
    "choices": None,
    "mark": DEFAULT_MARK,
}

# Coordinates are pixels on the template images shipped with each deployment.
_CADET_LAYOUT = [
    {
        "field": "gender",
        "font": "bold",
        "size": 200,
        "choices": {"male": (635, 515), "female": (635, 617)},
    },
    {"field": "weight_category", "x": 1150, "y": 625, "size": 90},
    {"field": "name", "x": 700, "y": 820, "font": "bold", "size": 90, "transform": "upper"},
    {"field": "date_of_birth", "x": 695, "y": 950, "transform": "date"},
    {"field": "age", "x": 1325, "y": 950, "transform": "number"},
    {"field": "weight", "x": 1750, "y": 950, "transform": "number"},
    {"field": "parent_guardian_name", "x": 700, "y": 1090},
    {"field": "state", "x": 700, "y": 1225},
    {"field": "present_belt_grade", "x": 780, "y": 1500},
    {"field": "tfi_id_card_no", "x": 1740, "y": 1500},
    {"field": "academic_qualification", "x": 780, "y": 1635},
    {"field": "school_name", "x": 1740, "y": 1640, "size": 70},
    {
        "field": "entry_id",
        "x": 1500,
        "y": 380,
        "font": "bold",
        "size": 40,
        "color": APPLICATION_BLUE,
        "align": "right",
        "label": APPLICATION_LABEL,
    },
]

_POOMSAE_LAYOUT = [
    {
        "field": "division",
        "font": "bold",
        "size": 100,
        "mark": "X",
        "choices": {
            "Under 30": (625, 760),
            "Under 40": (900, 760),
            "Under 50": (1170, 760),
            "Under 60": (1430, 760),
            "Under 65": (1710, 760),
            "Over 65": (1980, 760),
            "Over 30": (2240, 760),
        },
    },
    {
        "field": "category",
        "font": "bold",
        "size": 100,
        "choices": {"Individual": (1030, 850), "Pair": (1620, 850), "Group": (2230, 850)},
    },
    {
        "field": "gender",
        "font": "bold",
        "size": 100,
        "choices": {"Male": (1035, 935), "Female": (1620, 935)},
    },
    {"field": "name", "x": 650, "y": 1110, "size": 60, "transform": "upper"},
    {"field": "state_org", "x": 650, "y": 1230, "size": 60},
    {"field": "date_of_birth", "x": 650, "y": 1350, "size": 60, "transform": "date"},
    {"field": "age", "x": 1315, "y": 1355, "size": 60, "transform": "number"},
    {"field": "weight", "x": 1730, "y": 1355, "size": 60, "transform": "number"},
    {"field": "parent_guardian_name", "x": 650, "y": 1480, "size": 60},
    {"field": "mobile_no", "x": 1970, "y": 1480, "size": 60},
    {"field": "current_belt_grade", "x": 650, "y": 1600, "size": 60},
    {"field": "tfi_id_no", "x": 1185, "y": 1600, "font": "bold", "size": 40},
    {"field": "dan_certificate_no", "x": 1970, "y": 1600, "font": "bold", "size": 40},
    {"field": "academic_qualification", "x": 750, "y": 1850, "size": 60},
    {"field": "name_of_college", "x": 1450, "y": 1850, "size": 60},
    {"field": "name_of_board_university", "x": 750, "y": 1980, "size": 60},
    {
        "field": "entry_id",
        "x": 900,
        "y": 600,
        "font": "bold",
        "size": 50,
        "color": APPLICATION_BLUE,
        "label": APPLICATION_LABEL,
    },
]

_CERTIFICATE_LAYOUT = [
    {"field": "name", "x": 800, "y": 1100, "font": "bold", "size": 90},
    {"field": "date", "x": 800, "y": 1325, "transform": "date"},
    {"field": "grade", "x": 930, "y": 1550, "font": "bold", "size": 100},
    {
        "field": "entry_id",
        "x": 1000,
        "y": 270,
        "size": 50,
        "color": SERIAL_GRAY,
        "align": "center",
    },
]

FORM_TEMPLATES = {
    "cadet": {
        "filename": "cadet-form-template.jpg",
        "page_size": (2480, 3508),
        "layout": _CADET_LAYOUT,
    },
    "poomsae": {
        "filename": "poomsae-form-template.jpg",
        "page_size": (2480, 3508),
        "layout": _POOMSAE_LAYOUT,
    },
    "certificate": {
        "filename": "certificate-template.png",
        "page_size": (2000, 1800),
        "layout": _CERTIFICATE_LAYOUT,
    },
}


def _as_int(value, field: str, key: str) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        raise ValueError(f"layout entry {field!r} has a non-numeric {key}: {value!r}")


def sanitize_layout_entry(entry: dict) -> dict:
    """Fill defaults for one layout entry and reject values the renderer can't draw."""

    if not isinstance(entry, dict) or not entry.get("field"):
        raise ValueError("layout entry needs a field name")
    clean = deepcopy(_DEFAULT_ENTRY)
    clean.update(deepcopy(entry))
    field = clean["field"]
    clean["x"] = _as_int(clean["x"], field, "x")
    clean["y"] = _as_int(clean["y"], field, "y")
    clean["size"] = _as_int(clean["size"], field, "size")
    if clean["size"] <= 0:
        raise ValueError(f"layout entry {field!r} needs a positive font size")
    if clean["font"] not in FONT_CHOICES:
        raise ValueError(f"layout entry {field!r} has unknown font {clean['font']!r}")
    if clean["align"] not in ALIGN_CHOICES:
        raise ValueError(f"layout entry {field!r} has unknown align {clean['align']!r}")
    if clean["transform"] not in TRANSFORM_CHOICES:
        raise ValueError(
            f"layout entry {field!r} has unknown transform {clean['transform']!r}"
        )
    if clean["choices"] is not None:
        clean["choices"] = {
            str(value): (_as_int(pos[0], field, "x"), _as_int(pos[1], field, "y"))
            for value, pos in clean["choices"].items()
        }
    return clean


def sanitize_layout(entries: Iterable[dict]) -> list[dict]:
    return [sanitize_layout_entry(entry) for entry in entries]


def get_template_layout(template_id: str) -> list[dict]:
    try:
        spec = FORM_TEMPLATES[template_id]
    except KeyError:
        raise KeyError(f"unknown form template {template_id!r}") from None
    return sanitize_layout(spec["layout"])
