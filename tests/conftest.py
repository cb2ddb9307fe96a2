import os
import pathlib
import sys
from datetime import date

import pytest
from PIL import Image

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("FLASK_SKIP_SEED", "1")

from tkd.app import create_app, db
from tkd.models import Cadet, User
from tkd.shared.constants import SUPER_ADMIN
from tkd.shared.forms_layout import FORM_TEMPLATES
from tkd.shared.rbac import issue_token

TEST_PASSWORD = "Passw0rd!"


def write_templates(template_dir: pathlib.Path, size=(600, 400)) -> None:
    template_dir.mkdir(parents=True, exist_ok=True)
    for spec in FORM_TEMPLATES.values():
        Image.new("RGB", size, "white").save(template_dir / spec["filename"])


def configure_env(tmp_path: pathlib.Path, database_url: str = "sqlite:///:memory:") -> None:
    template_dir = tmp_path / "templates"
    write_templates(template_dir)
    os.environ["DATABASE_URL"] = database_url
    os.environ["UPLOAD_ROOT"] = str(tmp_path / "uploads")
    os.environ["TEMPLATE_DIR"] = str(template_dir)


@pytest.fixture
def app(tmp_path):
    configure_env(tmp_path)
    application = create_app()
    application.config["TESTING"] = True
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    created = []

    def _make(role=SUPER_ADMIN, state=None, district=None, email=None, active=True):
        index = len(created) + 1
        user = User(
            email=email or f"user{index}@example.com",
            name=f"User {index}",
            role=role,
            state=state,
            district=district,
            is_active=active,
        )
        user.set_password(TEST_PASSWORD)
        db.session.add(user)
        db.session.commit()
        created.append(user)
        return user

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}

    return _headers


@pytest.fixture
def cadet_payload():
    def _payload(**overrides):
        payload = {
            "gender": "male",
            "weightCategory": "U-45",
            "name": "arjun nair",
            "dateOfBirth": "2012-05-14",
            "age": 12,
            "weight": 41.5,
            "parentGuardianName": "Suresh Nair",
            "state": "Kerala",
            "district": "Ernakulam",
            "presentBeltGrade": "Yellow",
            "tfiIdCardNo": "",
            "academicQualification": "Class 7",
            "schoolName": "St. Mary's School",
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def poomsae_payload():
    def _payload(**overrides):
        payload = {
            "division": "Under 30",
            "category": "Individual",
            "gender": "Female",
            "name": "meera iyer",
            "stateOrg": "Tamil Nadu Taekwondo Association",
            "district": "Chennai",
            "dateOfBirth": "1999-02-01",
            "age": 25,
            "weight": 55,
            "mobileNo": "9876543210",
            "currentBeltGrade": "1st Dan",
            "tfiIdNo": "",
        }
        payload.update(overrides)
        return payload

    return _payload


def insert_cadet(entry_id: str, **extra) -> Cadet:
    """Store a cadet row directly, bypassing the registration pipeline."""

    values = dict(
        entry_id=entry_id,
        form_file_name=f"cadet_{entry_id}_0.png",
        gender="male",
        name="Existing Cadet",
        date_of_birth=date(2012, 1, 1),
        age=12,
        weight=40,
        state="Kerala",
        district="Ernakulam",
        present_belt_grade="Yellow",
    )
    values.update(extra)
    cadet = Cadet(**values)
    db.session.add(cadet)
    db.session.commit()
    return cadet
