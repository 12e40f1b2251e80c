from __future__ import annotations

import io

import pytest

from sagadb.apps.accounts.models import AccountRole, User
from sagadb.apps.certificates import models, services, storage
from sagadb.apps.policy.errors import Forbidden, PayloadTooLarge, ValidationFailed


@pytest.fixture()
def storage_root(tmp_path, monkeypatch):
    root = tmp_path.resolve()
    monkeypatch.setattr(storage, "STORAGE_PATH", root)
    return root


def _upload(
    db_session,
    actor,
    profile,
    *,
    name="intyg.pdf",
    content_type="application/pdf",
    body=b"%PDF-1.4 test",
    **data,
):
    return services.upload_certificate(
        db_session,
        actor=actor,
        data={"trainee_profile_id": profile.id, **data},
        file_name=name,
        content_type=content_type,
        source=io.BytesIO(body),
    )


def test_upload_stores_file_and_metadata(db_session, make_trainee, storage_root):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    certificate = _upload(
        db_session,
        owner,
        profile,
        type=models.CertificateType.KURSINTYG,
        title="Kurs i akut omhändertagande",
    )

    assert certificate.type == models.CertificateType.KURSINTYG
    assert certificate.file_size == len(b"%PDF-1.4 test")
    assert certificate.mime_type == "application/pdf"
    assert certificate.file_path.startswith(f"{profile.id}/")
    assert (storage_root / certificate.file_path).read_bytes() == b"%PDF-1.4 test"


def test_type_defaults_to_ovrigt_and_mime_is_guessed(db_session, make_trainee, storage_root):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    certificate = _upload(
        db_session,
        owner,
        profile,
        name="scan.JPG",
        content_type="application/octet-stream",
        body=b"\xff\xd8",
    )

    assert certificate.type == models.CertificateType.OVRIGT
    assert certificate.mime_type == "image/jpeg"


def test_disallowed_type_is_rejected(db_session, make_trainee, storage_root):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    with pytest.raises(ValidationFailed) as excinfo:
        _upload(db_session, owner, profile, name="virus.exe", content_type="application/x-msdownload")
    assert excinfo.value.status_code == 400
    assert not any(storage_root.rglob("*.*"))


def test_oversized_upload_is_rejected_and_removed(db_session, make_trainee, storage_root, monkeypatch):
    monkeypatch.setattr(storage, "CERTIFICATE_MAX_BYTES", 8)
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    with pytest.raises(PayloadTooLarge) as excinfo:
        _upload(db_session, owner, profile, body=b"0123456789")
    assert excinfo.value.status_code == 413
    assert not [p for p in storage_root.rglob("*") if p.is_file()]
    assert db_session.query(models.Certificate).count() == 0


def test_empty_upload_is_rejected(db_session, make_trainee, storage_root):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)

    with pytest.raises(ValidationFailed):
        _upload(db_session, owner, profile, body=b"")


def test_stranger_cannot_upload(db_session, make_user, make_trainee, storage_root):
    with pytest.raises(Forbidden):
        _upload(db_session, make_user(AccountRole.TRAINEE), make_trainee())


def test_delete_removes_file(db_session, make_trainee, storage_root):
    profile = make_trainee()
    owner = db_session.get(User, profile.user_id)
    certificate = _upload(db_session, owner, profile)
    stored = storage_root / certificate.file_path

    services.delete_certificate(db_session, actor=owner, certificate_id=certificate.id)

    assert not stored.exists()
    assert db_session.get(models.Certificate, certificate.id) is None


def test_path_traversal_is_refused(storage_root):
    with pytest.raises(ValidationFailed):
        storage.absolute_path("../outside.pdf")


@pytest.mark.parametrize(
    "raw, expected",
    [(None, []), ("", []), ('["a", "b"]', ["a", "b"])],
)
def test_parse_sub_goal_ids(raw, expected):
    assert services.parse_sub_goal_ids(raw) == expected


@pytest.mark.parametrize("raw", ["not json", '{"a": 1}', "[1, 2]"])
def test_parse_sub_goal_ids_rejects_garbage(raw):
    with pytest.raises(ValidationFailed):
        services.parse_sub_goal_ids(raw)
