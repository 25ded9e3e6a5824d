import pytest
from botocore.exceptions import ClientError

from thats_my_recruiter.services.errors import StoreError
from thats_my_recruiter.services.object_store import LocalObjectStore, R2ObjectStore


def test_local_upload_url_and_remove(tmp_path):
    store = LocalObjectStore(tmp_path, public_base_url="https://cdn.example.com/")

    key = store.upload("user-1/123-resume.pdf", b"%PDF-1.7")

    assert key == "user-1/123-resume.pdf"
    assert (tmp_path / "documents" / key).read_bytes() == b"%PDF-1.7"
    assert store.get_public_url(key) == "https://cdn.example.com/user-1/123-resume.pdf"

    store.remove([key])
    assert not (tmp_path / "documents" / key).exists()


def test_local_upload_refuses_overwrite_and_traversal(tmp_path):
    store = LocalObjectStore(tmp_path)
    store.upload("u/a.txt", b"one")

    with pytest.raises(StoreError):
        store.upload("u/a.txt", b"two")
    with pytest.raises(StoreError):
        store.upload("../escape.txt", b"nope")


def test_local_url_without_base_is_a_file_uri(tmp_path):
    store = LocalObjectStore(tmp_path)
    key = store.upload("u/a.txt", b"one")

    assert store.get_public_url(key).startswith("file://")


class FakeS3Client:
    def __init__(self, fail=False):
        self.fail = fail
        self.put_calls = []
        self.delete_calls = []

    def put_object(self, **kwargs):
        if self.fail:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.put_calls.append(kwargs)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://signed.example.com/{Params['Bucket']}/{Params['Key']}?ttl={ExpiresIn}"

    def delete_objects(self, Bucket, Delete):
        self.delete_calls.append((Bucket, Delete))


def test_r2_store_prefixes_keys_and_presigns_urls(monkeypatch):
    monkeypatch.delenv("R2_PUBLIC_BASE_URL", raising=False)
    client = FakeS3Client()
    store = R2ObjectStore(bucket="tmr", client=client, url_expiration=60)

    key = store.upload("u/resume.pdf", b"data", content_type="application/pdf")

    assert key == "u/resume.pdf"
    assert client.put_calls[0]["Key"] == "documents/u/resume.pdf"
    assert client.put_calls[0]["ContentType"] == "application/pdf"
    assert store.get_public_url(key) == "https://signed.example.com/tmr/documents/u/resume.pdf?ttl=60"

    store.remove([key])
    assert client.delete_calls == [("tmr", {"Objects": [{"Key": "documents/u/resume.pdf"}], "Quiet": True})]


def test_r2_store_wraps_client_errors():
    store = R2ObjectStore(bucket="tmr", client=FakeS3Client(fail=True))

    with pytest.raises(StoreError):
        store.upload("u/resume.pdf", b"data")


def test_r2_store_requires_a_bucket(monkeypatch):
    monkeypatch.delenv("R2_BUCKET_NAME", raising=False)

    with pytest.raises(StoreError):
        R2ObjectStore(client=FakeS3Client())
