import os

import pytest

from s3_migrate.config import EmptyObjectPolicy, FailurePolicy
from s3_migrate.errors import UploadFailed
from s3_migrate.staging import StagingArea
from s3_migrate.upload import upload_file, upload_tree


@pytest.fixture
def staging(staging_root):
    s = StagingArea(staging_root)
    s.create()
    for key, data in {"a.txt": b"hello", "dir/b.txt": b"", "dir/c.txt": b"abc", "z/last.txt": b"!"}.items():
        p = s.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    return s


def test_upload_file(destination_client, staging):
    upload_file(destination_client, "dst", staging.path_for("a.txt"), "a.txt")
    assert destination_client.objects("dst") == {"a.txt": b"hello"}


def test_upload_tree_maps_paths_to_keys(destination_client, staging):
    res = upload_tree(destination_client, "dst", staging)
    assert destination_client.objects("dst") == {"a.txt": b"hello", "dir/c.txt": b"abc", "z/last.txt": b"!"}
    assert res["skipped"] == ["dir/b.txt"]
    assert sorted(res["uploaded"]) == ["a.txt", "dir/c.txt", "z/last.txt"]


def test_upload_tree_overwrites_existing(destination_client, staging):
    destination_client.objects("dst")["a.txt"] = b"old"
    upload_tree(destination_client, "dst", staging)
    assert destination_client.objects("dst")["a.txt"] == b"hello"


def test_keep_policy_uploads_empty_files(destination_client, staging):
    upload_tree(destination_client, "dst", staging, empty_objects=EmptyObjectPolicy.KEEP)
    assert destination_client.objects("dst")["dir/b.txt"] == b""


def test_first_upload_failure_aborts_walk(destination_client, staging):
    walk_order = [key for _, key in staging.iter_files() if key != "dir/b.txt"]
    failing = walk_order[1]
    destination_client.fail_put.add(failing)

    with pytest.raises(UploadFailed) as exc:
        upload_tree(destination_client, "dst", staging)

    assert destination_client.put_calls == walk_order[:2]
    assert failing in str(exc.value)
    assert exc.value.phase == "upload"


def test_continue_policy_collects_errors(destination_client, staging):
    destination_client.fail_put.add("a.txt")
    res = upload_tree(destination_client, "dst", staging, policy=FailurePolicy.CONTINUE)
    assert sorted(res["uploaded"]) == ["dir/c.txt", "z/last.txt"]
    assert len(res["errors"]) == 1


@pytest.fixture
def unreadable_dir(monkeypatch):
    real_scandir = os.scandir

    def _scandir(path="."):
        if isinstance(path, (str, os.PathLike)) and os.path.basename(os.fspath(path)) == "dir":
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", _scandir)


def test_unreadable_directory_aborts_upload(destination_client, staging, unreadable_dir):
    with pytest.raises(UploadFailed) as exc:
        upload_tree(destination_client, "dst", staging)
    assert "Permission denied" in str(exc.value)
    assert "dir/c.txt" not in destination_client.put_calls


def test_unreadable_directory_is_collected_under_continue(destination_client, staging, unreadable_dir):
    res = upload_tree(destination_client, "dst", staging, policy=FailurePolicy.CONTINUE)
    assert sorted(res["uploaded"]) == ["a.txt", "z/last.txt"]
    assert len(res["errors"]) == 1


def test_progress_bar_counts_uploaded_files_only(destination_client, staging, monkeypatch):
    bars = []

    class _Bar:
        def __init__(self, *a, **kw):
            self.n = 0
            bars.append(self)

        def update(self, n):
            self.n += n

        def close(self):
            pass

    monkeypatch.setattr("s3_migrate.upload.tqdm", _Bar)
    upload_tree(destination_client, "dst", staging, progress=True)
    assert bars[0].n == 3
