from __future__ import annotations
from typing import Dict, List
from pathlib import Path
import logging

from tqdm import tqdm

from .config import EmptyObjectPolicy, FailurePolicy
from .errors import UploadFailed
from .staging import StagingArea

log = logging.getLogger(__name__)


def upload_file(s3_client, bucket: str, path: str | Path, key: str) -> str:
    with open(path, "rb") as f:
        s3_client.put_object(Bucket=bucket, Key=key, Body=f)
    return key


def upload_tree(
    s3_client,
    bucket: str,
    staging: StagingArea,
    policy: FailurePolicy = FailurePolicy.ABORT,
    empty_objects: EmptyObjectPolicy = EmptyObjectPolicy.SKIP,
    progress: bool = False,
) -> Dict[str, List]:
    """
    Walk the staging tree and upload every file under the key derived from its
    relative path. Empty files are skipped unless empty_objects is KEEP.

    With FailurePolicy.ABORT the first failure raises UploadFailed and no later
    file is attempted. Existing destination objects are overwritten.
    """
    uploaded: List[str] = []
    errors: List[str] = []
    skipped: List[str] = []

    def _walk_error(e: OSError) -> None:
        log.error("Error walking %s: %s", e.filename, e)
        if policy == FailurePolicy.ABORT:
            raise UploadFailed(f"cannot read {e.filename}: {e}") from e
        errors.append(f"{e.filename}: {e}")

    bar = tqdm(desc="Upload", unit="obj") if progress else None
    try:
        for path, key in staging.iter_files(onerror=_walk_error):
            try:
                size = path.stat().st_size
                if size == 0 and empty_objects == EmptyObjectPolicy.SKIP:
                    log.debug("Skipping empty file %s", path)
                    skipped.append(key)
                    continue
                upload_file(s3_client, bucket, path, key)
            except Exception as e:
                log.error("Error uploading %s as %s: %s", path, key, e)
                if policy == FailurePolicy.ABORT:
                    raise UploadFailed(f"{path} -> s3://{bucket}/{key}: {e}") from e
                errors.append(f"{key}: {e}")
                continue
            log.info("Uploaded file: %s", key)
            uploaded.append(key)
            if bar:
                bar.update(1)
    finally:
        if bar:
            bar.close()

    return {
        "uploaded": uploaded,
        "errors": errors,
        "skipped": skipped,
        "stats": {
            "bucket": bucket,
            "src_root": str(staging.root),
            "policy": policy.value,
            "empty_objects": empty_objects.value,
            "uploaded": len(uploaded),
            "errors_count": len(errors),
            "skipped": len(skipped),
        },
    }
