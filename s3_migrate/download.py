from __future__ import annotations
from typing import Iterable, List, Tuple, Dict
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import closing
import logging
import shutil

from tqdm import tqdm

from .config import EmptyObjectPolicy, FailurePolicy
from .core import ObjectDescriptor
from .errors import ObjectDownloadError
from .staging import StagingArea
from .utils import ensure_dir

log = logging.getLogger(__name__)


def download_object(s3_client, bucket: str, key: str, dst_path: str | Path) -> Path:
    """
    Fetch one object and stream it to dst_path, creating parent directories.
    A partially written file is removed if the transfer fails.
    """
    dst = Path(dst_path)
    ensure_dir(dst.parent)
    resp = s3_client.get_object(Bucket=bucket, Key=key)
    with closing(resp["Body"]) as body:
        try:
            with open(dst, "wb") as f:
                shutil.copyfileobj(body, f)
        except BaseException:
            dst.unlink(missing_ok=True)
            raise
    return dst


def is_placeholder(obj: ObjectDescriptor, empty_objects: EmptyObjectPolicy = EmptyObjectPolicy.SKIP) -> bool:
    """Zero-size objects that are not materialized: all of them under SKIP, "dir/" markers always."""
    return obj.size <= 0 and (empty_objects == EmptyObjectPolicy.SKIP or obj.key.endswith("/"))


def _plan(
    objects: Iterable[ObjectDescriptor],
    empty_objects: EmptyObjectPolicy,
) -> Tuple[List[ObjectDescriptor], List[str]]:
    todo: List[ObjectDescriptor] = []
    skipped: List[str] = []
    for obj in objects:
        if is_placeholder(obj, empty_objects):
            log.debug("Skipping empty object %s", obj.key)
            skipped.append(obj.key)
            continue
        todo.append(obj)
    return todo, skipped


def _fetch(s3_client, bucket: str, staging: StagingArea, obj: ObjectDescriptor) -> str:
    try:
        download_object(s3_client, bucket, obj.key, staging.path_for(obj.key))
    except Exception as e:
        raise ObjectDownloadError(obj.key, e) from e
    log.info("Downloaded file: %s", obj.key)
    return obj.key


def download_all(
    s3_client,
    bucket: str,
    objects: Iterable[ObjectDescriptor],
    staging: StagingArea,
    policy: FailurePolicy = FailurePolicy.CONTINUE,
    empty_objects: EmptyObjectPolicy = EmptyObjectPolicy.SKIP,
    max_workers: int = 1,
    progress: bool = False,
) -> Dict[str, List]:
    """
    Materialize every listed object under the staging root.

    With FailurePolicy.CONTINUE a failing object is logged and skipped; with
    FailurePolicy.ABORT the first ObjectDownloadError propagates. max_workers > 1
    fetches through a bounded thread pool with the same per-object semantics.
    """
    todo, skipped = _plan(objects, empty_objects)
    downloaded: List[str] = []
    errors: List[str] = []

    bar = tqdm(total=len(todo), desc="Download", unit="obj") if progress and todo else None

    def _record_error(e: ObjectDownloadError) -> None:
        log.error("Error downloading %s: %s", e.key, e.cause)
        if policy == FailurePolicy.ABORT:
            raise e
        errors.append(str(e))

    try:
        if max_workers <= 1:
            for obj in todo:
                try:
                    downloaded.append(_fetch(s3_client, bucket, staging, obj))
                except ObjectDownloadError as e:
                    _record_error(e)
                finally:
                    if bar:
                        bar.update(1)
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as ex:
                futs = [ex.submit(_fetch, s3_client, bucket, staging, obj) for obj in todo]
                try:
                    for f in as_completed(futs):
                        try:
                            downloaded.append(f.result())
                        except ObjectDownloadError as e:
                            _record_error(e)
                        finally:
                            if bar:
                                bar.update(1)
                except ObjectDownloadError:
                    for f in futs:
                        f.cancel()
                    raise
    finally:
        if bar:
            bar.close()

    return {
        "downloaded": downloaded,
        "errors": errors,
        "skipped": skipped,
        "stats": {
            "bucket": bucket,
            "dst_root": str(staging.root),
            "policy": policy.value,
            "empty_objects": empty_objects.value,
            "total": len(todo) + len(skipped),
            "downloaded": len(downloaded),
            "errors_count": len(errors),
            "skipped": len(skipped),
        },
    }
