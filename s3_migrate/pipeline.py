from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import logging

from botocore.exceptions import BotoCoreError

from .config import MigrationConfig
from .core import client_for, collect_objects
from .download import download_all
from .errors import ConfigError, MigrationError, ObjectDownloadError
from .staging import StagingArea
from .upload import upload_tree

log = logging.getLogger(__name__)


class MigrationState(str, Enum):
    INIT = "init"
    STAGING_CREATED = "staging_created"
    DOWNLOADED = "downloaded"
    UPLOADED = "uploaded"
    CLEANED_UP = "cleaned_up"
    FAILED = "failed"


@dataclass
class MigrationResult:
    state: MigrationState = MigrationState.INIT
    listed: int = 0
    downloaded: List[str] = field(default_factory=list)
    download_errors: List[str] = field(default_factory=list)
    skipped_empty: List[str] = field(default_factory=list)
    uploaded: List[str] = field(default_factory=list)
    upload_errors: List[str] = field(default_factory=list)
    staging_removed: bool = False


class MigrationPipeline:
    """
    Copy every object of the source bucket to the destination bucket through a
    local staging directory: list + download, walk + upload, remove staging.

    Phases never overlap. The staging directory is removed on every exit path
    unless options.keep_staging_on_failure asks to preserve it after a fatal error.
    """

    def __init__(self, config: MigrationConfig, source_client=None, destination_client=None):
        self.config = config
        self.state = MigrationState.INIT
        self.result = MigrationResult()
        self._source_client = source_client
        self._destination_client = destination_client

    def _to(self, state: MigrationState) -> None:
        log.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state
        self.result.state = state

    def _clients(self):
        opts = self.config.options
        try:
            if self._source_client is None:
                self._source_client = client_for(self.config.source, opts)
            if self._destination_client is None:
                self._destination_client = client_for(self.config.destination, opts)
        except BotoCoreError as e:
            raise ConfigError(f"cannot create S3 client: {e}") from e
        return self._source_client, self._destination_client

    def _download(self, s3_client, staging: StagingArea) -> None:
        src = self.config.source
        opts = self.config.options
        objects = collect_objects(s3_client, src.bucket, page_size=opts.page_size)
        self.result.listed = len(objects)
        try:
            res = download_all(
                s3_client,
                src.bucket,
                objects,
                staging,
                policy=opts.download_policy,
                empty_objects=opts.empty_objects,
                max_workers=opts.max_workers,
                progress=opts.progress,
            )
        except ObjectDownloadError as e:
            raise MigrationError(f"downloading {e}", phase="download") from e
        self.result.downloaded = res["downloaded"]
        self.result.download_errors = res["errors"]
        self.result.skipped_empty = res["skipped"]
        if res["errors"]:
            log.warning("%d objects could not be downloaded and will be missing at the destination", len(res["errors"]))

    def _upload(self, s3_client, staging: StagingArea) -> None:
        dst = self.config.destination
        opts = self.config.options
        res = upload_tree(
            s3_client,
            dst.bucket,
            staging,
            policy=opts.upload_policy,
            empty_objects=opts.empty_objects,
            progress=opts.progress,
        )
        self.result.uploaded = res["uploaded"]
        self.result.upload_errors = res["errors"]

    def run(self) -> MigrationResult:
        src_client, dst_client = self._clients()
        staging = StagingArea(self.config.staging_path, keep_on_failure=self.config.options.keep_staging_on_failure)
        try:
            with staging:
                self._to(MigrationState.STAGING_CREATED)
                self._download(src_client, staging)
                self._to(MigrationState.DOWNLOADED)
                self._upload(dst_client, staging)
                self._to(MigrationState.UPLOADED)
        except MigrationError as e:
            self.result.staging_removed = not staging.root.exists()
            self._to(MigrationState.FAILED)
            log.error("Migration failed during %s: %s", e.phase, e)
            raise
        self.result.staging_removed = True
        self._to(MigrationState.CLEANED_UP)
        log.info(
            "Migrated s3://%s -> s3://%s: downloaded=%d uploaded=%d download_errors=%d skipped_empty=%d",
            self.config.source.bucket,
            self.config.destination.bucket,
            len(self.result.downloaded),
            len(self.result.uploaded),
            len(self.result.download_errors),
            len(self.result.skipped_empty),
        )
        return self.result


def migrate(config: MigrationConfig, source_client=None, destination_client=None) -> MigrationResult:
    return MigrationPipeline(config, source_client, destination_client).run()
