from __future__ import annotations
from s3_migrate.config import load_config
from s3_migrate.errors import setup_logging
from s3_migrate.pipeline import migrate

if __name__ == "__main__":
    setup_logging()
    cfg = load_config("config/config.yaml")
    res = migrate(cfg)
    print("Downloaded:", len(res.downloaded), "Uploaded:", len(res.uploaded))
    if res.download_errors:
        print("Download errors:", len(res.download_errors))
