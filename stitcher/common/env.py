import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Env:
    db_path: str
    storage_root: str
    scratch_root: str         # per-job scratch dirs live here; empty -> <storage_root>/scratch

    # editor api
    bind: str
    port: int
    basic_user: str
    basic_pass: str

    # transcoder
    ffmpeg_path: str
    transform_timeout_sec: int

    # runtime switching
    stager_backend: str       # local | gdrive
    local_origin_root: str    # used when stager_backend=local
    local_publish_root: str   # used when stager_backend=local
    public_base_url: str

    # retrieval links
    link_signing_secret: str
    link_ttl_days: int

    # gdrive stager
    gdrive_publish_folder_id: str
    gdrive_sa_json: str
    gdrive_oauth_client_json: str
    gdrive_oauth_token_json: str
    gdrive_http_timeout_sec: int  # socket timeout for every Drive call

    # reliability knobs
    max_delivery_attempts: int
    retry_backoff_sec: int
    job_lock_ttl_sec: int

    worker_sleep_sec: int

    editor_config_path: str

    # logging
    log_level: str
    log_file_max_bytes: int
    log_file_backups: int

    @staticmethod
    def load() -> "Env":
        return Env(
            db_path=os.environ.get("STITCH_DB_PATH", "data/stitcher.sqlite3"),
            storage_root=os.environ.get("STITCH_STORAGE_ROOT", "storage"),
            scratch_root=os.environ.get("STITCH_SCRATCH_ROOT", ""),

            bind=os.environ.get("EDITOR_BIND", "0.0.0.0"),
            port=int(os.environ.get("EDITOR_PORT", "8080")),
            basic_user=os.environ.get("EDITOR_BASIC_AUTH_USER", "admin"),
            basic_pass=os.environ.get("EDITOR_BASIC_AUTH_PASS", "change_me"),

            ffmpeg_path=os.environ.get("FFMPEG_PATH", "ffmpeg"),
            transform_timeout_sec=int(os.environ.get("TRANSFORM_TIMEOUT_SEC", str(5 * 60))),

            stager_backend=os.environ.get("STAGER_BACKEND", "local"),
            local_origin_root=os.environ.get("LOCAL_ORIGIN_ROOT", "local_origin"),
            local_publish_root=os.environ.get("LOCAL_PUBLISH_ROOT", "published"),
            public_base_url=os.environ.get("PUBLIC_BASE_URL", "http://localhost:8080/files"),

            link_signing_secret=os.environ.get("LINK_SIGNING_SECRET", ""),
            # ~10 years
            link_ttl_days=int(os.environ.get("LINK_TTL_DAYS", "3650")),

            gdrive_publish_folder_id=os.environ.get("GDRIVE_PUBLISH_FOLDER_ID", ""),
            gdrive_sa_json=os.environ.get("GDRIVE_SERVICE_ACCOUNT_JSON", ""),
            gdrive_oauth_client_json=os.environ.get("GDRIVE_OAUTH_CLIENT_JSON", ""),
            gdrive_oauth_token_json=os.environ.get("GDRIVE_OAUTH_TOKEN_JSON", ""),
            gdrive_http_timeout_sec=int(os.environ.get("GDRIVE_HTTP_TIMEOUT_SEC", "120")),

            max_delivery_attempts=int(os.environ.get("MAX_DELIVERY_ATTEMPTS", "5")),
            retry_backoff_sec=int(os.environ.get("RETRY_BACKOFF_SEC", "30")),
            job_lock_ttl_sec=int(os.environ.get("JOB_LOCK_TTL_SEC", str(3600))),

            worker_sleep_sec=int(os.environ.get("WORKER_SLEEP_SEC", "5")),

            editor_config_path=os.environ.get("EDITOR_CONFIG_PATH", "configs/editor.yaml"),

            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file_max_bytes=int(os.environ.get("LOG_FILE_MAX_BYTES", str(5 * 1024 * 1024))),
            log_file_backups=int(os.environ.get("LOG_FILE_BACKUPS", "5")),
        )
