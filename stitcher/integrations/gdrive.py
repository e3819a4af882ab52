from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import httplib2
from google.auth.transport.requests import Request
from google_auth_httplib2 import AuthorizedHttp
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload

from stitcher.common.logging_setup import get_logger
from stitcher.core.errors import AssetUnavailable, PublishFailed
from stitcher.core.models import PublishedArtifact

SCOPES = ["https://www.googleapis.com/auth/drive"]

log = get_logger("stager.gdrive")


@dataclass(frozen=True)
class DriveFile:
    id: str
    name: str
    web_content_link: str
    web_view_link: str


class DriveClient:
    def __init__(
        self,
        *,
        service_account_json: str,
        oauth_client_json: str,
        oauth_token_json: str,
        http_timeout_sec: int = 120,
    ):
        creds = None
        if service_account_json:
            creds = service_account.Credentials.from_service_account_file(service_account_json, scopes=SCOPES)
        elif oauth_client_json and oauth_token_json:
            creds = Credentials.from_authorized_user_file(oauth_token_json, SCOPES)
            if not creds.valid:
                if creds.expired and creds.refresh_token:
                    creds.refresh(Request())
                else:
                    raise RuntimeError(
                        f"Drive OAuth token {oauth_token_json} is not usable; mint one with scripts/gdrive_oauth_token.py"
                    )
                Path(oauth_token_json).parent.mkdir(parents=True, exist_ok=True)
                Path(oauth_token_json).write_text(creds.to_json(), encoding="utf-8")
        else:
            raise RuntimeError("Drive auth not configured. Set GDRIVE_SERVICE_ACCOUNT_JSON or OAuth files.")

        # every request, including each download chunk, is bounded by the socket timeout
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=http_timeout_sec))
        self._svc = build("drive", "v3", http=http, cache_discovery=False)

    def download_to_path(self, file_id: str, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        req = self._svc.files().get_media(fileId=file_id)
        fh = io.FileIO(dest, "wb")
        try:
            downloader = MediaIoBaseDownload(fh, req)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        finally:
            fh.close()

    def upload_file(
        self,
        src: Path,
        *,
        name: str,
        parent_id: Optional[str],
        app_properties: Dict[str, str],
        mime_type: str = "video/mp4",
    ) -> DriveFile:
        body: Dict[str, object] = {"name": name, "appProperties": dict(app_properties)}
        if parent_id:
            body["parents"] = [parent_id]
        media = MediaFileUpload(str(src), mimetype=mime_type, resumable=True)
        res = (
            self._svc.files()
            .create(body=body, media_body=media, fields="id,name,webContentLink,webViewLink")
            .execute()
        )
        return DriveFile(
            id=str(res["id"]),
            name=str(res.get("name") or name),
            web_content_link=str(res.get("webContentLink") or ""),
            web_view_link=str(res.get("webViewLink") or ""),
        )

    def share_read_only(self, file_id: str) -> None:
        self._svc.permissions().create(
            fileId=file_id,
            body={"type": "anyone", "role": "reader"},
            fields="id",
        ).execute()


class DriveStager:
    """Fetches by Drive file id, publishes into a Drive folder.

    Drive "anyone with the link" permissions cannot carry an expiry, so the
    retrieval link stays valid until the file is unshared.
    """

    def __init__(self, *, client: DriveClient, publish_folder_id: str = ""):
        self.client = client
        self.publish_folder_id = publish_folder_id

    def fetch(self, reference: str, dest: Path) -> Path:
        file_id = str(reference or "").strip()
        if file_id.startswith("gdrive:"):
            file_id = file_id.split(":", 1)[1]
        if not file_id:
            raise AssetUnavailable("empty asset reference")
        try:
            self.client.download_to_path(file_id, dest)
        except (HttpError, OSError) as e:
            raise AssetUnavailable(f"drive download failed for {file_id}: {e}") from e
        return dest

    def publish(self, src: Path, *, name: str, metadata: Dict[str, str], expires_in_sec: int) -> PublishedArtifact:
        try:
            f = self.client.upload_file(
                src,
                name=Path(name).name,
                parent_id=self.publish_folder_id or None,
                app_properties=metadata,
            )
            self.client.share_read_only(f.id)
        except HttpError as e:
            raise PublishFailed(f"drive upload failed for {name}: {e}") from e
        log.info("published %s to drive file_id=%s", name, f.id)
        return PublishedArtifact(
            reference=f"gdrive:{f.id}",
            retrieval_url=f.web_content_link or f.web_view_link,
            metadata=dict(metadata),
        )
