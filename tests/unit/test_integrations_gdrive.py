from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, patch

from googleapiclient.errors import HttpError

from stitcher.core.errors import AssetUnavailable, PublishFailed


class _FakeDownloader:
    def __init__(self, fh, req):
        self._fh = fh
        self._req = req
        self._called = 0

    def next_chunk(self):
        self._called += 1
        if self._called == 1:
            self._fh.write(b"hello")
            return None, False
        return None, True


def _http_error(status: int = 404) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="nope"), b"{}")


class TestGDriveClientMocked(unittest.TestCase):
    def test_init_without_credentials_raises(self):
        from stitcher.integrations import gdrive as gdm

        with self.assertRaises(RuntimeError):
            gdm.DriveClient(service_account_json="", oauth_client_json="", oauth_token_json="")

    def test_init_service_account_flow(self):
        from stitcher.integrations import gdrive as gdm

        fake_creds = SimpleNamespace(valid=True)
        sa = SimpleNamespace(Credentials=SimpleNamespace(from_service_account_file=Mock(return_value=fake_creds)))
        build = Mock(return_value=SimpleNamespace(files=Mock()))
        authorized = Mock(return_value="authed-http")

        with (
            patch.object(gdm, "service_account", sa),
            patch.object(gdm, "build", build),
            patch.object(gdm, "AuthorizedHttp", authorized),
        ):
            c = gdm.DriveClient(
                service_account_json="sa.json", oauth_client_json="", oauth_token_json="", http_timeout_sec=7
            )

        self.assertIsNotNone(c)
        build.assert_called_once_with("drive", "v3", http="authed-http", cache_discovery=False)
        self.assertIs(authorized.call_args.args[0], fake_creds)
        self.assertEqual(authorized.call_args.kwargs["http"].timeout, 7)

    def test_init_oauth_refresh_flow_writes_token(self):
        from stitcher.integrations import gdrive as gdm

        with tempfile.TemporaryDirectory() as td:
            token = Path(td) / "token.json"
            client = Path(td) / "client.json"
            client.write_text("{}", encoding="utf-8")

            creds = SimpleNamespace(valid=False, expired=True, refresh_token="rt")
            creds.refresh = Mock()
            creds.to_json = Mock(return_value="{\"ok\": true}")

            with (
                patch.object(gdm, "Credentials", SimpleNamespace(from_authorized_user_file=Mock(return_value=creds))),
                patch.object(gdm, "Request", object),
                patch.object(gdm, "build", Mock(return_value=SimpleNamespace(files=Mock()))),
            ):
                gdm.DriveClient(service_account_json="", oauth_client_json=str(client), oauth_token_json=str(token))

            creds.refresh.assert_called_once()
            self.assertTrue(token.exists())

    def test_init_oauth_without_refresh_token_raises(self):
        from stitcher.integrations import gdrive as gdm

        creds = SimpleNamespace(valid=False, expired=False, refresh_token=None)
        with (
            patch.object(gdm, "Credentials", SimpleNamespace(from_authorized_user_file=Mock(return_value=creds))),
            patch.object(gdm, "build", Mock()) as build,
        ):
            with self.assertRaises(RuntimeError):
                gdm.DriveClient(service_account_json="", oauth_client_json="c.json", oauth_token_json="t.json")
        build.assert_not_called()

    def test_download_to_path(self):
        from stitcher.integrations import gdrive as gdm

        files_obj = SimpleNamespace(get_media=Mock(return_value=object()))
        c = object.__new__(gdm.DriveClient)
        c._svc = SimpleNamespace(files=Mock(return_value=files_obj))

        with patch.object(gdm, "MediaIoBaseDownload", _FakeDownloader):
            with tempfile.TemporaryDirectory() as td:
                dest = Path(td) / "sub" / "speech.mp3"
                gdm.DriveClient.download_to_path(c, "file", dest)
                self.assertEqual(dest.read_bytes(), b"hello")
        files_obj.get_media.assert_called_once_with(fileId="file")

    def test_upload_file_sets_app_properties(self):
        from stitcher.integrations import gdrive as gdm

        create = Mock(return_value=SimpleNamespace(execute=Mock(return_value={"id": "F1", "webContentLink": "https://dl/F1"})))
        c = object.__new__(gdm.DriveClient)
        c._svc = SimpleNamespace(files=Mock(return_value=SimpleNamespace(create=create)))

        with patch.object(gdm, "MediaFileUpload", Mock(return_value="media")):
            f = gdm.DriveClient.upload_file(c, Path("final.mp4"), name="v.mp4", parent_id="P", app_properties={"JobId": "j"})

        self.assertEqual(f.id, "F1")
        self.assertEqual(f.web_content_link, "https://dl/F1")
        body = create.call_args.kwargs["body"]
        self.assertEqual(body["parents"], ["P"])
        self.assertEqual(body["appProperties"], {"JobId": "j"})


class TestDriveStager(unittest.TestCase):
    def _stager(self, client):
        from stitcher.integrations.gdrive import DriveStager

        return DriveStager(client=client, publish_folder_id="folder")

    def test_fetch_accepts_prefixed_reference(self):
        client = Mock()
        st = self._stager(client)
        st.fetch("gdrive:abc", Path("x"))
        client.download_to_path.assert_called_once_with("abc", Path("x"))

    def test_fetch_maps_http_error(self):
        client = Mock()
        client.download_to_path.side_effect = _http_error()
        with self.assertRaises(AssetUnavailable):
            self._stager(client).fetch("abc", Path("x"))
        with self.assertRaises(AssetUnavailable):
            self._stager(Mock()).fetch("  ", Path("x"))

    def test_fetch_maps_socket_timeout(self):
        client = Mock()
        client.download_to_path.side_effect = TimeoutError("timed out")
        with self.assertRaises(AssetUnavailable) as ctx:
            self._stager(client).fetch("abc", Path("x"))
        self.assertIn("timed out", str(ctx.exception))

    def test_publish_shares_and_returns_link(self):
        from stitcher.integrations.gdrive import DriveFile

        client = Mock()
        client.upload_file.return_value = DriveFile(id="F", name="v.mp4", web_content_link="https://dl/F", web_view_link="")
        art = self._stager(client).publish(Path("final.mp4"), name="editor/v.mp4", metadata={"JobId": "j"}, expires_in_sec=1)

        self.assertEqual(art.reference, "gdrive:F")
        self.assertEqual(art.retrieval_url, "https://dl/F")
        client.share_read_only.assert_called_once_with("F")
        self.assertEqual(client.upload_file.call_args.kwargs["name"], "v.mp4")
        self.assertEqual(client.upload_file.call_args.kwargs["parent_id"], "folder")

    def test_publish_maps_http_error(self):
        client = Mock()
        client.upload_file.side_effect = _http_error(500)
        with self.assertRaises(PublishFailed):
            self._stager(client).publish(Path("final.mp4"), name="editor/v.mp4", metadata={}, expires_in_sec=1)


if __name__ == "__main__":
    unittest.main()
