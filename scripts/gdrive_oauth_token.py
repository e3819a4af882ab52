from __future__ import annotations

import argparse
from pathlib import Path

from google_auth_oauthlib.flow import InstalledAppFlow

from stitcher.common.env import Env
from stitcher.common.profile import load_profile_env
from stitcher.integrations.gdrive import SCOPES


def main() -> None:
    load_profile_env()
    env = Env.load()

    parser = argparse.ArgumentParser(description="Mint the Drive OAuth token used by STAGER_BACKEND=gdrive.")
    parser.add_argument("--client", default=env.gdrive_oauth_client_json, help="OAuth client secret JSON")
    parser.add_argument("--token", default=env.gdrive_oauth_token_json, help="where to write the token JSON")
    args = parser.parse_args()
    if not args.client or not args.token:
        raise SystemExit("set GDRIVE_OAUTH_CLIENT_JSON and GDRIVE_OAUTH_TOKEN_JSON (or pass --client/--token)")

    flow = InstalledAppFlow.from_client_secrets_file(args.client, SCOPES)
    creds = flow.run_local_server(port=0)

    token = Path(args.token)
    token.parent.mkdir(parents=True, exist_ok=True)
    token.write_text(creds.to_json(), encoding="utf-8")
    print(f"Saved {token}")


if __name__ == "__main__":
    main()
