# This file is part of Buildstage, a tool for staging long builds across time-boxed runs.
#
# Copyright 2025 Canonical Ltd.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# Buildstage is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# Buildstage is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# Buildstage. If not, see <http://www.gnu.org/licenses/>.

"""HTTP artifact store client.

Talks to an artifact service with this REST layout:

    GET    {base}/artifacts?name=N[&run_id=R]    -> {"artifacts": [...]}
    POST   {base}/artifacts                      multipart upload -> {"id": 123}
    GET    {base}/artifacts/{id}                 -> artifact metadata
    GET    {base}/artifacts/{id}/files/{file}    -> file body (streamed)
    DELETE {base}/artifacts/{id}

Each method makes exactly one attempt; retries belong to the caller.
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from buildstage.core.exceptions import ArtifactNotFoundError, StoreError
from buildstage.store.base import StoredArtifact

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class HttpArtifactStore:
    """Artifact store reached over HTTP with bearer-token auth."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: int = 300,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url, "artifacts", *(quote(p, safe="") for p in parts)])

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreError(message=f"{method} {url} failed: {e}") from e

        if resp.status_code == 404:
            raise ArtifactNotFoundError(message=f"{method} {url}: not found", status_code=404)
        if resp.status_code >= 400:
            raise StoreError(message=f"{method} {url}: HTTP {resp.status_code}", status_code=resp.status_code)
        return resp

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(message=f"Invalid JSON from {resp.url}: {e}", status_code=resp.status_code) from e

    def store(self, name: str, paths: list[Path], retention_days: int, run_id: str = "") -> str:
        data = {"name": name, "retention_days": str(retention_days), "run_id": run_id}
        with contextlib.ExitStack() as stack:
            try:
                files = [
                    ("files", (path.name, stack.enter_context(path.open("rb")), "application/octet-stream"))
                    for path in paths
                ]
            except OSError as e:
                raise StoreError(message=f"Cannot read upload payload: {e}") from e
            resp = self._request("POST", self._url(), data=data, files=files)

        body = self._json(resp)
        ref = body.get("id") if isinstance(body, dict) else None
        if ref is None or str(ref) == "":
            raise StoreError(message=f"Upload of {name} returned no artifact id", status_code=resp.status_code)
        return str(ref)

    def get(self, ref: str) -> StoredArtifact:
        body = self._json(self._request("GET", self._url(ref)))
        return StoredArtifact.from_dict(body)

    def fetch(self, ref: str, dest: Path) -> list[Path]:
        artifact = self.get(ref)
        dest.mkdir(parents=True, exist_ok=True)
        fetched: list[Path] = []
        for file_name in artifact.files:
            target = dest / Path(file_name).name
            resp = self._request("GET", self._url(ref, "files", file_name), stream=True)
            try:
                with target.open("wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
            except (OSError, requests.RequestException) as e:
                raise StoreError(message=f"Download of {file_name} from artifact {ref} failed: {e}") from e
            finally:
                resp.close()
            fetched.append(target)
        return fetched

    def list_by_name(self, name: str, run_id: str | None = None) -> list[StoredArtifact]:
        params = {"name": name}
        if run_id is not None:
            params["run_id"] = run_id
        body = self._json(self._request("GET", self._url(), params=params))
        entries = body.get("artifacts", []) if isinstance(body, dict) else []
        artifacts = [StoredArtifact.from_dict(entry) for entry in entries]
        # Some services match by prefix; only exact names count.
        return [a for a in artifacts if a.name == name]

    def delete(self, ref: str) -> None:
        self._request("DELETE", self._url(ref))
