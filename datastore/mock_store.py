from __future__ import annotations
import json
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import unquote

import httpx


class MockDocumentStore:
    """In-memory key-path document store speaking the ``{path}.json`` REST dialect.

    Mount it in an ``httpx.AsyncClient`` through :meth:`transport`.
    """

    def __init__(
        self,
        persistence_path: Optional[Path] = None,
        valid_tokens: Optional[Set[str]] = None,
    ) -> None:
        self._documents: Dict[str, Any] = {}
        self.requests: List[Tuple[str, str, Optional[str]]] = []
        self.persistence_path = persistence_path
        self.valid_tokens = valid_tokens
        self._rejections: Dict[str, int] = {}
        self._outages: Set[str] = set()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put(self, path: str, document: Any) -> None:
        with self._lock:
            self._documents[path.strip("/")] = json.loads(json.dumps(document))
            self._persist()

    def get(self, path: str) -> Optional[Any]:
        with self._lock:
            document = self._documents.get(path.strip("/"))
            if document is None:
                return None
            return json.loads(json.dumps(document))

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)

    def writes_to(self, path: str) -> int:
        path = path.strip("/")
        with self._lock:
            return sum(1 for method, p, _ in self.requests if method == "PUT" and p == path)

    def reject(self, path_prefix: str, status_code: int = 503) -> None:
        """Answer requests under ``path_prefix`` with ``status_code``."""
        with self._lock:
            self._rejections[path_prefix.strip("/")] = status_code

    def take_offline(self, path_prefix: str) -> None:
        """Fail requests under ``path_prefix`` with a connection error."""
        with self._lock:
            self._outages.add(path_prefix.strip("/"))

    def restore(self) -> None:
        with self._lock:
            self._rejections.clear()
            self._outages.clear()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        # Decode segment by segment so an escaped "/" stays inside its key.
        raw_path = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
        if not raw_path.endswith(".json"):
            return httpx.Response(404, json={"error": "404 Not Found"})
        path = "/".join(
            unquote(segment) for segment in raw_path[: -len(".json")].strip("/").split("/")
        )
        token = request.url.params.get("auth")

        with self._lock:
            self.requests.append((request.method, path, token))
            offline = any(path.startswith(prefix) for prefix in self._outages)
            rejected = next(
                (code for prefix, code in self._rejections.items() if path.startswith(prefix)),
                None,
            )

        if offline:
            raise httpx.ConnectError("store unreachable", request=request)
        if rejected is not None:
            return httpx.Response(rejected, json={"error": "Service Unavailable"})
        if self.valid_tokens is not None and token not in self.valid_tokens:
            return httpx.Response(401, json={"error": "Permission denied"})

        if request.method == "PUT":
            document = json.loads(request.content or b"null")
            self.put(path, document)
            return httpx.Response(200, json=document)
        if request.method == "GET":
            return httpx.Response(200, json=self.get(path))
        return httpx.Response(405, json={"error": "Method not allowed"})

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._documents, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        self._documents.update(data)
