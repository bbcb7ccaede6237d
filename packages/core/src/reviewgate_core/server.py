"""Short-lived local HTTP server for one review session.

Handles:
- Port binding with a bounded, fixed-delay retry on EADDRINUSE
- The session API (/session, /session/diff/switch, /session/decision, ...)
- Serving the client bundle for every other path so client-side routing works
- Handing the reviewer's verdict to the launching process via DecisionChannel

Handlers are plain ``def`` functions, so FastAPI runs them on its threadpool
and requests are served concurrently. The only shared mutable state is the
DiffSessionManager and the DecisionChannel, each of which serializes its own
writes.
"""

from __future__ import annotations

import errno
import logging
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from pydantic import BaseModel, Field, StrictBool

from reviewgate_core.config import (
    get_server_host,
    get_server_port,
    is_remote_session,
    load_client_bundle,
)
from reviewgate_core.decision import DecisionChannel
from reviewgate_core.errors import (
    DiffSwitchFailed,
    InvalidDiffType,
    MalformedAnnotation,
    PortExhausted,
    UploadFailed,
)
from reviewgate_core.feedback import export_plan_feedback, export_review_feedback
from reviewgate_core.models import Annotation, Decision
from reviewgate_core.sharing.merge import import_share
from reviewgate_core.sharing.payload import format_url_size, generate_share_url

if TYPE_CHECKING:
    from reviewgate_core.diff_session import DiffSessionManager
    from reviewgate_core.git.repo import RepoInfo
    from reviewgate_store.base import AssetStore

logger = logging.getLogger(__name__)

DEFAULT_DENY_FEEDBACK = "Plan rejected by user"
PORT_HINT = "set REVIEWGATE_PORT to use a different port"

_STARTUP_TIMEOUT = 10.0
_STOP_JOIN_TIMEOUT = 5.0

# Every unmatched path serves the client, whatever the method.
_BUNDLE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ---------------------------------------------------------------------- #
# Port binding                                                             #
# ---------------------------------------------------------------------- #


def bind_socket(
    host: str,
    port: int,
    attempts: int = 5,
    delay: float = 0.5,
    hint: str = PORT_HINT,
    sleep: Callable[[float], None] = time.sleep,
) -> socket.socket:
    """Bind and listen on ``host:port``, retrying only while the port is in use.

    Makes exactly ``attempts`` bind attempts separated by a fixed ``delay``
    before raising PortExhausted. Any other OSError propagates on the first
    attempt.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(128)
            return sock
        except OSError as e:
            sock.close()
            if e.errno != errno.EADDRINUSE:
                raise
            if attempt == attempts:
                logger.error("Port %d still in use after %d attempts", port, attempts)
                raise PortExhausted(port, attempts, hint) from e
            logger.warning(
                "Port %d in use (attempt %d/%d). Retrying in %.1fs...",
                port,
                attempt,
                attempts,
                delay,
            )
            sleep(delay)

    raise AssertionError("unreachable")


# ---------------------------------------------------------------------- #
# HTTP application                                                         #
# ---------------------------------------------------------------------- #


class DiffSwitchBody(BaseModel):
    diffType: str | None = None


class DecisionBody(BaseModel):
    approved: StrictBool
    feedback: str | None = None
    extra: dict[str, str] = Field(default_factory=dict)
    annotations: list[Any] = Field(default_factory=list)


class ShareBody(BaseModel):
    annotations: list[Any] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)


class ImportBody(BaseModel):
    url: str
    annotations: list[Any] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)


@dataclass
class SessionState:
    """Everything the request handlers need for one session."""

    document: str
    channel: DecisionChannel
    store: AssetStore
    client_html: str
    origin: str = "claude-code"
    mode: str = "plan"
    diff_session: DiffSessionManager | None = None
    repo_info: RepoInfo | None = None
    sharing_enabled: bool = True
    share_base_url: str = "https://share.reviewgate.dev"

    def current_document(self) -> str:
        if self.diff_session is not None:
            return self.diff_session.current().raw_patch
        return self.document


def _parse_annotations(items: list[Any]) -> list[Annotation]:
    return [Annotation.from_dict(item) for item in items]


def _render_feedback(mode: str, annotations: list[Annotation]) -> str:
    if mode == "review":
        return export_review_feedback(annotations)
    return export_plan_feedback(annotations)


def create_app(state: SessionState) -> FastAPI:
    app = FastAPI(title="reviewgate session", docs_url=None, redoc_url=None, openapi_url=None)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"detail": detail or "Invalid request"})

    @app.get("/session")
    def get_session():
        payload: dict[str, Any] = {
            "origin": state.origin,
            "mode": state.mode,
            "sharingEnabled": state.sharing_enabled,
        }
        if state.diff_session is not None:
            # Read the view once so document and diffInfo always agree.
            view = state.diff_session.current()
            git_context = state.diff_session.git_context
            payload["document"] = view.raw_patch
            payload["diffInfo"] = {
                **view.to_dict(),
                "gitContext": git_context.to_dict() if git_context else None,
            }
        else:
            payload["document"] = state.document
        if state.repo_info is not None:
            payload["repoContext"] = state.repo_info.to_dict()
        return payload

    @app.post("/session/diff/switch")
    def switch_diff(body: DiffSwitchBody):
        if state.diff_session is None:
            raise HTTPException(status_code=400, detail="This session is not reviewing a diff")
        if not body.diffType:
            raise HTTPException(status_code=400, detail="Missing diffType")
        try:
            view = state.diff_session.switch_to(body.diffType)
        except InvalidDiffType as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except DiffSwitchFailed as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return view.to_dict()

    @app.post("/session/decision")
    def submit_decision(body: DecisionBody):
        try:
            annotations = _parse_annotations(body.annotations)
        except MalformedAnnotation as e:
            # The verdict matters more than the attached annotations.
            logger.warning("Dropping annotations attached to decision: %s", e)
            annotations = []

        feedback = body.feedback
        if not feedback and annotations:
            feedback = _render_feedback(state.mode, annotations)
        if not body.approved and not feedback:
            feedback = DEFAULT_DENY_FEEDBACK

        state.channel.resolve(
            Decision(approved=body.approved, feedback=feedback, extra=dict(body.extra), annotations=annotations)
        )
        return {"ok": True}

    @app.post("/session/upload")
    def upload(file: UploadFile | None = File(None)):
        if file is None:
            raise HTTPException(status_code=400, detail="No file provided")
        try:
            ref = state.store.save(file.filename or "", file.file.read())
        except UploadFailed as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        except Exception as e:
            logger.warning("Upload failed (%s): %s", type(e).__name__, e)
            raise HTTPException(status_code=500, detail=f"Upload failed: {e}") from e
        return {"ref": ref}

    @app.get("/session/asset")
    def get_asset(ref: str | None = None):
        from reviewgate_store.base import AssetNotFound

        if not ref:
            raise HTTPException(status_code=400, detail="Missing ref parameter")
        try:
            path = state.store.resolve(ref)
        except AssetNotFound as e:
            raise HTTPException(status_code=404, detail="File not found") from e
        try:
            with open(path, "rb"):
                pass
        except OSError as e:
            logger.warning("Asset %s is not readable: %s", ref, e)
            raise HTTPException(status_code=500, detail="Failed to read file") from e
        return FileResponse(path)

    @app.post("/session/share")
    def create_share(body: ShareBody):
        if not state.sharing_enabled:
            raise HTTPException(status_code=403, detail="Sharing is disabled for this session")
        try:
            annotations = _parse_annotations(body.annotations)
        except MalformedAnnotation as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        url = generate_share_url(state.current_document(), annotations, body.attachments, state.share_base_url)
        return {"url": url, "token": url.split("#", 1)[1], "size": format_url_size(url)}

    @app.post("/session/import")
    def import_link(body: ImportBody):
        if not state.sharing_enabled:
            raise HTTPException(status_code=403, detail="Sharing is disabled for this session")
        try:
            local = _parse_annotations(body.annotations)
        except MalformedAnnotation as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return import_share(body.url, local, body.attachments).to_dict()

    @app.api_route("/{full_path:path}", methods=_BUNDLE_METHODS, response_class=HTMLResponse)
    def client_bundle(full_path: str):
        return HTMLResponse(state.client_html)

    return app


# ---------------------------------------------------------------------- #
# Server lifecycle                                                         #
# ---------------------------------------------------------------------- #


class SessionServer:
    """One review session: bind, serve, wait for a verdict, stop.

    Typical use from a launcher::

        server = SessionServer(plan, config).start()
        try:
            decision = server.wait_for_decision()
        finally:
            server.stop()
    """

    def __init__(
        self,
        document: str,
        config: dict,
        mode: str = "plan",
        diff_session: DiffSessionManager | None = None,
        repo_info: RepoInfo | None = None,
        store: AssetStore | None = None,
        client_html: str | None = None,
    ):
        if mode == "review" and diff_session is None:
            raise ValueError("A review session needs a DiffSessionManager")
        self.document = document
        self.config = config
        self.mode = mode
        self.diff_session = diff_session
        self.repo_info = repo_info
        self.store = store
        self.client_html = client_html
        self.channel: DecisionChannel | None = None
        self.port: int | None = None

        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._stop_lock = threading.Lock()
        self._stopped = False

    @property
    def is_remote(self) -> bool:
        return is_remote_session(self.config)

    @property
    def url(self) -> str:
        if self.port is None:
            raise RuntimeError("Server has not been started")
        return f"http://localhost:{self.port}"

    def _build_store(self) -> AssetStore:
        if self.store is not None:
            return self.store
        from reviewgate_store.local import LocalAssetStore

        return LocalAssetStore(self.config.get("upload_dir"), allow_external=not self.is_remote)

    def start(self) -> SessionServer:
        """Bind the port and start serving on a background thread.

        Raises PortExhausted when the configured port stays busy, or the
        underlying OSError for any other bind failure. The decision channel
        only exists once the bind has succeeded.
        """
        if self._server is not None:
            raise RuntimeError("Server already started")

        client_html = self.client_html if self.client_html is not None else load_client_bundle(self.config)
        sock = bind_socket(
            get_server_host(self.config),
            get_server_port(self.config),
            attempts=int(self.config.get("port_retries", 5)),
            delay=float(self.config.get("port_retry_delay", 0.5)),
        )
        self._socket = sock
        self.port = sock.getsockname()[1]
        self.channel = DecisionChannel()

        state = SessionState(
            document=self.document,
            channel=self.channel,
            store=self._build_store(),
            client_html=client_html,
            origin=self.config.get("origin", "claude-code"),
            mode=self.mode,
            diff_session=self.diff_session,
            repo_info=self.repo_info,
            sharing_enabled=bool(self.config.get("sharing_enabled", True)),
            share_base_url=self.config.get("share_base_url") or "https://share.reviewgate.dev",
        )
        uv_config = uvicorn.Config(
            create_app(state),
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(uv_config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name=f"reviewgate-server-{self.port}",
            daemon=True,
        )
        self._thread.start()
        self._wait_until_serving()
        logger.info("Review session (%s) listening on %s", self.mode, self.url)
        return self

    def _wait_until_serving(self) -> None:
        deadline = time.monotonic() + _STARTUP_TIMEOUT
        while not self._server.started:
            if not self._thread.is_alive():
                self.stop()
                raise RuntimeError("Review server exited during startup")
            if time.monotonic() > deadline:
                self.stop()
                raise RuntimeError(f"Review server did not start within {_STARTUP_TIMEOUT:.0f}s")
            time.sleep(0.01)

    def wait_for_decision(self, timeout: float | None = None) -> Decision | None:
        """Block the calling thread until the reviewer decides (or timeout)."""
        if self.channel is None:
            raise RuntimeError("Server has not been started")
        return self.channel.wait(timeout)

    def stop(self) -> None:
        """Shut the server down. Safe to call repeatedly and before start()."""
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        if self._server is not None:
            self._server.should_exit = True
            # Do not wait for in-flight requests or open keep-alive connections.
            self._server.force_exit = True
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=_STOP_JOIN_TIMEOUT)
        if self._socket is not None:
            self._socket.close()
        logger.debug("Review session on port %s stopped", self.port)

    def __enter__(self) -> SessionServer:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
