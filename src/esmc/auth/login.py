"""Browser-based login.

The CLI opens the auth page in the user's browser and serves a one-shot
callback endpoint on localhost. The server redirects back to ``/callback``
with a signed JWT plus optional blessing, checksum and integrity samples;
the callback verifies everything and writes the license file.
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional
from urllib.parse import unquote, urlencode

from flask import Flask, render_template_string, request
from werkzeug.serving import make_server

from ..config.constants import CALLBACK_PORT, CALLBACK_TIMEOUT_SECONDS
from ..config.settings import get_settings
from ..core.exceptions import AuthenticationError, JWKSFetchError, TokenValidationError
from ..core.models import LicenseUser
from ..license.integrity import revoke_license, verify_integrity_samples
from ..license.manager import write_license_file
from .hardware import get_device_name, get_hardware_id, get_os_info
from .jwt_validator import verify_and_extract_user_data

logger = logging.getLogger("esmc.auth.login")

_PAGE = """<!doctype html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
    <style>
      body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; text-align: center; padding: 50px; }
      h1 { color: {{ '#28a745' if success else '#dc3545' }}; }
    </style>
  </head>
  <body>
    <h1>{{ title }}</h1>
    {% for line in lines %}<p>{{ line }}</p>{% endfor %}
    <p>You can close this window and return to your editor.</p>
  </body>
</html>
"""


@dataclass
class CallbackOutcome:
    status_code: int
    title: str
    lines: List[str]
    error: Optional[str] = None
    license_user: Optional[LicenseUser] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, status_code: int, error: str, *lines: str) -> "CallbackOutcome":
        return cls(status_code=status_code, title="Authentication Failed", lines=list(lines), error=error)


def default_roots() -> List[Path]:
    cwd = Path.cwd()
    return [cwd, cwd.parent]


def _parse_json_param(value: Optional[str], label: str) -> Any:
    if not value:
        logger.warning("%s missing (legacy authentication)", label)
        return None
    for candidate in (value, unquote(value)):
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    logger.error("%s could not be parsed", label)
    return None


def handle_callback(
    params: Mapping[str, str],
    *,
    roots: Optional[Iterable[Path]] = None,
    public_key: Optional[str] = None,
) -> CallbackOutcome:
    """Process the query parameters of an auth callback."""
    error = params.get("error")
    if error:
        logger.error("Authentication error: %s", error)
        return CallbackOutcome.failure(400, f"Authentication failed: {error}", f"Error: {error}")

    token = params.get("token")
    if not token:
        logger.error("Callback is missing its token")
        return CallbackOutcome.failure(
            400, "Missing token", "Missing authentication token. Please try again."
        )

    try:
        user = verify_and_extract_user_data(token, public_key)
    except (TokenValidationError, JWKSFetchError) as exc:
        logger.error("JWT verification failed: %s", exc)
        return CallbackOutcome.failure(
            403,
            f"JWT verification failed: {exc}",
            "JWT signature verification failed.",
            f"Error: {exc}",
        )

    if not user.hardware_id:
        logger.warning("Token carries no device binding")

    blessing = _parse_json_param(params.get("blessing"), "Blessing token")
    checksum = _parse_json_param(params.get("checksum"), "Vercel checksum")

    roots = list(roots) if roots is not None else default_roots()
    samples = _parse_json_param(params.get("samples"), "Integrity samples")
    if not isinstance(samples, list):
        if samples is not None:
            logger.warning("Integrity samples are not a list - verification skipped")
        samples = []
    if samples:
        verification = verify_integrity_samples(samples, roots)
        if not verification.success and not verification.skipped:
            logger.error("SDK integrity validation failed for %d file(s)", len(verification.failed))
            revoke_license(roots)
            return CallbackOutcome(
                status_code=403,
                title="Integrity Check Failed",
                lines=[
                    "SDK integrity validation failed.",
                    "Your SDK package may have been tampered with or corrupted.",
                ],
                error="SDK integrity validation failed",
            )

    license_user = LicenseUser(
        email=user.email,
        user_id=user.user_id,
        display_name=user.name or "ESMC User",
        tier=user.tier,
        subscription_status="active",
        subscription_end_date=user.subscription_end_date,
        composite_device_id=user.hardware_id,
        blessing=blessing if isinstance(blessing, dict) else None,
        vercel_checksum=checksum if isinstance(checksum, dict) else None,
    )
    result = write_license_file(license_user)
    if not result.success:
        # Authentication itself succeeded.
        logger.error("Failed to write license file: %s", result.error)

    first_name = (license_user.display_name or "").split(" ")[0]
    return CallbackOutcome(
        status_code=200,
        title="Authentication Successful",
        lines=[f"Welcome to ESMC SDK, {first_name}!", f"Tier: {license_user.tier}"],
        license_user=license_user,
    )


def create_callback_app(on_outcome: Callable[[CallbackOutcome], None], **handler_kwargs: Any) -> Flask:
    app = Flask(__name__)

    @app.route("/favicon.ico")
    def favicon() -> Any:
        return "", 404

    @app.route("/callback")
    def callback() -> Any:
        logger.info("Received callback: %s", request.full_path)
        outcome = handle_callback(request.args, **handler_kwargs)
        on_outcome(outcome)
        html = render_template_string(
            _PAGE, title=outcome.title, lines=outcome.lines, success=outcome.success
        )
        return html, outcome.status_code, {"Content-Type": "text/html; charset=utf-8"}

    return app


class LoginServer:
    """One-shot localhost callback server."""

    def __init__(self, *, port: int = CALLBACK_PORT, **handler_kwargs: Any):
        self.port = port
        self.outcome: Optional[CallbackOutcome] = None
        self._done = threading.Event()
        self.app = create_callback_app(self._record, **handler_kwargs)
        self._server = None
        self._thread: Optional[threading.Thread] = None

    def _record(self, outcome: CallbackOutcome) -> None:
        if self.outcome is None:
            self.outcome = outcome
        self._done.set()

    def start(self) -> None:
        try:
            self._server = make_server("127.0.0.1", self.port, self.app, threaded=True)
        except OSError as exc:
            raise AuthenticationError(
                f"Port {self.port} already in use", context={"error": str(exc)}
            ) from exc
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Callback server started on http://localhost:%d", self.port)

    def wait(self, timeout: float = CALLBACK_TIMEOUT_SECONDS) -> CallbackOutcome:
        if not self._done.wait(timeout):
            raise AuthenticationError("Authentication timeout", context={"seconds": timeout})
        if self.outcome is None:
            raise AuthenticationError("Authentication failed")
        return self.outcome

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server = None


def build_auth_url(hardware_id: str, state: str, *, port: int = CALLBACK_PORT) -> str:
    query = urlencode(
        {"session": hardware_id, "state": state, "port": port, "hardwareId": hardware_id}
    )
    return f"{get_settings().auth_url}?{query}"


def login(*, timeout: float = CALLBACK_TIMEOUT_SECONDS, open_browser: bool = True) -> LicenseUser:
    """Run the browser login and return the licensed user."""
    hardware_id = get_hardware_id()
    logger.info(
        "Logging in from %s (%s), hardware %s...",
        get_device_name(),
        get_os_info(),
        hardware_id[:16],
    )
    auth_url = build_auth_url(hardware_id, secrets.token_hex(16))

    server = LoginServer()
    server.start()
    try:
        if not open_browser or not webbrowser.open(auth_url):
            logger.warning("Open this URL in your browser to continue: %s", auth_url)
        outcome = server.wait(timeout)
    finally:
        server.stop()

    if not outcome.success or outcome.license_user is None:
        raise AuthenticationError(outcome.error or "Authentication failed")
    logger.info("Login successful for %s (%s tier)", outcome.license_user.email, outcome.license_user.tier)
    return outcome.license_user
