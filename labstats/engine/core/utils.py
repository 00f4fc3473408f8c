from __future__ import annotations
import io
import mimetypes
from typing import Any, Mapping, Tuple, IO, cast

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .constants import _TEMPLATE_DIR
from .types import BinaryInput

_JINJA_ENV = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml", "j2"]),
)

_MATPLOTLIB_SETUP = False
_PYLAB: Any = None


def _get_pyplot():
    global _MATPLOTLIB_SETUP, _PYLAB
    if _PYLAB is not None:
        return _PYLAB
    import matplotlib

    if not _MATPLOTLIB_SETUP:
        matplotlib.use("Agg")
        _MATPLOTLIB_SETUP = True
    import matplotlib.pyplot as plt

    _PYLAB = plt
    return plt


def _figure_png(fig) -> bytes:
    plt = _get_pyplot()
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=150)
    plt.close(fig)
    buffer.seek(0)
    return buffer.getvalue()


def _open_binary_stream(body: BinaryInput) -> Tuple[IO[bytes], bool]:
    if isinstance(body, bytes):
        return io.BytesIO(body), True
    if isinstance(body, bytearray):
        return io.BytesIO(bytes(body)), True
    if hasattr(body, "read"):
        return cast(IO[bytes], body), False
    raise TypeError("body must be bytes-like or a binary stream")


def _ensure_bytes(body: BinaryInput) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, bytearray):
        return bytes(body)
    return cast(IO[bytes], body).read()


def _format_preview(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) > 80:
        return text[:77] + "..."
    return text


def _sanitize_filename(name: str) -> str:
    sanitized = [
        ch if ch.isalnum() or ch in {"-", "_"} else "_"
        for ch in name
    ]
    collapsed = "".join(sanitized).strip("_")
    return collapsed or "column"


def _guess_content_type_for_artifact(relative_key: str, spec: Mapping[str, Any]) -> str:
    content_type = spec.get("contentType")
    if isinstance(content_type, str) and content_type:
        return content_type

    kind = spec.get("kind")
    if kind == "html":
        return "text/html"
    if kind == "text":
        return "text/plain"
    if kind == "json":
        return "application/json"
    if kind == "csv":
        return "text/csv"
    if kind == "image":
        return "image/png"

    guessed, _ = mimetypes.guess_type(relative_key)
    if guessed:
        return guessed

    return "application/octet-stream"
