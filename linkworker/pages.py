import html
from pathlib import Path

from fastapi.responses import FileResponse, HTMLResponse

FRONTEND_DIR = Path(__file__).parent / "frontend"

PAGE_404 = (FRONTEND_DIR / "404.html").read_text(encoding="utf-8")
PAGE_302 = (FRONTEND_DIR / "302.html").read_text(encoding="utf-8")


class HTMLPage(HTMLResponse):
    media_type = "text/html;charset=UTF-8"


def not_found() -> HTMLPage:
    return HTMLPage(PAGE_404, status_code=404)

def interstitial(url: str) -> HTMLPage:
    """Client-side redirect page that keeps our host out of the Referer header."""
    return HTMLPage(PAGE_302.replace("{url}", html.escape(url, quote=True)))

def asset(name: str):
    path = FRONTEND_DIR / name
    if not path.is_file():
        return not_found()
    return FileResponse(path)
