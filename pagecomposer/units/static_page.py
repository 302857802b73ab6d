from __future__ import annotations

import os

from composekit.units import UnitContext, UnitRef
from composekit.views import HtmlView

KIND_ID = "pages.static"

# Set by the app to the directory relative config paths resolve against.
BASE_DIR_KEY = "app.base_dir"

NOT_FOUND_HTML = "<!DOCTYPE html><html><head><title>Not found</title></head><body><h1>Not found</h1></body></html>"


def _pages_dir(raw: str, base_dir: str | None) -> str:
    expanded = os.path.expandvars(os.path.expanduser(raw.strip()))
    if not os.path.isabs(expanded):
        expanded = os.path.join(base_dir or os.getcwd(), expanded)
    return os.path.abspath(expanded)


def _page_file(pages_dir: str, path: str, index: str) -> str | None:
    relative = path.strip("/") or index
    candidate = os.path.abspath(os.path.join(pages_dir, relative + ".html"))
    if os.path.commonpath([pages_dir, candidate]) != pages_dir:
        return None
    if not os.path.isfile(candidate):
        # `/blog` may also be served by `blog/<index>.html`.
        nested = os.path.abspath(os.path.join(pages_dir, relative, index + ".html"))
        if os.path.isfile(nested) and os.path.commonpath([pages_dir, nested]) == pages_dir:
            return nested
    return candidate


def _run(ctx: UnitContext) -> HtmlView:
    """Render `<pages_dir>/<path>.html` as the page document."""

    store = ctx.config
    pages_dir = _pages_dir(
        store.get_str(ctx.unit_key("pages_dir"), default=None) or "pages",
        store.get_str(BASE_DIR_KEY, default=None),
    )
    index = store.get_str(ctx.unit_key("index"), default=None) or "index"

    page_file = _page_file(pages_dir, ctx.path, index)
    if page_file is None or not os.path.isfile(page_file):
        ctx.logger.warning("No page for %r under %s", ctx.path, pages_dir)
        return HtmlView(store.get_str(ctx.unit_key("not_found_html"), default=None) or NOT_FOUND_HTML)

    with open(page_file, "r", encoding="utf-8") as handle:
        return HtmlView(handle.read())


UNIT = UnitRef(
    id=KIND_ID,
    fn=_run,
    doc="Main page unit: renders a static HTML file matching the request path.",
    defaults={"pages_dir": "pages", "index": "index"},
    tags=("page",),
)
