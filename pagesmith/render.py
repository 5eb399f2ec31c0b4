from __future__ import annotations

import re
from typing import Callable, Iterator, Mapping, NamedTuple, Union

from .content import render_markdown
from .templates import DEFAULT_LAYOUT, TemplateStore

CONTENT_RE = re.compile(r"\{\{\s*content\s*\}\}", re.IGNORECASE)
TOKEN_RE = re.compile(r"\{\{\s*([A-Za-z0-9_/-]+)\s*\}\}")
BODY_CLOSE_RE = re.compile(r"</body>", re.IGNORECASE)
LIVERELOAD_PATH = "/livereload"
RELOAD_SCRIPT = f"""<script>
    (function(){{
      const es = new EventSource('{LIVERELOAD_PATH}');
      es.addEventListener('reload', function(){{ location.reload(); }});
    }})();
  </script></body>"""


class Token(NamedTuple):
    name: str
    raw: str


Segment = Union[str, Token]


def tokenize(text: str) -> Iterator[Segment]:
    position = 0
    for match in TOKEN_RE.finditer(text):
        if match.start() > position:
            yield text[position : match.start()]
        yield Token(match.group(1), match.group(0))
        position = match.end()
    if position < len(text):
        yield text[position:]


def resolve_token(token: Token, metadata: Mapping[str, str], store: Mapping[str, str]) -> str:
    if token.name in store:
        return store[token.name]
    if token.name in metadata:
        return metadata[token.name]
    return token.raw


def apply_tokens(text: str, metadata: Mapping[str, str], store: Mapping[str, str]) -> str:
    # Inserted text is not rescanned, so tokens inside a partial stay literal.
    parts = []
    for segment in tokenize(text):
        if isinstance(segment, Token):
            parts.append(resolve_token(segment, metadata, store))
        else:
            parts.append(segment)
    return "".join(parts)


def merge_content(layout_html: str, body_html: str) -> str:
    # A callable replacement keeps backslashes in the body literal.
    return CONTENT_RE.sub(lambda _match: body_html, layout_html)


def render_page(
    body: str,
    is_markdown: bool,
    metadata: Mapping[str, str],
    store: TemplateStore,
    to_html: Callable[[str], str] = render_markdown,
) -> str:
    body_html = to_html(body) if is_markdown else body
    layout_name = metadata.get("layout") or DEFAULT_LAYOUT
    layout_html = store.layout(layout_name)
    merged = merge_content(layout_html, body_html)
    return apply_tokens(merged, metadata, store)


def inject_reload_script(html_text: str) -> str:
    return BODY_CLOSE_RE.sub(lambda _match: RELOAD_SCRIPT, html_text, count=1)
