"""Turn documents into display-ready HTML.

Markdown goes through Python-Markdown, source files through Pygments, and
the search listing through a small autoescaped Jinja2 template.
"""

from __future__ import annotations

import asyncio
import logging
from html import escape
from pathlib import Path
from typing import Tuple
from urllib.parse import quote

import markdown
from jinja2 import Environment, select_autoescape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name, get_lexer_for_filename
from pygments.util import ClassNotFound

from hads.index.indexer import SearchIndex

LOGGER = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "sane_lists", "codehilite"]
MARKDOWN_EXTENSION_CONFIGS = {"codehilite": {"css_class": "highlight", "guess_lang": False}}
SEARCH_RESULTS_TITLE = "Search results"

_SEARCH_TEMPLATE = """\
<p class="search-summary">{{ count }} result{{ "" if count == 1 else "s" }} for <strong>{{ query }}</strong></p>
{% if results %}
<ul class="search-results">
{% for result in results %}
  <li>
    <a class="search-title" href="{{ result.route | urlquote }}">{{ result.title }}</a>
    <span class="search-route">{{ result.route }}</span>
    <p class="search-excerpt">{{ result.excerpt }}</p>
  </li>
{% endfor %}
</ul>
{% else %}
<p>No document matches your query.</p>
{% endif %}
"""


class Renderer:
    """Render documents and search results for the page templates."""

    def __init__(self, index: SearchIndex, *, style: str = "default") -> None:
        self.index = index
        self.formatter = HtmlFormatter(style=style, cssclass="highlight")
        env = Environment(autoescape=select_autoescape(default_for_string=True))
        env.filters["urlquote"] = lambda value: quote(value)
        self._search_template = env.from_string(_SEARCH_TEMPLATE)

    def highlight_css(self) -> str:
        return self.formatter.get_style_defs(".highlight")

    async def render_markdown(self, text: str) -> str:
        return markdown.markdown(
            text,
            extensions=MARKDOWN_EXTENSIONS,
            extension_configs=MARKDOWN_EXTENSION_CONFIGS,
            output_format="html",
        )

    async def render_file(self, path: Path) -> str:
        text = await self.render_raw(path)
        return await self.render_markdown(text)

    async def render_raw(self, path: Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def render_image_file(self, route: str) -> str:
        source = escape(quote(route) + "?raw=1")
        name = escape(Path(route).name)
        return f'<p class="media"><img src="{source}" alt="{name}"></p>'

    async def render_source_code(self, path: Path, lang: str) -> str:
        code = await self.render_raw(path)
        lexer = self._lexer_for(Path(path), lang)
        return highlight(code, lexer, self.formatter)

    async def render_search(self, query: str) -> Tuple[str, int]:
        results = await asyncio.to_thread(self.index.search, query)
        html = self._search_template.render(query=query, results=results, count=len(results))
        return html, len(results)

    @staticmethod
    def _lexer_for(path: Path, lang: str):
        try:
            return get_lexer_by_name(lang)
        except ClassNotFound:
            pass
        try:
            return get_lexer_for_filename(path.name)
        except ClassNotFound:
            LOGGER.debug("No lexer for %s, rendering as plain text", path)
            return TextLexer()
