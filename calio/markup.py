import bleach
from markdown import markdown

# サニタイジング
# <img> などはまだ許可していないことに注意

ALLOWED_TAGS = bleach.sanitizer.ALLOWED_TAGS.union({
    "p", "br", "pre", "code", "blockquote",
    "ul", "ol", "li",
    "strong", "em", "del",
    "h1", "h2", "h3", "h4",
    "table", "thead", "tbody", "tr", "th", "td", "a",
    "div", "span", "input",
})
ALLOWED_ATTRS = {
    "a": ["href", "title", "rel"],
    "code": ["class"],
    "span": ["class"],
    "pre": ["class"],
    "div": ["class"],
    "li": ["class"],
    # pymdownx.tasklist のチェックボックス
    "input": ["type", "checked", "disabled"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

MARKDOWN_EXTENSIONS = [
    "fenced_code",
    "tables",
    "sane_lists",
    "pymdownx.superfences",
    "pymdownx.highlight",
    "pymdownx.tilde",
    "pymdownx.tasklist",
]
# コードブロックまわり
MARKDOWN_EXTENSION_CONFIGS = {
    "pymdownx.highlight": {
        "use_pygments": True,
        "noclasses": False,
        "css_class": "highlight",
    },
}


def sanitize_html(html: str) -> str:
    cleaned = bleach.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRS,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )
    return bleach.linkify(cleaned)


def render_markdown(text: str | None) -> str:
    """
    エントリ本文 (Markdown) を表示用の安全な HTML に
    """
    raw_html = markdown(
        text or "",
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
    )
    return sanitize_html(raw_html)
