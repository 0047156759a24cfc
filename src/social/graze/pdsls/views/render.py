"""Rendering collaborators for views.

Views hand values and list items to a renderer and never format anything themselves. The default
renderer produces pretty-printed JSON and plain link lines, which is what the CLI prints.
"""

from dataclasses import asdict, dataclass
import json
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from social.graze.pdsls.address import MalformedInput, is_did, parse_address

BLOB_CDN = "https://cdn.bsky.app/img/feed_thumbnail/plain"


@dataclass
class ListItem:
    label: str
    href: str
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ValueRenderer(Protocol):
    def render_value(self, value: Any, repo: str) -> str: ...

    def render_item(self, item: ListItem) -> str: ...


def _walk(value: Any, pointer: str = "") -> Iterator[Tuple[str, Any]]:
    yield pointer, value
    if isinstance(value, dict):
        for key, child in value.items():
            yield from _walk(child, f"{pointer}/{key}")
    elif isinstance(value, list):
        for index, child in enumerate(value):
            yield from _walk(child, f"{pointer}/{index}")


def value_links(value: Any, repo: str) -> List[Dict[str, str]]:
    """Navigable links found inside a record value.

    AT-URIs and DIDs link to their route. Image blobs link to the CDN under the owning repo.
    """
    links: List[Dict[str, str]] = []
    for pointer, node in _walk(value):
        href: Optional[str] = None
        if isinstance(node, str) and node.startswith("at://"):
            try:
                href = parse_address(node).to_route().to_path()
            except MalformedInput:
                href = None
        elif isinstance(node, str) and is_did(node) and " " not in node:
            href = f"/at/{node}"
        elif (
            isinstance(node, dict)
            and node.get("$type") == "blob"
            and str(node.get("mimeType", "")).startswith("image/")
            and isinstance(node.get("ref"), dict)
            and "$link" in node["ref"]
        ):
            href = f"{BLOB_CDN}/{repo}/{node['ref']['$link']}"
        if href is not None:
            links.append({"pointer": pointer or "/", "href": href})
    return links


class JsonValueRenderer:
    def __init__(self, indent: int = 2) -> None:
        self._indent = indent

    def render_value(self, value: Any, repo: str) -> str:
        return json.dumps(value, indent=self._indent, ensure_ascii=False)

    def render_item(self, item: ListItem) -> str:
        marker = "" if item.active else "[inactive] "
        return f"{marker}{item.label}  {item.href}"
