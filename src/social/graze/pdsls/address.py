"""Address normalization and navigation routes.

Turns loosely formatted user input (PDS URLs, AT-URIs, bsky.app links, bare handles and DIDs)
into a canonical Address, and maps addresses to and from the navigation path that serves as
their serialized form.
"""

from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, model_validator
from yarl import URL

RESOLVE_SENTINEL = "at"
"""Route value for the PDS segment meaning "resolve the repository's PDS"."""

POST_COLLECTION = "app.bsky.feed.post"

SOCIAL_APP_PREFIXES = (
    "https://bsky.app/",
    "https://main.bsky.dev/",
)

PROFILE_PREFIXES = (
    "https://bsky.app/profile/",
    "https://main.bsky.dev/profile/",
)


class MalformedInput(ValueError):
    """
    Raised when raw input cannot be normalized into an Address.

    The message is suitable for showing to the user as-is.
    """

    @staticmethod
    def empty() -> "MalformedInput":
        return MalformedInput("error-pdsls-address-1000 Input is empty")

    @staticmethod
    def identifier_missing(raw: str) -> "MalformedInput":
        return MalformedInput(
            f"error-pdsls-address-1001 No repository identifier in {raw!r}"
        )

    @staticmethod
    def too_many_segments(raw: str) -> "MalformedInput":
        return MalformedInput(
            f"error-pdsls-address-1002 Too many path segments in {raw!r}"
        )

    @staticmethod
    def collection_missing(raw: str) -> "MalformedInput":
        return MalformedInput(
            f"error-pdsls-address-1004 Record key without a collection in {raw!r}"
        )

    @staticmethod
    def invalid_route(path: str) -> "MalformedInput":
        return MalformedInput(f"error-pdsls-address-1003 Invalid route {path!r}")


class AddressScheme(str, Enum):
    endpoint = "endpoint"
    at_uri = "at-uri"


class Address(BaseModel):
    """
    Canonical address of something browsable.

    An endpoint address carries only a host (bare server browsing). An AT-URI address carries
    an identifier and optionally a collection and a record key.
    """

    scheme: AddressScheme
    host: Optional[str] = None
    identifier: Optional[str] = None
    collection: Optional[str] = None
    record_key: Optional[str] = None

    @model_validator(mode="after")
    def check_depth(self) -> "Address":
        if self.scheme == AddressScheme.endpoint:
            if not self.host:
                raise ValueError("endpoint address requires a host")
            if self.identifier or self.collection or self.record_key:
                raise ValueError("endpoint address cannot carry repository parts")
        else:
            if not self.identifier:
                raise ValueError("at-uri address requires an identifier")
            if self.host:
                raise ValueError("at-uri address cannot carry a host")
            if self.record_key and not self.collection:
                raise ValueError("record key requires a collection")
        return self

    def to_route(self) -> "RouteParams":
        if self.scheme == AddressScheme.endpoint:
            return RouteParams(pds=self.host)
        return RouteParams(
            pds=RESOLVE_SENTINEL,
            repo=self.identifier,
            collection=self.collection,
            rkey=self.record_key,
        )

    def to_uri(self) -> str:
        if self.scheme == AddressScheme.endpoint:
            return f"https://{self.host}"
        parts = [self.identifier, self.collection, self.record_key]
        return "at://" + "/".join(p for p in parts if p)


class RouteParams(BaseModel):
    """
    Path parameters of a navigation route.

    `pds` is either a literal endpoint host or the "at" sentinel.
    """

    pds: str
    repo: Optional[str] = None
    collection: Optional[str] = None
    rkey: Optional[str] = None

    @model_validator(mode="after")
    def check_depth(self) -> "RouteParams":
        if not self.pds:
            raise ValueError("route requires a pds segment")
        if self.collection and not self.repo:
            raise ValueError("collection requires a repo")
        if self.rkey and not self.collection:
            raise ValueError("rkey requires a collection")
        if self.pds == RESOLVE_SENTINEL and not self.repo:
            raise ValueError("the resolve sentinel requires a repo")
        return self

    @property
    def resolves_pds(self) -> bool:
        return self.pds == RESOLVE_SENTINEL

    @property
    def depth(self) -> int:
        return 1 + sum(1 for p in (self.repo, self.collection, self.rkey) if p)

    def to_path(self) -> str:
        parts = [self.pds, self.repo, self.collection, self.rkey]
        return "/" + "/".join(p for p in parts if p)

    @staticmethod
    def from_path(path: str) -> "RouteParams":
        segments = [s for s in path.strip("/").split("/") if s]
        if len(segments) == 0 or len(segments) > 4:
            raise MalformedInput.invalid_route(path)
        segments += [None] * (4 - len(segments))
        try:
            return RouteParams(
                pds=segments[0],
                repo=segments[1],
                collection=segments[2],
                rkey=segments[3],
            )
        except ValueError as e:
            raise MalformedInput.invalid_route(path) from e

    def breadcrumbs(self, pds_host: Optional[str] = None) -> List[Tuple[str, Optional[str]]]:
        """
        Label and link for each level above and including the current one.

        The last crumb has no link. `pds_host` replaces the sentinel once the PDS is known.
        """
        crumbs: List[Tuple[str, Optional[str]]] = []
        host = pds_host if self.resolves_pds else self.pds
        if host:
            crumbs.append((host, f"/{host}"))
        if self.repo:
            crumbs.append((self.repo, f"/{RESOLVE_SENTINEL}/{self.repo}"))
        if self.collection:
            crumbs.append(
                (self.collection, f"/{RESOLVE_SENTINEL}/{self.repo}/{self.collection}")
            )
        if self.rkey:
            crumbs.append((self.rkey, None))
        if crumbs:
            crumbs[-1] = (crumbs[-1][0], None)
        return crumbs


def is_did(identifier: str) -> bool:
    return identifier.startswith("did:")


def endpoint_host(url: str) -> Optional[str]:
    """Host and explicit port of a URL. Paths, queries and credentials are dropped."""
    try:
        parsed = URL(url)
    except ValueError:
        return None
    if not parsed.host:
        return None
    if parsed.explicit_port is not None:
        return f"{parsed.host}:{parsed.explicit_port}"
    return parsed.host


def parse_address(raw: str) -> Address:
    """Normalize free-form input into an Address.

    Args:
        raw: PDS URL, AT-URI (at:// optional), bsky.app profile or post link, handle or DID

    Returns:
        Address for the input

    Raises:
        MalformedInput: if no identifier or host can be extracted, if the path has more than
            three segments (identifier, collection, record key), or if a record key is given
            without a collection
    """
    value = (raw or "").strip()
    if not value:
        raise MalformedInput.empty()

    if value.startswith(("https://", "http://")) and not value.startswith(
        SOCIAL_APP_PREFIXES
    ):
        host = endpoint_host(value)
        if not host:
            raise MalformedInput.identifier_missing(raw)
        return Address(scheme=AddressScheme.endpoint, host=host)

    uri = value.removeprefix("at://").removeprefix("@")
    for prefix in PROFILE_PREFIXES:
        uri = uri.removeprefix(prefix)
    uri = uri.replace("/post/", f"/{POST_COLLECTION}/")

    segments = uri.split("/")
    while len(segments) > 1 and segments[-1] == "":
        segments.pop()

    if len(segments) > 3:
        raise MalformedInput.too_many_segments(raw)

    identifier = segments[0]
    if not identifier or identifier.startswith(("https:", "http:")):
        raise MalformedInput.identifier_missing(raw)

    collection = segments[1] if len(segments) > 1 and segments[1] else None
    record_key = segments[2] if len(segments) > 2 and segments[2] else None
    if record_key and not collection:
        raise MalformedInput.collection_missing(raw)

    return Address(
        scheme=AddressScheme.at_uri,
        identifier=identifier,
        collection=collection,
        record_key=record_key,
    )
