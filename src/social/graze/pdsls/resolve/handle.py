"""AT Protocol handle and DID resolution utilities.

Resolves AT Protocol handles to DIDs using DNS TXT records and HTTPS well-known endpoints,
and DIDs to the PDS that serves their repository. Supports both did:plc and did:web.
"""

import asyncio
import logging
from enum import IntEnum
from aiohttp import ClientError, ClientSession
from pydantic import BaseModel
from aiodns import DNSResolver
from typing import Optional, Any, Dict, List
import sentry_sdk

from social.graze.pdsls.address import is_did

logger = logging.getLogger(__name__)


class SubjectType(IntEnum):
    """AT Protocol subject type enumeration.

    Identifies whether a subject is a DID or handle requiring resolution.
    """

    did_method_plc = 1
    did_method_web = 2
    did_method_other = 3
    hostname = 4


class ParsedSubject(BaseModel):
    subject_type: SubjectType
    subject: str


class ResolvedSubject(BaseModel):
    """Everything a DID document says about a subject that browsing needs."""

    did: str
    handle: Optional[str] = None
    pds: str

    @property
    def endpoint(self) -> str:
        return self.pds


class ResolutionError(Exception):
    """
    Raised when a handle or DID cannot be resolved to a serving PDS.

    Resolution is never retried; the caller decides what to tell the user.
    """

    @staticmethod
    def handle_not_resolved(handle: str) -> "ResolutionError":
        return ResolutionError(
            f"error-pdsls-resolve-1000 Handle {handle} did not resolve to a DID"
        )

    @staticmethod
    def pds_not_found(did: str) -> "ResolutionError":
        return ResolutionError(
            f"error-pdsls-resolve-1001 No PDS found in DID document for {did}"
        )

    @staticmethod
    def unsupported_method(did: str) -> "ResolutionError":
        return ResolutionError(
            f"error-pdsls-resolve-1002 Unsupported DID method for {did}"
        )

    @staticmethod
    def empty_identifier() -> "ResolutionError":
        return ResolutionError("error-pdsls-resolve-1003 Identifier is empty")


async def resolve_handle_dns(handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using DNS TXT record.

    Queries _atproto.{handle} TXT record and extracts DID from did= prefix.

    Args:
        handle: AT Protocol handle to resolve

    Returns:
        DID string if found, None if resolution fails
    """
    resolver = DNSResolver()
    try:
        results = await resolver.query(f"_atproto.{handle}", "TXT")
    except Exception as e:
        sentry_sdk.capture_exception(e)
        return None
    for result in results or []:
        text = result.text
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        if text.startswith("did="):
            return text.removeprefix("did=")
    return None


async def resolve_handle_http(session: ClientSession, handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using HTTPS well-known endpoint.

    Fetches DID from https://{handle}/.well-known/atproto-did endpoint.

    Args:
        session: HTTP client session
        handle: AT Protocol handle to resolve

    Returns:
        DID string if found, None if resolution fails
    """
    try:
        async with session.get(f"https://{handle}/.well-known/atproto-did") as resp:
            if resp.status != 200:
                return None
            body = (await resp.text()).strip()
            if is_did(body):
                return body
            return None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        return None


async def resolve_handle(session: ClientSession, handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using DNS and HTTPS concurrently.

    Attempts both DNS TXT and HTTPS well-known resolution, preferring DNS.
    """
    async with asyncio.TaskGroup() as tg:
        dns_result = tg.create_task(resolve_handle_dns(handle))
        http_result = tg.create_task(resolve_handle_http(session, handle))
    if dns_result.result() is not None:
        return dns_result.result()
    return http_result.result()


def handle_predicate(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("at://")


def pds_predicate(value: Any) -> bool:
    """Check if service entry is an AT Protocol PDS.

    Args:
        value: Service entry from DID document, which may be any JSON value

    Returns:
        True if service is AtprotoPersonalDataServer with a string endpoint
    """
    return (
        isinstance(value, dict)
        and value.get("type", None) == "AtprotoPersonalDataServer"
        and isinstance(value.get("serviceEndpoint", None), str)
    )


def _entries(body: Dict[str, Any], key: str) -> List[Any]:
    value = body.get(key, None)
    return value if isinstance(value, list) else []


def subject_from_did_document(did: str, body: Any) -> Optional[ResolvedSubject]:
    """Extract the PDS endpoint and handle from a DID document body.

    A document without a usable PDS service yields None. A missing handle is allowed.
    """
    if not isinstance(body, dict):
        return None
    pds = next(filter(pds_predicate, _entries(body, "service")), None)
    if pds is None:
        return None
    handle = next(filter(handle_predicate, _entries(body, "alsoKnownAs")), None)
    return ResolvedSubject(
        did=did,
        handle=handle.removeprefix("at://") if handle is not None else None,
        pds=pds["serviceEndpoint"].rstrip("/"),
    )


async def resolve_did_method_plc(
    plc_directory: str, session: ClientSession, did: str
) -> Optional[ResolvedSubject]:
    """Resolve did:plc DID to complete subject information.

    Fetches DID document from PLC directory and extracts handle and PDS.

    Args:
        plc_directory: PLC directory hostname
        session: HTTP client session
        did: did:plc DID to resolve

    Returns:
        ResolvedSubject if successful, None if resolution fails
    """
    async with session.get(f"https://{plc_directory}/{did}") as resp:
        if resp.status != 200:
            return None
        body = await resp.json(content_type=None)
        return subject_from_did_document(did, body)


async def resolve_did_method_web(
    session: ClientSession, did: str
) -> Optional[ResolvedSubject]:
    """Resolve did:web DID to complete subject information.

    Constructs did.json URL from DID and extracts handle and PDS.
    """

    parts = did.removeprefix("did:web:").split(":")
    if len(parts) == 0 or not parts[0]:
        return None

    if len(parts) == 1:
        parts.append(".well-known")

    url = "https://{inner}/did.json".format(inner="/".join(parts))

    async with session.get(url) as resp:
        if resp.status != 200:
            return None
        body = await resp.json(content_type=None)
        return subject_from_did_document(did, body)


async def resolve_did(
    session: ClientSession, plc_hostname: str, did: str
) -> Optional[ResolvedSubject]:
    """Resolve DID to complete subject information.

    Routes to appropriate resolver based on DID method (plc or web).

    Args:
        session: HTTP client session
        plc_hostname: PLC directory hostname for did:plc resolution
        did: DID to resolve

    Returns:
        ResolvedSubject if successful, None if unsupported or failed
    """
    try:
        if did.startswith("did:plc:"):
            return await resolve_did_method_plc(plc_hostname, session, did)
        elif did.startswith("did:web:"):
            return await resolve_did_method_web(session, did)
    except (ClientError, ValueError) as e:
        logger.warning("Error resolving DID document for %s: %s", did, e)
        sentry_sdk.capture_exception(e)
    return None


def parse_input(subject: str) -> ParsedSubject:
    """Parse and classify AT Protocol subject input.

    Normalizes input by removing prefixes and classifies as DID or handle.
    """
    subject = subject.strip()
    subject = subject.removeprefix("at://")
    subject = subject.removeprefix("@")

    if subject.startswith("did:plc:"):
        return ParsedSubject(subject_type=SubjectType.did_method_plc, subject=subject)
    elif subject.startswith("did:web:"):
        return ParsedSubject(subject_type=SubjectType.did_method_web, subject=subject)
    elif is_did(subject):
        return ParsedSubject(subject_type=SubjectType.did_method_other, subject=subject)

    return ParsedSubject(
        subject_type=SubjectType.hostname, subject=subject.lower().rstrip(".")
    )


class IdentityResolver:
    """
    Resolves a repository identifier (handle or DID) to its DID and serving PDS.

    The resolver holds no state between calls; every navigation resolves afresh.
    """

    def __init__(
        self, http_session: ClientSession, plc_hostname: str = "plc.directory"
    ) -> None:
        self._http_session = http_session
        self._plc_hostname = plc_hostname

    async def resolve_did(self, identifier: str) -> str:
        """Return the DID for an identifier, looking up handles only."""
        parsed = parse_input(identifier)
        if not parsed.subject:
            raise ResolutionError.empty_identifier()

        if parsed.subject_type != SubjectType.hostname:
            return parsed.subject

        did = await resolve_handle(self._http_session, parsed.subject)
        if not did:
            raise ResolutionError.handle_not_resolved(parsed.subject)
        return did

    async def resolve(self, identifier: str) -> ResolvedSubject:
        did = await self.resolve_did(identifier)

        if not did.startswith(("did:plc:", "did:web:")):
            raise ResolutionError.unsupported_method(did)

        resolved = await resolve_did(self._http_session, self._plc_hostname, did)
        if resolved is None or not resolved.pds:
            raise ResolutionError.pds_not_found(did)

        logger.debug("Resolved %s to %s on %s", identifier, resolved.did, resolved.pds)
        return resolved
