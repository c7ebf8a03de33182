"""Component discovery: reads the docs site navigation to build the catalog."""

from __future__ import annotations

import logging

import httpx
from bs4 import BeautifulSoup

from visreg.errors import DiscoveryError
from visreg.models.component import Component
from visreg.url_utils import format_name, normalize_path, slug_from_url

logger = logging.getLogger(__name__)

CATALOG_SECTIONS = ("components", "blocks")


def parse_catalog(html: str, sections: tuple[str, ...] = CATALOG_SECTIONS) -> list[Component]:
    """Extract catalog entries from navigation links, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    components: list[Component] = []
    seen: set[str] = set()

    for link in soup.find_all("a", href=True):
        path = normalize_path(link["href"])
        parts = [p for p in path.split("/") if p]
        if len(parts) != 2 or parts[0] not in sections:
            continue
        if path in seen:
            continue
        seen.add(path)

        slug = slug_from_url(path)
        label = " ".join(link.get_text(" ", strip=True).split())
        components.append(Component(
            id=slug,
            name=label or format_name(slug),
            url=path,
            category=parts[0],
        ))

    return components


async def discover_components(
    base_url: str,
    client: httpx.AsyncClient | None = None,
) -> list[Component]:
    """Fetch the docs site landing page and return every documented component.

    Raises DiscoveryError when the site cannot be read or lists nothing; no
    scope can be computed without a catalog.
    """
    owns_client = client is None
    client = client or httpx.AsyncClient(follow_redirects=True)
    url = base_url.rstrip("/") + "/"
    try:
        logger.debug("Fetching component catalog from %s", url)
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise DiscoveryError(f"Failed to load docs site {url}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    components = parse_catalog(response.text)
    if not components:
        raise DiscoveryError(f"No components found on {url}")

    logger.debug("Discovered %d component(s): %s", len(components),
                 ", ".join(c.id for c in components))
    return components
