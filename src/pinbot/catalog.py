# Author: PB and Claude
# Date: 2026-10-16
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/pinbot/catalog.py

"""
Published media catalog.

Fetches the library's JSON array of media descriptors and turns each entry
into an AlexandriaDescriptor or Oip041Descriptor.
"""

import logging

import requests

from pinbot.types import AlexandriaDescriptor, Descriptor, Oip041Descriptor

logger = logging.getLogger(__name__)


class MetadataFetchError(Exception):
    """The catalog could not be fetched or decoded."""


def fetch_catalog(url: str, timeout: float = 60.0) -> list:
    """
    Fetch the raw catalog.

    Args:
        url: Library endpoint returning a JSON array
        timeout: Seconds to wait for the library

    Returns:
        List of raw descriptor dicts

    Raises:
        MetadataFetchError: On transport errors, non-200 status or a body
            that is not a JSON array
    """
    logger.info("Fetching media items")
    try:
        response = requests.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise MetadataFetchError(f"Could not fetch catalog from {url}: {e}") from e

    if response.status_code != 200:
        raise MetadataFetchError(
            f"Catalog request to {url} returned HTTP {response.status_code}"
        )

    try:
        media = response.json()
    except ValueError as e:
        raise MetadataFetchError(f"Catalog from {url} is not JSON: {e}") from e

    if not isinstance(media, list):
        raise MetadataFetchError(
            f"Catalog from {url} is a {type(media).__name__}, expected a list"
        )

    logger.debug("Library refresh found %d media items", len(media))
    return media


def parse_descriptor(item) -> Descriptor:
    """
    Classify and parse one catalog entry.

    Raises:
        ValueError: If the entry matches neither schema or is malformed
    """
    if not isinstance(item, dict):
        raise ValueError(f"descriptor is a {type(item).__name__}, not an object")

    media_data = item.get("media-data")
    if isinstance(media_data, dict) and media_data.get("alexandria-media"):
        try:
            return AlexandriaDescriptor.from_catalog(item)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed alexandria-media descriptor: {e!r}") from e

    if item.get("oip-041"):
        try:
            return Oip041Descriptor.from_catalog(item)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed oip-041 descriptor: {e!r}") from e

    raise ValueError("descriptor matches no known schema")


def parse_descriptors(raw: list) -> list[Descriptor]:
    """Parse every entry, logging and dropping the ones that do not parse."""
    descriptors = []
    for index, item in enumerate(raw):
        try:
            descriptors.append(parse_descriptor(item))
        except ValueError as e:
            logger.debug("Skipping catalog entry %d: %s", index, e)
    return descriptors
