"""Best-effort thumbnail lookup for links in root posts."""

from __future__ import annotations

import asyncio
import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence
from urllib.parse import quote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from ding.obs import logging as obs_logging
from ding.obs import metrics as obs_metrics

logger = obs_logging.get_logger(__name__)

_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_IMAGE_KEYS = ("og:image", "og:image:url", "twitter:image", "twitter:image:src")
# Only the document head is needed; cap what we download.
_MAX_HTML_BYTES = 512 * 1024
_MAX_REDIRECTS = 5
_LOCAL_SUFFIXES = (".localhost", ".local", ".internal")

HostLookup = Callable[[str], Awaitable[Sequence[str]]]


class UnsafeTarget(Exception):
	"""The URL points at a host the server must not fetch."""


def extract_url(body: str) -> Optional[str]:
	"""First http(s) URL in ``body``, or None."""
	match = _URL_RE.search(body or "")
	return match.group(0) if match else None


def hostname_of(url: str) -> Optional[str]:
	try:
		return urlparse(url).hostname
	except ValueError:
		return None


def find_meta_image(html: str, base_url: str) -> Optional[str]:
	soup = BeautifulSoup(html, "html.parser")
	for key in _IMAGE_KEYS:
		tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
		content = tag.get("content") if tag else None
		if isinstance(content, str) and content.strip():
			return urljoin(base_url, content.strip())
	return None


def is_public_address(address: str) -> bool:
	try:
		ip = ipaddress.ip_address(address.split("%", 1)[0])
	except ValueError:
		return False
	return ip.is_global and not ip.is_multicast


async def system_lookup(host: str) -> list[str]:
	infos = await asyncio.get_running_loop().getaddrinfo(host, None, type=socket.SOCK_STREAM)
	return [info[4][0] for info in infos]


@dataclass
class ThumbnailResolver:
	"""Resolve a thumbnail from og:image/twitter:image, falling back to a favicon.

	Never raises. Network, parse and URL errors degrade to the favicon URL, or
	to no thumbnail when the link has no usable host. Only public addresses
	are fetched, and every redirect hop is checked again.
	"""

	http: httpx.AsyncClient
	favicon_template: str
	timeout: float = 3.0
	lookup: Optional[HostLookup] = None

	def favicon_for(self, url: str) -> Optional[str]:
		host = hostname_of(url)
		if not host:
			return None
		return self.favicon_template.format(host=quote(host))

	async def resolve(self, body: str) -> Optional[str]:
		url = extract_url(body)
		if url is None:
			return None
		fallback = self.favicon_for(url)
		if fallback is None:
			obs_metrics.inc_thumbnail("none")
			return None
		try:
			image = await asyncio.wait_for(self._fetch_meta_image(url), timeout=self.timeout)
		except asyncio.TimeoutError:
			logger.info("thumbnail_timeout", extra={"url": url})
			image = None
		except UnsafeTarget as exc:
			logger.info("thumbnail_target_refused", extra={"url": url, "host": str(exc)})
			image = None
		except (httpx.HTTPError, ValueError, OSError) as exc:
			logger.info("thumbnail_fetch_failed", extra={"url": url, "error": str(exc)})
			image = None
		except Exception:
			logger.warning("thumbnail_unexpected_error", exc_info=True, extra={"url": url})
			image = None
		if image:
			obs_metrics.inc_thumbnail("og")
			return image
		obs_metrics.inc_thumbnail("favicon")
		return fallback

	async def _check_target(self, url: str) -> None:
		host = hostname_of(url)
		if not host or host == "localhost" or host.endswith(_LOCAL_SUFFIXES):
			raise UnsafeTarget(host or url)
		try:
			addresses = [str(ipaddress.ip_address(host))]
		except ValueError:
			addresses = list(await (self.lookup or system_lookup)(host))
		if not addresses or not all(is_public_address(address) for address in addresses):
			raise UnsafeTarget(host)

	async def _fetch_meta_image(self, url: str) -> Optional[str]:
		for _ in range(_MAX_REDIRECTS + 1):
			await self._check_target(url)
			async with self.http.stream("GET", url, follow_redirects=False, timeout=self.timeout) as response:
				if response.is_redirect and "location" in response.headers:
					url = urljoin(url, response.headers["location"])
					continue
				if not response.is_success:
					return None
				chunks: list[bytes] = []
				size = 0
				async for chunk in response.aiter_bytes():
					chunks.append(chunk)
					size += len(chunk)
					if size >= _MAX_HTML_BYTES:
						break
				html = b"".join(chunks)[:_MAX_HTML_BYTES].decode(response.charset_encoding or "utf-8", errors="replace")
				return find_meta_image(html, url)
		logger.info("thumbnail_too_many_redirects", extra={"url": url})
		return None
