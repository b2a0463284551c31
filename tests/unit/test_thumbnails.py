from __future__ import annotations

import asyncio
from urllib.parse import quote

import httpx
import pytest

from ding.content.infra import thumbnails
from ding.content.infra.thumbnails import ThumbnailResolver, extract_url, find_meta_image, is_public_address

FAVICON = "https://icons.example/{host}.png"


async def _public_lookup(host: str) -> list[str]:
	return ["93.184.216.34"]


def _resolver(handler, *, timeout: float = 1.0, lookup=_public_lookup) -> ThumbnailResolver:
	client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	return ThumbnailResolver(http=client, favicon_template=FAVICON, timeout=timeout, lookup=lookup)


def test_extract_url_takes_the_first_link():
	assert extract_url("see https://a.example/x?y=1 and http://b.example") == "https://a.example/x?y=1"
	assert extract_url("no links here") is None


def test_find_meta_image_prefers_og_then_twitter():
	html = """
	<html><head>
	<meta name="twitter:image" content="/tw.png">
	<meta property="og:image" content="https://cdn.example/og.png">
	</head></html>
	"""
	assert find_meta_image(html, "https://site.example/post") == "https://cdn.example/og.png"
	twitter_only = '<meta name="twitter:image" content="/tw.png">'
	assert find_meta_image(twitter_only, "https://site.example/post") == "https://site.example/tw.png"
	assert find_meta_image("<html></html>", "https://site.example") is None


@pytest.mark.asyncio
async def test_resolve_returns_none_without_url():
	def handler(request: httpx.Request) -> httpx.Response:
		raise AssertionError("no request expected")

	assert await _resolver(handler).resolve("just words") is None


@pytest.mark.asyncio
async def test_resolve_uses_og_image():
	def handler(request: httpx.Request) -> httpx.Response:
		html = '<head><meta property="og:image" content="/cover.jpg"></head>'
		return httpx.Response(200, text=html, headers={"content-type": "text/html"})

	resolver = _resolver(handler)
	assert await resolver.resolve("read https://news.example/story") == "https://news.example/cover.jpg"


@pytest.mark.asyncio
async def test_resolve_falls_back_to_favicon_on_error_status():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(503)

	assert await _resolver(handler).resolve("https://down.example/page") == "https://icons.example/down.example.png"


@pytest.mark.asyncio
async def test_resolve_falls_back_on_transport_error():
	def handler(request: httpx.Request) -> httpx.Response:
		raise httpx.ConnectError("refused", request=request)

	assert await _resolver(handler).resolve("https://gone.example") == "https://icons.example/gone.example.png"


@pytest.mark.asyncio
async def test_resolve_times_out_and_falls_back():
	async def handler(request: httpx.Request) -> httpx.Response:
		await asyncio.sleep(5)
		return httpx.Response(200, text="<meta property='og:image' content='/late.png'>")

	resolver = _resolver(handler, timeout=0.05)
	assert await resolver.resolve("https://slow.example/a") == "https://icons.example/slow.example.png"


def _no_requests(request: httpx.Request) -> httpx.Response:
	raise AssertionError(f"unexpected request to {request.url}")


@pytest.mark.asyncio
async def test_malformed_link_yields_no_thumbnail():
	resolver = _resolver(_no_requests)
	assert await resolver.resolve("look http://[oops here") is None
	assert await resolver.resolve("see http://[fe80::1 now") is None


def test_public_address_check():
	assert is_public_address("93.184.216.34")
	assert is_public_address("2606:2800:220:1:248:1893:25c8:1946")
	for address in ("127.0.0.1", "10.0.0.5", "169.254.169.254", "192.168.1.1", "::1", "fe80::1%eth0", "nonsense"):
		assert not is_public_address(address)


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"body",
	[
		"http://127.0.0.1:8080/admin",
		"http://169.254.169.254/latest/meta-data",
		"http://[::1]/",
		"http://localhost/x",
		"http://db.internal/status",
	],
)
async def test_private_targets_are_never_fetched(body):
	resolver = _resolver(_no_requests)
	host = thumbnails.hostname_of(body)
	assert await resolver.resolve(body) == FAVICON.format(host=quote(host))


@pytest.mark.asyncio
async def test_names_resolving_to_private_addresses_are_refused():
	async def private_lookup(host: str) -> list[str]:
		return ["10.1.2.3"]

	resolver = _resolver(_no_requests, lookup=private_lookup)
	assert await resolver.resolve("https://sneaky.example/") == "https://icons.example/sneaky.example.png"


@pytest.mark.asyncio
async def test_redirect_hops_are_checked():
	seen: list[str] = []

	def handler(request: httpx.Request) -> httpx.Response:
		seen.append(request.url.host)
		return httpx.Response(302, headers={"location": "http://127.0.0.1/secret"})

	resolver = _resolver(handler)
	assert await resolver.resolve("https://short.example/abc") == "https://icons.example/short.example.png"
	assert seen == ["short.example"]


@pytest.mark.asyncio
async def test_public_redirect_is_followed():
	def handler(request: httpx.Request) -> httpx.Response:
		if request.url.host == "short.example":
			return httpx.Response(301, headers={"location": "https://news.example/story"})
		return httpx.Response(200, text='<meta property="og:image" content="/cover.jpg">')

	resolver = _resolver(handler)
	assert await resolver.resolve("https://short.example/abc") == "https://news.example/cover.jpg"


@pytest.mark.asyncio
async def test_download_stops_at_size_cap(monkeypatch):
	monkeypatch.setattr(thumbnails, "_MAX_HTML_BYTES", 64)
	sent: list[int] = []

	async def endless():
		for _ in range(1000):
			sent.append(1)
			yield b"x" * 32

	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(200, content=endless())

	resolver = _resolver(handler)
	assert await resolver.resolve("https://huge.example/") == "https://icons.example/huge.example.png"
	assert len(sent) < 1000
