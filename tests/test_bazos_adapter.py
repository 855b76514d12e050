"""Tests for carwatch.ingestion.bazos_adapter — Bazos HTML adapter."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx

from carwatch.config import Config
from carwatch.ingestion.bazos_adapter import (
    BazosAdapter,
    parse_listing_page,
    resolve_listing_url,
)
from carwatch.ingestion.normalize import Source


def _make_config(tmp_path, **overrides) -> Config:
    defaults = {"database_path": str(tmp_path / "test.db")}
    defaults.update(overrides)
    return Config(**defaults)


def _card(href, title, price="150 000 Kč", locality="Praha 110 00", image="https://www.bazos.cz/img/1t/1.jpg"):
    return f"""
    <div class="inzeraty inzeratyflex">
      <div class="inzeratynadpis">
        <a href="{href}"><img src="{image}" class="obrazek" alt="{title}"></a>
        <h2 class="nadpis"><a href="{href}">{title}</a></h2>
        <div class="popis">Description</div>
      </div>
      <div class="inzeratycena"><b><span translate="no">{price}</span></b></div>
      <div class="inzeratylok">{locality}</div>
      <div class="inzeratyview">42 x</div>
    </div>
    """


def _page(*cards):
    return "<html><body><div class='maincontent'>" + "".join(cards) + "</div></body></html>"


def _mock_response(text, status_code=200):
    resp = MagicMock()
    resp.text = text
    resp.status_code = status_code
    resp.raise_for_status = MagicMock()
    return resp


class TestResolveListingUrl:
    def test_relative_path_joined_to_origin(self):
        assert (
            resolve_listing_url("/inzerat/123/skoda-octavia.php")
            == "https://auto.bazos.cz/inzerat/123/skoda-octavia.php"
        )

    def test_absolute_same_origin_kept(self):
        url = "https://auto.bazos.cz/inzerat/123/skoda.php"
        assert resolve_listing_url(url) == url

    def test_fragment_dropped(self):
        assert (
            resolve_listing_url("/inzerat/123/a.php#foto")
            == "https://auto.bazos.cz/inzerat/123/a.php"
        )

    def test_other_host_rejected(self):
        assert resolve_listing_url("https://evil.example.com/inzerat/1") is None

    def test_non_http_rejected(self):
        assert resolve_listing_url("javascript:alert(1)") is None

    def test_empty_rejected(self):
        assert resolve_listing_url(None) is None
        assert resolve_listing_url("   ") is None
        assert resolve_listing_url("/") is None


class TestParseListingPage:
    def test_extracts_cards_in_page_order(self):
        html = _page(
            _card("/inzerat/1/a.php", "Škoda Octavia"),
            _card("/inzerat/2/b.php", "VW Golf", price="85 000 Kč"),
        )

        listings = parse_listing_page(html)

        assert [l.title for l in listings] == ["Škoda Octavia", "VW Golf"]
        first = listings[0]
        assert first.identity_url == "https://auto.bazos.cz/inzerat/1/a.php"
        assert first.source is Source.BAZOS
        assert first.price_display == "150 000 Kč"
        assert first.price_cents == 15000000
        assert first.image_url == "https://www.bazos.cz/img/1t/1.jpg"
        assert first.locality == "Praha 110 00"
        assert listings[1].price_cents == 8500000

    def test_non_numeric_price_kept_without_cents(self):
        listings = parse_listing_page(_page(_card("/inzerat/1/a.php", "Car", price="Dohodou")))
        assert listings[0].price_display == "Dohodou"
        assert listings[0].price_cents is None

    def test_skips_card_without_title(self):
        html = _page(_card("/inzerat/1/a.php", ""), _card("/inzerat/2/b.php", "Kept"))
        listings = parse_listing_page(html)
        assert [l.title for l in listings] == ["Kept"]

    def test_skips_card_with_foreign_link(self):
        html = _page(_card("https://other.cz/x", "Foreign"), _card("/inzerat/2/b.php", "Kept"))
        listings = parse_listing_page(html)
        assert [l.title for l in listings] == ["Kept"]

    def test_page_without_cards(self):
        assert parse_listing_page("<html><body>Nic nenalezeno</body></html>") == []


class TestBazosAdapter:
    def test_source(self, tmp_path):
        adapter = BazosAdapter(_make_config(tmp_path))
        assert adapter.source is Source.BAZOS
        assert adapter.name == "bazos"

    def test_fetch_sends_price_filters(self, tmp_path):
        config = _make_config(tmp_path, bazos_price_from=20000, bazos_price_to=90000)
        adapter = BazosAdapter(config)
        html = _page(_card("/inzerat/1/a.php", "Car"))

        with patch(
            "carwatch.ingestion.bazos_adapter.httpx.get", return_value=_mock_response(html)
        ) as mock_get:
            result = adapter.fetch()

        assert len(result) == 1
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["cenaod"] == 20000
        assert kwargs["params"]["cenado"] == 90000
        assert kwargs["params"]["rubriky"] == "auto"
        assert kwargs["headers"]["User-Agent"] == config.http_user_agent
        assert isinstance(kwargs["timeout"], httpx.Timeout)

    def test_http_error_returns_empty(self, tmp_path):
        adapter = BazosAdapter(_make_config(tmp_path))
        with patch(
            "carwatch.ingestion.bazos_adapter.httpx.get",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            assert adapter.fetch() == []

    def test_status_error_returns_empty(self, tmp_path):
        adapter = BazosAdapter(_make_config(tmp_path))
        resp = _mock_response("")
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "503", request=MagicMock(), response=MagicMock()
        )
        with patch("carwatch.ingestion.bazos_adapter.httpx.get", return_value=resp):
            assert adapter.fetch() == []

    def test_parse_error_returns_empty(self, tmp_path):
        adapter = BazosAdapter(_make_config(tmp_path))
        with patch(
            "carwatch.ingestion.bazos_adapter.httpx.get", return_value=_mock_response("<html></html>")
        ), patch(
            "carwatch.ingestion.bazos_adapter.parse_listing_page",
            side_effect=RuntimeError("boom"),
        ):
            assert adapter.fetch() == []
