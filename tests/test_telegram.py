"""Tests for carwatch.notify.telegram — Telegram Bot API client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx

from carwatch.notify.telegram import SendResult, format_listing_link, send_message


def _ok_response(message_id=42):
    resp = MagicMock()
    resp.json.return_value = {"ok": True, "result": {"message_id": message_id}}
    return resp


def _error_response(description="Bad Request: chat not found"):
    resp = MagicMock()
    resp.json.return_value = {"ok": False, "description": description}
    return resp


class TestFormatListingLink:
    def test_markdown_v2_link(self):
        assert (
            format_listing_link("Škoda Octavia", "https://auto.bazos.cz/inzerat/1/a.php")
            == "[Škoda Octavia](https://auto.bazos.cz/inzerat/1/a.php)"
        )

    def test_markdown_v2_escapes_title(self):
        text = format_listing_link(
            "Skoda Octavia *TOP* stav_1 [2.0 TDI]", "https://auto.bazos.cz/inzerat/1/x.php"
        )
        assert text == (
            r"[Skoda Octavia \*TOP\* stav\_1 \[2\.0 TDI\]]"
            "(https://auto.bazos.cz/inzerat/1/x.php)"
        )

    def test_markdown_v2_escapes_url_parenthesis(self):
        assert format_listing_link("Car", "https://x/a)b") == r"[Car](https://x/a\)b)"

    def test_legacy_markdown(self):
        text = format_listing_link("VW [TOP] *nove*", "https://x/1", "Markdown")
        assert text == r"[VW (TOP) \*nove\*](https://x/1)"

    def test_html(self):
        text = format_listing_link("Fiat <Punto> & co", "https://x/1?a=1&b=2", "HTML")
        assert text == (
            '<a href="https://x/1?a=1&amp;b=2">Fiat &lt;Punto&gt; &amp; co</a>'
        )

    def test_no_parse_mode(self):
        assert format_listing_link("Car *A*", "https://x/1", "") == "Car *A*\nhttps://x/1"


class TestSendMessage:
    @patch("carwatch.notify.telegram.httpx.post")
    def test_success(self, mock_post):
        mock_post.return_value = _ok_response(7)

        result = send_message("token", "@chat", "[Car](https://x/1)")

        assert result == SendResult(ok=True, message_id=7)
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.telegram.org/bottoken/sendMessage"
        assert kwargs["json"] == {
            "chat_id": "@chat",
            "text": "[Car](https://x/1)",
            "parse_mode": "MarkdownV2",
        }

    @patch("carwatch.notify.telegram.time.sleep")
    @patch("carwatch.notify.telegram.httpx.post")
    def test_retries_then_fails(self, mock_post, mock_sleep):
        mock_post.return_value = _error_response()

        result = send_message("token", "@chat", "text", max_retries=3)

        assert result.ok is False
        assert result.error == "Bad Request: chat not found"
        assert mock_post.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch("carwatch.notify.telegram.time.sleep")
    @patch("carwatch.notify.telegram.httpx.post")
    def test_recovers_after_network_error(self, mock_post, mock_sleep):
        mock_post.side_effect = [httpx.ConnectError("down"), _ok_response(9)]

        result = send_message("token", "@chat", "text")

        assert result.ok is True
        assert result.message_id == 9

    @patch("carwatch.notify.telegram.httpx.post")
    def test_not_configured_skips_request(self, mock_post):
        assert send_message("", "@chat", "text").ok is False
        assert send_message("token", "", "text").ok is False
        mock_post.assert_not_called()

    @patch("carwatch.notify.telegram.httpx.post")
    def test_no_parse_mode(self, mock_post):
        mock_post.return_value = _ok_response()

        send_message("token", "@chat", "text", parse_mode="")

        assert "parse_mode" not in mock_post.call_args.kwargs["json"]

    @patch("carwatch.notify.telegram.time.sleep")
    @patch("carwatch.notify.telegram.httpx.post")
    def test_permanent_rejection_not_retried(self, mock_post, mock_sleep):
        resp = MagicMock()
        resp.json.return_value = {
            "ok": False,
            "error_code": 400,
            "description": "Bad Request: can't parse entities",
        }
        mock_post.return_value = resp

        result = send_message("token", "@chat", "text", max_retries=3)

        assert result.ok is False
        assert "can't parse entities" in result.error
        assert mock_post.call_count == 1
        mock_sleep.assert_not_called()

    @patch("carwatch.notify.telegram.time.sleep")
    @patch("carwatch.notify.telegram.httpx.post")
    def test_rate_limit_retried(self, mock_post, mock_sleep):
        limited = MagicMock()
        limited.json.return_value = {
            "ok": False,
            "error_code": 429,
            "description": "Too Many Requests: retry after 1",
        }
        mock_post.side_effect = [limited, _ok_response(5)]

        result = send_message("token", "@chat", "text")

        assert result.ok is True
        assert mock_post.call_count == 2
