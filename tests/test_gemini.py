import http.client
import io
import json
import os
import sys
import unittest
import urllib.error
from unittest.mock import MagicMock, patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from derja.errors import GenerationError
from derja.gemini import GeminiClient, segment_to_content, text_from_envelope
from derja.models import InlineImage, Segment


def envelope(*texts):
    return json.dumps({"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]})


def fake_response(body):
    resp = MagicMock()
    resp.__enter__.return_value.read.return_value = body.encode("utf-8")
    return resp


class TestEnvelope(unittest.TestCase):
    def test_joins_parts(self):
        self.assertEqual(text_from_envelope(envelope("أهلا ", "بيك")), "أهلا بيك")

    def test_malformed_envelopes(self):
        self.assertEqual(text_from_envelope("not json"), "")
        self.assertEqual(text_from_envelope("[]"), "")
        self.assertEqual(text_from_envelope('{"candidates": []}'), "")
        self.assertEqual(text_from_envelope('{"candidates": [{"content": {}}]}'), "")

    def test_image_part(self):
        content = segment_to_content(Segment(role="user", text="t", image=InlineImage(data="AAA", mime_type="image/jpeg")))
        self.assertEqual(content["parts"][1], {"inline_data": {"mime_type": "image/jpeg", "data": "AAA"}})


class TestGeminiClient(unittest.TestCase):
    def test_missing_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RuntimeError):
                GeminiClient()

    def test_google_key_is_accepted(self):
        with patch.dict(os.environ, {"GOOGLE_API_KEY": "g-key"}, clear=True):
            self.assertEqual(GeminiClient().api_key, "g-key")

    @patch("derja.gemini.urllib.request.urlopen")
    def test_generate_payload(self, mock_urlopen):
        mock_urlopen.return_value = fake_response(envelope("باهي"))
        client = GeminiClient(api_key="k", model="gemini-test")

        text = client.generate([Segment(role="user", text="سلام")], temperature=0.2, max_output_tokens=64)

        self.assertEqual(text, "باهي")
        req = mock_urlopen.call_args[0][0]
        self.assertIn("/models/gemini-test:generateContent", req.full_url)
        payload = json.loads(req.data.decode("utf-8"))
        self.assertEqual(payload["contents"][0]["parts"][0]["text"], "سلام")
        self.assertEqual(payload["generationConfig"], {"temperature": 0.2, "maxOutputTokens": 64})

    @patch("derja.gemini.urllib.request.urlopen")
    def test_http_error_becomes_generation_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "https://example.com", 429, "Too Many Requests", None, io.BytesIO(b'{"error": {"message": "quota"}}')
        )
        client = GeminiClient(api_key="k")
        with self.assertRaises(GenerationError) as ctx:
            client.generate([Segment(role="user", text="x")])
        self.assertEqual(ctx.exception.status, 429)

    @patch("derja.gemini.urllib.request.urlopen")
    def test_network_error_becomes_generation_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("unreachable")
        client = GeminiClient(api_key="k")
        with self.assertRaises(GenerationError):
            client.generate([Segment(role="user", text="x")])

    @patch("derja.gemini.urllib.request.urlopen")
    def test_broken_response_becomes_generation_error(self, mock_urlopen):
        client = GeminiClient(api_key="k")
        for exc in (http.client.IncompleteRead(b""), http.client.BadStatusLine("garbage")):
            mock_urlopen.side_effect = exc
            with self.assertRaises(GenerationError):
                client.generate([Segment(role="user", text="x")])

    @patch("derja.gemini.urllib.request.urlopen")
    def test_truncated_body_becomes_generation_error(self, mock_urlopen):
        resp = MagicMock()
        resp.__enter__.return_value.read.side_effect = http.client.IncompleteRead(b"{\"cand")
        mock_urlopen.return_value = resp
        with self.assertRaises(GenerationError):
            GeminiClient(api_key="k").generate([Segment(role="user", text="x")])


if __name__ == "__main__":
    unittest.main()
