import unittest

import requests

from aqicast import ollama_client as oc
from aqicast.ollama_client import OllamaClient


class DummyResponse:
    def __init__(self, status_code=200, content="ok"):
        self.status_code = status_code
        self._content = content
        self.text = content
        # mimic requests.Response.elapsed
        self.elapsed = type("Elapsed", (), {"total_seconds": lambda self: 0.123})()

    def json(self):
        return {"message": {"content": self._content}}


class TestOllamaClient(unittest.TestCase):
    def setUp(self):
        self._orig_post = oc.requests.post
        self._orig_sleep = oc.time.sleep
        oc.time.sleep = lambda _s: None

    def tearDown(self):
        oc.requests.post = self._orig_post
        oc.time.sleep = self._orig_sleep

    def test_chat_success(self):
        seen = {}

        def fake_post(url, json=None, timeout=None):
            seen.update(url=url, json=json, timeout=timeout)
            return DummyResponse(200, "hi")

        oc.requests.post = fake_post
        client = OllamaClient("http://ollama:11434/", "phi4-mini", options={"temperature": 0.1}, timeout=5)
        out = client.chat([{"role": "user", "content": "hi"}], json_format=True)

        self.assertEqual(out, "hi")
        self.assertEqual(seen["url"], "http://ollama:11434/api/chat")
        self.assertEqual(seen["json"]["format"], "json")
        self.assertEqual(seen["json"]["options"], {"temperature": 0.1})
        self.assertFalse(seen["json"]["stream"])
        self.assertEqual(seen["timeout"], 5)

    def test_chat_non_200(self):
        def fake_post(url, json=None, timeout=None):
            return DummyResponse(500, "err")

        oc.requests.post = fake_post
        client = OllamaClient()
        with self.assertRaises(RuntimeError):
            client.chat([])

    def test_chat_retries_on_eof(self):
        replies = [DummyResponse(500, "unexpected EOF"), DummyResponse(200, "second")]

        def fake_post(url, json=None, timeout=None):
            return replies.pop(0)

        oc.requests.post = fake_post
        client = OllamaClient(max_retries=1)
        self.assertEqual(client.chat([]), "second")

    def test_chat_connection_error_after_retries(self):
        calls = []

        def fake_post(url, json=None, timeout=None):
            calls.append(url)
            raise requests.exceptions.ConnectionError("refused")

        oc.requests.post = fake_post
        client = OllamaClient(max_retries=2)
        with self.assertRaises(RuntimeError):
            client.chat([])
        self.assertEqual(len(calls), 3)

    def test_chat_body_without_message_object(self):
        for body in (["not", "a", "dict"], {"message": "hi"}, {"done": True}):
            with self.subTest(body=body):
                resp = DummyResponse(200, str(body))
                resp.json = lambda body=body: body
                oc.requests.post = lambda url, json=None, timeout=None, resp=resp: resp
                with self.assertRaises(RuntimeError):
                    OllamaClient(max_retries=0).chat([])


if __name__ == "__main__":
    unittest.main()
