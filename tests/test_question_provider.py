"""
Unit tests for the Open Trivia DB client.
"""
import json
import unittest

import httpx

from trivia_bot.errors import QuestionProviderUnavailable, TransientStoreError, ValidationError
from trivia_bot.models import QuestionType
from trivia_bot.question_provider import OpenTriviaProvider, validate_amount
from tests.test_fixtures import TestFixtures

API_URL = "https://opentdb.com/api.php"


class TestValidateAmount(unittest.TestCase):

    def test_valid_amounts(self):
        for amount in (1, 10, 20):
            validate_amount(amount)

    def test_out_of_range(self):
        for amount in (0, 21, -1):
            with self.assertRaises(ValidationError):
                validate_amount(amount)

    def test_not_a_number(self):
        for amount in ("5", 5.0, None, True):
            with self.assertRaises(ValidationError):
                validate_amount(amount)


class TestOpenTriviaProvider(unittest.IsolatedAsyncioTestCase):
    """Test cases for fetching and parsing question batches."""

    def setUp(self):
        self.requests = []

    def make_provider(self, handler):
        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        self.addAsyncCleanup(client.aclose)
        return OpenTriviaProvider(API_URL, client=client)

    async def test_fetch_parses_questions(self):
        payload = TestFixtures.create_api_payload()
        provider = self.make_provider(lambda request: httpx.Response(200, json=payload))

        questions = await provider.fetch(3)

        self.assertEqual(len(questions), 3)
        self.assertEqual(questions[0].type, QuestionType.MULTIPLE)
        self.assertEqual(questions[0].correct_answer, "Paris")
        self.assertEqual(questions[1].type, QuestionType.BOOLEAN)
        self.assertEqual(self.requests[0].url.params["amount"], "3")

    async def test_fewer_questions_than_requested(self):
        payload = TestFixtures.create_api_payload(TestFixtures.create_sample_questions()[:1])
        provider = self.make_provider(lambda request: httpx.Response(200, json=payload))

        self.assertEqual(len(await provider.fetch(10)), 1)

    async def test_invalid_amount_makes_no_request(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json={}))

        for amount in (0, 21):
            with self.assertRaises(ValidationError):
                await provider.fetch(amount)

        self.assertEqual(self.requests, [])

    async def test_rejected_amount_codes(self):
        for code in (1, 2):
            payload = {"response_code": code, "results": []}
            provider = self.make_provider(lambda request, p=payload: httpx.Response(200, json=p))

            with self.assertRaises(ValidationError):
                await provider.fetch(5)

    async def test_other_codes_are_unavailable(self):
        # Token errors and rate limiting
        for code in (3, 4, 5):
            payload = {"response_code": code, "results": []}
            provider = self.make_provider(lambda request, p=payload: httpx.Response(200, json=p))

            with self.assertRaises(QuestionProviderUnavailable):
                await provider.fetch(5)

    async def test_http_error_is_unavailable(self):
        provider = self.make_provider(lambda request: httpx.Response(503))

        with self.assertRaises(QuestionProviderUnavailable):
            await provider.fetch(5)

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = self.make_provider(handler)

        with self.assertRaises(QuestionProviderUnavailable):
            await provider.fetch(5)

    async def test_invalid_json_is_unavailable(self):
        provider = self.make_provider(lambda request: httpx.Response(200, content=b"<html>"))

        with self.assertRaises(QuestionProviderUnavailable):
            await provider.fetch(5)

    async def test_malformed_question_is_unavailable(self):
        payload = {"response_code": 0, "results": [{"type": "multiple"}]}
        provider = self.make_provider(lambda request: httpx.Response(200, content=json.dumps(payload).encode()))

        with self.assertRaises(QuestionProviderUnavailable):
            await provider.fetch(5)

    async def test_unavailable_is_transient(self):
        self.assertTrue(issubclass(QuestionProviderUnavailable, TransientStoreError))

    async def test_close_leaves_shared_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        provider = OpenTriviaProvider(API_URL, client=client)

        await provider.close()

        self.assertFalse(client.is_closed)
        await client.aclose()


if __name__ == '__main__':
    unittest.main()
