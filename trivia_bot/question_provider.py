"""
Question bank client for the Open Trivia Database.
"""
import logging
from typing import List, Optional

import httpx

from .errors import QuestionProviderUnavailable, ValidationError
from .models import Question

DEFAULT_API_URL = "https://opentdb.com/api.php"
MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 20

# Open Trivia DB response codes
RESPONSE_SUCCESS = 0
RESPONSE_NO_RESULTS = 1
RESPONSE_INVALID_PARAMETER = 2


def validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError("Number of questions must be a number")
    if amount < MIN_QUESTION_COUNT or amount > MAX_QUESTION_COUNT:
        raise ValidationError(
            f"Number of questions must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
        )


class OpenTriviaProvider:
    """Fetches question batches over HTTP."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the provider.

        Args:
            api_url: Question bank endpoint
            timeout: Request timeout in seconds
            client: Shared HTTP client, created on demand if None
        """
        self.logger = logging.getLogger(__name__)
        self.api_url = api_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def fetch(self, amount: int) -> List[Question]:
        """
        Fetch a batch of questions.

        Args:
            amount: Number of questions, 1 to 20

        Returns:
            List of Question objects

        Raises:
            ValidationError: If the amount is out of range or rejected upstream
            QuestionProviderUnavailable: If the question bank can't be reached
        """
        validate_amount(amount)

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

        try:
            response = await self._client.get(self.api_url, params={"amount": amount})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            self.logger.error(f"Question bank request failed: {e}")
            raise QuestionProviderUnavailable("Question bank is unavailable") from e
        except ValueError as e:
            self.logger.error(f"Question bank returned invalid JSON: {e}")
            raise QuestionProviderUnavailable("Question bank returned an invalid response") from e

        return self._parse_payload(payload, amount)

    def _parse_payload(self, payload, amount: int) -> List[Question]:
        if not isinstance(payload, dict):
            raise QuestionProviderUnavailable("Question bank returned an invalid response")

        code = payload.get("response_code")
        if code in (RESPONSE_NO_RESULTS, RESPONSE_INVALID_PARAMETER):
            self.logger.warning(f"Question bank rejected amount {amount} with code {code}")
            raise ValidationError(
                f"Number of questions must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
            )
        if code != RESPONSE_SUCCESS:
            self.logger.error(f"Question bank returned response code {code}")
            raise QuestionProviderUnavailable(f"Question bank returned response code {code}")

        try:
            questions = [Question.from_dict(item) for item in payload.get("results", [])]
        except (KeyError, TypeError) as e:
            self.logger.error(f"Malformed question in batch: {e}")
            raise QuestionProviderUnavailable("Question bank returned a malformed question") from e

        self.logger.info(f"Fetched {len(questions)} questions (requested {amount})")
        return questions

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
