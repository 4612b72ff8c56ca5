"""Mock Responses backend for adapter and CLI tests.

Provides a deterministic ResponsesBackend that replays scripted responses
and stream event sequences without making real API calls.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence

from pai_openai.providers import (
    ModelResponse,
    ResponseRequest,
    StreamEvent,
)


class MockBackend:
    """Scripted backend satisfying the ResponsesBackend protocol.

    Usage:
        backend = MockBackend(responses=[ModelResponse(id="resp", output_text="hi")])
        backend = MockBackend(streams=[[TextDelta("he"), TextDelta("llo"), StreamCompleted("r1")]])

        # Error simulation
        backend.simulate_error(ProviderError("boom"))
    """

    def __init__(
        self,
        responses: Sequence[ModelResponse] = (),
        streams: Sequence[Sequence[StreamEvent]] = (),
    ) -> None:
        self._responses = list(responses)
        self._streams = [list(events) for events in streams]
        self._simulated_error: Exception | None = None
        self.requests: list[ResponseRequest] = []
        self.stream_requests: list[ResponseRequest] = []

    def simulate_error(self, error: Exception) -> MockBackend:
        """Configure every subsequent call to raise ``error``.

        Returns:
            Self for chaining
        """
        self._simulated_error = error
        return self

    @property
    def call_count(self) -> int:
        return len(self.requests) + len(self.stream_requests)

    async def create(self, request: ResponseRequest) -> ModelResponse:
        self.requests.append(request)
        if self._simulated_error is not None:
            raise self._simulated_error
        if not self._responses:
            raise AssertionError("MockBackend.create called more times than scripted")
        return self._responses.pop(0)

    async def stream(self, request: ResponseRequest) -> AsyncIterator[StreamEvent]:
        self.stream_requests.append(request)
        if self._simulated_error is not None:
            raise self._simulated_error
        if not self._streams:
            raise AssertionError("MockBackend.stream called more times than scripted")
        for event in self._streams.pop(0):
            yield event
