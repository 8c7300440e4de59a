"""
Unit tests for the stage pipeline contract.
"""

import logging

import pytest

from splitstack.errors import OriginRejected
from splitstack.http.response import HTTPResponse, error_response, json_response
from splitstack.middleware.base import (
    CONTINUE,
    CatchAllStage,
    Outcome,
    Stage,
    StageOrder,
    StagePipeline,
    Terminal,
)


class RecordingStage(Stage):
    """Appends its label to a shared list; optionally answers."""

    def __init__(self, label, calls, answer=None, order=None):
        self.label = label
        self.calls = calls
        self.answer = answer
        self.order = order

    def process(self, request, response):
        self.calls.append(f"process:{self.label}")
        response.headers[f"X-{self.label}"] = "1"
        if self.answer is not None:
            return Terminal(self.answer)
        return CONTINUE

    def complete(self, request, response):
        self.calls.append(f"complete:{self.label}")


class ExplodingStage(Stage):
    def process(self, request, response):
        raise RuntimeError("boom")


class BrokenResultStage(Stage):
    def process(self, request, response):
        return "not a result"


class Translator(CatchAllStage):
    def __init__(self):
        self.seen = []

    def translate(self, request, exc):
        self.seen.append(exc)
        return error_response(500, "translated")


class TestStagePipeline:
    """Tests for StagePipeline traversal."""

    def test_stages_run_in_order_until_terminal(self, request_factory):
        """Stages after the terminal one never run."""
        calls = []
        pipeline = StagePipeline().use(
            RecordingStage("a", calls),
            RecordingStage("b", calls, answer=json_response({"ok": True})),
            RecordingStage("c", calls),
        )

        response = pipeline.handle(request_factory())

        assert response.json == {"ok": True}
        assert "process:c" not in calls

    def test_completion_hooks_run_in_reverse(self, request_factory):
        """Only entered stages complete, last entered first."""
        calls = []
        pipeline = StagePipeline().use(
            RecordingStage("a", calls),
            RecordingStage("b", calls, answer=json_response({})),
            RecordingStage("c", calls),
        )

        pipeline.handle(request_factory())

        assert calls == ["process:a", "process:b", "complete:b", "complete:a"]

    def test_in_progress_headers_are_merged(self, request_factory):
        """Headers added by earlier stages appear on the terminal response."""
        calls = []
        pipeline = StagePipeline().use(
            RecordingStage("a", calls),
            RecordingStage("b", calls, answer=HTTPResponse(headers={"X-b": "own"})),
        )

        response = pipeline.handle(request_factory())

        assert response.headers["X-a"] == "1"
        assert response.headers["X-b"] == "own"

    def test_outcome_recorded_in_context(self, request_factory):
        """The terminal outcome and error are left on the request."""
        error = OriginRejected("http://evil.test")

        class Reject(Stage):
            def process(self, request, response):
                return Terminal.reject(error, Outcome.REJECTED_BY_ORIGIN)

        pipeline = StagePipeline().use(RecordingStage("a", []), Reject())
        request = request_factory()

        response = pipeline.handle(request)

        assert response.status == 403
        assert request.context["outcome"] is Outcome.REJECTED_BY_ORIGIN
        assert request.context["error"] is error

    def test_exception_goes_to_catch_all(self, request_factory):
        """A raising stage is answered by the catch-all stage."""
        translator = Translator()
        pipeline = StagePipeline().use(ExplodingStage(), translator)
        request = request_factory()

        response = pipeline.handle(request)

        assert response.json == {"error": "translated"}
        assert isinstance(translator.seen[0], RuntimeError)
        assert request.context["outcome"] is Outcome.ERROR_TRANSLATED

    def test_exception_without_catch_all_propagates(self, request_factory):
        """With no catch-all, failures escape to the caller."""
        pipeline = StagePipeline().use(ExplodingStage())

        with pytest.raises(RuntimeError):
            pipeline.handle(request_factory())

    def test_invalid_result_is_an_error(self, request_factory):
        """Returning something other than Continue/Terminal is a TypeError."""
        pipeline = StagePipeline().use(BrokenResultStage())

        with pytest.raises(TypeError):
            pipeline.handle(request_factory())

    def test_no_terminal_is_an_error(self, request_factory):
        """Running off the end of the stages is a LookupError."""
        pipeline = StagePipeline().use(RecordingStage("a", []))

        with pytest.raises(LookupError):
            pipeline.handle(request_factory())

    def test_failing_completion_hook_is_logged(self, request_factory, caplog):
        """A broken hook does not replace the response."""
        class BadHook(Stage):
            def process(self, request, response):
                return Terminal(json_response({"ok": True}))

            def complete(self, request, response):
                raise ValueError("hook")

        pipeline = StagePipeline().use(BadHook())

        with caplog.at_level(logging.ERROR, logger="splitstack.middleware.base"):
            response = pipeline.handle(request_factory())

        assert response.json == {"ok": True}
        assert "Completion hook of BadHook failed" in caplog.text


class TestStageOrdering:
    """Tests for order enforcement."""

    def test_out_of_order_stage_rejected(self):
        """A stage may not be added after a later-ranked one."""
        pipeline = StagePipeline().add(RecordingStage("n", [], order=StageOrder.NOT_FOUND))

        with pytest.raises(ValueError):
            pipeline.add(RecordingStage("s", [], order=StageOrder.SECURITY))

    def test_single_catch_all(self):
        """Only one catch-all stage is allowed."""
        pipeline = StagePipeline().add(Translator())

        with pytest.raises(ValueError):
            pipeline.add(Translator())

    def test_unordered_stages_allowed_anywhere(self):
        """Stages without an order are not checked."""
        pipeline = StagePipeline().use(
            RecordingStage("late", [], order=StageOrder.NOT_FOUND),
            RecordingStage("free", []),
        )

        assert [s.label for s in pipeline] == ["late", "free"]
        assert len(pipeline) == 2
