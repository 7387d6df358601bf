"""Tests for structured log formatting and context enrichment."""

import json
import logging

from uuid import UUID

from tubely.utils.logger import JSONFormatter, add_log_context


def make_record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tubely.services.video_ingest",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Staged upload (%d bytes)",
        args=(2048,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    video_id = UUID("0f8fad5b-d9cb-469f-a165-70867728950e")
    output = json.loads(JSONFormatter().format(make_record(video_id=video_id, layout="landscape")))

    assert output["level"] == "INFO"
    assert output["logger"] == "tubely.services.video_ingest"
    assert output["message"] == "Staged upload (2048 bytes)"
    assert output["extra"] == {"video_id": str(video_id), "layout": "landscape"}


def test_json_formatter_without_extra() -> None:
    output = json.loads(JSONFormatter().format(make_record()))
    assert "extra" not in output


def test_context_adapter_merges_without_overriding() -> None:
    adapter = add_log_context(logging.getLogger("test"), request_id="abc", user_id="u1")

    _, kwargs = adapter.process("msg", {"extra": {"user_id": "u2"}})

    assert kwargs["extra"] == {"user_id": "u2", "request_id": "abc"}
