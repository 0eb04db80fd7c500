import json
import logging

from prajna.logging_config import StructuredJsonFormatter, get_logger, request_id_var


def test_formatter_emits_channel_context_and_request_id():
    logger = get_logger("scoring")
    record = logger.makeRecord(
        logger.name, logging.WARNING, __file__, 1, "fallback engaged", None, None,
        extra={"context": {"exam_id": "e-1"}, "extra_data": {"reason": "timeout"}, "channel": "scoring"}
    )
    token = request_id_var.set("req-123")
    try:
        entry = json.loads(StructuredJsonFormatter().format(record))
    finally:
        request_id_var.reset(token)

    assert entry["level"] == "WARNING"
    assert entry["channel"] == "scoring"
    assert entry["message"] == "fallback engaged"
    assert entry["context"] == {"request_id": "req-123", "exam_id": "e-1"}
    assert entry["extra"] == {"reason": "timeout"}
    assert entry["timestamp"].endswith("Z")
