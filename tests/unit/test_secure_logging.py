import json
import logging

import pytest

from helpdesk.utils.secure_logging import JSONSecureFormatter, SensitiveDataFilter


def make_record(msg, args=None, **extra):
    record = logging.LogRecord("helpdesk.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
@pytest.mark.parametrize("text,secret", [
    ("Authorization: Bearer abc.def.ghi", "abc.def.ghi"),
    ("connecting to mongodb://admin:hunter2@db:27017", "hunter2"),
    ("login for maria@example.com", "maria@example.com"),
    ("password=SuperSecret99", "SuperSecret99"),
])
def test_filter_masks_message(text, secret):
    record = make_record(text)

    SensitiveDataFilter().filter(record)

    assert secret not in record.getMessage()


@pytest.mark.unit
def test_filter_masks_args_and_extra():
    record = make_record("user %s", ("maria@example.com",), context={"email": "maria@example.com"})

    SensitiveDataFilter().filter(record)

    assert "maria@example.com" not in record.getMessage()
    assert record.context["email"] != "maria@example.com"


@pytest.mark.unit
def test_json_formatter_includes_extra_fields():
    record = make_record("Ticket tkt_1 assign by user_1", effects=[{"type": "ticket_assigned"}], trace_id="t-1")

    data = json.loads(JSONSecureFormatter().format(record))

    assert data["message"] == "Ticket tkt_1 assign by user_1"
    assert data["trace_id"] == "t-1"
    assert data["effects"] == [{"type": "ticket_assigned"}]
    assert data["level"] == "INFO"
