import asyncio
import io
import json
import logging

import pytest

import applog.logger as logger_module
from applog.config import EngineConfig
from applog.context import ContextStore
from applog.logger import StructuredLogger, get_logger, reset_shared_logger
from applog.redactor import REDACTED

LEVELS = ["error", "warn", "info", "http", "debug"]


@pytest.mark.parametrize("minimum", LEVELS)
def test_level_threshold(make_logger, minimum):
    captured = make_logger(level=minimum)
    for level in LEVELS:
        captured.logger.log(level, f"at {level}")

    emitted = [record["level"] for record in captured.records()]
    assert emitted == LEVELS[: LEVELS.index(minimum) + 1]


def test_filtered_call_skips_normalization(make_logger, monkeypatch):
    captured = make_logger(level="info")
    called = []
    monkeypatch.setattr(captured.logger, "build_entry", lambda *args: called.append(args))

    captured.logger.debug("trace", {})
    assert called == []
    assert captured.lines() == []


def test_login_failed_scenario(make_logger):
    captured = make_logger(level="info", redact_keys=("password",))
    captured.logger.error("Login failed", {"password": "secret", "userId": 7})
    captured.logger.debug("trace", {})

    records = captured.records()
    assert len(records) == 1
    assert records[0]["level"] == "error"
    assert records[0]["meta"] == {"password": REDACTED, "userId": 7}


def test_record_shape(make_logger):
    captured = make_logger(environment="staging")
    captured.logger.info("hello", {"a": 1})

    record = captured.records()[0]
    assert list(record) == ["timestamp", "level", "message", "service", "environment", "meta"]
    assert record["service"] == "test-service"
    assert record["environment"] == "staging"
    assert record["timestamp"].endswith("Z")
    assert "requestId" not in record


def test_one_line_per_call(make_logger):
    captured = make_logger()
    captured.logger.info("multi\nline message")
    captured.logger.warn("second")
    assert len(captured.lines()) == 2
    assert captured.buffer.getvalue().endswith("\n")


def test_one_line_per_call_in_text_mode(make_logger):
    captured = make_logger(format="text")
    captured.logger.info("multi\nline\r\nmessage")
    captured.logger.warn("second")

    lines = captured.buffer.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("multi\\nline\\r\\nmessage")


def test_logging_disable_does_not_silence_the_engine(make_logger):
    captured = make_logger(level="info")
    logging.disable(logging.CRITICAL)
    try:
        captured.logger.error("should be written")
        captured.logger.debug("below minimum")
    finally:
        logging.disable(logging.NOTSET)

    assert [record["message"] for record in captured.records()] == ["should be written"]


def test_errors_in_meta_are_serialized(make_logger):
    captured = make_logger(include_stack_traces=False)
    captured.logger.error("direct", ValueError("v"))
    captured.logger.error("nested", {"error": KeyError("k")})

    direct, nested = captured.records()
    assert direct["meta"] == {"name": "ValueError", "message": "v"}
    assert nested["meta"]["error"] == {"name": "KeyError", "message": "'k'"}


def test_stack_traces_follow_config(make_logger):
    with_stack = make_logger(include_stack_traces=True)
    without = make_logger(include_stack_traces=False)
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        with_stack.logger.error("failed", {"error": exc})
        without.logger.error("failed", {"error": exc})

    assert "RuntimeError: boom" in with_stack.records()[0]["meta"]["error"]["stack"]
    assert "stack" not in without.records()[0]["meta"]["error"]


def test_redacted_error_value(make_logger):
    captured = make_logger(redact_keys=("error",))
    captured.logger.error("failed", {"error": RuntimeError("secret detail")})
    assert captured.records()[0]["meta"] == {"error": REDACTED}


def test_explicit_request_id_without_context(make_logger):
    captured = make_logger()
    captured.logger.http(
        "done",
        {"method": "GET", "url": "/x", "statusCode": 200, "duration": 12, "requestId": "abc"},
    )
    record = captured.records()[0]
    assert record["level"] == "http"
    assert record["requestId"] == "abc"
    assert record["meta"]["statusCode"] == 200


def test_ambient_request_id(make_logger):
    captured = make_logger()
    captured.logger.run_with_context("ctx-1", captured.logger.info, "inside")
    captured.logger.info("outside")

    inside, outside = captured.records()
    assert inside["requestId"] == "ctx-1"
    assert "requestId" not in outside


def test_explicit_request_id_wins_over_context(make_logger):
    captured = make_logger()
    with captured.logger.context.scope("ambient"):
        captured.logger.info("a", {"correlationId": "explicit"})
        captured.logger.info("b", {"request_id": "snake"})
        captured.logger.info("c", ["not", "a", "mapping"])

    a, b, c = captured.records()
    assert a["requestId"] == "explicit"
    assert a["meta"]["correlationId"] == "explicit"
    assert b["requestId"] == "snake"
    assert c["requestId"] == "ambient"


def test_concurrent_units_keep_their_request_ids(make_logger):
    captured = make_logger()
    logger = captured.logger

    async def handler(name):
        for step in range(3):
            logger.info("step", {"unit": name, "step": step})
            await asyncio.sleep(0)

    async def main():
        await asyncio.gather(
            logger.arun_with_context("A", handler, "A"),
            logger.arun_with_context("B", handler, "B"),
        )

    asyncio.run(main())
    records = captured.records()
    assert len(records) == 6
    assert {record["meta"]["unit"] for record in records[:2]} == {"A", "B"}
    for record in records:
        assert record["requestId"] == record["meta"]["unit"]


def test_bound_logger_merges_fields(make_logger):
    captured = make_logger()
    db = captured.logger.bind(component="db")
    db.info("query", {"x": 1})
    db.info("override", {"component": "override"})
    db.warn("no meta")
    db.bind(table="users").debug("nested bind")

    first, second, third, fourth = captured.records()
    assert first["meta"] == {"component": "db", "x": 1}
    assert second["meta"] == {"component": "override"}
    assert third["meta"] == {"component": "db"}
    assert fourth["meta"] == {"component": "db", "table": "users"}


def test_bound_logger_merges_fields_into_error_data(make_logger):
    captured = make_logger(include_stack_traces=False)
    db = captured.logger.child({"component": "db"})
    db.error("failed", ValueError("v"))
    db.info("batch", [1, 2])
    db.info("count", 3)

    error, batch, count = captured.records()
    assert error["meta"] == {"component": "db", "name": "ValueError", "message": "v"}
    assert batch["meta"] == {"component": "db", "items": [{"value": 1}, {"value": 2}]}
    assert count["meta"] == {"component": "db", "value": 3}


def test_bound_logger_does_not_mutate_fields(make_logger):
    captured = make_logger()
    fields = {"component": "db"}
    bound = captured.logger.child(fields)
    bound.info("x", {"component": "other"})
    assert bound.fields == {"component": "db"}
    assert fields == {"component": "db"}


def test_text_mode_output(make_logger):
    captured = make_logger(format="text")
    with captured.logger.context.scope("rid"):
        captured.logger.info("hello", {"k": 1})

    line = captured.lines()[0]
    assert "[rid] hello {\"k\":1}" in line
    assert "\x1b[36mINFO \x1b[0m" in line


def test_unserializable_meta_does_not_raise(make_logger):
    captured = make_logger()
    meta = {"a": 1}
    meta["self"] = meta
    captured.logger.info("cyclic", meta)
    # The top level is a copy, so the cycle closes one level down
    assert captured.records()[0]["meta"]["self"]["self"] == "[Circular]"


def test_unknown_level_is_rejected(make_logger):
    captured = make_logger()
    with pytest.raises(ValueError):
        captured.logger.log("fatal", "x")


def test_file_destination_appends(tmp_path):
    path = tmp_path / "app.log"
    path.write_text("existing\n", encoding="utf-8")

    with StructuredLogger(EngineConfig(format="json", file_path=str(path))) as logger:
        logger.info("to file")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "existing"
    assert json.loads(lines[1])["message"] == "to file"


def test_unwritable_file_fails_construction(tmp_path):
    with pytest.raises(OSError):
        StructuredLogger(EngineConfig(file_path=str(tmp_path / "missing" / "app.log")))


def test_defaults_to_stdout(capsys):
    logger = StructuredLogger(EngineConfig(format="json"))
    logger.info("to stdout")
    assert json.loads(capsys.readouterr().out)["message"] == "to stdout"


def test_engines_are_independent():
    first_ctx, second_ctx = ContextStore(), ContextStore()
    first = StructuredLogger(EngineConfig(service_name="one"), context=first_ctx)
    second = StructuredLogger(EngineConfig(service_name="two"), context=second_ctx)
    with first.context.scope("x"):
        assert second.current_request_id() is None
    assert first.handler is not second.handler


def test_shared_instance_first_config_wins(capsys):
    first = get_logger(EngineConfig(service_name="first", format="json"))
    again = get_logger(EngineConfig(service_name="second", format="json"))

    assert again is first
    assert first.config.service_name == "first"
    record = json.loads(capsys.readouterr().out)
    assert record["level"] == "warn"
    assert record["meta"] == {"requestedService": "second", "activeService": "first"}

    assert get_logger() is first
    reset_shared_logger()
    assert get_logger(EngineConfig(service_name="third")) is not first


def test_reset_survives_a_closed_destination():
    stream = io.StringIO()
    logger = StructuredLogger(EngineConfig(format="json"), stream=stream)

    logger_module.shared_logger = logger
    logger.info("before close")
    stream.close()

    reset_shared_logger()
    reset_shared_logger()
    assert logger_module.shared_logger is None
    assert logger.handler not in logger._logger.handlers
