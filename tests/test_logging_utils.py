import io
import logging

from prmetrics.logging_utils import DebugReplayBuffer


def test_replay_buffer_replays_debug_records_on_demand() -> None:
    stream = io.StringIO()
    logger = logging.getLogger("prmetrics.replay_test")

    with DebugReplayBuffer(stream=stream) as replay:
        logger.debug("first detail")
        logger.info("second detail")
        assert stream.getvalue() == ""
        replay.replay()

    output = stream.getvalue()
    assert "first detail" in output
    assert "second detail" in output
    assert "[replay]" in output


def test_replay_buffer_discards_on_exit_and_restores_level() -> None:
    stream = io.StringIO()
    root = logging.getLogger()
    previous = root.level

    with DebugReplayBuffer(stream=stream) as replay:
        assert root.level == logging.DEBUG
        logging.getLogger("prmetrics.replay_test").debug("never shown")
    replay.replay()

    assert stream.getvalue() == ""
    assert root.level == previous


def test_replay_buffer_keeps_only_latest_records() -> None:
    stream = io.StringIO()
    logger = logging.getLogger("prmetrics.replay_test")

    with DebugReplayBuffer(capacity=2, stream=stream) as replay:
        for index in range(5):
            logger.debug("record %s", index)
        replay.replay()

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[-1].endswith("record 4")
