"""Tests for BridgeTranslator measurement flattening and command parsing."""

import logging

import pytest

from airgradient2mqtt.core import BusMessage, QueuedCommand
from airgradient2mqtt.translator import BridgeTranslator, format_value


def _as_dict(messages):
    return {message.topic: message.payload for message in messages}


class TestPublishMeasurements:
    def test_scalars_map_to_device_topics(self, translator) -> None:
        messages = translator.publish_measurements(
            "abc123", {"wifi": -55, "rco2": 410, "atmp": 22.5}
        )

        assert messages == [
            BusMessage("airgradient2mqtt/abc123/wifi", "-55"),
            BusMessage("airgradient2mqtt/abc123/rco2", "410"),
            BusMessage("airgradient2mqtt/abc123/atmp", "22.5"),
        ]
        assert all(not message.retain for message in messages)

    def test_channel_values_come_from_the_channel(self, translator) -> None:
        messages = translator.publish_measurements(
            "abc123", {"rco2": 410, "channels": {"1": {"pm02": 12}}}
        )

        assert _as_dict(messages) == {
            "airgradient2mqtt/abc123/rco2": "410",
            "airgradient2mqtt/abc123/channel_1_pm02": "12",
        }

    def test_channel_value_ignores_outer_reading_of_same_key(self, translator) -> None:
        payload = {
            "pm02": 30,
            "channels": {"1": {"pm02": 12, "atmp": 21.0}, "2": {"pm02": 14}},
        }

        published = _as_dict(translator.publish_measurements("dev", payload))

        assert published["airgradient2mqtt/dev/pm02"] == "30"
        assert published["airgradient2mqtt/dev/channel_1_pm02"] == "12"
        assert published["airgradient2mqtt/dev/channel_1_atmp"] == "21"
        assert published["airgradient2mqtt/dev/channel_2_pm02"] == "14"

    def test_structured_values_are_skipped(self, translator) -> None:
        payload = {
            "rco2": 410,
            "extra": {"nested": 1},
            "history": [1, 2],
            "missing": None,
            "channels": {"1": {"pm02": 12, "raw": {"x": 1}}, "2": "bogus"},
        }

        published = _as_dict(translator.publish_measurements("dev", payload))

        assert published == {
            "airgradient2mqtt/dev/rco2": "410",
            "airgradient2mqtt/dev/channel_1_pm02": "12",
        }

    def test_translate_measurements_puts_discovery_first(self, translator) -> None:
        messages = translator.translate_measurements("dev", {"rco2": 410})

        assert [message.retain for message in messages] == [True, True, True, False]
        assert messages[-1] == BusMessage("airgradient2mqtt/dev/rco2", "410")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (410, "410"),
        (22.5, "22.5"),
        (410.0, "410"),
        (True, "true"),
        (False, "false"),
        ("1.2.3", "1.2.3"),
    ],
)
def test_format_value_matches_json_rendering(value, expected) -> None:
    assert format_value(value) == expected


class TestCommands:
    @pytest.mark.parametrize(
        ("target", "message", "command"),
        [
            ("rgb_bri", b"128", "CMD_RGB_BRI_128"),
            ("oled_bri", b"40", "CMD_OLED_BRI_40"),
            ("do_reboot", b"PRESS", "CMD_REBOOT"),
            ("do_reset_wifi", b"", "CMD_RESET_WIFI"),
        ],
    )
    def test_parse_known_targets(self, translator, target, message, command) -> None:
        parsed = translator.parse_command(
            f"airgradient2mqtt/sensorA/{target}/set", message
        )

        assert parsed == QueuedCommand(device_id="sensorA", command=command)

    def test_reboot_command_is_queued_for_device(
        self, translator, queue_manager
    ) -> None:
        translator.handle_command("airgradient2mqtt/sensorA/do_reboot/set", b"anything")

        assert queue_manager.queue_for("sensorA").snapshot() == ["CMD_REBOOT"]

    def test_unknown_target_changes_no_queue(
        self, translator, queue_manager, caplog
    ) -> None:
        queue_manager.queue_for("sensorA").enqueue("CMD_REBOOT")

        with caplog.at_level(logging.WARNING):
            result = translator.handle_command(
                "airgradient2mqtt/sensorA/unknown_target/set", b"1"
            )

        assert result is None
        assert queue_manager.pending_counts() == {"sensorA": 1}
        assert "unknown command unknown_target" in caplog.text

    @pytest.mark.parametrize(
        "topic",
        [
            "airgradient2mqtt/sensorA/rgb_bri",
            "other/sensorA/rgb_bri/set",
            "airgradient2mqtt/sensorA/rgb_bri/get",
            "airgradient2mqtt//rgb_bri/set",
        ],
    )
    def test_malformed_topics_are_rejected(self, translator, queue_manager, topic) -> None:
        assert translator.handle_command(topic, b"1") is None
        assert len(queue_manager) == 0

    def test_payload_is_decoded_and_stripped(self, translator) -> None:
        parsed = translator.parse_command(
            "airgradient2mqtt/dev/rgb_bri/set", b" 200\n"
        )

        assert parsed is not None
        assert parsed.command == "CMD_RGB_BRI_200"

    def test_command_subscription_pattern(self, translator) -> None:
        assert translator.command_subscription == "airgradient2mqtt/+/+/set"

    def test_queued_commands_respect_queue_bound(self, translator, queue_manager) -> None:
        for value in range(12):
            translator.handle_command("airgradient2mqtt/dev/rgb_bri/set", str(value))

        pending = queue_manager.queue_for("dev").snapshot()
        assert pending[0] == "CMD_RGB_BRI_2"
        assert pending[-1] == "CMD_RGB_BRI_11"
        assert len(pending) == 10


def test_custom_topic_prefix(queue_manager) -> None:
    translator = BridgeTranslator(queue_manager, topic_prefix="ag")

    assert translator.publish_measurements("x", {"rco2": 1}) == [
        BusMessage("ag/x/rco2", "1")
    ]
    assert translator.parse_command("ag/x/do_reboot/set", b"") is not None
