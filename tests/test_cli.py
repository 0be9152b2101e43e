import logging

import pytest

from airgradient2mqtt.cli import build_parser, main
from airgradient2mqtt.logging import resolve_level


def test_show_config_masks_password(tmp_path, capsys) -> None:
    config_path = tmp_path / "airgradient2mqtt.cfg"
    config_path.write_text(
        "[mqtt]\nbroker_url = mqtt://broker\nusername = bridge\npassword = hunter2\n",
        encoding="utf-8",
    )

    exit_code = main(["-c", str(config_path), "show-config"], environ={})

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "broker_url = mqtt://broker" in output
    assert "password = ********" in output
    assert "hunter2" not in output

def test_show_config_accepts_percent_in_password(tmp_path, capsys) -> None:
    exit_code = main(
        ["-c", str(tmp_path / "missing.cfg"), "show-config"],
        environ={"MQTT_USERNAME": "bridge", "MQTT_PASSWORD": "50%off"},
    )

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "password = ********" in output
    assert "50%off" not in output



def test_invalid_configuration_exits_with_error(tmp_path) -> None:
    exit_code = main(
        ["-c", str(tmp_path / "missing.cfg"), "show-config"],
        environ={"MQTT_PASSWORD": "secret"},
    )

    assert exit_code == 1


def test_parser_defaults_to_start_command() -> None:
    args = build_parser().parse_args([])

    assert args.command is None


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("trace", logging.DEBUG),
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("bogus", logging.INFO),
    ],
)
def test_resolve_level_accepts_container_names(name: str, expected: int) -> None:
    assert resolve_level(name) == expected
