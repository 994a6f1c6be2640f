"""Unit tests for the cliprelay command line."""

import pytest
from unittest.mock import patch

from cliprelay.core.exceptions import ConfigError, EndpointError
from cliprelay.core.models import BuildInfo, EndpointConfig
from cliprelay.frontend.cli import app

BUILD = BuildInfo(version="9.9.9", commit="c0ffee", date="2026-10-18")


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep basicConfig away from the root logger during tests."""
    with patch("cliprelay.frontend.cli.app.configure_logging") as configure:
        yield configure


def test_opener_loads_config_and_serves():
    config = EndpointConfig(network="tcp", address=":8377")
    with patch("cliprelay.frontend.cli.app.load_config", return_value=config) as load, \
            patch("cliprelay.frontend.cli.app.serve") as serve:
        code = app.main(["opener", "--config", "relay.yaml"], build=BUILD)

    assert code == 0
    load.assert_called_once_with("relay.yaml")
    serve.assert_called_once_with(config, build=BUILD)


def test_opener_without_config_uses_default_location():
    with patch("cliprelay.frontend.cli.app.load_config", return_value=EndpointConfig()) as load, \
            patch("cliprelay.frontend.cli.app.serve"):
        assert app.main(["opener"], build=BUILD) == 0

    load.assert_called_once_with(None)


def test_opener_missing_explicit_config_fails(tmp_path):
    with patch("cliprelay.frontend.cli.app.serve") as serve:
        code = app.main(["opener", "--config", str(tmp_path / "missing.yaml")], build=BUILD)

    assert code == 1
    serve.assert_not_called()


@pytest.mark.parametrize("error", [ConfigError("allowed network are: unix,tcp"), EndpointError("in use")])
def test_opener_startup_errors_exit_nonzero(error):
    with patch("cliprelay.frontend.cli.app.load_config", return_value=EndpointConfig()), \
            patch("cliprelay.frontend.cli.app.serve", side_effect=error):
        assert app.main(["opener"], build=BUILD) == 1


def test_verbose_sets_debug(no_logging_setup):
    with patch("cliprelay.frontend.cli.app.load_config", return_value=EndpointConfig()), \
            patch("cliprelay.frontend.cli.app.serve"):
        app.main(["-v", "opener"], build=BUILD)

    no_logging_setup.assert_called_once_with(10)


def test_version_flag_prints_banner(capsys):
    with pytest.raises(SystemExit) as exc:
        app.main(["--version"], build=BUILD)

    assert exc.value.code == 0
    assert "version: 9.9.9, commit: c0ffee" in capsys.readouterr().out


def test_subcommand_is_required():
    with pytest.raises(SystemExit) as exc:
        app.main([], build=BUILD)
    assert exc.value.code == 2
