import json

import pytest
from typer.testing import CliRunner

from csw_catalog import (
    cli,
    conf,
)
from csw_catalog.cli import app

runner = CliRunner()


@pytest.fixture()
def settings_path(tmp_path):
    return tmp_path / "settings.toml"


def _invoke(settings_path, *args):
    return runner.invoke(app, ["--settings-path", str(settings_path), *args])


def test_connections_add_and_list(settings_path):
    result = _invoke(settings_path, "connections", "add", "demo", "http://demo.com/csw")
    assert result.exit_code == 0
    result = _invoke(
        settings_path,
        "connections",
        "add",
        "other",
        "http://other.com/csw",
        "--page-size",
        "25",
        "--select",
    )
    assert result.exit_code == 0
    result = _invoke(settings_path, "connections", "list")
    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "  demo\thttp://demo.com/csw",
        "* other\thttp://other.com/csw",
    ]
    manager = conf.SettingsManager(settings_path)
    assert manager.find_connection("other").page_size == 25


def test_connections_add_duplicate(settings_path):
    _invoke(settings_path, "connections", "add", "demo", "http://demo.com/csw")
    result = _invoke(settings_path, "connections", "add", "demo", "http://a.com/csw")
    assert result.exit_code == 1
    manager = conf.SettingsManager(settings_path)
    assert manager.find_connection("demo").catalog_url == "http://demo.com/csw"


def test_connections_select_and_remove(settings_path):
    _invoke(settings_path, "connections", "add", "demo", "http://demo.com/csw")
    manager = conf.SettingsManager(settings_path)
    result = _invoke(settings_path, "connections", "select", "demo")
    assert result.exit_code == 0
    assert manager.get_current_connection_settings().name == "demo"
    result = _invoke(settings_path, "connections", "remove", "demo")
    assert result.exit_code == 0
    assert manager.list_connections() == []
    assert manager.get_current_connection_settings() is None


@pytest.mark.parametrize("command", ["select", "remove"])
def test_connections_unknown(settings_path, command):
    result = _invoke(settings_path, "connections", command, "missing")
    assert result.exit_code == 1


def test_search_url(settings_path, mock_csw_server):
    result = _invoke(
        settings_path, "search", f"{mock_csw_server}/catalogue/csw", "--text", "tejo"
    )
    assert result.exit_code == 0
    output = json.loads(result.stdout)
    assert output["numberOfRecordsMatched"] == 1
    record = output["records"][0]
    assert record["dc"]["identifier"] == "geonode:tejo0"
    assert record["boundingBox"]["crs"] == "EPSG:4326"


def test_search_connection_name(settings_path, mock_csw_server):
    _invoke(
        settings_path,
        "connections",
        "add",
        "mock",
        f"{mock_csw_server}/catalogue/csw",
    )
    result = _invoke(settings_path, "search", "mock", "--workspace", "geonode")
    assert result.exit_code == 0
    output = json.loads(result.stdout)
    assert output["records"][0]["dc"]["identifier"] == "geonode:airports"


def test_search_transport_error(settings_path, mock_csw_server):
    result = _invoke(settings_path, "search", f"{mock_csw_server}/catalogue/csw-broken")
    assert result.exit_code == 2


def test_record_exception_report(settings_path, mock_csw_server):
    result = _invoke(settings_path, "record", f"{mock_csw_server}/catalogue/csw")
    assert result.exit_code == 1
    assert json.loads(result.stdout) == {"error": "Invalid request"}


def test_probe(settings_path, mock_csw_server):
    result = _invoke(settings_path, "probe", f"{mock_csw_server}/catalogue/csw")
    assert result.exit_code == 0
    assert json.loads(result.stdout)["csw"] is True
    result = _invoke(settings_path, "probe", f"{mock_csw_server}/catalogue/not-xml")
    assert result.exit_code == 1


def test_connections_list_json(settings_path):
    _invoke(
        settings_path,
        "connections",
        "add",
        "demo",
        "http://demo.com/csw",
        "--username",
        "user",
        "--password",
        "secret",
    )
    result = _invoke(settings_path, "connections", "list", "--json")
    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert len(lines) == 1
    output = json.loads(lines[0])
    assert output["name"] == "demo"
    assert output["catalog_url"] == "http://demo.com/csw"
    assert output["username"] == "user"
    assert "password" not in output


@pytest.fixture()
def used_connections(monkeypatch):
    used = []
    original = cli.CswCatalogClient.from_connection_settings

    def _from_connection_settings(connection_settings, **kwargs):
        used.append(connection_settings.name)
        return original(connection_settings, **kwargs)

    monkeypatch.setattr(
        cli.CswCatalogClient, "from_connection_settings", _from_connection_settings
    )
    return used


@pytest.mark.parametrize(
    "saved_path, extra_args, expected",
    [
        pytest.param("/catalogue/csw", [], ["mock"], id="matching-url"),
        pytest.param("/other/csw", [], [], id="anonymous"),
        pytest.param("/other/csw", ["--connection", "mock"], ["mock"], id="by-name"),
    ],
)
def test_record_uses_saved_connection(
    settings_path, mock_csw_server, used_connections, saved_path, extra_args, expected
):
    _invoke(
        settings_path,
        "connections",
        "add",
        "mock",
        f"{mock_csw_server}{saved_path}",
        "--username",
        "user",
        "--password",
        "secret",
    )
    result = _invoke(
        settings_path,
        "record",
        f"{mock_csw_server}/catalogue/csw?id=geonode:tejo0",
        *extra_args,
    )
    assert result.exit_code == 0
    assert json.loads(result.stdout)["dc"]["identifier"] == "geonode:tejo0"
    assert used_connections == expected


def test_record_unknown_connection(settings_path, mock_csw_server):
    result = _invoke(
        settings_path,
        "record",
        f"{mock_csw_server}/catalogue/csw?id=geonode:tejo0",
        "--connection",
        "missing",
    )
    assert result.exit_code == 1
