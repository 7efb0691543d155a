import json

from typer.testing import CliRunner

from ransommap import cli
from ransommap.api_clients.base import AuthError
from ransommap.config import get_settings
from ransommap.services.normalizer import read_devices

runner = CliRunner()


def test_run_from_saved_response(shodan_document, tmp_path):
    source = tmp_path / "response.json"
    source.write_text(json.dumps(shodan_document), encoding="utf-8")
    csv_path = tmp_path / "hosts.csv"
    map_path = tmp_path / "map.html"
    result = runner.invoke(
        cli.app,
        ["run", "--from-json", str(source), "--output", str(csv_path), "--map", str(map_path)],
    )
    assert result.exit_code == 0, result.output
    assert "Found 4 ransomware-infected hosts in 3 countries." in result.output
    assert "The country with the most infections is Germany with 2 infected hosts." in result.output
    assert len(read_devices(csv_path)) == 4
    assert map_path.exists()


def test_run_fetch_failure_writes_nothing(monkeypatch, tmp_path):
    monkeypatch.setenv("SHODAN_API_KEY", "bad-key")

    async def reject(self, request):
        raise AuthError("shodan rejected the API key (401): Invalid API key")

    monkeypatch.setattr(cli.ShodanSearchClient, "fetch", reject)
    csv_path = tmp_path / "hosts.csv"
    result = runner.invoke(cli.app, ["run", "--output", str(csv_path), "--no-map"])
    assert result.exit_code == 1
    assert "Invalid API key" in result.output
    assert not csv_path.exists()


def test_run_uses_settings_for_query_and_limit(monkeypatch, shodan_document, tmp_path):
    monkeypatch.setenv("SHODAN_API_KEY", "from-env")
    monkeypatch.setenv("SEARCH_QUERY", "encrypted")
    monkeypatch.setenv("RESULT_LIMIT", "7")
    captured = {}

    async def fake_fetch(self, request):
        captured["request"] = request
        return shodan_document

    monkeypatch.setattr(cli.ShodanSearchClient, "fetch", fake_fetch)
    saved = tmp_path / "raw.json"
    result = runner.invoke(
        cli.app,
        ["run", "--output", str(tmp_path / "hosts.csv"), "--no-map", "--save-json", str(saved)],
    )
    assert result.exit_code == 0, result.output
    request = captured["request"]
    assert request.params["key"] == "from-env"
    assert request.query == "encrypted"
    assert request.limit == 7
    assert json.loads(saved.read_text(encoding="utf-8")) == shodan_document


def test_report_and_map_commands_read_existing_csv(shodan_document, tmp_path):
    source = tmp_path / "response.json"
    source.write_text(json.dumps(shodan_document), encoding="utf-8")
    csv_path = tmp_path / "hosts.csv"
    runner.invoke(cli.app, ["run", "--from-json", str(source), "--output", str(csv_path), "--no-map"])

    report = runner.invoke(cli.app, ["report", str(csv_path)])
    assert report.exit_code == 0, report.output
    assert "The city with the most infections is Berlin with 2 infected hosts." in report.output

    map_path = tmp_path / "map.html"
    rendered = runner.invoke(cli.app, ["map", str(csv_path), "--output", str(map_path)])
    assert rendered.exit_code == 0, rendered.output
    assert "3 locations" in rendered.output
    assert map_path.exists()


def test_empty_result_reports_zero(tmp_path):
    source = tmp_path / "response.json"
    source.write_text(json.dumps({"matches": [], "total": 0}), encoding="utf-8")
    result = runner.invoke(
        cli.app,
        ["run", "--from-json", str(source), "--output", str(tmp_path / "hosts.csv"), "--no-map"],
    )
    assert result.exit_code == 0, result.output
    assert "Found 0 ransomware-infected hosts." in result.output
    assert "most infections" not in result.output


def test_map_command_defaults_to_configured_output(monkeypatch, shodan_document, tmp_path):
    source = tmp_path / "response.json"
    source.write_text(json.dumps(shodan_document), encoding="utf-8")
    csv_path = tmp_path / "hosts.csv"
    runner.invoke(cli.app, ["run", "--from-json", str(source), "--output", str(csv_path), "--no-map"])

    configured = tmp_path / "configured" / "world.html"
    monkeypatch.setenv("OUTPUT_HTML", str(configured))
    get_settings.cache_clear()
    result = runner.invoke(cli.app, ["map", str(csv_path)])
    assert result.exit_code == 0, result.output
    assert configured.exists()


def test_report_rejects_csv_without_device_columns(tmp_path):
    path = tmp_path / "other.csv"
    path.write_text("ip,country\n192.0.2.1,Chile\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["report", str(path)])
    assert result.exit_code == 2
    assert "missing columns" in result.output
    assert not isinstance(result.exception, ValueError)
