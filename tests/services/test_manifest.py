import json

from remotedeploy.services.manifest import ManifestService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


def test_manifest_service_writes_run_metadata(tmp_path):
    manifest_file = tmp_path / "deploy.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run("run-123", "deploy", {"application_name": "demo"})
    service.stage_started("acquire_source")
    service.stage_finished("acquire_source", "success", details={"revision": "abc"})
    service.stage_skipped("configure_proxy")
    service.finalize("success", outcome={"exit_code": 0})

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["run_id"] == "run-123"
    assert data["mode"] == "deploy"
    assert data["status"] == "success"
    assert data["stages"][0]["name"] == "acquire_source"
    assert data["stages"][0]["details"]["revision"] == "abc"
    assert data["stages"][1]["status"] == "not_run"
    assert data["outcome"]["exit_code"] == 0
    assert [p.name for p in tmp_path.iterdir()] == ["deploy.json"]
