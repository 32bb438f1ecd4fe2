import pytest

from remotedeploy.errors import NoBuildContextError
from remotedeploy.services.build_context import BuildContextLocator


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def test_root_dockerfile_wins_over_nested_one(tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM alpine\n", encoding="utf-8")
    nested = tmp_path / "service"
    nested.mkdir()
    (nested / "Dockerfile").write_text("FROM alpine\nEXPOSE 9000\n", encoding="utf-8")

    context = BuildContextLocator(logger=DummyLogger()).locate(tmp_path)

    assert context.root_path == tmp_path
    assert context.exposed_port == 80


def test_nested_dockerfile_is_found_in_lexicographic_order(tmp_path):
    for name in ("zeta", "alpha", "beta"):
        directory = tmp_path / name
        directory.mkdir()
        (directory / "dockerfile").write_text(f"FROM alpine\nexpose {name == 'alpha' and 5000 or 6000}\n")
    (tmp_path / "README.md").write_text("docs", encoding="utf-8")

    context = BuildContextLocator(logger=DummyLogger()).locate(tmp_path)

    assert context.root_path == tmp_path / "alpha"
    assert context.exposed_port == 5000


def test_search_stops_one_level_deep(tmp_path):
    deep = tmp_path / "a" / "b"
    deep.mkdir(parents=True)
    (deep / "Dockerfile").write_text("FROM alpine\n", encoding="utf-8")
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")

    with pytest.raises(NoBuildContextError) as error:
        BuildContextLocator(logger=DummyLogger()).locate(tmp_path)

    assert "a, package.json" in str(error.value)


def test_first_expose_statement_wins(tmp_path):
    (tmp_path / "DOCKERFILE").write_text(
        "FROM node:20\n# EXPOSE 1111\n  EXPOSE 8080/tcp 9090\nEXPOSE 7000\n",
        encoding="utf-8",
    )

    context = BuildContextLocator(logger=DummyLogger()).locate(tmp_path)

    assert context.exposed_port == 8080


def test_missing_build_file_defaults_to_port_80():
    assert BuildContextLocator(logger=DummyLogger()).discover_exposed_port(None) == 80


@pytest.mark.parametrize("declared", ["0", "70000"])
def test_out_of_range_expose_falls_back_to_port_80(tmp_path, declared):
    (tmp_path / "Dockerfile").write_text(f"FROM alpine\nEXPOSE {declared}\n", encoding="utf-8")

    context = BuildContextLocator(logger=DummyLogger()).locate(tmp_path)

    assert context.exposed_port == 80
