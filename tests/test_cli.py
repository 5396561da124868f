from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from imagined.cache import derive_key
from imagined.cli import app, parse_positionals

runner = CliRunner()

TURTLE = 'export const Hero = () => <Imagined prompt="a turtle" width={1024} height={1024} />;\n'
TURTLE_KEY = derive_key("a turtle", 1024, 1024)


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "public").mkdir()
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "hero.tsx").write_text(TURTLE)
    (tmp_path / "imagined.toml").write_text('provider = "placeholder"\n')
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParsePositionals:
    def test_defaults_to_generate(self) -> None:
        assert parse_positionals(None, None) == ("generate", None)

    def test_command_only(self) -> None:
        assert parse_positionals("cleanup", None) == ("cleanup", None)

    def test_path_like_single_argument(self) -> None:
        assert parse_positionals("./src", None) == ("generate", "./src")
        assert parse_positionals("/abs/dir", None) == ("generate", "/abs/dir")
        assert parse_positionals("app/components", None) == ("generate", "app/components")

    def test_existing_directory_is_a_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "components").mkdir()
        (tmp_path / "scan").mkdir()
        monkeypatch.chdir(tmp_path)
        assert parse_positionals("components", None) == ("generate", "components")
        assert parse_positionals("scan", None) == ("scan", None)

    def test_command_and_directory(self) -> None:
        assert parse_positionals("watch", "src") == ("watch", "src")

    def test_unknown_command_is_rejected(self) -> None:
        with pytest.raises(typer.BadParameter):
            parse_positionals("deploy", None)
        with pytest.raises(typer.BadParameter):
            parse_positionals("deploy", "src")


class TestCommands:
    def test_generate_by_default(self, project: Path) -> None:
        result = runner.invoke(app, ["src"])
        assert result.exit_code == 0, result.output
        assert (project / "public" / "generated-images" / f"{TURTLE_KEY}.jpg").is_file()
        assert (project / "src" / "hero.tsx").read_text() == TURTLE

    def test_scan_does_not_generate(self, project: Path) -> None:
        result = runner.invoke(app, ["scan", "src"])
        assert result.exit_code == 0, result.output
        assert not (project / "public" / "generated-images").exists()

    def test_scan_with_generate_flag(self, project: Path) -> None:
        result = runner.invoke(app, ["scan", "src", "-g"])
        assert result.exit_code == 0, result.output
        assert (project / "public" / "generated-images" / f"{TURTLE_KEY}.jpg").is_file()

    def test_write_rewrites_sources(self, project: Path) -> None:
        result = runner.invoke(app, ["scan", "src", "--write"])
        assert result.exit_code == 0, result.output
        text = (project / "src" / "hero.tsx").read_text()
        assert f'src="/generated-images/{TURTLE_KEY}.jpg"' in text

    def test_output_option(self, project: Path) -> None:
        result = runner.invoke(app, ["generate", "src", "--output", "public/ai"])
        assert result.exit_code == 0, result.output
        assert (project / "public" / "ai" / f"{TURTLE_KEY}.jpg").is_file()

    def test_source_dir_from_config(self, project: Path) -> None:
        (project / "imagined.toml").write_text('provider = "placeholder"\nsourceDir = "src"\n')
        result = runner.invoke(app, ["generate"])
        assert result.exit_code == 0, result.output
        assert (project / "public" / "generated-images" / f"{TURTLE_KEY}.jpg").is_file()

    def test_unknown_command_exits_2(self, project: Path) -> None:
        result = runner.invoke(app, ["deploy"])
        assert result.exit_code == 2

    def test_config_error_exits_2(self, project: Path) -> None:
        (project / "imagined.toml").write_text('imageFormat = "gif"\n')
        result = runner.invoke(app, ["scan", "src"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_missing_directory_exits_2(self, project: Path) -> None:
        result = runner.invoke(app, ["scan", "./missing"])
        assert result.exit_code == 2

    def test_generation_failure_exits_1(self, project: Path) -> None:
        (project / "imagined.toml").write_text(
            'apiKey = "k"\nbaseUrl = "http://127.0.0.1:9"\ntimeout = 2\n'
        )
        result = runner.invoke(app, ["generate", "src"])
        assert result.exit_code == 1
        assert not (project / "public" / "generated-images" / f"{TURTLE_KEY}.jpg").exists()


class TestCleanupCommand:
    def test_dry_run_lists_unused(self, project: Path) -> None:
        out = project / "public" / "generated-images"
        out.mkdir()
        (out / "stale.jpg").write_bytes(b"x")
        result = runner.invoke(app, ["cleanup", "src", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "stale.jpg" in result.output
        assert (out / "stale.jpg").exists()

    def test_clean_alias_deletes(self, project: Path) -> None:
        out = project / "public" / "generated-images"
        out.mkdir()
        (out / "stale.jpg").write_bytes(b"x")
        (out / f"{TURTLE_KEY}.jpg").write_bytes(b"x")
        result = runner.invoke(app, ["clean", "src"])
        assert result.exit_code == 0, result.output
        assert not (out / "stale.jpg").exists()
        assert (out / f"{TURTLE_KEY}.jpg").exists()

    def test_blocked_cleanup_exits_1(self, project: Path) -> None:
        out = project / "public" / "generated-images"
        out.mkdir()
        (out / "stale.jpg").write_bytes(b"x")
        (project / "src" / "broken.tsx").write_text("const x = (<div>;\n")
        result = runner.invoke(app, ["cleanup", "src"])
        assert result.exit_code == 1
        assert (out / "stale.jpg").exists()

        forced = runner.invoke(app, ["cleanup", "src", "--force"])
        assert forced.exit_code == 0, forced.output
        assert not (out / "stale.jpg").exists()

    def test_help_states_parse_error_block(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "--force" in result.output

        command = typer.main.get_command(app)
        force = next(p for p in command.params if p.name == "force")
        assert "failed to parse" in force.help
        assert "blocked" in force.help
        assert "fails to parse" in command.help
