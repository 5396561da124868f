from __future__ import annotations

from pathlib import Path

import pytest

from imagined.cache import derive_key
from imagined.gen.config import Settings
from imagined.gen.provider import ImageProvider
from imagined.gen.types import GenerationStatus, ImageGenRequest
from imagined.scan import process_file, scan


class CountingProvider(ImageProvider):
    def __init__(self) -> None:
        self.prompts: list[str] = []

    @property
    def provider_id(self) -> str:
        return "counting"

    def generate(self, req: ImageGenRequest) -> bytes:
        self.prompts.append(req.prompt)
        return b"img"


TURTLE = 'export const Hero = () => <Imagined prompt="a turtle" width={1024} height={1024} />;\n'


def make_project(tmp_path: Path) -> tuple[Path, Settings]:
    (tmp_path / "public").mkdir()
    src = tmp_path / "src"
    src.mkdir()
    settings = Settings(
        project_root=str(tmp_path),
        output_dir=str(tmp_path / "public" / "generated-images"),
    )
    return src, settings


class TestProcessFile:
    def test_turtle_rewrite(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "hero.tsx"
        page.write_text(TURTLE)

        result = process_file(page, settings)
        key = derive_key("a turtle", 1024, 1024)
        assert result.keys == [key]
        assert result.transformed == (
            f'export const Hero = () => <img src="/generated-images/{key}.jpg" '
            'width={1024} height={1024} alt="a turtle" />;\n'
        )
        assert result.changed is True
        assert result.written is False
        assert page.read_text() == TURTLE

    def test_write_replaces_file(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "hero.tsx"
        page.write_text(TURTLE)

        result = process_file(page, settings, write=True)
        assert result.written is True
        assert page.read_text() == result.transformed
        assert "<Imagined" not in page.read_text()

    def test_file_without_declarations_is_untouched(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "plain.tsx"
        page.write_text("export const x = 1;\n")
        result = process_file(page, settings, write=True)
        assert result.declarations == 0
        assert result.transformed is None
        assert result.written is False

    def test_generation_runs_per_declaration(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "hero.tsx"
        page.write_text(TURTLE + 'export const Fox = () => <Imagined prompt="a fox" />;\n')

        provider = CountingProvider()
        result = process_file(page, settings, generate=True, provider=provider)
        assert sorted(provider.prompts) == ["a fox", "a turtle"]
        assert {o.status for o in result.outcomes} == {GenerationStatus.SUCCESS}
        for key in result.keys:
            assert (tmp_path / "public" / "generated-images" / f"{key}.jpg").is_file()

    def test_parse_error_is_recorded(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "broken.tsx"
        page.write_text("export const x = (<Imagined prompt=\"a\" />;\n")
        result = process_file(page, settings, write=True)
        assert result.error
        assert page.read_text() == "export const x = (<Imagined prompt=\"a\" />;\n"

    def test_undecodable_file_is_recorded(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        page = src / "binary.tsx"
        page.write_bytes(b"\xff\xfe\x00bad")
        result = process_file(page, settings)
        assert result.error is not None
        assert "read failed" in result.error


class TestScan:
    def test_walks_eligible_files_and_skips_excluded_dirs(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text(TURTLE)
        (src / "nested").mkdir()
        (src / "nested" / "b.jsx").write_text(TURTLE)
        (src / "c.ts").write_text("export const y = 2;\n")
        (src / "d.js").write_text(TURTLE)
        (src / "node_modules" / "pkg").mkdir(parents=True)
        (src / "node_modules" / "pkg" / "e.tsx").write_text(TURTLE)

        result = scan(src, settings)
        scanned = {f.path.name for f in result.files}
        assert scanned == {"a.tsx", "b.jsx", "c.ts"}
        assert result.declarations == 2
        assert {p.name for p in result.files_changed} == {"a.tsx", "b.jsx"}

    def test_write_defaults_to_settings(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text(TURTLE)
        result = scan(src, settings.model_copy(update={"write_back": True}))
        assert [p.name for p in result.files_written] == ["a.tsx"]

    def test_generate_deduplicates_by_key(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text(TURTLE)
        (src / "b.tsx").write_text(TURTLE)
        provider = CountingProvider()

        result = scan(src, settings, generate=True, provider=provider)
        assert provider.prompts == ["a turtle"]
        assert len(result.generation.generated) == 1
        assert len(result.generation.skipped) == 1

    def test_missing_credential_skips_generation(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text(TURTLE)
        result = scan(src, settings, generate=True)
        assert result.generation.generated == []
        assert result.generation.skipped == [derive_key("a turtle", 1024, 1024)]
        assert result.ok

    def test_placeholder_provider_from_settings(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text(TURTLE)
        result = scan(src, settings.model_copy(update={"provider": "placeholder"}), generate=True)
        key = derive_key("a turtle", 1024, 1024)
        assert result.generation.generated == [key]
        assert (tmp_path / "public" / "generated-images" / f"{key}.jpg").stat().st_size > 0

    def test_broken_file_does_not_stop_scan(self, tmp_path: Path) -> None:
        src, settings = make_project(tmp_path)
        (src / "a.tsx").write_text("const x = (<div>;\n")
        (src / "b.tsx").write_text(TURTLE)
        result = scan(src, settings)
        assert [p.name for p, _ in result.file_errors] == ["a.tsx"]
        assert result.declarations == 1
        assert not result.ok

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        _, settings = make_project(tmp_path)
        with pytest.raises(FileNotFoundError):
            scan(tmp_path / "nope", settings)
