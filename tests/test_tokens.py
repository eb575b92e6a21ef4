"""Tests for postinstall.runtime.tokens.

Covers classification of raw data values, the resolution pass (artifacts,
literals, archive extraction into the scratch directory), environment key
injection and {TOKEN} substitution.
"""

from pathlib import Path

import pytest

from conftest import build_installer
from postinstall.runtime.artifacts import resolve_artifact_path
from postinstall.runtime.errors import ConfigurationError, ExtractionError
from postinstall.runtime.tokens import (
    ArchiveExtractor,
    TokenKind,
    classify,
    replace_tokens,
    resolve_data,
    with_environment,
)


class TestClassify:
    def test_kinds(self):
        assert classify("[a:b:1.0]") is TokenKind.ARTIFACT
        assert classify("'text'") is TokenKind.LITERAL
        assert classify("/data/client.lzma") is TokenKind.ARCHIVE_MEMBER
        assert classify("sub/path.txt") is TokenKind.ARCHIVE_MEMBER

    def test_empty_value_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            classify("")


class TestResolveData:
    """Tests for the resolution pass over the raw data map."""

    def test_resolves_each_kind(self, tmp_path: Path, library_dir: Path):
        installer = build_installer(tmp_path / "installer.zip", {"sub/path.txt": b"payload"})
        scratch = tmp_path / "scratch"
        raw = {
            "MAPPINGS": "[group:name:1.0]",
            "SHA": "'literal'",
            "BINPATCH": "sub/path.txt",
        }

        data = resolve_data(raw, library_dir, scratch, ArchiveExtractor(installer))

        assert data["MAPPINGS"] == str(resolve_artifact_path("group:name:1.0", library_dir))
        assert data["SHA"] == "literal"
        extracted = Path(data["BINPATCH"])
        assert extracted.is_absolute()
        assert extracted == (scratch / "sub" / "path.txt").absolute()
        assert extracted.read_bytes() == b"payload"

    def test_leading_slash_member(self, tmp_path: Path, library_dir: Path):
        installer = build_installer(tmp_path / "installer.zip", {"data/client.lzma": b"x"})
        data = resolve_data(
            {"BINPATCH": "/data/client.lzma"},
            library_dir,
            tmp_path / "scratch",
            ArchiveExtractor(installer),
        )
        assert Path(data["BINPATCH"]).read_bytes() == b"x"
        assert Path(data["BINPATCH"]).is_relative_to((tmp_path / "scratch").absolute())

    def test_returns_new_read_only_mapping(self, tmp_path: Path, library_dir: Path):
        raw = {"A": "'x'"}
        data = resolve_data(raw, library_dir, tmp_path, lambda member, target: True)

        assert raw == {"A": "'x'"}
        with pytest.raises(TypeError):
            data["A"] = "y"  # type: ignore[index]

    def test_collects_every_extraction_failure(self, tmp_path: Path, library_dir: Path):
        installer = build_installer(tmp_path / "installer.zip", {"present.txt": b"ok"})
        raw = {
            "ONE": "missing/one.bin",
            "OK": "present.txt",
            "TWO": "missing/two.bin",
        }

        with pytest.raises(ExtractionError) as exc_info:
            resolve_data(raw, library_dir, tmp_path / "scratch", ArchiveExtractor(installer))

        message = str(exc_info.value)
        assert message.startswith("Failed to extract files from archive:")
        assert "\n  missing/one.bin" in message
        assert "\n  missing/two.bin" in message
        assert "present.txt" not in message

    def test_bad_archive_is_extraction_failure(self, tmp_path: Path, library_dir: Path):
        not_a_zip = tmp_path / "installer.jar"
        not_a_zip.write_bytes(b"not a zip")
        with pytest.raises(ExtractionError):
            resolve_data({"A": "a.txt"}, library_dir, tmp_path / "s", ArchiveExtractor(not_a_zip))

    def test_reports_progress_and_messages(self, tmp_path: Path, library_dir: Path):
        fractions = []
        messages = []
        resolve_data(
            {"A": "'a'", "B": "b.txt"},
            library_dir,
            tmp_path,
            lambda member, target: True,
            on_progress=fractions.append,
            on_message=messages.append,
        )
        assert fractions == [0.5, 1.0]
        assert messages == ["  Extracting: b.txt"]


class TestWithEnvironment:
    def test_injects_fixed_keys(self, tmp_path: Path):
        data = with_environment(
            {"A": "a"},
            side="client",
            minecraft_jar=tmp_path / "mc.jar",
            minecraft_version="1.20.1",
            root=tmp_path,
            installer=tmp_path / "installer.jar",
            library_dir=tmp_path / "libraries",
        )

        assert data["A"] == "a"
        assert data["SIDE"] == "client"
        assert data["MINECRAFT_JAR"] == str((tmp_path / "mc.jar").absolute())
        assert data["MINECRAFT_VERSION"] == "1.20.1"
        assert data["ROOT"] == str(tmp_path.absolute())
        assert data["INSTALLER"] == str((tmp_path / "installer.jar").absolute())
        assert data["LIBRARY_DIR"] == str((tmp_path / "libraries").absolute())


class TestReplaceTokens:
    """Tests for {TOKEN} substitution in templates."""

    TOKENS = {"SIDE": "client", "ROOT": "/srv/mc", "EMPTY": ""}

    def test_plain_text_unchanged(self):
        assert replace_tokens(self.TOKENS, "--flag") == "--flag"

    def test_substitutes_tokens(self):
        assert replace_tokens(self.TOKENS, "{ROOT}/libraries/{SIDE}.jar") == "/srv/mc/libraries/client.jar"

    def test_empty_value_substitutes(self):
        assert replace_tokens(self.TOKENS, "x{EMPTY}y") == "xy"

    def test_quoted_text_is_literal(self):
        assert replace_tokens(self.TOKENS, "'{SIDE}'") == "{SIDE}"

    def test_escape(self):
        assert replace_tokens(self.TOKENS, "\\{SIDE}") == "{SIDE}"
        assert replace_tokens(self.TOKENS, "{SI\\DE}x") == "clientx"
        assert replace_tokens(self.TOKENS, "'it\\'s'") == "it's"

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="Missing Key: NOPE"):
            replace_tokens(self.TOKENS, "{NOPE}")

    @pytest.mark.parametrize("template", ["{SIDE", "'open", "trailing\\"])
    def test_malformed_patterns(self, template):
        with pytest.raises(ConfigurationError, match="Illegal pattern"):
            replace_tokens(self.TOKENS, template)
