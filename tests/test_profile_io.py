"""Tests for postinstall.runtime.profile_io and profile parsing."""

import json
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from postinstall.runtime.errors import ConfigurationError
from postinstall.runtime.profile_io import load_profile, parse_profile, validate_profile
from postinstall.runtime.types import profile_from_dict, step_from_dict


@pytest.fixture
def profile_doc() -> Dict[str, Any]:
    return {
        "minecraft": "1.20.1",
        "data": {
            "MAPPINGS": {"client": "[de.oceanlabs.mcp:mcp_config:1.20.1@zip]", "server": "[de.oceanlabs.mcp:mcp_config:1.20.1@zip]"},
            "BINPATCH": {"client": "/data/client.lzma", "server": "/data/server.lzma"},
        },
        "processors": [
            {
                "jar": "net.minecraftforge:installertools:1.4.1",
                "classpath": ["net.sf.jopt-simple:jopt-simple:5.0.4"],
                "args": ["--task", "MCP_DATA", "--input", "{MAPPINGS}"],
            },
            {
                "sides": ["server"],
                "module": "net.minecraftforge:binarypatcher:1.1.1",
                "args": ["--patch", "{BINPATCH}"],
                "outputs": {"{ROOT}/patched.jar": "'0123'"},
            },
        ],
        "libraries": ["net.sf.jopt-simple:jopt-simple:5.0.4", {"name": "net.minecraftforge:installertools:1.4.1"}],
    }


class TestValidateProfile:
    def test_valid(self, profile_doc):
        assert validate_profile(profile_doc) == []

    def test_reports_every_error(self, profile_doc):
        del profile_doc["minecraft"]
        profile_doc["processors"][0]["sides"] = ["both"]
        profile_doc["processors"][1]["args"] = "not-a-list"

        errors = validate_profile(profile_doc)

        assert len(errors) == 3
        assert any("<root>" in e and "minecraft" in e for e in errors)
        assert any("processors/0/sides/0" in e for e in errors)
        assert any("processors/1/args" in e for e in errors)

    def test_processor_needs_module(self, profile_doc):
        profile_doc["processors"].append({"args": []})
        assert validate_profile(profile_doc)


class TestParseProfile:
    """Tests for turning a document into an InstallProfile."""

    def test_parses_steps_and_data(self, profile_doc):
        profile = parse_profile(profile_doc)

        assert profile.minecraft == "1.20.1"
        assert len(profile.processors) == 2
        first = profile.processors[0]
        assert first.module.descriptor == "net.minecraftforge:installertools:1.4.1"
        assert first.display_name == "net.minecraftforge:installertools -> MCP_DATA"
        assert [c.name for c in first.classpath] == ["jopt-simple"]
        assert profile.get_data(is_client=False)["BINPATCH"] == "/data/server.lzma"
        assert [lib.name for lib in profile.libraries] == ["jopt-simple", "installertools"]

    def test_side_selection(self, profile_doc):
        profile = parse_profile(profile_doc)
        assert len(profile.get_processors("client")) == 1
        assert len(profile.get_processors("server")) == 2

    def test_invalid_document_raises(self, profile_doc):
        profile_doc["processors"] = {}
        with pytest.raises(ConfigurationError, match="Invalid install profile"):
            parse_profile(profile_doc)

    def test_malformed_coordinate_raises(self, profile_doc):
        profile_doc["processors"][0]["jar"] = "not-a-coordinate"
        with pytest.raises(ConfigurationError):
            parse_profile(profile_doc)


def test_step_from_dict_requires_module():
    with pytest.raises(KeyError):
        step_from_dict({"args": []})


def test_null_output_value_is_kept():
    profile = profile_from_dict(
        {"minecraft": "1.0", "processors": [{"module": "a:b:1.0", "outputs": {"{ROOT}/x": None}}]}
    )
    assert profile.processors[0].outputs == {"{ROOT}/x": None}


class TestLoadProfile:
    def test_json(self, tmp_path: Path, profile_doc):
        path = tmp_path / "install_profile.json"
        path.write_text(json.dumps(profile_doc), encoding="utf-8")
        assert load_profile(path).minecraft == "1.20.1"

    def test_yaml(self, tmp_path: Path, profile_doc):
        path = tmp_path / "install_profile.yaml"
        path.write_text(yaml.safe_dump(profile_doc), encoding="utf-8")
        assert len(load_profile(path).processors) == 2

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_profile(tmp_path / "nope.json")

    def test_unparseable(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="broken.json"):
            load_profile(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="expected a mapping"):
            load_profile(path)
