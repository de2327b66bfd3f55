"""Studio configuration: document aliases, user/CLI schemas and precedence."""

import pytest
from pydantic import ValidationError

from pictonet.schemas import CLIConfig, GlobalConfig, RuntimeConfig, UserConfig
from pictonet.schemas.resolve import deep_merge, resolve_config
from pictonet.schemas.settings import get_settings

pytestmark = [pytest.mark.unit, pytest.mark.schemas]


class TestGlobalConfig:

    def test_defaults(self):
        config = GlobalConfig()

        assert config.lang == "es"
        assert config.aspect_ratio == "1:1"
        assert config.image_model == "flash"
        assert config.author == "PICTOS.NET"
        assert config.license == "CC BY 4.0"
        assert config.svg_styles["f"].fill == "#000000"
        assert config.svg_styles["k"].fill == "#ffffff"

    @pytest.mark.parametrize("selector, name", [
        ("flash", "gemini-2.5-flash-image"),
        ("pro", "gemini-3-pro-image-preview"),
    ])
    def test_image_model_name(self, selector, name):
        assert GlobalConfig(image_model=selector).image_model_name == name

    def test_document_keys(self):
        document = GlobalConfig(aspect_ratio="16:9").to_document()

        assert document["aspectRatio"] == "16:9"
        assert document["geoContext"]["region"] == "Madrid, ES"
        assert document["svgStyles"]["f"]["strokeWidth"] == 0
        assert "aspect_ratio" not in document

    def test_document_reads_back_and_ignores_ui_keys(self):
        document = GlobalConfig(lang="en", image_model="pro").to_document()
        document["uiLang"] = "fr"

        assert GlobalConfig.model_validate(document) == GlobalConfig(lang="en", image_model="pro")

    def test_extra_css_properties_are_kept(self):
        config = GlobalConfig.model_validate({"svgStyles": {"f": {"fill": "red", "filter": "blur(1px)"}}})

        assert config.svg_styles["f"].model_dump()["filter"] == "blur(1px)"

    @pytest.mark.parametrize("field, value", [
        ("aspect_ratio", "2:1"),
        ("image_model", "ultra"),
    ])
    def test_invalid_selectors(self, field, value):
        with pytest.raises(ValidationError):
            GlobalConfig(**{field: value})


class TestUserConfig:

    def test_uppercase_keys_are_handled(self):
        user = UserConfig.model_validate({
            "LANG": "EN",
            "ASPECT_RATIO": "4:3",
            "IMAGE_MODEL": "Pro",
            "LAT": 41.39,
            "BASE_DIR": "/tmp/pictonet_out",
            "LOG_LEVEL": "debug",
        })

        assert user.lang == "en"
        assert user.aspect_ratio == "4:3"
        assert user.image_model == "pro"
        assert user.lat == "41.39"
        assert user.base_dir == "/tmp/pictonet_out"
        assert user.log_level == "DEBUG"

    def test_unknown_keys_are_ignored(self):
        user = UserConfig.model_validate({"LANG": "es", "RADAR_ID": "KHTX"})

        assert user.lang == "es"
        assert not hasattr(user, "RADAR_ID")

    def test_overrides_are_nested(self):
        user = UserConfig.model_validate({"AUTHOR": "Ana", "REGION": "Lima, PE", "CONCURRENCY": 2})

        assert user.to_overrides() == {
            "studio": {"author": "Ana", "geo_context": {"region": "Lima, PE"}},
            "concurrency": 2,
        }

    def test_empty_user_config_has_no_overrides(self):
        assert UserConfig().to_overrides() == {}

    def test_explicit_geo_wins_over_flat_keys(self):
        user = UserConfig.model_validate({"REGION": "Lima", "geo_context": {"region": "Quito"}})

        assert user.to_overrides()["studio"]["geo_context"] == {"region": "Quito"}


class TestCLIConfig:

    def test_overrides(self):
        cli = CLIConfig(image_model="pro", db_path="studio.db", log_level="WARNING")

        assert cli.to_overrides() == {
            "studio": {"image_model": "pro"},
            "db_path": "studio.db",
            "log_level": "WARNING",
        }

    def test_unknown_field_is_rejected(self):
        with pytest.raises(ValidationError):
            CLIConfig(radar_id="KHTX")

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            CLIConfig(concurrency=0)


class TestResolveConfig:

    def test_all_defaults(self):
        config = resolve_config()

        assert isinstance(config, RuntimeConfig)
        assert config.studio == GlobalConfig()
        assert config.log_level == "INFO"
        assert config.db_path is None

    def test_precedence_cli_over_user_over_persisted(self):
        persisted = GlobalConfig(lang="fr", author="Studio", aspect_ratio="3:4")
        user = UserConfig.model_validate({"LANG": "en", "AUTHOR": "Ana"})
        cli = CLIConfig(lang="es")

        config = resolve_config(persisted, user, cli)

        assert config.studio.lang == "es"
        assert config.studio.author == "Ana"
        assert config.studio.aspect_ratio == "3:4"

    def test_persisted_document_is_accepted(self):
        config = resolve_config({"aspectRatio": "9:16"}, {"LANG": "en"}, {"concurrency": 3})

        assert config.studio.aspect_ratio == "9:16"
        assert config.studio.lang == "en"
        assert config.concurrency == 3

    def test_partial_style_override_keeps_other_classes(self):
        user = UserConfig.model_validate({"SVG_STYLES": {"f": {"fill": "#ff0000"}}})

        config = resolve_config(None, user, None)

        assert config.studio.svg_styles["f"].fill == "#ff0000"
        assert config.studio.svg_styles["k"].fill == "#ffffff"

    def test_inputs_are_not_mutated(self):
        persisted = GlobalConfig(lang="fr")
        user = UserConfig(lang="en")

        resolve_config(persisted, user, CLIConfig(lang="es"))

        assert persisted.lang == "fr"
        assert user.lang == "en"

    def test_result_is_frozen(self):
        config = resolve_config()

        with pytest.raises(ValidationError):
            config.log_level = "DEBUG"


def test_deep_merge_is_recursive_and_pure():
    base = {"a": 1, "b": {"c": 2, "d": 3}}

    merged = deep_merge(base, {"b": {"d": 4}}, {"e": 5})

    assert merged == {"a": 1, "b": {"c": 2, "d": 4}, "e": 5}
    assert base == {"a": 1, "b": {"c": 2, "d": 3}}


def test_settings_come_from_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("PICTONET_LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("PICTONET_DB_PATH", raising=False)

    settings = get_settings()

    assert settings.gemini_api_key == "test-key"
    assert settings.pictonet_log_level == "DEBUG"
    assert settings.pictonet_db_path is None
