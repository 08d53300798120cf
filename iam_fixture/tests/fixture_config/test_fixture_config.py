"""
FixtureConfig / CheckerConfig: attribute loading and environment settings.
"""
import pytest
import yaml

from iam_fixture.core.config.checker_config import CheckerConfig
from iam_fixture.core.config.fixture_config import (
    ATTRIBUTES_ENV_VAR,
    FixtureConfig,
    load_fixture_config,
)
from iam_fixture.core.errors import ConfigError


class TestFromMapping:

    def test_builds_pairs_and_member_groups(self, fixture_attributes):
        config = FixtureConfig.from_mapping(fixture_attributes)
        assert config.project_id == "ci-iam-fixture"
        assert config.buckets == ("ci-iam-bucket-0", "ci-iam-bucket-1")
        assert config.member_groups[0] == ("user:alice@example.com", "group:ops@example.com")
        assert config.member_groups[1] == (
            "serviceAccount:ci@ci-iam-fixture.iam.gserviceaccount.com",
        )

    def test_extra_attributes_are_ignored(self, fixture_attributes):
        fixture_attributes["org_roles"] = ["roles/viewer", "roles/browser"]
        assert FixtureConfig.from_mapping(fixture_attributes).region == "us-central1"

    @pytest.mark.parametrize("name", ["project_id", "folders", "key_rings", "member_group_1"])
    def test_missing_attribute_is_named(self, fixture_attributes, name):
        del fixture_attributes[name]
        with pytest.raises(ConfigError, match=name):
            FixtureConfig.from_mapping(fixture_attributes)

    @pytest.mark.parametrize("value", [["only-one"], ["a", "b", "c"], "a,b", ["a", ""]])
    def test_pairs_must_have_two_values(self, fixture_attributes, value):
        fixture_attributes["topics"] = value
        with pytest.raises(ConfigError, match="topics"):
            FixtureConfig.from_mapping(fixture_attributes)

    def test_members_need_a_type_prefix(self, fixture_attributes):
        fixture_attributes["member_group_0"] = ["alice@example.com"]
        with pytest.raises(ConfigError, match="alice@example.com"):
            FixtureConfig.from_mapping(fixture_attributes)

    def test_non_mapping_is_rejected(self):
        with pytest.raises(ConfigError):
            FixtureConfig.from_mapping(["project_id"])


class TestFromYaml:

    def test_reads_attribute_file(self, tmp_path, fixture_attributes):
        path = tmp_path / "attributes.yml"
        path.write_text(yaml.safe_dump(fixture_attributes))
        config = FixtureConfig.from_yaml(str(path))
        assert config == FixtureConfig.from_mapping(fixture_attributes)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            FixtureConfig.from_yaml(str(tmp_path / "missing.yml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "attributes.yml"
        path.write_text("project_id: [unterminated")
        with pytest.raises(ConfigError, match="Could not parse"):
            FixtureConfig.from_yaml(str(path))

    def test_empty_file_reports_missing_attributes(self, tmp_path):
        path = tmp_path / "attributes.yml"
        path.write_text("")
        with pytest.raises(ConfigError, match="project_id"):
            FixtureConfig.from_yaml(str(path))


class TestEnvironment:

    def test_load_returns_none_without_env(self, monkeypatch):
        monkeypatch.delenv(ATTRIBUTES_ENV_VAR, raising=False)
        assert load_fixture_config() is None

    def test_load_reads_env_path(self, monkeypatch, tmp_path, fixture_attributes):
        path = tmp_path / "attributes.yml"
        path.write_text(yaml.safe_dump(fixture_attributes))
        monkeypatch.setenv(ATTRIBUTES_ENV_VAR, str(path))
        assert load_fixture_config().project_id == "ci-iam-fixture"

    def test_checker_defaults(self, monkeypatch):
        for name in (
            "IAM_FIXTURE_GCLOUD",
            "IAM_FIXTURE_TIMEOUT",
            "IAM_FIXTURE_MAX_ATTEMPTS",
            "IAM_FIXTURE_MAX_WORKERS",
        ):
            monkeypatch.delenv(name, raising=False)
        config = CheckerConfig()
        assert config.gcloud == "gcloud"
        assert config.timeout == 60.0
        assert config.max_attempts == 1
        assert config.max_workers == 4

    def test_checker_overrides(self, monkeypatch):
        monkeypatch.setenv("IAM_FIXTURE_TIMEOUT", "12.5")
        monkeypatch.setenv("IAM_FIXTURE_MAX_ATTEMPTS", "0")
        monkeypatch.setenv("IAM_FIXTURE_LOG_JSON", "true")
        config = CheckerConfig()
        assert config.timeout == 12.5
        assert config.max_attempts == 1
        assert config.log_json is True
