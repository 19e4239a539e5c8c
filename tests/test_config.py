"""
Tests for .env based integration settings
"""

import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from solar_c2c.core.config import (check_env_security, env_var_name, integration_from_env,
                                   load_env_settings, save_env_settings)
from solar_c2c.providers.enphase import EnphaseProvider


class TestEnvSettings:
    """Test cases for .env loading and saving"""

    def setup_method(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.env_file = os.path.join(self.temp_dir, ".env")

    def teardown_method(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.temp_dir)

    def test_env_var_name(self):
        assert env_var_name("enphase", "apiKey") == "ENPHASE_API_KEY"
        assert env_var_name("enphase", "oauthClientId") == "ENPHASE_OAUTH_CLIENT_ID"
        assert env_var_name("fronius", "accessKeyValue") == "FRONIUS_ACCESS_KEY_VALUE"

    def test_load_missing_file(self):
        assert load_env_settings(self.env_file) == {}

    def test_save_and_load(self):
        result = save_env_settings(self.env_file, {"SOLAREDGE_API_KEY": "abc", "EMPTY": ""})

        assert result is True
        with open(self.env_file, "r") as f:
            content = f.read()
        assert content.startswith("#")
        assert "EMPTY" not in content
        assert load_env_settings(self.env_file) == {"SOLAREDGE_API_KEY": "abc"}

    def test_save_sets_owner_only_permissions(self):
        save_env_settings(self.env_file, {"A": "1"})
        assert oct(Path(self.env_file).stat().st_mode)[-3:] == "600"

    def test_load_skips_comments_and_quotes(self):
        with open(self.env_file, "w") as f:
            f.write('# comment\nFRONIUS_ACCESS_KEY_ID="FKIA"\nnot a setting\nX=a=b\n')

        settings = load_env_settings(self.env_file)

        assert settings == {"FRONIUS_ACCESS_KEY_ID": "FKIA", "X": "a=b"}

    def test_security_checks(self):
        save_env_settings(self.env_file, {"A": "1"})
        with open(os.path.join(self.temp_dir, ".gitignore"), "w") as f:
            f.write(".env\n")

        checks = check_env_security(self.env_file)

        assert checks == {"env_exists": True, "gitignore_exists": True,
                          "env_in_gitignore": True, "secure_permissions": True}

    def test_integration_from_env(self):
        with open(self.env_file, "w") as f:
            f.write("ENPHASE_API_KEY=key-from-file\nENPHASE_OAUTH_CLIENT_ID=client\n")

        with patch.dict(os.environ, {"ENPHASE_OAUTH_CLIENT_ID": "env-client",
                                     "ENPHASE_OAUTH_ACCESS_TOKEN": "env-token"}):
            config = integration_from_env("enphase", 1, 2, EnphaseProvider.required_settings, self.env_file)

        assert config.provider_id == "enphase"
        assert config.key == (1, 2)
        assert config.service_properties == {
            "apiKey": "key-from-file",
            "oauthClientId": "client",
            "oauthAccessToken": "env-token",
        }

    def test_env_integration_validates_missing(self):
        config = integration_from_env("enphase", 1, 2, EnphaseProvider.required_settings, self.env_file)

        result = EnphaseProvider().validate(config)

        assert result.success is False
        assert len(result.errors) == 5
