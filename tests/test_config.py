"""
Test suite for configuration loading.
"""

import os
import shutil
import tempfile

import pytest
import yaml

from sshcommit.config import SigningConfig


class TestSigningConfig:
    """Test cases for SigningConfig."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_config(self, data):
        with open(self.config_path, 'w') as f:
            yaml.safe_dump(data, f)

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv('HOME', self.temp_dir)
        config = SigningConfig.load(environ={})

        assert config.hash_algorithm == 'sha256'
        assert config.namespace == 'git'
        assert config.header_field == 'gpgsig'
        assert config.key_path is None

    def test_from_file(self):
        self.write_config({
            'signing': {'key_path': '~/.ssh/id_work', 'hash_algorithm': 'sha512'},
            'verification': {'allowed_signers_file': '/etc/allowed_signers'},
            'user': {'name': 'Bob', 'email': 'bob@example.com'},
        })
        config = SigningConfig.load(self.config_path, environ={})

        assert config.key_path == '~/.ssh/id_work'
        assert config.hash_algorithm == 'sha512'
        assert config.allowed_signers_file == '/etc/allowed_signers'
        assert config.user_name == 'Bob'

    def test_config_env_variable(self):
        self.write_config({'signing': {'namespace': 'ci'}})
        config = SigningConfig.load(environ={'SSHCOMMIT_CONFIG': self.config_path})

        assert config.namespace == 'ci'

    def test_environment_overrides_file(self):
        self.write_config({'signing': {'hash_algorithm': 'sha512'}, 'user': None})
        config = SigningConfig.load(self.config_path, environ={
            'SSHCOMMIT_HASH_ALGORITHM': 'sha256',
            'SSHCOMMIT_KEY_PATH': '/keys/id_ed25519',
            'GIT_AUTHOR_NAME': 'Alice',
            'GIT_AUTHOR_EMAIL': 'alice@example.com',
        })

        assert config.hash_algorithm == 'sha256'
        assert config.key_path == '/keys/id_ed25519'
        assert config.user_name == 'Alice'
        assert config.user_email == 'alice@example.com'

    def test_empty_file(self):
        open(self.config_path, 'w').close()

        assert SigningConfig.load(self.config_path, environ={}).namespace == 'git'

    def test_explicit_missing_file(self):
        with pytest.raises(FileNotFoundError):
            SigningConfig.load(os.path.join(self.temp_dir, 'missing.yaml'), environ={})

    def test_not_a_mapping(self):
        with open(self.config_path, 'w') as f:
            f.write('- just\n- a list\n')

        with pytest.raises(ValueError):
            SigningConfig.load(self.config_path, environ={})

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            SigningConfig(hash_algorithm='md5')
        with pytest.raises(ValueError):
            SigningConfig(header_field='x-sig')
        with pytest.raises(ValueError):
            SigningConfig(namespace='')

    def test_invalid_environment_value(self):
        open(self.config_path, 'w').close()

        with pytest.raises(ValueError):
            SigningConfig.load(self.config_path, environ={'SSHCOMMIT_HASH_ALGORITHM': 'sha1'})

    def test_to_dict_round_trip(self):
        config = SigningConfig(key_path='/k', user_name='A', user_email='a@example.com')

        assert SigningConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()
