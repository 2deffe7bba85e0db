"""
Configuration Module

Signing settings are read from, in increasing precedence: built-in defaults,
a YAML file, and environment variables.

Example ``~/.config/sshcommit/config.yaml``::

    signing:
      key_path: ~/.ssh/id_ed25519
      hash_algorithm: sha512
    verification:
      allowed_signers_file: ~/.config/git/allowed_signers
    user:
      name: Bob
      email: bob@example.com
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .commit.signature_embedder import GPGSIG_HEADER, SIGNATURE_HEADERS
from .signing.sshsig import DEFAULT_HASH_ALGORITHM, GIT_NAMESPACE, HASH_ALGORITHMS

logger = logging.getLogger(__name__)

CONFIG_ENV = 'SSHCOMMIT_CONFIG'
DEFAULT_CONFIG_PATH = Path('~/.config/sshcommit/config.yaml')

# environment variable -> (section, key)
ENV_OVERRIDES = {
    'SSHCOMMIT_KEY_PATH': ('signing', 'key_path'),
    'SSHCOMMIT_HASH_ALGORITHM': ('signing', 'hash_algorithm'),
    'SSHCOMMIT_NAMESPACE': ('signing', 'namespace'),
    'SSHCOMMIT_HEADER_FIELD': ('signing', 'header_field'),
    'SSHCOMMIT_ALLOWED_SIGNERS': ('verification', 'allowed_signers_file'),
    'GIT_AUTHOR_NAME': ('user', 'name'),
    'GIT_AUTHOR_EMAIL': ('user', 'email'),
}


class SigningConfig:
    """Settings for signing and verifying commits."""

    def __init__(self,
                 key_path: Optional[str] = None,
                 hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
                 namespace: str = GIT_NAMESPACE,
                 header_field: str = GPGSIG_HEADER,
                 allowed_signers_file: Optional[str] = None,
                 user_name: Optional[str] = None,
                 user_email: Optional[str] = None):
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")
        if header_field not in SIGNATURE_HEADERS:
            raise ValueError(f"Unsupported signature header: {header_field}")
        if not namespace:
            raise ValueError("Namespace must not be empty")

        self.key_path = key_path
        self.hash_algorithm = hash_algorithm
        self.namespace = namespace
        self.header_field = header_field
        self.allowed_signers_file = allowed_signers_file
        self.user_name = user_name
        self.user_email = user_email

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SigningConfig':
        """Build from the nested ``signing``/``verification``/``user`` layout."""
        signing = data.get('signing') or {}
        verification = data.get('verification') or {}
        user = data.get('user') or {}
        return cls(
            key_path=signing.get('key_path'),
            hash_algorithm=signing.get('hash_algorithm', DEFAULT_HASH_ALGORITHM),
            namespace=signing.get('namespace', GIT_NAMESPACE),
            header_field=signing.get('header_field', GPGSIG_HEADER),
            allowed_signers_file=verification.get('allowed_signers_file'),
            user_name=user.get('name'),
            user_email=user.get('email'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'signing': {
                'key_path': self.key_path,
                'hash_algorithm': self.hash_algorithm,
                'namespace': self.namespace,
                'header_field': self.header_field,
            },
            'verification': {
                'allowed_signers_file': self.allowed_signers_file,
            },
            'user': {
                'name': self.user_name,
                'email': self.user_email,
            },
        }

    @classmethod
    def load(cls,
             config_path: Optional[Union[str, Path]] = None,
             environ: Optional[Dict[str, str]] = None) -> 'SigningConfig':
        """
        Load configuration.

        Args:
            config_path: YAML file; defaults to ``$SSHCOMMIT_CONFIG`` or
                ``~/.config/sshcommit/config.yaml`` (missing default file is fine)
            environ: Environment mapping (default: ``os.environ``)

        Returns:
            SigningConfig instance
        """
        environ = os.environ if environ is None else environ
        explicit = config_path is not None or CONFIG_ENV in environ
        path = Path(config_path or environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH).expanduser()

        data: Dict[str, Any] = {}
        if path.exists():
            with open(path, 'r') as f:
                loaded = yaml.safe_load(f)
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            data = loaded or {}
            logger.debug('Loaded config from %s', path)
        elif explicit:
            raise FileNotFoundError(f"Config file not found: {path}")

        for variable, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                data.setdefault(section, {})
                if data[section] is None:
                    data[section] = {}
                data[section][key] = value

        return cls.from_dict(data)
