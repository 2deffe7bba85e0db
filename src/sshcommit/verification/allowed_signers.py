"""
Allowed Signers Module

Reads the trust store format git uses for ``gpg.ssh.allowedSignersFile``::

    # principals [options] keytype base64 [comment]
    alice@example.com ssh-ed25519 AAAAC3Nza...
    bob@example.com namespaces="git" ecdsa-sha2-nistp256 AAAAE2Vj...

Lines are parsed by the ``sshsig`` package; this module adds principal
lookup and namespace filtering on top.
"""

import io
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from sshsig import allowed_signers as sshsig_allowed_signers

from ..signing.ssh_keys import SSHPublicKey

logger = logging.getLogger(__name__)

KEY_TYPES = {
    'ssh-ed25519',
    'ssh-rsa',
    'ecdsa-sha2-nistp256',
    'ecdsa-sha2-nistp384',
    'ecdsa-sha2-nistp521',
}


class AllowedSigner:
    """One entry of an allowed signers file."""

    def __init__(self,
                 principals: List[str],
                 public_key: SSHPublicKey,
                 options: Optional[Dict[str, str]] = None):
        self.principals = principals
        self.public_key = public_key
        self.options = options or {}

    @classmethod
    def from_sshsig(cls, entry: sshsig_allowed_signers.AllowedSigner) -> 'AllowedSigner':
        """Convert a parsed ``sshsig`` entry, keeping any key type we can verify."""
        if entry.key_type not in KEY_TYPES:
            raise ValueError(f"unsupported key type {entry.key_type!r}")
        public_key = SSHPublicKey.from_openssh(f"{entry.key_type} {entry.base64_key}")
        principals = [p for p in entry.principals.split(',') if p]
        return cls(principals, public_key, dict(entry.options or {}))

    @property
    def namespaces(self) -> Optional[List[str]]:
        value = self.options.get('namespaces')
        if value is None:
            return None
        return [ns.strip() for ns in value.split(',') if ns.strip()]

    @property
    def is_cert_authority(self) -> bool:
        return 'cert-authority' in self.options

    def allows_namespace(self, namespace: str) -> bool:
        namespaces = self.namespaces
        return namespaces is None or namespace in namespaces


class AllowedSigners:
    """A set of trusted SSH signers."""

    def __init__(self, entries: Optional[List[AllowedSigner]] = None):
        self.entries = entries or []

    @classmethod
    def parse(cls, text: str) -> 'AllowedSigners':
        """
        Parse allowed signers text.

        Raises:
            ValueError: a line is malformed (the message names the line)
        """
        entries = []
        for lineno, line in enumerate(text.split('\n'), start=1):
            # ssh-keygen skips leading blanks before the principals
            line = line.lstrip(' \t')
            try:
                parsed = [AllowedSigner.from_sshsig(entry) for entry in
                          sshsig_allowed_signers.load_allowed_signers_file(io.StringIO(line))]
            except ValueError as exc:
                raise ValueError(f"Malformed allowed signers line {lineno}: {exc}") from exc

            for entry in parsed:
                if entry.is_cert_authority:
                    logger.warning('Skipping cert-authority entry on line %d: certificates are not supported',
                                   lineno)
                    continue
                entries.append(entry)
        return cls(entries)

    @classmethod
    def load(cls, file_path: Union[str, Path]) -> 'AllowedSigners':
        path = Path(file_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Allowed signers file not found: {path}")
        signers = cls.parse(path.read_text())
        logger.debug('Loaded %d allowed signers from %s', len(signers.entries), path)
        return signers

    def keys_for_namespace(self, namespace: str) -> Iterator[SSHPublicKey]:
        for entry in self.entries:
            if entry.allows_namespace(namespace):
                yield entry.public_key

    def principals_for(self, public_key: SSHPublicKey) -> List[str]:
        principals: List[str] = []
        for entry in self.entries:
            if entry.public_key == public_key:
                principals.extend(entry.principals)
        return principals

    def __len__(self) -> int:
        return len(self.entries)
