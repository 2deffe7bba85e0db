"""
Test suite for the commit signing pipeline.
"""

import shutil
import tempfile

import pytest

from sshcommit import CommitSigner, InMemoryObjectWriter, SigningConfig, SignatureVerifier
from sshcommit.commit.signature_embedder import SignatureEmbedder
from sshcommit.exceptions import DecryptionFailedError, SigningFailedError
from sshcommit.signing.key_loader import KeyLoader
from sshcommit.signing.passphrase import StaticPassphrase
from sshcommit.signing.sshsig import SignatureEngine

from keyutils import EMPTY_TREE, IDENTITY, ed25519_private_key, public_key, write_key


class FailingEngine(SignatureEngine):
    def sign(self, key, payload, namespace='git'):
        self.key = key
        raise SigningFailedError("boom")


class TestCommitSigner:
    """Test cases for CommitSigner."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.private_key = ed25519_private_key()
        self.key_path = write_key(self.temp_dir, 'id_ed25519', self.private_key, password=b'pw')
        self.signer = CommitSigner(key_loader=KeyLoader(ssh_dir=self.temp_dir))

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_sign_commit_verifies(self):
        signed = self.signer.sign_commit(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n',
                                         passphrase_supplier=StaticPassphrase('pw'))
        result = SignatureVerifier().verify(signed.raw, [public_key(self.private_key)])

        assert result.is_valid
        assert signed.fingerprint == public_key(self.private_key).fingerprint
        assert SignatureEmbedder().strip_signature(signed.raw) == signed.payload

    def test_header_lines_unchanged(self):
        signed = self.signer.sign_commit(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n',
                                         passphrase_supplier=StaticPassphrase('pw'))
        payload_lines = signed.payload.split(b'\n')
        raw_lines = signed.raw.split(b'\n')

        assert raw_lines[:3] == payload_lines[:3]
        assert raw_lines[3].startswith(b'gpgsig ')
        assert signed.raw.endswith(b'\n\ninit\n')

    def test_wrong_passphrase(self):
        with pytest.raises(DecryptionFailedError):
            self.signer.sign_commit(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n',
                                    passphrase_supplier=StaticPassphrase('nope'))

    def test_key_discarded_on_failure(self):
        engine = FailingEngine()
        signer = CommitSigner(key_loader=KeyLoader(ssh_dir=self.temp_dir), engine=engine)

        with pytest.raises(SigningFailedError):
            signer.sign_commit(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n',
                               passphrase_supplier=StaticPassphrase('pw'))
        assert engine.key.is_discarded

    def test_config_key_path_and_hash(self):
        config = SigningConfig(key_path=self.key_path, hash_algorithm='sha512')
        signer = CommitSigner(config=config, key_loader=KeyLoader(ssh_dir='/nonexistent'))
        signed = signer.sign_commit(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n',
                                    passphrase_supplier=StaticPassphrase('pw'))

        assert signed.signature.hash_algorithm == 'sha512'
        assert signed.to_dict()['hash_algorithm'] == 'sha512'

    def test_commit_chain(self):
        writer = InMemoryObjectWriter()
        supplier = StaticPassphrase('pw')

        first = self.signer.commit(writer, EMPTY_TREE, [], IDENTITY, IDENTITY, 'first\n',
                                   passphrase_supplier=supplier)
        second = self.signer.commit(writer, EMPTY_TREE, [writer.head()], IDENTITY, IDENTITY, 'second\n',
                                    passphrase_supplier=supplier)

        assert writer.head() == second
        assert b'\nparent ' + first.encode() + b'\n' in writer.read_commit(second)

        verifier = SignatureVerifier()
        for commit_id in (first, second):
            assert verifier.verify(writer.read_commit(commit_id), [public_key(self.private_key)]).is_valid

    def test_preloaded_key_stays_with_caller(self):
        writer = InMemoryObjectWriter()

        with self.signer.load_key(self.key_path, StaticPassphrase('pw')) as key:
            first = self.signer.commit(writer, EMPTY_TREE, [], IDENTITY, IDENTITY, 'first\n', key=key)
            second = self.signer.commit(writer, EMPTY_TREE, [first], IDENTITY, IDENTITY, 'second\n', key=key)
            assert not key.is_discarded
        assert key.is_discarded

        verifier = SignatureVerifier()
        for commit_id in (first, second):
            assert verifier.verify(writer.read_commit(commit_id), [public_key(self.private_key)]).is_valid
