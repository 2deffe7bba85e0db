"""
Test suite for the signature embedder.
"""

import pytest
from dulwich.objects import Commit

from sshcommit.commit.payload_builder import build
from sshcommit.commit.signature_embedder import SignatureEmbedder, embed, format_signature_header
from sshcommit.exceptions import EmbeddingFailedError
from sshcommit.signing.sshsig import sign

from keyutils import EMPTY_TREE, IDENTITY, ed25519_private_key, signing_key


class TestSignatureEmbedder:
    """Test cases for SignatureEmbedder."""

    def setup_method(self):
        """Set up test fixtures."""
        self.embedder = SignatureEmbedder()
        self.payload = build(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n')
        self.signature = sign(signing_key(ed25519_private_key()), self.payload)

    def test_header_placement(self):
        signed = self.embedder.embed(self.payload, self.signature)
        lines = signed.split(b'\n')

        assert lines[0] == b'tree ' + EMPTY_TREE.encode()
        assert lines[1] == b'author ' + IDENTITY.encode()
        assert lines[2] == b'committer ' + IDENTITY.encode()
        assert lines[3] == b'gpgsig -----BEGIN SSH SIGNATURE-----'

        end = lines.index(b' -----END SSH SIGNATURE-----')
        assert all(line.startswith(b' ') for line in lines[4:end + 1])
        assert lines[end + 1] == b''
        assert lines[end + 2] == b'init'

    def test_extract_round_trip(self):
        signed = embed(self.payload, self.signature)
        payload, armored = self.embedder.extract(signed)

        assert payload == self.payload
        assert armored.decode() == self.signature.armor()

    def test_strip_signature(self):
        signed = embed(self.payload, self.signature.armor())

        assert self.embedder.strip_signature(signed) == self.payload

    def test_extract_unsigned(self):
        payload, armored = self.embedder.extract(self.payload)

        assert payload == self.payload
        assert armored is None

    def test_parsed_by_git_object_model(self):
        signed = embed(self.payload, self.signature)
        commit = Commit.from_string(signed)

        assert commit.gpgsig.strip() == self.signature.armor().strip().encode()
        assert commit.message == b'init\n'

    def test_sha256_header(self):
        embedder = SignatureEmbedder('gpgsig-sha256')
        signed = embedder.embed(self.payload, self.signature)

        assert b'\ngpgsig-sha256 -----BEGIN SSH SIGNATURE-----\n' in signed
        assert SignatureEmbedder().extract(signed)[1] is None
        assert embedder.strip_signature(signed) == self.payload

    def test_unknown_header_field(self):
        with pytest.raises(ValueError):
            SignatureEmbedder('x-signature')

    def test_keeps_other_multiline_headers(self):
        payload = self.payload.replace(
            b'\n\ninit',
            b'\nmergetag object 1111\n type commit\n tag v1\n\ninit'
        )
        signed = self.embedder.embed(payload, self.signature)

        assert self.embedder.strip_signature(signed) == payload

    def test_message_mentioning_gpgsig(self):
        payload = build(EMPTY_TREE, [], IDENTITY, IDENTITY, 'gpgsig looks like a header\n')
        payload, armored = self.embedder.extract(payload)

        assert armored is None

    def test_carriage_return_in_identity(self):
        author = 'x\rgpgsig y <a@example.com> 1700000000 +0000'
        payload = build(EMPTY_TREE, [], author, IDENTITY, 'init\n')
        signature = sign(signing_key(ed25519_private_key()), payload)

        signed = self.embedder.embed(payload, signature)
        extracted, armored = self.embedder.extract(signed)

        assert extracted == payload
        assert armored == signature.armor().encode()
        assert signed.count(b'gpgsig -----BEGIN SSH SIGNATURE-----\n') == 1

    def test_no_separator(self):
        with pytest.raises(EmbeddingFailedError):
            self.embedder.embed(b'tree ' + EMPTY_TREE.encode() + b'\n', self.signature)

    def test_missing_tree(self):
        payload = self.payload.split(b'\n', 1)[1]
        with pytest.raises(EmbeddingFailedError):
            self.embedder.embed(payload, self.signature)

    def test_missing_committer(self):
        payload = self.payload.replace(b'committer ' + IDENTITY.encode() + b'\n', b'')
        with pytest.raises(EmbeddingFailedError) as excinfo:
            self.embedder.embed(payload, self.signature)

        assert excinfo.value.errors == ['committer']

    def test_already_signed(self):
        signed = self.embedder.embed(self.payload, self.signature)

        with pytest.raises(EmbeddingFailedError):
            self.embedder.embed(signed, self.signature)

    def test_empty_signature(self):
        with pytest.raises(EmbeddingFailedError):
            format_signature_header('gpgsig', '\n')
