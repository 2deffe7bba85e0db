"""
Test suite for the commit payload builder.
"""

import pytest
from dulwich.objects import Commit

from sshcommit.commit.payload_builder import (
    CommitPayload,
    Identity,
    build,
)
from sshcommit.storage.object_writer import commit_object_id

from keyutils import EMPTY_TREE, IDENTITY


class TestIdentity:
    """Test cases for Identity."""

    def test_parse_and_serialize(self):
        identity = Identity.parse(IDENTITY)

        assert identity.name == 'A'
        assert identity.email == 'a@example.com'
        assert identity.timestamp == 1700000000
        assert identity.tz_offset == 0
        assert identity.to_bytes() == IDENTITY.encode()

    def test_negative_offset(self):
        identity = Identity.parse('Bob Smith <bob@example.com> 1700000000 -0130')

        assert identity.name == 'Bob Smith'
        assert identity.tz_offset == -5400
        assert str(identity) == 'Bob Smith <bob@example.com> 1700000000 -0130'

    def test_negative_utc_preserved(self):
        identity = Identity.parse('A <a@example.com> 1700000000 -0000')

        assert identity.negative_utc
        assert str(identity).endswith('-0000')

    def test_rejects_angle_brackets(self):
        with pytest.raises(ValueError):
            Identity('A <evil>', 'a@example.com', 0)

        with pytest.raises(ValueError):
            Identity('A', 'a@example.com\nparent x', 0)

    def test_malformed(self):
        with pytest.raises(ValueError):
            Identity.parse('nobody')

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Identity('', 'a@example.com', 0)

        with pytest.raises(ValueError):
            Identity.parse('<a@example.com> 1700000000 +0000')

        with pytest.raises(ValueError):
            build(EMPTY_TREE, [], ' <a@example.com> 1700000000 +0000', IDENTITY, 'init\n')

    def test_carriage_return_kept(self):
        identity = Identity('x\rgpgsig y', 'a@example.com', 1700000000)

        assert identity.to_bytes() == b'x\rgpgsig y <a@example.com> 1700000000 +0000'

    def test_now(self):
        identity = Identity.now('A', 'a@example.com')

        assert identity.timestamp > 1700000000
        assert Identity.parse(str(identity)) == identity


class TestTimezone:
    """Test cases for identity timezones."""

    def test_format(self):
        def tz(offset, negative_utc=False):
            return str(Identity('A', 'a@example.com', 0, offset, negative_utc)).rsplit(' ', 1)[1]

        assert tz(0) == '+0000'
        assert tz(3600) == '+0100'
        assert tz(-19800) == '-0530'
        assert tz(0, negative_utc=True) == '-0000'
        # the flag only applies to a zero offset
        assert tz(3600, negative_utc=True) == '+0100'

    def test_non_minute_offset(self):
        with pytest.raises(ValueError):
            Identity('A', 'a@example.com', 0, 30)

    def test_offset_out_of_range(self):
        with pytest.raises(ValueError):
            Identity('A', 'a@example.com', 0, 100 * 3600)

    def test_parse(self):
        assert Identity.parse('A <a@example.com> 0 +0530').tz_offset == 19800
        assert Identity.parse('A <a@example.com> 0 -0000').negative_utc
        with pytest.raises(ValueError):
            Identity.parse('A <a@example.com> 0 0530')

    @pytest.mark.parametrize('tz', ['+0090', '-0160', '+1260'])
    def test_minutes_out_of_range(self, tz):
        # +0090 would otherwise be rewritten as +0130 in the signed bytes
        with pytest.raises(ValueError):
            Identity.parse(f'A <a@example.com> 1700000000 {tz}')

        with pytest.raises(ValueError):
            build(EMPTY_TREE, [], f'A <a@example.com> 1700000000 {tz}', IDENTITY, 'init\n')


class TestCommitPayload:
    """Test cases for payload serialization."""

    def test_root_commit_layout(self):
        payload = build(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n')

        expected = (
            b'tree 4b825dc642cb6eb9a060e54bf8d69288fbee4904\n'
            b'author A <a@example.com> 1700000000 +0000\n'
            b'committer A <a@example.com> 1700000000 +0000\n'
            b'\n'
            b'init\n'
        )
        assert payload == expected

    def test_deterministic(self):
        first = build(EMPTY_TREE, [], IDENTITY, IDENTITY, 'init\n')
        second = build(EMPTY_TREE, [], Identity.parse(IDENTITY), Identity.parse(IDENTITY), b'init\n')

        assert first == second

    def test_parents_in_order(self):
        parents = ['1' * 40, '2' * 40]
        payload = build(EMPTY_TREE, parents, IDENTITY, IDENTITY, 'merge\n')
        lines = payload.split(b'\n')

        assert lines[1] == b'parent ' + b'1' * 40
        assert lines[2] == b'parent ' + b'2' * 40
        assert lines[3].startswith(b'author ')

    def test_message_kept_verbatim(self):
        message = b'subject\n\n  indented body\r\nno trailing newline'
        payload = build(EMPTY_TREE, [], IDENTITY, IDENTITY, message)

        assert payload.endswith(b'\n\n' + message)

    def test_empty_message_keeps_separator(self):
        payload = build(EMPTY_TREE, [], IDENTITY, IDENTITY, b'')

        assert payload.endswith(b'+0000\n\n')

    def test_encoding_header(self):
        payload = CommitPayload(EMPTY_TREE, [], IDENTITY, IDENTITY, 'x\n', encoding='ISO-8859-1').to_bytes()

        assert b'\nencoding ISO-8859-1\n\n' in payload

    def test_invalid_tree_id(self):
        with pytest.raises(ValueError):
            build('not-a-tree', [], IDENTITY, IDENTITY, 'x\n')

        with pytest.raises(ValueError):
            build(EMPTY_TREE.upper(), [], IDENTITY, IDENTITY, 'x\n')

    def test_mixed_object_formats(self):
        with pytest.raises(ValueError):
            build(EMPTY_TREE, ['a' * 64], IDENTITY, IDENTITY, 'x\n')

    def test_sha256_object_ids(self):
        payload = build('b' * 64, ['c' * 64], IDENTITY, IDENTITY, 'x\n')

        assert payload.startswith(b'tree ' + b'b' * 64 + b'\nparent ' + b'c' * 64 + b'\n')

    def test_matches_git_object_model(self):
        """The payload parses as a git commit with the expected id."""
        payload = build(EMPTY_TREE, ['1' * 40], IDENTITY, IDENTITY, 'init\n')
        commit = Commit.from_string(payload)

        assert commit.tree == EMPTY_TREE.encode()
        assert commit.parents == [b'1' * 40]
        assert commit.author == b'A <a@example.com>'
        assert commit.message == b'init\n'
        assert commit.id.decode() == commit_object_id(payload)
