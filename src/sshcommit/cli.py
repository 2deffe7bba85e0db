"""
Command Line Interface

    sshcommit sign [--repo DIR] [-m MESSAGE] [--key PATH] [--ref REF] [--init]
    sshcommit verify [--repo DIR] [--allowed-signers FILE] [--key PUB ...] [COMMIT]
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from dulwich.errors import NotGitRepository

from . import __version__
from .commit.payload_builder import Identity
from .config import SigningConfig
from .exceptions import (
    CommitSigningError,
    DecryptionFailedError,
    EmbeddingFailedError,
    KeyNotFoundError,
    MalformedSignatureBlockError,
    SigningFailedError,
    UnsupportedKeyFormatError,
)
from .pipeline import CommitSigner
from .signing.passphrase import EnvironmentPassphrase, PassphraseSupplier, PromptPassphrase
from .signing.ssh_keys import SigningKey, SSHPublicKey
from .storage.object_writer import HEAD_REF, DulwichObjectWriter
from .verification.allowed_signers import AllowedSigners
from .verification.signature_format import GPGCliVerifier
from .verification.signature_verifier import SignatureVerifier

logger = logging.getLogger('sshcommit')

MAX_PASSPHRASE_ATTEMPTS = 3
PASSPHRASE_ENV = 'SSHCOMMIT_PASSPHRASE'
DEFAULT_MESSAGE = 'Initial commit'

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

# most specific first
EXIT_CODES = (
    (KeyNotFoundError, 3, 'SSH key not found'),
    (UnsupportedKeyFormatError, 4, 'unsupported SSH key'),
    (DecryptionFailedError, 5, 'could not decrypt SSH key'),
    (SigningFailedError, 6, 'signing failed'),
    (EmbeddingFailedError, 7, 'malformed commit'),
    (MalformedSignatureBlockError, 8, 'malformed signature'),
    (CommitSigningError, EXIT_FAILURE, 'error'),
)


def _exit_code(exc: CommitSigningError):
    for exc_type, code, label in EXIT_CODES:
        if isinstance(exc, exc_type):
            return code, label
    return EXIT_FAILURE, 'error'


def _message(text: str) -> str:
    return text if text.endswith('\n') else text + '\n'


def _load_key_with_retries(signer: CommitSigner, key_path: Optional[str],
                           passphrase_supplier: Optional[PassphraseSupplier]) -> SigningKey:
    attempts = MAX_PASSPHRASE_ATTEMPTS
    if passphrase_supplier is None:
        if PASSPHRASE_ENV in os.environ:
            passphrase_supplier = EnvironmentPassphrase(PASSPHRASE_ENV)
            attempts = 1
        else:
            passphrase_supplier = PromptPassphrase()

    for attempt in range(1, attempts + 1):
        try:
            return signer.load_key(key_path, passphrase_supplier)
        except DecryptionFailedError:
            if attempt == attempts:
                raise
            print('Wrong passphrase, try again.', file=sys.stderr)


def _sign_with_retries(signer: CommitSigner, args, config: SigningConfig,
                       passphrase_supplier: Optional[PassphraseSupplier]) -> str:
    if not config.user_name or not config.user_email:
        raise ValueError('Committer identity unknown: set user.name and user.email '
                         'in the config file or GIT_AUTHOR_NAME/GIT_AUTHOR_EMAIL')
    identity = Identity.now(config.user_name, config.user_email)

    writer = DulwichObjectWriter(args.repo, init=args.init)
    try:
        # nothing is written to the object store until the key is usable
        with _load_key_with_retries(signer, args.key, passphrase_supplier) as key:
            tree_id = writer.write_index_tree()
            head = writer.head()
            parents = [head] if head else []
            return signer.commit(writer, tree_id, parents, identity, identity,
                                 _message(args.message), ref_name=args.ref, key=key)
    finally:
        writer.close()


def cmd_sign(args, config: SigningConfig, passphrase_supplier: Optional[PassphraseSupplier] = None) -> int:
    signer = CommitSigner(config)
    commit_id = _sign_with_retries(signer, args, config, passphrase_supplier)
    print(f"[{args.ref} {commit_id[:7]}] {args.message.splitlines()[0] if args.message else ''}")
    logger.info('Signed commit %s', commit_id)
    return EXIT_OK


def _trusted_keys(args, config: SigningConfig):
    if args.keys:
        return [SSHPublicKey.from_file(path) for path in args.keys]
    allowed_signers = args.allowed_signers or config.allowed_signers_file
    if allowed_signers:
        return AllowedSigners.load(allowed_signers)
    raise ValueError('No trusted keys: pass --key or --allowed-signers, '
                     'or set verification.allowed_signers_file')


def cmd_verify(args, config: SigningConfig, passphrase_supplier: Optional[PassphraseSupplier] = None) -> int:
    trusted = _trusted_keys(args, config)
    writer = DulwichObjectWriter(args.repo)
    try:
        commit_id = writer.resolve(args.commit) if args.commit else writer.head()
        if commit_id is None:
            raise KeyError('HEAD does not point at a commit')
        raw = writer.read_commit(commit_id)
    finally:
        writer.close()

    verifier = SignatureVerifier(namespace=config.namespace,
                                 header_field=config.header_field,
                                 fallback=GPGCliVerifier())
    result = verifier.verify(raw, trusted)

    print(f"{commit_id}: {result.status.value}")
    if result.fingerprint:
        print(f"  signer: {result.fingerprint}")
    if result.principals:
        print(f"  principals: {', '.join(result.principals)}")
    if not result.is_valid:
        print(f"  {result.message}")
    return EXIT_OK if result.is_valid else EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sshcommit',
        description='Sign and verify commits with SSH keys',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('-v', '--verbose', action='store_true', default=False,
                        help='Be a bit more verbose')
    parser.add_argument('-d', '--debug', action='store_true', default=False,
                        help='Show debugging output')
    parser.add_argument('-c', '--config', dest='config', default=None,
                        help='YAML config file (default: $SSHCOMMIT_CONFIG or ~/.config/sshcommit/config.yaml)')
    parser.add_argument('--version', action='version', version=__version__)

    subparsers = parser.add_subparsers(help='sub-command help', dest='subcmd')

    sp_sign = subparsers.add_parser('sign', help='Create a signed commit from the index')
    sp_sign.add_argument('--repo', default='.', help='Repository work tree')
    sp_sign.add_argument('-m', '--message', default=DEFAULT_MESSAGE, help='Commit message')
    sp_sign.add_argument('--key', default=None, help='Private key (default: first of ~/.ssh/id_{ed25519,ecdsa,rsa})')
    sp_sign.add_argument('--ref', default=HEAD_REF, help='Reference to move to the new commit')
    sp_sign.add_argument('--init', action='store_true', default=False,
                         help='Create the repository if it does not exist')
    sp_sign.set_defaults(func=cmd_sign)

    sp_verify = subparsers.add_parser('verify', help='Verify the signature of a commit')
    sp_verify.add_argument('--repo', default='.', help='Repository work tree')
    sp_verify.add_argument('--allowed-signers', dest='allowed_signers', default=None,
                           help='Allowed signers file')
    sp_verify.add_argument('--key', dest='keys', action='append', default=None,
                           help='Trusted public key file (repeatable)')
    sp_verify.add_argument('commit', nargs='?', default=None, help='Commit to verify (default: HEAD)')
    sp_verify.set_defaults(func=cmd_verify)

    return parser


def _setup_logging(args) -> logging.Handler:
    logger.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter('%(message)s'))
    if args.verbose:
        ch.setLevel(logging.INFO)
    elif args.debug:
        ch.setLevel(logging.DEBUG)
    else:
        ch.setLevel(logging.CRITICAL)

    logger.addHandler(ch)
    return ch


def main(argv: Optional[List[str]] = None,
         passphrase_supplier: Optional[PassphraseSupplier] = None) -> int:
    """
    Run the command line.

    Args:
        argv: Arguments (default: ``sys.argv[1:]``)
        passphrase_supplier: Overrides prompting for the key passphrase

    Returns:
        Process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if 'func' not in args:
        parser.print_help()
        return EXIT_USAGE

    handler = _setup_logging(args)
    try:
        config = SigningConfig.load(args.config)
        return args.func(args, config, passphrase_supplier)
    except CommitSigningError as e:
        code, label = _exit_code(e)
        print(f"{label}: {e}", file=sys.stderr)
        return code
    except NotGitRepository as e:
        print(f"not a repository: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (KeyError, ValueError) as e:
        print(f"error: {e.args[0] if e.args else e}", file=sys.stderr)
        return EXIT_USAGE
    except OSError as e:
        # missing files, or a helper program such as gpg that cannot be run
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    finally:
        logger.removeHandler(handler)


def command() -> None:
    sys.exit(main())


if __name__ == '__main__':
    command()
