"""Cross-key claims: two signers attesting to each other without a statement.

The claim text is ``message + delimiter + sig1 + delimiter + sig2`` where
both signatures are over ``message``. Any two signers can be combined, e.g.
an Ed25519 web key with an Ethereum address.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .errors import ProofError, ProofErrorKind, SubjectError
from .signer import Signer
from .subject import Subject

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = "\n"

StatementGenerator = Callable[[Signer, Signer], str]


def default_statement(first: Signer, second: Signer) -> str:
    """``"<name1> <id1> is linked to <name2> <id2>"``."""
    return f"{first.name} {first.id()} is linked to {second.name} {second.id()}"


async def crosskey_claim(
    first: Signer,
    second: Signer,
    generator: StatementGenerator = default_statement,
    delimiter: str = DEFAULT_DELIMITER,
) -> str:
    """Have both signers sign the linking message and join the results.

    Raises:
        SignerError: If either signer cannot sign.
    """
    message = generator(first, second)
    if delimiter in message:
        raise ValueError("Linking message must not contain the delimiter")

    sig1 = await first.sign(message)
    sig2 = await second.sign(message)
    logger.debug(f"Built cross-key claim between {first.id()} and {second.id()}")
    return delimiter.join((message, sig1, sig2))


async def verify_crosskey_claim(
    claim: str,
    first: Subject,
    second: Subject,
    delimiter: str = DEFAULT_DELIMITER,
) -> str:
    """Check both signatures in a cross-key claim and return its message.

    Raises:
        ProofError: ``statement`` kind if the claim is not three parts,
            ``subject`` kind (chained to the SubjectError) if either
            signature fails.
    """
    parts = claim.split(delimiter)
    if len(parts) != 3:
        raise ProofError(f"Cross-key claim must have 3 parts, found {len(parts)}")

    message, sig1, sig2 = parts
    for subject, signature in ((first, sig1), (second, sig2)):
        try:
            await subject.valid_signature(message, signature)
        except SubjectError as e:
            raise ProofError(f"Cross-key signature failed: {e.message}", kind=ProofErrorKind.SUBJECT) from e
    return message
