"""
Voter-side signatures: the 'auth' challenge response and the 'vote'
signature binding a ciphertext to its ballot session.
"""
from typing import Optional

from verivote.core.security import AUTH_TAG, VOTE_TAG, sign_message, verify_signature


def sign_auth(
    private_pem: str,
    voter_id: str,
    session_token: str,
    counter: Optional[int] = None,
    timestamp: Optional[int] = None
) -> str:
    return sign_message(private_pem, AUTH_TAG, voter_id, session_token, counter, timestamp)


def verify_auth(
    public_pem: str,
    signature: str,
    voter_id: str,
    session_token: str,
    counter: Optional[int] = None,
    timestamp: Optional[int] = None
) -> bool:
    return verify_signature(public_pem, signature, AUTH_TAG, voter_id, session_token, counter, timestamp)


def sign_vote(
    private_pem: str,
    voter_id: str,
    session_token: str,
    ciphertext: str,
    counter: Optional[int] = None,
    timestamp: Optional[int] = None
) -> str:
    return sign_message(private_pem, VOTE_TAG, voter_id, session_token, counter, timestamp, ciphertext)


def verify_vote(
    public_pem: str,
    signature: str,
    voter_id: str,
    session_token: str,
    ciphertext: str,
    counter: Optional[int] = None,
    timestamp: Optional[int] = None
) -> bool:
    return verify_signature(
        public_pem, signature, VOTE_TAG, voter_id, session_token, counter, timestamp, ciphertext
    )
