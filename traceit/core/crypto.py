from cryptography.hazmat.primitives import hashes

VERIFICATION_HASH_LENGTH = 16


def verification_hash(qr_id: str, title: str, created_at: str) -> str:
    """
    Short one-way token for verified_content codes.
    SHA-256 over id + title + creation timestamp, hex, truncated.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(f"{qr_id}{title}{created_at}".encode())
    return digest.finalize().hex()[:VERIFICATION_HASH_LENGTH]
