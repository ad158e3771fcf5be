"""Test vectors for ccdrop."""

# AES-256-GCM known answers (McGrew-Viega GCM test cases 13 and 14):
# all-zero key and all-zero 96-bit IV.
ZERO_KEY_HEX = "00" * 32
ZERO_NONCE_HEX = "00" * 12
EMPTY_PLAINTEXT_TAG_HEX = "530f8afbc74536b9a963b4f1c4cb738b"
ZERO_BLOCK_CIPHERTEXT_HEX = "cea7403d4d606b6e074ec5d3baf39d18"
ZERO_BLOCK_TAG_HEX = "d0d1c8a799996bf0265b98b5d48ab919"

# Fixed key for deterministic tests
TEST_KEY = bytes(range(32))
TEST_KEY_TOKEN = "AAECAwQFBgcICQoLDA0ODxAREhMUFRYXGBkaGxwdHh8="

# Files covering edge cases: name -> (filename, content)
TEST_FILES = {
    "empty": ("empty.bin", b""),
    "ten_bytes": ("a.txt", b"0123456789"),
    "text": ("notes.txt", b"Hello, relay!\n"),
    "binary": ("blob.dat", bytes(range(256)) * 4),
    "trailer_like": ("x", b"\x05\x00\x00\x00\x00\x00\x00\x00"),
    "unicode_name": ("résumé 你好.pdf", b"%PDF-1.7"),
    "no_extension": ("Makefile", b"all:\n\ttrue\n"),
    "long_name": ("n" * 255, b"long"),
}
