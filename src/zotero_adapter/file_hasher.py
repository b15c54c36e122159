"""
FileHasher module for attachment content hashing
"""
import hashlib


class FileHasher:
    """Utility class for the MD5 digests the file upload protocol exchanges"""

    @staticmethod
    def generate_content_hash(data: bytes) -> str:
        """Generate hex MD5 digest of raw file bytes"""
        return hashlib.md5(bytes(data)).hexdigest()
