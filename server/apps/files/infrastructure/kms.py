"""AWS KMS client for encrypting file contents.

KMS ``Encrypt`` accepts at most 4096 bytes of plaintext per call, so
payloads are split into chunks and every chunk is encrypted by KMS
separately. The resulting envelope is a sequence of frames::

    <4-byte big-endian length><KMS ciphertext blob>

An empty payload produces an empty envelope. Key material never
leaves KMS; this module only handles opaque ciphertext blobs.
"""

import io
import logging
import struct
from collections.abc import Iterator
from typing import BinaryIO, Final, final

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from server.apps.files.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

KMS_MAX_PLAINTEXT_BYTES: Final = 4096

_FRAME_HEADER: Final = struct.Struct('>I')


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, stopping early only at end of stream."""
    buffer = bytearray()
    while len(buffer) < size:
        chunk = stream.read(size - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


@final
class KeyServiceClient:
    """Encrypts and decrypts payloads under a single KMS key.

    The key identifier is resolved once at startup and stays fixed for
    the lifetime of the client.
    """

    def __init__(self, client: BaseClient, key_id: str) -> None:
        """Initialize the client.

        Args:
            client: boto3 KMS client.
            key_id: KMS key id, ARN or alias used for encryption.
        """
        self._client = client
        self._key_id = key_id

    @property
    def key_id(self) -> str:
        """KMS key identifier used for encryption."""
        return self._key_id

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt a payload of any size.

        Args:
            plaintext: Bytes to encrypt (may be empty).

        Returns:
            Framed ciphertext envelope.

        Raises:
            UpstreamServiceError: If KMS rejects any chunk.
        """
        frames: list[bytes] = []
        for offset in range(0, len(plaintext), KMS_MAX_PLAINTEXT_BYTES):
            chunk = plaintext[offset:offset + KMS_MAX_PLAINTEXT_BYTES]
            blob = self._encrypt_chunk(chunk)
            frames.append(_FRAME_HEADER.pack(len(blob)))
            frames.append(blob)

        logger.debug(
            'Encrypted %d bytes in %d chunks',
            len(plaintext),
            len(frames) // 2,
        )
        return b''.join(frames)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt an envelope produced by ``encrypt``.

        Args:
            ciphertext: Framed ciphertext envelope.

        Returns:
            Original plaintext.

        Raises:
            UpstreamServiceError: If the envelope is malformed or KMS
                refuses to decrypt it.
        """
        return b''.join(self.decrypt_stream(io.BytesIO(ciphertext)))

    def decrypt_stream(self, stream: BinaryIO) -> Iterator[bytes]:
        """Decrypt an envelope frame by frame.

        Only one frame is held in memory at a time.

        Args:
            stream: Readable stream positioned at the envelope start.

        Yields:
            Plaintext chunks in order.

        Raises:
            UpstreamServiceError: If the envelope is malformed, the
                stream fails, or KMS refuses to decrypt a frame.
        """
        while True:
            header = self._read(stream, _FRAME_HEADER.size)
            if not header:
                return
            if len(header) != _FRAME_HEADER.size:
                raise UpstreamServiceError(
                    'Ciphertext envelope is truncated',
                    operation='decrypt',
                )

            (blob_size,) = _FRAME_HEADER.unpack(header)
            blob = self._read(stream, blob_size)
            if not blob_size or len(blob) != blob_size:
                raise UpstreamServiceError(
                    'Ciphertext envelope is truncated',
                    operation='decrypt',
                )

            yield self._decrypt_chunk(blob)

    def _read(self, stream: BinaryIO, size: int) -> bytes:
        try:
            return _read_exactly(stream, size)
        except (BotoCoreError, OSError) as error:
            raise UpstreamServiceError(
                'Failed to read ciphertext stream',
                operation='decrypt',
            ) from error

    def _encrypt_chunk(self, chunk: bytes) -> bytes:
        try:
            response = self._client.encrypt(
                KeyId=self._key_id,
                Plaintext=chunk,
            )
        except (BotoCoreError, ClientError) as error:
            logger.exception('KMS encrypt failed for key: %s', self._key_id)
            raise UpstreamServiceError(
                'KMS encryption failed',
                operation='encrypt',
            ) from error
        return response['CiphertextBlob']

    def _decrypt_chunk(self, blob: bytes) -> bytes:
        try:
            response = self._client.decrypt(CiphertextBlob=blob)
        except (BotoCoreError, ClientError) as error:
            logger.exception('KMS decrypt failed')
            raise UpstreamServiceError(
                'KMS decryption failed',
                operation='decrypt',
            ) from error
        return response['Plaintext']
